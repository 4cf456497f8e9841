"""Shared psycopg3 connection pool for report reads.

Every connection handed out is read-only and in autocommit mode: reports
only ever SELECT, so there is no transaction to manage and a retried
fetch can never leave a connection mid-transaction.
"""

import logging
from contextlib import contextmanager
from typing import Iterable

import psycopg
from psycopg import sql
from psycopg.conninfo import make_conninfo
from psycopg_pool import ConnectionPool

from .config import Config

log = logging.getLogger(__name__)

_pool: ConnectionPool | None = None


def conninfo_for(config: Config) -> str:
    """libpq connection string, with search_path set to the report schema."""
    return make_conninfo(
        dbname=config.db_name,
        host=config.db_host,
        port=config.db_port,
        user=config.db_user,
        password=config.db_password,
        options=f"-csearch_path={config.db_schema},public",
        application_name="bluebox-reports",
    )


def _configure(conn: psycopg.Connection) -> None:
    conn.autocommit = True
    conn.read_only = True


def init_pool(config: Config) -> ConnectionPool:
    """Open the global pool. Call once before running reports."""
    global _pool

    log.info(
        "Opening read-only pool (%d-%d connections) to %s@%s:%d/%s, schema %s",
        config.pool_min_size, config.pool_max_size,
        config.db_user, config.db_host, config.db_port, config.db_name,
        config.db_schema,
    )

    _pool = ConnectionPool(
        conninfo=conninfo_for(config),
        min_size=config.pool_min_size,
        max_size=config.pool_max_size,
        configure=_configure,
        name="bluebox-reports",
        open=True,
    )
    return _pool


def get_pool() -> ConnectionPool:
    if _pool is None:
        raise RuntimeError("Connection pool not initialized. Call init_pool() first.")
    return _pool


@contextmanager
def connection():
    """Borrow a pooled connection for the duration of the block."""
    with get_pool().connection() as conn:
        yield conn


def table_counts(tables: Iterable[str]) -> dict[str, int]:
    """Row count of each table, in the order given."""
    counts = {}
    with connection() as conn:
        for name in tables:
            row = conn.execute(
                sql.SQL("SELECT count(*) FROM {}").format(sql.Identifier(name))
            ).fetchone()
            counts[name] = row[0]
    return counts


def server_version() -> str:
    with connection() as conn:
        return conn.execute("SELECT version()").fetchone()[0].split(",")[0]


def missing_columns(schema_name: str, columns: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    """The (table, column) pairs from ``columns`` absent in ``schema_name``."""
    with connection() as conn:
        present = set(conn.execute(
            "SELECT table_name, column_name FROM information_schema.columns"
            " WHERE table_schema = %s",
            (schema_name,),
        ).fetchall())
    return [pair for pair in columns if pair not in present]


def close_pool():
    global _pool
    if _pool is not None:
        _pool.close()
        _pool = None
        log.info("Connection pool closed")

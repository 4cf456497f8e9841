"""Where entity rows come from.

The engine only ever asks a source for the listed columns of one logical
table. ``PostgresSource`` reads through the shared psycopg3 connection
pool; ``MemorySource`` serves rows held in memory (fixtures, exports,
offline runs). Rows are returned in a stable order so that ties in
rankings always break the same way.
"""

import logging
from typing import Iterable, Mapping, Protocol, Sequence

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .errors import SourceUnavailableError
from .schema import Table

log = logging.getLogger(__name__)


class DataSource(Protocol):
    def fetch(self, table: Table, columns: Sequence[str]) -> list[dict]:
        """Return every row of ``table`` restricted to ``columns``."""
        ...


class MemorySource:
    """Entity rows held in memory, keyed by table name.

    Rows keep their insertion order. Columns missing from a row read as
    NULL.
    """

    def __init__(self, tables: Mapping[str, Iterable[Mapping]]):
        self._tables = {name: [dict(r) for r in rows] for name, rows in tables.items()}

    def fetch(self, table: Table, columns: Sequence[str]) -> list[dict]:
        try:
            rows = self._tables[table.name]
        except KeyError:
            raise SourceUnavailableError(table.name, "is not loaded") from None
        return [{c: row.get(c) for c in columns} for row in rows]


class PostgresSource:
    """Entity rows read from PostgreSQL.

    Each fetch is a single ``SELECT cols FROM table ORDER BY <pk>``.
    Connection-level failures (``psycopg.OperationalError``, which covers
    pool timeouts) are retried with exponential backoff; reads have no
    side effects so a retry is always safe.
    """

    def __init__(self, pool: ConnectionPool | None = None, retries: int = 3):
        self.pool = pool
        self.retries = retries

    def fetch(self, table: Table, columns: Sequence[str]) -> list[dict]:
        query = sql.SQL("SELECT {columns} FROM {table} ORDER BY {order}").format(
            columns=sql.SQL(", ").join(sql.Identifier(c) for c in columns),
            table=sql.Identifier(table.name),
            order=sql.SQL(", ").join(sql.Identifier(c) for c in table.primary_key),
        )

        retrying = Retrying(
            stop=stop_after_attempt(self.retries),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
            retry=retry_if_exception_type(psycopg.OperationalError),
            before_sleep=lambda state: log.warning(
                "Fetching %s failed, retrying in %.1fs (attempt %d/%d)",
                table.name, state.next_action.sleep, state.attempt_number, self.retries,
            ),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                rows = self._execute(query)

        log.debug("Fetched %d rows from %s (%s)", len(rows), table.name, ", ".join(columns))
        return rows

    def _execute(self, query: sql.Composed) -> list[dict]:
        with self._connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query)
                return cur.fetchall()

    def _connection(self):
        if self.pool is not None:
            return self.pool.connection()

        from .db import connection
        return connection()

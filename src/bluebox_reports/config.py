"""Configuration loading from .env files."""

import os
from dataclasses import dataclass, fields

from dotenv import find_dotenv, load_dotenv


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    # Database
    db_name: str = "bluebox"
    db_host: str = "localhost"
    db_user: str = "postgres"
    db_password: str = "password"
    db_port: int = 5432
    db_schema: str = "public"

    # Connection pool
    pool_min_size: int = 1
    pool_max_size: int = 4

    # Execution
    worker_threads: int = 1
    run_timeout: float = 0.0
    fetch_retries: int = 3

    # OpenTelemetry (optional)
    otel_endpoint: str = ""
    otel_headers: str = ""
    otel_service_name: str = "bluebox-reports"

    @property
    def otel_enabled(self) -> bool:
        """True when OTel tracing should be initialized."""
        return bool(self.otel_endpoint)

    @property
    def timeout(self) -> float | None:
        """Per-run deadline in seconds, or None when unbounded."""
        return self.run_timeout if self.run_timeout > 0 else None

    def validate(self):
        """Raise ValueError if required config is missing or invalid."""
        if not self.db_schema:
            raise ValueError("DB_SCHEMA must not be empty")
        if self.pool_min_size < 1:
            raise ValueError("POOL_MIN_SIZE must be >= 1")
        if self.pool_max_size < self.pool_min_size:
            raise ValueError("POOL_MAX_SIZE must be >= POOL_MIN_SIZE")
        if self.worker_threads < 1:
            raise ValueError("WORKER_THREADS must be >= 1")
        if self.run_timeout < 0:
            raise ValueError("RUN_TIMEOUT must be >= 0")
        if self.fetch_retries < 1:
            raise ValueError("FETCH_RETRIES must be >= 1")


# Config field -> environment variable
ENV_VARS = {
    "db_name": "DB_NAME",
    "db_host": "DB_HOST",
    "db_user": "DB_USER",
    "db_password": "DB_PASSWORD",
    "db_port": "DB_PORT",
    "db_schema": "DB_SCHEMA",
    "pool_min_size": "POOL_MIN_SIZE",
    "pool_max_size": "POOL_MAX_SIZE",
    "worker_threads": "WORKER_THREADS",
    "run_timeout": "RUN_TIMEOUT",
    "fetch_retries": "FETCH_RETRIES",
    "otel_endpoint": "OTEL_EXPORTER_OTLP_ENDPOINT",
    "otel_headers": "OTEL_EXPORTER_OTLP_HEADERS",
    "otel_service_name": "OTEL_SERVICE_NAME",
}


def load_config(env_file: str | None = None) -> Config:
    """Build a Config from the environment, after loading a .env file.

    Args:
        env_file: Path to .env file. If None, the nearest .env found
                  walking up from the working directory is used, if any.
                  Variables already set in the environment take
                  precedence over the file.
    """
    dotenv_path = env_file or find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path)

    values = {}
    for f in fields(Config):
        raw = os.getenv(ENV_VARS[f.name], "")
        if raw != "":
            values[f.name] = type(f.default)(raw)
    return Config(**values)

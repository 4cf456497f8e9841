"""Declarative analytical reports over the Bluebox film rental schema."""

from .catalog import ReportCatalog
from .definitions import ReportDefinition, define
from .engine import ExecutionEngine, ExecutionPlan
from .errors import (
    BlueboxReportsError,
    CyclicDependencyError,
    DuplicateNameError,
    ReportExecutionError,
    ReportTimeoutError,
    SourceUnavailableError,
    UnknownFieldError,
    UnknownInputError,
    UnknownReportError,
)
from .formatter import ResultSet
from .schema import RENTAL_SCHEMA, Schema
from .sources import MemorySource, PostgresSource
from .views import ViewManager

__version__ = "0.1.0"

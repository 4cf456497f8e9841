"""Exception taxonomy for report authoring and execution."""


class BlueboxReportsError(Exception):
    """Base class for all report engine errors."""


class UnknownFieldError(BlueboxReportsError, LookupError):
    """A table or column is not registered with the schema adapter."""

    def __init__(self, table: str, column: str | None = None):
        self.table = table
        self.column = column
        if column is None:
            super().__init__(f"Unknown table '{table}'")
        else:
            super().__init__(f"Unknown field '{table}.{column}'")


class DuplicateNameError(BlueboxReportsError):
    """A report with the same name is already registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Report '{name}' is already defined")


class UnknownInputError(BlueboxReportsError):
    """A report input is neither an entity source nor a defined report."""

    def __init__(self, report: str, source: str):
        self.report = report
        self.source = source
        super().__init__(
            f"Report '{report}' references unknown input '{source}' "
            f"(not a table and not a defined report)"
        )


class CyclicDependencyError(BlueboxReportsError):
    """Report inputs form a cycle."""

    def __init__(self, cycle: list[str]):
        self.cycle = list(cycle)
        super().__init__("Cyclic report dependency: " + " -> ".join(self.cycle))


class ReportExecutionError(BlueboxReportsError):
    """Computing a report failed; the run is aborted with no partial results."""

    def __init__(self, report: str, cause: BaseException):
        self.report = report
        self.cause = cause
        super().__init__(f"Report '{report}' failed: {cause}")


class ReportTimeoutError(BlueboxReportsError, TimeoutError):
    """A run exceeded its deadline."""

    def __init__(self, timeout: float, pending: list[str]):
        self.timeout = timeout
        self.pending = list(pending)
        super().__init__(
            f"Run exceeded {timeout:.1f}s deadline; unfinished reports: "
            + ", ".join(self.pending)
        )


class UnknownReportError(BlueboxReportsError, LookupError):
    """No report with this name is registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown report '{name}'")


class SourceUnavailableError(BlueboxReportsError):
    """The data source cannot provide an entity table."""

    def __init__(self, table: str, reason: str = "not available"):
        self.table = table
        super().__init__(f"Table '{table}' {reason}")

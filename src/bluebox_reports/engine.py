"""Execution engine — plans and runs reports against a data source.

A run orders the requested reports and their transitive inputs
topologically, then materializes each report exactly once, caching its
ResultSet (and every entity table it read) for the rest of the run.
Nothing is shared between runs.

With one worker and no deadline reports run inline on the calling
thread. Otherwise a thread pool runs independent reports concurrently;
a report is only submitted once all of its inputs are materialized.
"""

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Iterable, Mapping

from .catalog import ReportCatalog
from .config import Config
from .definitions import KeyUnion, ReportDefinition
from .errors import (
    ReportExecutionError,
    ReportTimeoutError,
    UnknownFieldError,
)
from .formatter import ResultSet, build_result, round_aggregates
from .relational import filter_rows, group, join, key_union, qualify
from .sources import DataSource
from .tracing import current_context, report_span, run_span

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionPlan:
    """Topological ordering of the reports one run needs."""
    targets: tuple[str, ...]
    order: tuple[str, ...]
    inputs: Mapping[str, tuple[str, ...]]

    def __iter__(self):
        return iter(self.order)

    def __len__(self) -> int:
        return len(self.order)

    def ready(self, done: Iterable[str], running: Iterable[str] = ()) -> list[str]:
        """Reports not yet started whose inputs are all materialized."""
        done = set(done)
        started = done | set(running)
        return [
            name for name in self.order
            if name not in started and all(dep in done for dep in self.inputs[name])
        ]


class _RunCache:
    """Write-once store of everything materialized during one run."""

    def __init__(self, catalog: ReportCatalog, source: DataSource,
                 columns: Mapping[str, list[str]]):
        self._catalog = catalog
        self._source = source
        self._columns = columns
        self._results: dict[str, ResultSet] = {}
        self._tables: dict[str, list[dict]] = {}
        self._lock = threading.Lock()
        self._table_locks: dict[str, threading.Lock] = {}

    def store(self, name: str, result: ResultSet) -> None:
        with self._lock:
            if name in self._results:
                raise RuntimeError(f"Report '{name}' materialized twice in one run")
            self._results[name] = result

    def result(self, name: str) -> ResultSet:
        return self._results[name]

    def columns(self, table: str) -> list[str]:
        return self._columns[table]

    def table(self, name: str) -> list[dict]:
        """Entity rows, fetched from the source on first use."""
        with self._lock:
            lock = self._table_locks.setdefault(name, threading.Lock())
        with lock:
            if name not in self._tables:
                table = self._catalog.schema.table(name)
                self._tables[name] = self._source.fetch(table, self._columns[name])
            return self._tables[name]


class ExecutionEngine:
    """Runs reports from a catalog against a data source."""

    def __init__(self, catalog: ReportCatalog, source: DataSource,
                 max_workers: int = 1, timeout: float | None = None):
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.catalog = catalog
        self.source = source
        self.max_workers = max_workers
        self.timeout = timeout

    @classmethod
    def from_config(cls, catalog: ReportCatalog, source: DataSource,
                    config: Config) -> "ExecutionEngine":
        return cls(catalog, source, max_workers=config.worker_threads, timeout=config.timeout)

    def plan(self, *names: str) -> ExecutionPlan:
        """Execution plan for ``names`` (every report when none given)."""
        targets = tuple(names) if names else tuple(self.catalog.names)
        order = tuple(self.catalog.plan(targets))
        inputs = {name: tuple(self.catalog.report_inputs(name)) for name in order}
        return ExecutionPlan(targets, order, inputs)

    def run(self, name: str) -> ResultSet:
        """Run one report (and whatever it depends on)."""
        return self._execute(self.plan(name))[name]

    def run_all(self) -> dict[str, ResultSet]:
        """Run every report in the catalog."""
        return self._execute(self.plan())

    def run_many(self, names: Iterable[str]) -> dict[str, ResultSet]:
        return self._execute(self.plan(*names))

    # -- internals ----------------------------------------------------------

    def _execute(self, plan: ExecutionPlan) -> dict[str, ResultSet]:
        started = time.monotonic()
        log.info("Running %d report(s) for %s", len(plan), ", ".join(plan.targets))

        cache = _RunCache(self.catalog, self.source, self._required_columns(plan))
        with run_span(plan.targets, len(plan)):
            if self.max_workers == 1 and self.timeout is None:
                for name in plan:
                    self._materialize(name, cache)
            else:
                self._execute_pooled(plan, cache, current_context())

        log.info("Run finished in %.2fs", time.monotonic() - started)
        return {name: cache.result(name) for name in plan.targets}

    def _execute_pooled(self, plan: ExecutionPlan, cache: _RunCache, trace_context=None) -> None:
        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        done: set[str] = set()
        running: dict[Future, str] = {}
        pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="report")
        try:
            while len(done) < len(plan):
                for name in plan.ready(done, running.values()):
                    running[pool.submit(self._materialize, name, cache, trace_context)] = name

                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    raise ReportTimeoutError(self.timeout, [n for n in plan if n not in done])

                finished, _ = wait(running, timeout=remaining, return_when=FIRST_COMPLETED)
                if not finished:
                    raise ReportTimeoutError(self.timeout, [n for n in plan if n not in done])

                for future in finished:
                    name = running.pop(future)
                    future.result()
                    done.add(name)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    def _required_columns(self, plan: ExecutionPlan) -> dict[str, list[str]]:
        """Entity columns every report in the plan reads, per table.

        Resolving them up front means an unknown table or column fails the
        run before anything is fetched.
        """
        needed: dict[str, set[str]] = {}
        for name in plan:
            definition = self.catalog.get(name)
            try:
                self._collect_columns(definition, needed)
            except UnknownFieldError as exc:
                raise ReportExecutionError(name, exc) from exc

        columns = {}
        for table_name, wanted in needed.items():
            table = self.catalog.schema.table(table_name)
            wanted |= set(table.primary_key)
            columns[table_name] = [c for c in table.columns if c in wanted]
        return columns

    def _collect_columns(self, definition: ReportDefinition, needed: dict[str, set[str]]) -> None:
        by_alias = {inp.alias: inp for inp in definition.inputs}
        for inp in definition.inputs:
            if not isinstance(inp, KeyUnion) and self.catalog.is_entity(inp.source):
                needed.setdefault(inp.source, set())

        for ref in definition.row_refs():
            alias, _, column = ref.partition(".")
            inp = by_alias.get(alias)
            if inp is None:
                raise UnknownFieldError(alias, column or None)
            if isinstance(inp, KeyUnion):
                for src in inp.sources:
                    if inp.key not in self.catalog.source_columns(src):
                        raise UnknownFieldError(src, inp.key)
                continue
            if self.catalog.is_entity(inp.source):
                self.catalog.schema.field(inp.source, column)
                needed[inp.source].add(column)
            elif column not in self.catalog.source_columns(inp.source):
                raise UnknownFieldError(inp.source, column)

    def _materialize(self, name: str, cache: _RunCache, trace_context=None) -> None:
        definition = self.catalog.get(name)
        inputs = ",".join(definition.dependencies)
        with report_span(name, trace_context, **{"report.inputs": inputs}) as span:
            try:
                result = self._compute(definition, cache)
            except ReportExecutionError:
                raise
            except Exception as exc:
                log.error("Report '%s' failed: %s", name, exc)
                raise ReportExecutionError(name, exc) from exc
            if span:
                span.set_attribute("report.rows", len(result))
        cache.store(name, result)
        log.debug("Materialized '%s' (%d rows)", name, len(result))

    def _compute(self, definition: ReportDefinition, cache: _RunCache) -> ResultSet:
        rows: list[dict] | None = None
        for inp in definition.inputs:
            if isinstance(inp, KeyUnion):
                key_sets = [cache.result(src).column(inp.key) for src in inp.sources]
                rows = key_union(key_sets, inp.alias, inp.key)
                continue

            if self.catalog.is_entity(inp.source):
                raw = cache.table(inp.source)
                columns = cache.columns(inp.source)
            else:
                upstream = cache.result(inp.source)
                raw = upstream.rows
                columns = upstream.columns
            right = qualify(raw, inp.alias)

            if rows is None:
                rows = right
            else:
                on = [(left, f"{inp.alias}.{col}") for left, col in inp.on]
                rows = join(rows, right, on, inp.join, [f"{inp.alias}.{c}" for c in columns])

        rows = filter_rows(rows, definition.where)
        rows = group(rows, definition.group_by, definition.aggregates)
        rows = round_aggregates(rows, definition)

        if definition.having is not None:
            # each scalar is computed once over the aggregated rows
            scalars = {s: s.compute(rows) for s in definition.having.scalars()}
            rows = filter_rows(rows, definition.having, scalars)

        return build_result(definition, rows, self.catalog.output_schema(definition.name))

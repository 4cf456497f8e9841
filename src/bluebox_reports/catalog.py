"""Report registration and dependency resolution.

The catalog is the composition layer: it owns the set of report
definitions, checks that every input is either an entity table known to
the schema adapter or another report, and resolves the dependency DAG
into an execution order. It is built once at startup and handed to the
execution engine explicitly.
"""

import logging
from decimal import Decimal
from graphlib import CycleError, TopologicalSorter
from typing import Iterable, Iterator

from .definitions import KeyUnion, ReportDefinition, define
from .errors import (
    CyclicDependencyError,
    DuplicateNameError,
    UnknownFieldError,
    UnknownInputError,
    UnknownReportError,
)
from .expressions import AggFunc
from .schema import RENTAL_SCHEMA, Schema

log = logging.getLogger(__name__)


class ReportCatalog:
    """Immutable-once-built set of report definitions over one schema."""

    def __init__(self, schema: Schema = RENTAL_SCHEMA):
        self.schema = schema
        self._reports: dict[str, ReportDefinition] = {}
        self._output_schemas: dict[str, dict[str, type]] = {}

    # -- registration -------------------------------------------------------

    def register(self, definition: ReportDefinition) -> ReportDefinition:
        """Add a definition whose inputs are tables or already-registered reports."""
        name = definition.name
        existing = self._reports.get(name)
        if existing is not None:
            if existing.standing and existing == definition:
                log.debug("Standing report '%s' re-defined unchanged, ignoring", name)
                return existing
            raise DuplicateNameError(name)
        if name in self.schema:
            raise DuplicateNameError(name)

        dependencies = definition.dependencies
        if name in dependencies:
            raise CyclicDependencyError([name, name])
        for src in dependencies:
            if src not in self.schema and src not in self._reports:
                raise UnknownInputError(name, src)
        for src in definition.union_sources:
            if src not in self._reports:
                raise UnknownInputError(name, src)

        self._reports[name] = definition
        log.debug("Registered report '%s' (inputs: %s)", name, ", ".join(dependencies))
        return definition

    def define(self, name: str, inputs, group_by=(), aggregates=(), **options) -> ReportDefinition:
        """Build and register a definition in one step."""
        return self.register(define(name, inputs, group_by, aggregates, **options))

    @classmethod
    def from_definitions(cls, definitions: Iterable[ReportDefinition],
                         schema: Schema = RENTAL_SCHEMA) -> "ReportCatalog":
        """Build a catalog from definitions that may reference each other in any order.

        Raises DuplicateNameError, UnknownInputError or CyclicDependencyError
        before anything is registered.
        """
        batch: dict[str, ReportDefinition] = {}
        for definition in definitions:
            if definition.name in batch or definition.name in schema:
                raise DuplicateNameError(definition.name)
            batch[definition.name] = definition

        graph = {}
        for name, definition in batch.items():
            deps = []
            for src in definition.dependencies:
                if src in batch:
                    deps.append(src)
                elif src not in schema:
                    raise UnknownInputError(name, src)
            for src in definition.union_sources:
                if src not in batch:
                    raise UnknownInputError(name, src)
            graph[name] = deps

        try:
            order = list(TopologicalSorter(graph).static_order())
        except CycleError as exc:
            cycle = list(reversed(exc.args[1]))
            raise CyclicDependencyError(cycle) from None

        catalog = cls(schema)
        for name in order:
            catalog.register(batch[name])
        return catalog

    # -- lookup -------------------------------------------------------------

    def __contains__(self, name: str) -> bool:
        return name in self._reports

    def __iter__(self) -> Iterator[ReportDefinition]:
        return iter(self._reports.values())

    def __len__(self) -> int:
        return len(self._reports)

    @property
    def names(self) -> list[str]:
        return list(self._reports)

    def get(self, name: str) -> ReportDefinition:
        try:
            return self._reports[name]
        except KeyError:
            raise UnknownReportError(name) from None

    def is_entity(self, source: str) -> bool:
        return source in self.schema and source not in self._reports

    def report_inputs(self, name: str) -> list[str]:
        """Direct inputs of ``name`` that are reports (not tables)."""
        return [s for s in self.get(name).dependencies if s in self._reports]

    def dependencies(self, name: str) -> set[str]:
        """Transitive report inputs of ``name``."""
        seen: set[str] = set()
        stack = self.report_inputs(name)
        while stack:
            current = stack.pop()
            if current not in seen:
                seen.add(current)
                stack.extend(self.report_inputs(current))
        return seen

    def plan(self, names: Iterable[str]) -> list[str]:
        """Topological order of ``names`` and their transitive inputs.

        Inputs come before dependents; otherwise reports keep the order in
        which they are first reached, so the plan is deterministic.
        """
        order: list[str] = []
        visiting: list[str] = []

        def visit(name: str):
            if name in order:
                return
            if name in visiting:
                cycle = visiting[visiting.index(name):] + [name]
                raise CyclicDependencyError(cycle)
            visiting.append(name)
            for dep in self.report_inputs(name):
                visit(dep)
            visiting.pop()
            order.append(name)

        for name in names:
            self.get(name)
            visit(name)
        return order

    # -- typing -------------------------------------------------------------

    def source_columns(self, source: str) -> list[str]:
        """Columns a source exposes: table columns or report output columns."""
        if source in self._reports:
            return self._reports[source].output_columns
        return self.schema.table(source).columns

    def resolve_ref(self, definition: ReportDefinition, ref: str) -> type:
        """Type of a qualified ``alias.column`` key read by ``definition``."""
        alias, _, column = ref.partition(".")
        for inp in definition.inputs:
            if inp.alias != alias:
                continue
            if isinstance(inp, KeyUnion):
                if column != inp.key:
                    raise UnknownFieldError(alias, column)
                return self.output_schema(inp.sources[0])[inp.key]
            if inp.source in self._reports:
                columns = self.output_schema(inp.source)
                if column not in columns:
                    raise UnknownFieldError(inp.source, column)
                return columns[column]
            return self.schema.field(inp.source, column).type
        raise UnknownFieldError(alias, column or None)

    def output_schema(self, name: str) -> dict[str, type]:
        """Column name -> Python type for the rows ``name`` produces."""
        if name in self._output_schemas:
            return dict(self._output_schemas[name])

        definition = self.get(name)

        def resolve(ref: str) -> type:
            return self.resolve_ref(definition, ref)

        types: dict[str, type] = {}
        for c in definition.group_by:
            types[c.name] = c.expr.output_type(resolve)
        for a in definition.aggregates:
            if a.func is AggFunc.COUNT:
                types[a.name] = int
            elif a.func is AggFunc.AVG:
                types[a.name] = Decimal
            else:
                types[a.name] = a.expr.output_type(resolve)

        result = {c: types[c] for c in definition.output_columns}
        self._output_schemas[name] = result
        return dict(result)

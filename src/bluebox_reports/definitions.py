"""Declarative report definitions.

A ReportDefinition describes one analytical question: the inputs it
joins (entity tables or other reports), the grouping keys and aggregates
it computes, row-level and post-aggregation filters, and how the final
rows are ranked, limited and projected. Definitions are immutable; the
catalog resolves their inputs and the engine executes them.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Mapping

from .expressions import AggFunc, Expr, Predicate, as_expr


class JoinKind(enum.Enum):
    """How a non-primary input is joined to the rows built so far."""
    REQUIRED = "required"  # inner join: unmatched rows are dropped
    OPTIONAL = "optional"  # left outer join: unmatched rows keep NULLs


class Direction(enum.Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class Input:
    """One table or report feeding a definition.

    ``on`` pairs a key already present in the joined rows (``alias.column``)
    with a column of this input. The primary input has no ``on``.
    """
    source: str
    alias: str = ""
    on: tuple[tuple[str, str], ...] = ()
    join: JoinKind = JoinKind.REQUIRED

    def __post_init__(self):
        if not self.alias:
            object.__setattr__(self, "alias", self.source)
        if isinstance(self.on, Mapping):
            object.__setattr__(self, "on", tuple(self.on.items()))
        else:
            object.__setattr__(self, "on", tuple(tuple(pair) for pair in self.on))

    @property
    def sources(self) -> tuple[str, ...]:
        return (self.source,)


@dataclass(frozen=True)
class KeyUnion:
    """Primary input made of the distinct ``key`` values of several reports.

    Produces the union (not the intersection) of the keys, sorted
    ascending, as rows of a single column ``alias.key``.
    """
    alias: str
    sources: tuple[str, ...]
    key: str

    def __post_init__(self):
        object.__setattr__(self, "sources", tuple(self.sources))
        if len(self.sources) < 2:
            raise ValueError("KeyUnion needs at least two sources")

    on = ()
    join = JoinKind.REQUIRED


@dataclass(frozen=True)
class Column:
    """A grouping key: output name plus the expression producing it."""
    name: str
    expr: Expr


@dataclass(frozen=True)
class Aggregate:
    """An aggregate output column.

    ``expr=None`` with COUNT counts rows (COUNT(*)). ``coalesce`` replaces
    a NULL result, e.g. ``coalesce=0`` for COALESCE(SUM(x), 0). AVG is
    always rounded to two decimal places.
    """
    name: str
    func: AggFunc
    expr: Expr | None = None
    distinct: bool = False
    coalesce: Any = None

    def __post_init__(self):
        if self.expr is None and self.func is not AggFunc.COUNT:
            raise ValueError(f"Aggregate '{self.name}': {self.func.name} needs an expression")

    def refs(self) -> set[str]:
        return self.expr.refs() if self.expr is not None else set()


@dataclass(frozen=True)
class OrderBy:
    key: str
    direction: Direction = Direction.ASC


@dataclass(frozen=True)
class LimitPerGroup:
    """Top-N per partition (ROW_NUMBER() OVER (PARTITION BY .. ORDER BY ..) <= n).

    Ties on ``order_key`` keep their input order.
    """
    n: int
    partition_key: str
    order_key: str
    direction: Direction = Direction.DESC

    def __post_init__(self):
        if self.n < 1:
            raise ValueError("LimitPerGroup.n must be >= 1")


def _tuple(value) -> tuple:
    if value is None:
        return ()
    if isinstance(value, (str, Input, KeyUnion, Column, Aggregate, OrderBy)):
        return (value,)
    return tuple(value)


@dataclass(frozen=True)
class ReportDefinition:
    """A named, declarative analytical query unit.

    Rows always collapse on ``group_by``: a definition without aggregates
    yields the distinct key combinations. ``having`` and ``order_by`` see
    every computed column; ``select`` narrows what is emitted.
    """
    name: str
    inputs: tuple[Input | KeyUnion, ...]
    group_by: tuple[Column, ...] = ()
    aggregates: tuple[Aggregate, ...] = ()
    where: Predicate | None = None
    having: Predicate | None = None
    order_by: tuple[OrderBy, ...] = ()
    limit: int | None = None
    limit_per_group: LimitPerGroup | None = None
    select: tuple[str, ...] | None = None
    standing: bool = False
    description: str = field(default="", compare=False)

    def __post_init__(self):
        object.__setattr__(self, "inputs", _tuple(self.inputs))
        object.__setattr__(self, "group_by", _tuple(self.group_by))
        object.__setattr__(self, "aggregates", _tuple(self.aggregates))
        object.__setattr__(self, "order_by", _tuple(self.order_by))
        if self.select is not None:
            object.__setattr__(self, "select", _tuple(self.select))
        self._validate()

    def _validate(self):
        if not self.name:
            raise ValueError("Report name must not be empty")
        if not self.inputs:
            raise ValueError(f"Report '{self.name}' has no inputs")
        if not self.group_by and not self.aggregates:
            raise ValueError(f"Report '{self.name}' has no output columns")

        primary, *joined = self.inputs
        if primary.on:
            raise ValueError(f"Report '{self.name}': primary input cannot have a join condition")
        for inp in joined:
            if isinstance(inp, KeyUnion):
                raise ValueError(f"Report '{self.name}': KeyUnion must be the primary input")
            if not inp.on:
                raise ValueError(f"Report '{self.name}': input '{inp.alias}' needs a join condition")

        aliases = [inp.alias for inp in self.inputs]
        if len(set(aliases)) != len(aliases):
            raise ValueError(f"Report '{self.name}': duplicate input alias")

        columns = self.columns
        if len(set(columns)) != len(columns):
            raise ValueError(f"Report '{self.name}': duplicate output column")
        known = set(columns)
        for name in self.select or ():
            if name not in known:
                raise ValueError(f"Report '{self.name}': selected column '{name}' is not computed")
        for order in self.order_by:
            if order.key not in known:
                raise ValueError(f"Report '{self.name}': cannot order by unknown column '{order.key}'")
        if self.limit_per_group is not None:
            for key in (self.limit_per_group.partition_key, self.limit_per_group.order_key):
                if key not in known:
                    raise ValueError(f"Report '{self.name}': unknown limit_per_group column '{key}'")
        if self.where is not None and self.where.scalars():
            raise ValueError(
                f"Report '{self.name}': where cannot use whole-result aggregates; use having"
            )
        if self.having is not None:
            missing = self.having.refs() - known
            missing |= {s.column for s in self.having.scalars()} - known
            if missing:
                raise ValueError(
                    f"Report '{self.name}': having references unknown columns {sorted(missing)}"
                )
        if self.limit is not None and self.limit < 0:
            raise ValueError(f"Report '{self.name}': limit must be >= 0")

    @property
    def columns(self) -> list[str]:
        """Every computed column: grouping keys then aggregates."""
        return [c.name for c in self.group_by] + [a.name for a in self.aggregates]

    @property
    def output_columns(self) -> list[str]:
        return list(self.select) if self.select is not None else self.columns

    @property
    def union_sources(self) -> list[str]:
        """Sources feeding a KeyUnion input; these must be reports."""
        return [s for inp in self.inputs if isinstance(inp, KeyUnion) for s in inp.sources]

    @property
    def dependencies(self) -> list[str]:
        """Input source names in declaration order, without duplicates."""
        names = []
        for inp in self.inputs:
            for source in inp.sources:
                if source not in names:
                    names.append(source)
        return names

    def row_refs(self) -> set[str]:
        """Qualified ``alias.column`` keys read before aggregation."""
        refs = set()
        for c in self.group_by:
            refs |= c.expr.refs()
        for a in self.aggregates:
            refs |= a.refs()
        if self.where is not None:
            refs |= self.where.refs()
        for inp in self.inputs:
            for left, right in inp.on:
                refs.add(left)
                refs.add(f"{inp.alias}.{right}")
        for inp in self.inputs:
            if isinstance(inp, KeyUnion):
                refs.add(f"{inp.alias}.{inp.key}")
        return refs


# ---------------------------------------------------------------------------
# Authoring helpers
# ---------------------------------------------------------------------------

def source(name: str, alias: str = "") -> Input:
    """The primary input of a definition."""
    return Input(name, alias)


def required(name: str, alias: str = "", on: Mapping[str, str] | None = None) -> Input:
    return Input(name, alias, tuple((on or {}).items()), JoinKind.REQUIRED)


def optional(name: str, alias: str = "", on: Mapping[str, str] | None = None) -> Input:
    return Input(name, alias, tuple((on or {}).items()), JoinKind.OPTIONAL)


def key_union(alias: str, sources: list[str], key: str) -> KeyUnion:
    return KeyUnion(alias, tuple(sources), key)


def key(name: str, expr=None) -> Column:
    """Grouping key ``name``; ``expr`` defaults to a column of the same name."""
    return Column(name, as_expr(expr if expr is not None else name))


def count(name: str, expr=None, distinct: bool = False, coalesce=None) -> Aggregate:
    return Aggregate(name, AggFunc.COUNT, as_expr(expr) if expr is not None else None,
                     distinct, coalesce)


def total(name: str, expr, coalesce=None) -> Aggregate:
    return Aggregate(name, AggFunc.SUM, as_expr(expr), False, coalesce)


def average(name: str, expr, coalesce=None) -> Aggregate:
    return Aggregate(name, AggFunc.AVG, as_expr(expr), False, coalesce)


def asc(key: str) -> OrderBy:
    return OrderBy(key, Direction.ASC)


def desc(key: str) -> OrderBy:
    return OrderBy(key, Direction.DESC)


def top_per_group(n: int, partition_key: str, order_key: str,
                  direction: Direction = Direction.DESC) -> LimitPerGroup:
    return LimitPerGroup(n, partition_key, order_key, direction)


def define(name: str, inputs, group_by=(), aggregates=(), **options) -> ReportDefinition:
    """Build a ReportDefinition; register it with ``ReportCatalog.register``."""
    return ReportDefinition(name, inputs, group_by, aggregates, **options)

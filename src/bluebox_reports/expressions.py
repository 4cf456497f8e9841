"""Row expressions, predicates and aggregate arithmetic.

Expressions are small frozen dataclasses evaluated against a row dict.
Before aggregation row keys are qualified as ``alias.column``; after
aggregation they are the report's output column names. Every expression
reports the keys it reads via ``refs()`` so the engine can resolve them
through the schema adapter before touching the data source.

NULL follows SQL rules: comparisons involving None are false, aggregates
skip None values.
"""

import enum
import operator
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Iterable, Mapping

AVG_PLACES = 2


class AggFunc(enum.Enum):
    COUNT = "count"
    SUM = "sum"
    AVG = "avg"


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_half_up(value, places: int = AVG_PLACES):
    """ROUND(x, places) as PostgreSQL does it for numeric values."""
    if value is None:
        return None
    return _to_decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def aggregate(func: AggFunc, values: Iterable, distinct: bool = False):
    """Apply an aggregate to already-evaluated values.

    COUNT returns 0 over no non-null values; SUM and AVG return None.
    AVG is not rounded here (see ``round_half_up``).
    """
    present = [v for v in values if v is not None]
    if distinct:
        present = list(dict.fromkeys(present))

    if func is AggFunc.COUNT:
        return len(present)
    if not present:
        return None
    if func is AggFunc.SUM:
        return sum(present[1:], present[0])
    if func is AggFunc.AVG:
        return sum(_to_decimal(v) for v in present) / Decimal(len(present))
    raise ValueError(f"Unsupported aggregate: {func}")


# ---------------------------------------------------------------------------
# Value expressions
# ---------------------------------------------------------------------------

class Expr:
    """Base class for value expressions."""

    def evaluate(self, row: Mapping[str, Any], scalars: Mapping | None = None) -> Any:
        raise NotImplementedError

    def refs(self) -> set[str]:
        return set()

    def scalars(self) -> list["Scalar"]:
        return []

    def output_type(self, resolve: Callable[[str], type]) -> type:
        raise NotImplementedError


@dataclass(frozen=True)
class Col(Expr):
    """Reference to a row key."""
    key: str

    def evaluate(self, row, scalars=None):
        return row[self.key]

    def refs(self):
        return {self.key}

    def output_type(self, resolve):
        return resolve(self.key)


@dataclass(frozen=True)
class Lit(Expr):
    value: Any

    def evaluate(self, row, scalars=None):
        return self.value

    def output_type(self, resolve):
        return type(self.value)


@dataclass(frozen=True)
class YearMonth(Expr):
    """TO_CHAR(ts, 'YYYY-MM')."""
    expr: Expr

    def evaluate(self, row, scalars=None):
        value = self.expr.evaluate(row, scalars)
        if value is None:
            return None
        return value.strftime("%Y-%m")

    def refs(self):
        return self.expr.refs()

    def output_type(self, resolve):
        return str


@dataclass(frozen=True)
class HoursBetween(Expr):
    """Whole hours from ``start`` to ``end``.

    Equivalent to EXTRACT(DAY FROM end - start) * 24 + EXTRACT(HOUR FROM
    end - start): minutes and seconds are dropped.
    """
    start: Expr
    end: Expr

    def evaluate(self, row, scalars=None):
        start = self.start.evaluate(row, scalars)
        end = self.end.evaluate(row, scalars)
        if start is None or end is None:
            return None
        delta = end - start
        sign = -1 if delta.total_seconds() < 0 else 1
        delta = abs(delta)
        return sign * (delta.days * 24 + delta.seconds // 3600)

    def refs(self):
        return self.start.refs() | self.end.refs()

    def output_type(self, resolve):
        return int


@dataclass(frozen=True)
class Scalar(Expr):
    """An aggregate over the whole aggregated result of the same report.

    Used in post-aggregation filters, e.g. ``total_rentals > AVG(total_rentals)``.
    The engine computes each scalar once and passes it in ``scalars``.
    """
    func: AggFunc
    column: str

    def evaluate(self, row, scalars=None):
        if scalars is None or self not in scalars:
            raise KeyError(f"Scalar {self.func.name}({self.column}) was not computed")
        return scalars[self]

    def compute(self, rows: Iterable[Mapping[str, Any]]):
        value = aggregate(self.func, (row[self.column] for row in rows))
        if self.func is AggFunc.AVG:
            value = round_half_up(value)
        return value

    def scalars(self):
        return [self]

    def output_type(self, resolve):
        if self.func is AggFunc.COUNT:
            return int
        if self.func is AggFunc.AVG:
            return Decimal
        return resolve(self.column)


def col(key: str) -> Col:
    return Col(key)


def lit(value) -> Lit:
    return Lit(value)


def as_expr(value) -> Expr:
    """Strings are column references; other non-Expr values are literals."""
    if isinstance(value, Expr):
        return value
    if isinstance(value, str):
        return Col(value)
    return Lit(value)


def year_month(value) -> YearMonth:
    return YearMonth(as_expr(value))


def hours_between(start, end) -> HoursBetween:
    return HoursBetween(as_expr(start), as_expr(end))


def avg_of(column: str) -> Scalar:
    return Scalar(AggFunc.AVG, column)


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

class Predicate:
    """Base class for boolean row tests."""

    def test(self, row: Mapping[str, Any], scalars: Mapping | None = None) -> bool:
        raise NotImplementedError

    def refs(self) -> set[str]:
        return set()

    def scalars(self) -> list[Scalar]:
        return []


@dataclass(frozen=True)
class IsNull(Predicate):
    expr: Expr

    def test(self, row, scalars=None):
        return self.expr.evaluate(row, scalars) is None

    def refs(self):
        return self.expr.refs()

    def scalars(self):
        return self.expr.scalars()


@dataclass(frozen=True)
class NotNull(Predicate):
    expr: Expr

    def test(self, row, scalars=None):
        return self.expr.evaluate(row, scalars) is not None

    def refs(self):
        return self.expr.refs()

    def scalars(self):
        return self.expr.scalars()


_OPERATORS = {
    "=": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}


@dataclass(frozen=True)
class Compare(Predicate):
    left: Expr
    op: str
    right: Expr

    def __post_init__(self):
        if self.op not in _OPERATORS:
            raise ValueError(f"Unknown comparison operator '{self.op}'")

    def test(self, row, scalars=None):
        left = self.left.evaluate(row, scalars)
        right = self.right.evaluate(row, scalars)
        if left is None or right is None:
            return False
        return _OPERATORS[self.op](left, right)

    def refs(self):
        return self.left.refs() | self.right.refs()

    def scalars(self):
        return self.left.scalars() + self.right.scalars()


@dataclass(frozen=True)
class And(Predicate):
    predicates: tuple[Predicate, ...]

    def test(self, row, scalars=None):
        return all(p.test(row, scalars) for p in self.predicates)

    def refs(self):
        return set().union(*(p.refs() for p in self.predicates))

    def scalars(self):
        return [s for p in self.predicates for s in p.scalars()]


@dataclass(frozen=True)
class Or(Predicate):
    predicates: tuple[Predicate, ...]

    def test(self, row, scalars=None):
        return any(p.test(row, scalars) for p in self.predicates)

    def refs(self):
        return set().union(*(p.refs() for p in self.predicates))

    def scalars(self):
        return [s for p in self.predicates for s in p.scalars()]


def is_null(value) -> IsNull:
    return IsNull(as_expr(value))


def not_null(value) -> NotNull:
    return NotNull(as_expr(value))


def compare(left, op: str, right) -> Compare:
    return Compare(as_expr(left), op, as_expr(right))


def eq(left, right) -> Compare:
    return compare(left, "=", right)


def gt(left, right) -> Compare:
    return compare(left, ">", right)


def lt(left, right) -> Compare:
    return compare(left, "<", right)


def all_of(*predicates: Predicate) -> And:
    return And(tuple(predicates))


def any_of(*predicates: Predicate) -> Or:
    return Or(tuple(predicates))


"""Rounding, ranking, ordering and projection of report rows.

Also holds ResultSet, the typed output of one report, and the plain-text
and JSON renderings used by the CLI.
"""

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterator, Mapping, Sequence

from .definitions import Direction, LimitPerGroup, OrderBy, ReportDefinition
from .expressions import AggFunc, round_half_up


@dataclass(frozen=True)
class ResultSet:
    """Ordered rows of one report with a fixed column schema."""
    report: str
    schema: Mapping[str, type]
    rows: tuple[dict, ...] = field(default=())

    @property
    def columns(self) -> list[str]:
        return list(self.schema)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[dict]:
        return iter(self.rows)

    def column(self, name: str) -> list:
        if name not in self.schema:
            raise KeyError(name)
        return [row[name] for row in self.rows]

    def tuples(self) -> list[tuple]:
        return [tuple(row[c] for c in self.schema) for row in self.rows]


def round_aggregates(rows: list[dict], definition: ReportDefinition) -> list[dict]:
    """ROUND(AVG(x), 2) for every AVG aggregate, in place."""
    averaged = [a.name for a in definition.aggregates if a.func is AggFunc.AVG]
    if averaged:
        for row in rows:
            for name in averaged:
                row[name] = round_half_up(row[name])
    return rows


def _sort_key(key: str):
    # NULLs sort last ascending and first descending, as in PostgreSQL
    return lambda row: (row[key] is None, row[key])


def order_rows(rows: list[dict], order_by: Sequence[OrderBy]) -> list[dict]:
    """Stable multi-key sort."""
    ordered = list(rows)
    for order in reversed(order_by):
        ordered.sort(key=_sort_key(order.key), reverse=order.direction is Direction.DESC)
    return ordered


def limit_per_group(rows: list[dict], spec: LimitPerGroup) -> list[dict]:
    """Keep the first ``spec.n`` ranked rows of every partition.

    Partitions are emitted in order of first appearance; ties on the
    ranking column keep their input order.
    """
    partitions: dict[Any, list[dict]] = {}
    for row in rows:
        partitions.setdefault(row[spec.partition_key], []).append(row)

    kept = []
    for members in partitions.values():
        ranked = order_rows(members, [OrderBy(spec.order_key, spec.direction)])
        kept.extend(ranked[:spec.n])
    return kept


def project(rows: list[dict], columns: Sequence[str]) -> tuple[dict, ...]:
    return tuple({c: row[c] for c in columns} for row in rows)


def build_result(definition: ReportDefinition, rows: list[dict],
                 schema: Mapping[str, type]) -> ResultSet:
    """Apply per-group limits, ordering, the global limit and projection."""
    if definition.limit_per_group is not None:
        rows = limit_per_group(rows, definition.limit_per_group)
    if definition.order_by:
        rows = order_rows(rows, definition.order_by)
    if definition.limit is not None:
        rows = rows[:definition.limit]
    return ResultSet(definition.name, dict(schema), project(rows, list(schema)))


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def _display(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    return str(value)


def render_text(result: ResultSet) -> str:
    """Aligned plain-text table with a row count footer."""
    columns = result.columns
    cells = [[_display(row[c]) for c in columns] for row in result.rows]
    widths = [
        max([len(c)] + [len(line[i]) for line in cells])
        for i, c in enumerate(columns)
    ]
    lines = [
        "  ".join(c.ljust(w) for c, w in zip(columns, widths)),
        "  ".join("-" * w for w in widths),
    ]
    for line in cells:
        lines.append("  ".join(v.ljust(w) for v, w in zip(line, widths)).rstrip())
    lines.append(f"({len(result)} row{'s' if len(result) != 1 else ''})")
    return "\n".join(lines)


def _json_default(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json(results: Mapping[str, ResultSet], indent: int | None = 2) -> str:
    payload = {
        name: {
            "columns": {c: t.__name__ for c, t in rs.schema.items()},
            "rows": list(rs.rows),
        }
        for name, rs in results.items()
    }
    return json.dumps(payload, indent=indent, default=_json_default)

"""Relational operators over lists of row dicts.

All operators preserve input order: joins emit left rows in order with
their matches in right order, grouping emits groups in order of first
appearance. That order is what breaks ranking ties downstream.
"""

from typing import Iterable, Mapping, Sequence

from .definitions import Aggregate, Column, JoinKind
from .expressions import Predicate, aggregate


def qualify(rows: Iterable[Mapping], alias: str) -> list[dict]:
    """Prefix every key with ``alias.``."""
    return [{f"{alias}.{k}": v for k, v in row.items()} for row in rows]


def key_union(key_sets: Iterable[Iterable], alias: str, key: str) -> list[dict]:
    """Distinct values across all ``key_sets``, ascending, NULL last."""
    values = dict.fromkeys(v for keys in key_sets for v in keys)
    ordered = sorted(values, key=lambda v: (v is None, v))
    return [{f"{alias}.{key}": v} for v in ordered]


def join(left: list[dict], right: list[dict], on: Sequence[tuple[str, str]],
         kind: JoinKind, right_columns: Sequence[str]) -> list[dict]:
    """Hash join ``left`` to ``right``.

    ``on`` pairs left keys with right keys (both fully qualified). A NULL
    key never matches. OPTIONAL keeps unmatched left rows with every
    right column set to None; REQUIRED drops them.
    """
    left_keys = [lk for lk, _ in on]
    right_keys = [rk for _, rk in on]

    index: dict[tuple, list[dict]] = {}
    for row in right:
        k = tuple(row[rk] for rk in right_keys)
        if None in k:
            continue
        index.setdefault(k, []).append(row)

    empty = dict.fromkeys(right_columns)
    joined = []
    for row in left:
        k = tuple(row[lk] for lk in left_keys)
        matches = index.get(k, ()) if None not in k else ()
        if matches:
            for match in matches:
                joined.append({**row, **match})
        elif kind is JoinKind.OPTIONAL:
            joined.append({**row, **empty})
    return joined


def filter_rows(rows: Iterable[dict], predicate: Predicate | None,
                scalars: Mapping | None = None) -> list[dict]:
    if predicate is None:
        return list(rows)
    return [row for row in rows if predicate.test(row, scalars)]


def group(rows: Sequence[dict], keys: Sequence[Column],
          aggregates: Sequence[Aggregate]) -> list[dict]:
    """GROUP BY ``keys`` computing ``aggregates``.

    Without keys there is exactly one group, even over zero rows (as with
    ``SELECT count(*) FROM t``). Without aggregates the result is the
    distinct key combinations.
    """
    groups: dict[tuple, list[dict]] = {}
    for row in rows:
        k = tuple(c.expr.evaluate(row) for c in keys)
        groups.setdefault(k, []).append(row)
    if not keys and not groups:
        groups[()] = []

    result = []
    for k, members in groups.items():
        out = {c.name: v for c, v in zip(keys, k)}
        for agg in aggregates:
            if agg.expr is None:
                value = len(members)
            else:
                value = aggregate(agg.func, (agg.expr.evaluate(r) for r in members), agg.distinct)
            if value is None:
                value = agg.coalesce
            out[agg.name] = value
        result.append(out)
    return result

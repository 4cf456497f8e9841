"""Definition validation, expressions and the relational/formatting steps."""

from datetime import datetime
from decimal import Decimal

import pytest

from bluebox_reports.definitions import (
    Direction,
    Input,
    JoinKind,
    KeyUnion,
    OrderBy,
    asc,
    average,
    count,
    define,
    desc,
    key,
    optional,
    source,
    top_per_group,
    total,
)
from bluebox_reports.expressions import (
    AggFunc,
    aggregate,
    all_of,
    any_of,
    avg_of,
    col,
    gt,
    hours_between,
    is_null,
    lit,
    not_null,
    round_half_up,
    year_month,
)
from bluebox_reports.formatter import (
    ResultSet,
    limit_per_group,
    order_rows,
    render_text,
    to_json,
)
from bluebox_reports.relational import group, join, key_union


class TestDefinitionValidation:
    def test_inputs_normalized_to_tuples(self):
        d = define("r", [source("rental", "r")], [key("customer_id", "r.customer_id")])
        assert isinstance(d.inputs, tuple)
        assert isinstance(d.group_by, tuple)

    def test_alias_defaults_to_source(self):
        assert Input("rental").alias == "rental"

    def test_needs_output_columns(self):
        with pytest.raises(ValueError):
            define("empty", [source("rental")])

    def test_joined_input_needs_condition(self):
        with pytest.raises(ValueError):
            define("r", [source("film", "f"), Input("inventory", "i")], [key("a", "f.film_id")])

    def test_primary_input_has_no_condition(self):
        with pytest.raises(ValueError):
            define("r", [optional("film", "f", on={"x.y": "film_id"})], [key("a", "f.film_id")])

    def test_select_must_name_computed_columns(self):
        with pytest.raises(ValueError):
            define("r", [source("film", "f")], [key("film_id", "f.film_id")], select=["title"])

    def test_order_by_must_name_computed_columns(self):
        with pytest.raises(ValueError):
            define("r", [source("film", "f")], [key("film_id", "f.film_id")],
                   order_by=[asc("title")])

    def test_having_must_name_computed_columns(self):
        with pytest.raises(ValueError):
            define("r", [source("film", "f")], [key("film_id", "f.film_id")],
                   having=gt("rentals", 1))

    def test_duplicate_alias(self):
        with pytest.raises(ValueError):
            define("r", [source("film", "f"), optional("film", "f", on={"f.film_id": "film_id"})],
                   [key("film_id", "f.film_id")])

    def test_key_union_must_be_primary(self):
        with pytest.raises(ValueError):
            define("r", [source("film", "f"), KeyUnion("m", ("a", "b"), "k")],
                   [key("film_id", "f.film_id")])

    def test_where_cannot_use_whole_result_aggregate(self):
        with pytest.raises(ValueError):
            define("w", [source("payment", "p")], [key("customer_id", "p.customer_id")],
                   where=gt("p.amount", avg_of("p.amount")))

    def test_having_may_use_whole_result_aggregate(self):
        d = define("h", [source("payment", "p")], [key("customer_id", "p.customer_id")],
                   [total("paid", "p.amount")], having=gt("paid", avg_of("paid")))
        assert d.having.scalars()

    def test_sum_needs_expression(self):
        from bluebox_reports.definitions import Aggregate

        with pytest.raises(ValueError):
            Aggregate("x", AggFunc.SUM)

    def test_limit_per_group_positive(self):
        with pytest.raises(ValueError):
            top_per_group(0, "a", "b")

    def test_dependencies_in_order_without_duplicates(self):
        d = define(
            "r",
            [
                KeyUnion("m", ("a", "b"), "k"),
                optional("a", "x", on={"m.k": "k"}),
                optional("b", "y", on={"m.k": "k"}),
            ],
            [key("k", "m.k")],
        )
        assert d.dependencies == ["a", "b"]

    def test_row_refs_include_join_keys(self):
        d = define(
            "r",
            [source("film", "f"), optional("inventory", "i", on={"f.film_id": "film_id"})],
            [key("title", "f.title")],
            [count("copies", "i.inventory_id")],
        )
        assert d.row_refs() == {"f.title", "i.inventory_id", "f.film_id", "i.film_id"}


class TestExpressions:
    def test_year_month(self):
        expr = year_month("r.rental_date")
        assert expr.evaluate({"r.rental_date": datetime(2005, 7, 9, 3, 0)}) == "2005-07"
        assert expr.evaluate({"r.rental_date": None}) is None

    def test_hours_between_drops_minutes(self):
        expr = hours_between("s", "e")
        row = {"s": datetime(2005, 5, 24, 10, 0), "e": datetime(2005, 5, 26, 13, 59)}
        assert expr.evaluate(row) == 51
        assert expr.evaluate({"s": row["s"], "e": None}) is None

    def test_comparisons_with_null_are_false(self):
        assert not gt("a", 1).test({"a": None})
        assert not gt("a", "b").test({"a": 2, "b": None})
        assert gt("a", "b").test({"a": 2, "b": 1})

    def test_literal_strings_need_lit(self):
        from bluebox_reports.expressions import eq

        assert eq("name", lit("Drama")).test({"name": "Drama"})
        assert not eq("name", lit("Drama")).test({"name": "Comedy"})

    def test_boolean_combinators(self):
        row = {"a": None, "b": 3}
        assert all_of(is_null("a"), not_null("b")).test(row)
        assert any_of(not_null("a"), gt("b", 2)).test(row)
        assert not all_of(is_null("a"), gt("b", 5)).test(row)

    def test_refs(self):
        assert all_of(is_null("x.a"), gt(col("x.b"), "y.c")).refs() == {"x.a", "x.b", "y.c"}


class TestAggregate:
    def test_count_skips_nulls(self):
        assert aggregate(AggFunc.COUNT, [1, None, 2]) == 2
        assert aggregate(AggFunc.COUNT, []) == 0

    def test_count_distinct(self):
        assert aggregate(AggFunc.COUNT, [1, 1, 2, None], distinct=True) == 2

    def test_sum_and_avg_over_nothing_are_null(self):
        assert aggregate(AggFunc.SUM, [None]) is None
        assert aggregate(AggFunc.AVG, []) is None

    def test_sum_keeps_decimal(self):
        assert aggregate(AggFunc.SUM, [Decimal("2.99"), Decimal("4.99")]) == Decimal("7.98")

    def test_avg_is_decimal(self):
        assert round_half_up(aggregate(AggFunc.AVG, [51, 24, 25])) == Decimal("33.33")

    def test_round_half_up(self):
        assert round_half_up(Decimal("1.165")) == Decimal("1.17")
        assert round_half_up(2) == Decimal("2.00")
        assert round_half_up(None) is None


class TestRelational:
    def test_required_join_drops_unmatched(self):
        left = [{"f.id": 1}, {"f.id": 2}]
        right = [{"i.film": 1, "i.id": 10}]
        rows = join(left, right, [("f.id", "i.film")], JoinKind.REQUIRED, ["i.film", "i.id"])
        assert rows == [{"f.id": 1, "i.film": 1, "i.id": 10}]

    def test_optional_join_keeps_unmatched_with_nulls(self):
        left = [{"f.id": 1}, {"f.id": 2}]
        right = [{"i.film": 1, "i.id": 10}, {"i.film": 1, "i.id": 11}]
        rows = join(left, right, [("f.id", "i.film")], JoinKind.OPTIONAL, ["i.film", "i.id"])
        assert rows == [
            {"f.id": 1, "i.film": 1, "i.id": 10},
            {"f.id": 1, "i.film": 1, "i.id": 11},
            {"f.id": 2, "i.film": None, "i.id": None},
        ]

    def test_null_keys_never_match(self):
        left = [{"p.rental": None}]
        right = [{"r.id": None}]
        rows = join(left, right, [("p.rental", "r.id")], JoinKind.OPTIONAL, ["r.id"])
        assert rows == [{"p.rental": None, "r.id": None}]
        assert join(left, right, [("p.rental", "r.id")], JoinKind.REQUIRED, ["r.id"]) == []

    def test_group_keeps_first_appearance_order(self):
        rows = [{"k": "b", "v": 1}, {"k": "a", "v": 2}, {"k": "b", "v": 3}]
        out = group(rows, [key("k")], [total("s", "v"), count("n")])
        assert out == [{"k": "b", "s": 4, "n": 2}, {"k": "a", "s": 2, "n": 1}]

    def test_group_without_aggregates_is_distinct(self):
        rows = [{"k": 1}, {"k": 1}, {"k": 2}]
        assert group(rows, [key("k")], []) == [{"k": 1}, {"k": 2}]

    def test_coalesce_replaces_null(self):
        rows = [{"k": 1, "v": None}]
        out = group(rows, [key("k")], [total("s", "v", coalesce=0), average("a", "v")])
        assert out == [{"k": 1, "s": 0, "a": None}]

    def test_key_union_sorted_distinct(self):
        rows = key_union([["2005-06", "2005-05"], ["2005-07", "2005-05"]], "m", "ym")
        assert rows == [{"m.ym": "2005-05"}, {"m.ym": "2005-06"}, {"m.ym": "2005-07"}]


class TestFormatting:
    def test_order_nulls_last_ascending_first_descending(self):
        rows = [{"v": 2}, {"v": None}, {"v": 1}]
        assert [r["v"] for r in order_rows(rows, [asc("v")])] == [1, 2, None]
        assert [r["v"] for r in order_rows(rows, [desc("v")])] == [None, 2, 1]

    def test_multi_key_order_is_stable(self):
        rows = [
            {"c": "b", "n": 1, "id": 1},
            {"c": "a", "n": 2, "id": 2},
            {"c": "b", "n": 2, "id": 3},
            {"c": "b", "n": 2, "id": 4},
        ]
        ordered = order_rows(rows, [OrderBy("c"), OrderBy("n", Direction.DESC)])
        assert [r["id"] for r in ordered] == [2, 3, 4, 1]

    def test_limit_per_group_bound_and_order(self):
        rows = [{"g": g, "v": v} for g, v in [("x", 1), ("x", 5), ("y", 2), ("x", 3), ("x", 4)]]
        kept = limit_per_group(rows, top_per_group(2, "g", "v"))
        assert kept == [{"g": "x", "v": 5}, {"g": "x", "v": 4}, {"g": "y", "v": 2}]

    def test_render_text(self):
        rs = ResultSet("r", {"store_id": int, "total": Decimal},
                       ({"store_id": 1, "total": Decimal("10.96")},))
        text = render_text(rs)
        assert text.splitlines()[0].split() == ["store_id", "total"]
        assert "10.96" in text
        assert text.endswith("(1 row)")

    def test_to_json(self):
        import json

        rs = ResultSet("r", {"month": str, "total": Decimal},
                       ({"month": "2005-05", "total": Decimal("7.98")},))
        payload = json.loads(to_json({"r": rs}))
        assert payload["r"]["columns"] == {"month": "str", "total": "Decimal"}
        assert payload["r"]["rows"] == [{"month": "2005-05", "total": "7.98"}]

"""The shipped report catalog against the fixture dataset."""

from datetime import datetime
from decimal import Decimal

import pytest


class TestCatalogContents:
    def test_all_reports_discovered(self, catalog):
        """Should discover every report module."""
        assert set(catalog.names) == {
            "customers_paid_never_rented",
            "customer_rental_totals",
            "customer_cities",
            "avg_rentals_per_city",
            "films_above_avg_not_in_inventory",
            "lost_film_replacement_cost",
            "film_rental_revenue",
            "top_films_per_category",
            "top_10_most_rented",
            "store_rental_revenue",
            "store_customer_revenue",
            "stores_rental_revenue_exceeds_customer",
            "store_rental_duration_revenue",
            "monthly_rental_activity",
            "monthly_payment_activity",
            "seasonal_activity",
        }

    def test_only_top_10_is_standing(self, catalog):
        assert [d.name for d in catalog if d.standing] == ["top_10_most_rented"]


class TestCustomersPaidNeverRented:
    def test_reports_each_customer_once(self, engine):
        """Customer 4 has two payments and no rentals: listed exactly once."""
        result = engine.run("customers_paid_never_rented")
        assert result.columns == ["customer_id"]
        assert result.tuples() == [(4,)]

    def test_customer_with_rentals_excluded(self, engine, tables):
        """A payer who also rented never appears."""
        tables["payment"].append({
            "payment_id": 9, "customer_id": 1, "rental_id": None,
            "amount": Decimal("1.00"), "payment_date": None,
        })
        from bluebox_reports.engine import ExecutionEngine
        from bluebox_reports.sources import MemorySource

        result = ExecutionEngine(engine.catalog, MemorySource(tables)).run(
            "customers_paid_never_rented"
        )
        assert result.column("customer_id") == [4]


class TestAvgRentalsPerCity:
    def test_average_per_city(self, engine):
        result = engine.run("avg_rentals_per_city")
        assert result.tuples() == [
            ("Lethbridge", Decimal("2.00")),
            ("Woodridge", Decimal("3.00")),
        ]

    def test_intermediate_totals(self, engine):
        result = engine.run("customer_rental_totals")
        assert result.tuples() == [(1, 2), (2, 3), (3, 2)]


class TestFilmsAboveAverage:
    def test_no_film_without_inventory_beats_average(self, engine):
        """Films with no inventory copy have zero rentals, below any average."""
        result = engine.run("films_above_avg_not_in_inventory")
        assert result.columns == ["film_id", "title"]
        assert len(result) == 0


class TestLostFilmReplacementCost:
    def test_sums_unreturned_copies_per_store(self, engine):
        result = engine.run("lost_film_replacement_cost")
        assert result.tuples() == [(1, Decimal("34.98"))]


class TestTopFilmsPerCategory:
    def test_ranking_and_revenue(self, engine):
        result = engine.run("top_films_per_category")
        assert result.columns == ["category_name", "film_title", "total_rentals", "total_revenue"]
        assert result.tuples() == [
            ("Comedy", "Delta", 1, Decimal("3.99")),
            ("Drama", "Alpha", 2, Decimal("7.98")),
            ("Drama", "Bravo", 2, Decimal("3.98")),
            ("Drama", "Charlie", 1, Decimal("5.99")),
        ]

    def test_never_more_than_five_per_category(self, engine, tables):
        from bluebox_reports.engine import ExecutionEngine
        from bluebox_reports.sources import MemorySource

        next_id = 100
        for film_id in range(10, 18):
            tables["film"].append({"film_id": film_id, "title": f"Extra {film_id}",
                                   "replacement_cost": Decimal("1.00")})
            tables["film_category"].append({"film_id": film_id, "category_id": 1})
            tables["inventory"].append({"inventory_id": film_id + 50, "film_id": film_id,
                                        "store_id": 1})
            for _ in range(film_id % 4 + 1):
                tables["rental"].append({"rental_id": next_id, "rental_date": None,
                                         "inventory_id": film_id + 50, "customer_id": 1,
                                         "return_date": None})
                tables["payment"].append({"payment_id": next_id, "customer_id": 1,
                                          "rental_id": next_id, "amount": Decimal("1.00"),
                                          "payment_date": None})
                next_id += 1

        result = ExecutionEngine(engine.catalog, MemorySource(tables)).run("top_films_per_category")
        drama = [row["total_rentals"] for row in result if row["category_name"] == "Drama"]
        assert len(drama) == 5
        assert drama == sorted(drama, reverse=True)


class TestTop10MostRented:
    def test_counts_include_unrented_films(self, engine):
        result = engine.run("top_10_most_rented")
        assert result.tuples() == [(1, 3), (2, 2), (3, 1), (4, 1), (5, 0)]


class TestStoreRevenue:
    def test_intermediate_totals(self, engine):
        results = engine.run_many(["store_rental_revenue", "store_customer_revenue"])
        assert results["store_rental_revenue"].tuples() == [
            (1, Decimal("10.96")),
            (2, Decimal("10.98")),
        ]
        assert results["store_customer_revenue"].tuples() == [
            (1, Decimal("17.95")),
            (2, Decimal("6.97")),
        ]

    def test_only_store_two_exceeds(self, engine):
        result = engine.run("stores_rental_revenue_exceeds_customer")
        assert result.tuples() == [(2,)]


class TestStoreRentalDuration:
    def test_average_whole_hours_and_revenue(self, engine):
        result = engine.run("store_rental_duration_revenue")
        assert result.tuples() == [
            (1, Decimal("33.33"), Decimal("10.96")),
            (2, Decimal("61.00"), Decimal("10.98")),
        ]


class TestSeasonalActivity:
    def test_union_of_months_with_zero_fill(self, engine):
        result = engine.run("seasonal_activity")
        assert result.tuples() == [
            ("2005-05", 2, Decimal("7.98")),
            ("2005-06", 2, Decimal("0.99")),
            ("2005-07", 3, Decimal("12.97")),
            ("2005-08", 0, Decimal("2.98")),
        ]

    def test_month_without_payments_zero_filled(self, engine, tables):
        """A month with rentals but no payments reports a zero total."""
        tables["rental"].append({
            "rental_id": 8, "rental_date": datetime(2005, 9, 1, 10, 0), "inventory_id": 5,
            "customer_id": 3, "return_date": datetime(2005, 9, 2, 10, 0),
        })
        from bluebox_reports.engine import ExecutionEngine
        from bluebox_reports.sources import MemorySource

        result = ExecutionEngine(engine.catalog, MemorySource(tables)).run("seasonal_activity")
        assert result.tuples()[-1] == ("2005-09", 1, Decimal("0"))
        assert result.column("year_month") == ["2005-05", "2005-06", "2005-07", "2005-08", "2005-09"]

    def test_month_keys_equal_union_of_both_series(self, engine):
        results = engine.run_many([
            "monthly_rental_activity", "monthly_payment_activity", "seasonal_activity",
        ])
        rental_months = set(results["monthly_rental_activity"].column("year_month"))
        payment_months = set(results["monthly_payment_activity"].column("year_month"))
        seasonal = results["seasonal_activity"]
        assert set(seasonal.column("year_month")) == rental_months | payment_months

        for row in seasonal:
            if row["year_month"] not in rental_months:
                assert row["total_rentals"] == 0
            if row["year_month"] not in payment_months:
                assert row["total_payment"] == 0

    @pytest.mark.parametrize("column", ["total_rentals", "total_payment"])
    def test_never_null(self, engine, column):
        result = engine.run("seasonal_activity")
        assert None not in result.column(column)

"""Shared fixtures: a small rental dataset served from memory.

Expected values in the report tests are worked out by hand from these
rows, so change them together.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from bluebox_reports.engine import ExecutionEngine
from bluebox_reports.reports import build_catalog
from bluebox_reports.sources import MemorySource


def ts(value: str) -> datetime:
    return datetime.strptime(value, "%Y-%m-%d %H:%M")


def rental_tables() -> dict[str, list[dict]]:
    return {
        "category": [
            {"category_id": 1, "name": "Drama"},
            {"category_id": 2, "name": "Comedy"},
        ],
        "film": [
            {"film_id": 1, "title": "Alpha", "replacement_cost": Decimal("19.99")},
            {"film_id": 2, "title": "Bravo", "replacement_cost": Decimal("20.99")},
            {"film_id": 3, "title": "Charlie", "replacement_cost": Decimal("10.99")},
            {"film_id": 4, "title": "Delta", "replacement_cost": Decimal("14.99")},
            # no inventory at all
            {"film_id": 5, "title": "Echo", "replacement_cost": Decimal("9.99")},
        ],
        "film_category": [
            {"film_id": 1, "category_id": 1},
            {"film_id": 2, "category_id": 1},
            {"film_id": 3, "category_id": 1},
            {"film_id": 4, "category_id": 2},
            {"film_id": 5, "category_id": 2},
        ],
        "city": [
            {"city_id": 1, "city": "Lethbridge"},
            {"city_id": 2, "city": "Woodridge"},
        ],
        "address": [
            {"address_id": 1, "city_id": 1},
            {"address_id": 2, "city_id": 2},
            {"address_id": 3, "city_id": 1},
            {"address_id": 4, "city_id": 2},
        ],
        "store": [
            {"store_id": 1, "address_id": 3},
            {"store_id": 2, "address_id": 4},
        ],
        "customer": [
            {"customer_id": 1, "store_id": 1, "address_id": 1},
            {"customer_id": 2, "store_id": 1, "address_id": 2},
            {"customer_id": 3, "store_id": 2, "address_id": 1},
            # pays, never rents
            {"customer_id": 4, "store_id": 2, "address_id": 2},
        ],
        "inventory": [
            {"inventory_id": 1, "film_id": 1, "store_id": 1},
            {"inventory_id": 2, "film_id": 1, "store_id": 2},
            {"inventory_id": 3, "film_id": 2, "store_id": 1},
            {"inventory_id": 4, "film_id": 3, "store_id": 2},
            {"inventory_id": 5, "film_id": 4, "store_id": 1},
        ],
        "rental": [
            {"rental_id": 1, "rental_date": ts("2005-05-24 10:00"), "inventory_id": 1,
             "customer_id": 1, "return_date": ts("2005-05-26 13:30")},
            {"rental_id": 2, "rental_date": ts("2005-05-25 09:00"), "inventory_id": 2,
             "customer_id": 2, "return_date": ts("2005-05-27 09:00")},
            {"rental_id": 3, "rental_date": ts("2005-06-01 12:00"), "inventory_id": 3,
             "customer_id": 1, "return_date": ts("2005-06-02 12:45")},
            {"rental_id": 4, "rental_date": ts("2005-06-15 08:00"), "inventory_id": 1,
             "customer_id": 3, "return_date": None},
            {"rental_id": 5, "rental_date": ts("2005-07-02 18:00"), "inventory_id": 4,
             "customer_id": 2, "return_date": ts("2005-07-05 20:15")},
            {"rental_id": 6, "rental_date": ts("2005-07-10 10:00"), "inventory_id": 5,
             "customer_id": 3, "return_date": None},
            {"rental_id": 7, "rental_date": ts("2005-07-11 10:00"), "inventory_id": 3,
             "customer_id": 2, "return_date": ts("2005-07-12 11:00")},
        ],
        "payment": [
            {"payment_id": 1, "customer_id": 1, "rental_id": 1,
             "amount": Decimal("2.99"), "payment_date": ts("2005-05-25 10:00")},
            {"payment_id": 2, "customer_id": 2, "rental_id": 2,
             "amount": Decimal("4.99"), "payment_date": ts("2005-05-28 10:00")},
            {"payment_id": 3, "customer_id": 1, "rental_id": 3,
             "amount": Decimal("0.99"), "payment_date": ts("2005-06-03 10:00")},
            {"payment_id": 4, "customer_id": 2, "rental_id": 5,
             "amount": Decimal("5.99"), "payment_date": ts("2005-07-06 10:00")},
            {"payment_id": 5, "customer_id": 3, "rental_id": 6,
             "amount": Decimal("3.99"), "payment_date": ts("2005-07-10 10:00")},
            {"payment_id": 6, "customer_id": 2, "rental_id": 7,
             "amount": Decimal("2.99"), "payment_date": ts("2005-07-12 10:00")},
            {"payment_id": 7, "customer_id": 4, "rental_id": None,
             "amount": Decimal("1.99"), "payment_date": ts("2005-08-01 10:00")},
            {"payment_id": 8, "customer_id": 4, "rental_id": None,
             "amount": Decimal("0.99"), "payment_date": ts("2005-08-15 10:00")},
        ],
    }


class CountingSource(MemorySource):
    """MemorySource that records every fetch."""

    def __init__(self, tables):
        super().__init__(tables)
        self.fetches: list[str] = []

    def fetch(self, table, columns):
        self.fetches.append(table.name)
        return super().fetch(table, columns)


@pytest.fixture
def tables():
    return rental_tables()


@pytest.fixture
def source(tables):
    return CountingSource(tables)


@pytest.fixture
def catalog():
    return build_catalog()


@pytest.fixture
def engine(catalog, source):
    return ExecutionEngine(catalog, source)

"""Typed description of the external rental schema.

The adapter only describes shape: which logical tables exist, their
columns, column types and primary keys. It never runs queries. Report
definitions resolve every entity column through ``Schema.field`` so a
bad reference fails with ``UnknownFieldError`` instead of a KeyError deep
inside a join.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable

from .errors import UnknownFieldError


@dataclass(frozen=True)
class Field:
    """A typed reference to one column of one logical table."""
    table: str
    column: str
    type: type
    nullable: bool = True

    @property
    def qualified_name(self) -> str:
        return f"{self.table}.{self.column}"


@dataclass(frozen=True)
class Table:
    """A logical table: ordered columns plus its primary key."""
    name: str
    fields: tuple[Field, ...]
    primary_key: tuple[str, ...]

    @property
    def columns(self) -> list[str]:
        return [f.column for f in self.fields]


def table(name: str, primary_key: tuple[str, ...], /, **columns) -> Table:
    """Build a Table from ``column=type`` keyword pairs.

    A type given as ``(type, False)`` marks the column NOT NULL; primary
    key columns are always NOT NULL. ``name`` and ``primary_key`` are
    positional-only so a column may itself be called ``name``.
    """
    fields = []
    for column, spec in columns.items():
        col_type, nullable = spec if isinstance(spec, tuple) else (spec, True)
        if column in primary_key:
            nullable = False
        fields.append(Field(name, column, col_type, nullable))
    return Table(name, tuple(fields), primary_key)


class Schema:
    """Registry of logical tables, looked up by name."""

    def __init__(self, tables: Iterable[Table]):
        self._tables = {t.name: t for t in tables}
        self._fields = {
            (t.name, f.column): f for t in self._tables.values() for f in t.fields
        }

    def __contains__(self, name: str) -> bool:
        return name in self._tables

    @property
    def table_names(self) -> list[str]:
        return list(self._tables)

    def table(self, name: str) -> Table:
        """Return the table named ``name`` or raise UnknownFieldError."""
        try:
            return self._tables[name]
        except KeyError:
            raise UnknownFieldError(name) from None

    def field(self, table_name: str, column: str) -> Field:
        """Return the typed field for ``table_name.column``."""
        if table_name not in self._tables:
            raise UnknownFieldError(table_name)
        try:
            return self._fields[(table_name, column)]
        except KeyError:
            raise UnknownFieldError(table_name, column) from None


RENTAL_SCHEMA = Schema([
    table(
        "customer", ("customer_id",),
        customer_id=int,
        store_id=(int, False),
        first_name=(str, False),
        last_name=(str, False),
        email=str,
        address_id=(int, False),
        activebool=(bool, False),
        create_date=(date, False),
        last_update=datetime,
        active=int,
    ),
    table(
        "rental", ("rental_id",),
        rental_id=int,
        rental_date=(datetime, False),
        inventory_id=(int, False),
        customer_id=(int, False),
        return_date=datetime,
        staff_id=(int, False),
        last_update=datetime,
    ),
    table(
        "payment", ("payment_id",),
        payment_id=int,
        customer_id=(int, False),
        staff_id=(int, False),
        rental_id=int,
        amount=(Decimal, False),
        payment_date=(datetime, False),
    ),
    table(
        "inventory", ("inventory_id",),
        inventory_id=int,
        film_id=(int, False),
        store_id=(int, False),
        last_update=datetime,
    ),
    table(
        "film", ("film_id",),
        film_id=int,
        title=(str, False),
        description=str,
        release_year=int,
        language_id=(int, False),
        rental_duration=(int, False),
        rental_rate=(Decimal, False),
        length=int,
        replacement_cost=(Decimal, False),
        rating=str,
        last_update=datetime,
    ),
    table(
        "film_category", ("film_id", "category_id"),
        film_id=int,
        category_id=int,
        last_update=datetime,
    ),
    table(
        "category", ("category_id",),
        category_id=int,
        name=(str, False),
        last_update=datetime,
    ),
    table(
        "address", ("address_id",),
        address_id=int,
        address=(str, False),
        address2=str,
        district=(str, False),
        city_id=(int, False),
        postal_code=str,
        phone=(str, False),
        last_update=datetime,
    ),
    table(
        "city", ("city_id",),
        city_id=int,
        city=(str, False),
        country_id=(int, False),
        last_update=datetime,
    ),
    table(
        "store", ("store_id",),
        store_id=int,
        manager_staff_id=(int, False),
        address_id=(int, False),
        last_update=datetime,
    ),
])

"""Seasonal variation in rental activity and payments.

Rentals and payments are grouped by month independently. The months
reported are the union of both series; a month missing from one series
reports 0 for it, never NULL.
"""

from decimal import Decimal

from ..definitions import (
    asc,
    count,
    define,
    key,
    key_union,
    optional,
    source,
    total,
)
from ..expressions import year_month

DEFINITIONS = [
    define(
        "monthly_rental_activity",
        inputs=[source("rental", "r")],
        group_by=[key("year_month", year_month("r.rental_date"))],
        aggregates=[count("total_rentals", "r.rental_id", distinct=True)],
        description="Rentals per month",
    ),
    define(
        "monthly_payment_activity",
        inputs=[source("payment", "p")],
        group_by=[key("year_month", year_month("p.payment_date"))],
        aggregates=[total("total_amount", "p.amount")],
        description="Payment amount per month",
    ),
    define(
        "seasonal_activity",
        inputs=[
            key_union("m", ["monthly_rental_activity", "monthly_payment_activity"], "year_month"),
            optional("monthly_rental_activity", "ra", on={"m.year_month": "year_month"}),
            optional("monthly_payment_activity", "pa", on={"m.year_month": "year_month"}),
        ],
        group_by=[key("year_month", "m.year_month")],
        aggregates=[
            total("total_rentals", "ra.total_rentals", coalesce=0),
            total("total_payment", "pa.total_amount", coalesce=Decimal("0")),
        ],
        order_by=[asc("year_month")],
        description="Monthly rentals and payments over the union of months",
    ),
]

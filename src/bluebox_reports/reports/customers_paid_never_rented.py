"""Customers who have made payments but never rented a film.

Anti-join: every payment is kept with an optional match on the paying
customer's rentals, and only payments with no rental at all survive.
Grouping on customer_id reports each such customer once, however many
payments they made.
"""

from ..definitions import asc, define, key, optional, source
from ..expressions import is_null

DEFINITIONS = [
    define(
        "customers_paid_never_rented",
        inputs=[
            source("payment", "p"),
            optional("rental", "r", on={"p.customer_id": "customer_id"}),
        ],
        group_by=[key("customer_id", "p.customer_id")],
        where=is_null("r.rental_id"),
        order_by=[asc("customer_id")],
        description="Customers with payments but no rentals",
    ),
]

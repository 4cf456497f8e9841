"""Stores where rental revenue exceeds the revenue from their customers.

Rental revenue is attributed to the store holding the rented copy;
customer revenue to the customer's home store. The two totals are joined
per store and compared.
"""

from ..definitions import asc, define, key, required, source, total
from ..expressions import gt

DEFINITIONS = [
    define(
        "store_rental_revenue",
        inputs=[
            source("rental", "r"),
            required("payment", "p", on={"r.rental_id": "rental_id"}),
            required("inventory", "i", on={"r.inventory_id": "inventory_id"}),
        ],
        group_by=[key("store_id", "i.store_id")],
        aggregates=[total("total_rental_revenue", "p.amount")],
        description="Payments for rentals of each store's inventory",
    ),
    define(
        "store_customer_revenue",
        inputs=[
            source("payment", "p"),
            required("customer", "c", on={"p.customer_id": "customer_id"}),
        ],
        group_by=[key("store_id", "c.store_id")],
        aggregates=[total("total_customer_revenue", "p.amount")],
        description="Payments by each store's customers",
    ),
    define(
        "stores_rental_revenue_exceeds_customer",
        inputs=[
            source("store_rental_revenue", "sr"),
            required("store_customer_revenue", "sc", on={"sr.store_id": "store_id"}),
        ],
        group_by=[key("store_id", "sr.store_id")],
        where=gt("sr.total_rental_revenue", "sc.total_customer_revenue"),
        order_by=[asc("store_id")],
        description="Stores whose rental revenue beats customer revenue",
    ),
]

"""Average rental duration and total revenue for each store.

Duration is counted in whole hours (days * 24 + hours of the interval);
open rentals have no duration and are left out of the average.
"""

from ..definitions import asc, average, define, key, required, source, total
from ..expressions import hours_between

DEFINITIONS = [
    define(
        "store_rental_duration_revenue",
        inputs=[
            source("rental", "r"),
            required("payment", "p", on={"r.rental_id": "rental_id"}),
            required("inventory", "i", on={"r.inventory_id": "inventory_id"}),
        ],
        group_by=[key("store_id", "i.store_id")],
        aggregates=[
            average("avg_rental_duration_hrs", hours_between("r.rental_date", "r.return_date")),
            total("total_revenue", "p.amount"),
        ],
        order_by=[asc("store_id")],
        description="Average rental hours and revenue by store",
    ),
]

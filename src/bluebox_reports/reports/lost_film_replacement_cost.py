"""Replacement cost of lost films per store.

A film copy counts as lost while its rental has no return_date.
"""

from ..definitions import asc, define, key, required, source, total
from ..expressions import is_null

DEFINITIONS = [
    define(
        "lost_film_replacement_cost",
        inputs=[
            source("film", "f"),
            required("inventory", "i", on={"f.film_id": "film_id"}),
            required("rental", "r", on={"i.inventory_id": "inventory_id"}),
        ],
        group_by=[key("store_id", "i.store_id")],
        aggregates=[total("total_replacement_cost", "f.replacement_cost")],
        where=is_null("r.return_date"),
        order_by=[asc("store_id")],
        description="Replacement cost of unreturned films by store",
    ),
]

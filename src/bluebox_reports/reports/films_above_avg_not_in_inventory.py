"""Films rented more than the average number of times and not in inventory.

Rental counts are taken per (film, inventory copy) through optional
joins film -> inventory -> rental, so films without any inventory still
appear with a NULL inventory_id. The post-aggregation filter compares
each count with ROUND(AVG(total_rentals), 2) over the same aggregated
rows, computed once.
"""

from ..definitions import asc, count, define, key, optional, source
from ..expressions import all_of, avg_of, gt, is_null

DEFINITIONS = [
    define(
        "films_above_avg_not_in_inventory",
        inputs=[
            source("film", "f"),
            optional("inventory", "i", on={"f.film_id": "film_id"}),
            optional("rental", "r", on={"i.inventory_id": "inventory_id"}),
        ],
        group_by=[
            key("film_id", "f.film_id"),
            key("title", "f.title"),
            key("inventory_id", "i.inventory_id"),
        ],
        aggregates=[count("total_rentals", "r.rental_id")],
        having=all_of(
            gt("total_rentals", avg_of("total_rentals")),
            is_null("inventory_id"),
        ),
        order_by=[asc("film_id")],
        select=["film_id", "title"],
        description="Above-average rentals with no inventory copy",
    ),
]

"""Standing view of the ten most frequently rented films.

Films without inventory or rentals count as zero rentals. Refreshed on
demand through ViewManager.
"""

from ..definitions import count, define, desc, key, optional, source

DEFINITIONS = [
    define(
        "top_10_most_rented",
        inputs=[
            source("film", "f"),
            optional("inventory", "i", on={"f.film_id": "film_id"}),
            optional("rental", "r", on={"i.inventory_id": "inventory_id"}),
        ],
        group_by=[key("film_id", "f.film_id")],
        aggregates=[count("total_rentals", "r.rental_id")],
        order_by=[desc("total_rentals")],
        limit=10,
        standing=True,
        description="Ten most rented films",
    ),
]

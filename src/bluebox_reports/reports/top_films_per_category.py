"""Top 5 most rented films in each category, with rental count and revenue.

Rentals and revenue are pre-aggregated per film, then joined to the
film's category and ranked within each category
(ROW_NUMBER() OVER (PARTITION BY category ORDER BY total_rentals DESC)).
"""

from ..definitions import (
    asc,
    count,
    define,
    desc,
    key,
    required,
    source,
    top_per_group,
    total,
)

DEFINITIONS = [
    define(
        "film_rental_revenue",
        inputs=[
            source("rental", "r"),
            required("inventory", "i", on={"r.inventory_id": "inventory_id"}),
            required("payment", "p", on={"r.rental_id": "rental_id"}),
        ],
        group_by=[key("film_id", "i.film_id")],
        aggregates=[
            count("total_rentals", "r.rental_id"),
            total("total_revenue", "p.amount"),
        ],
        description="Paid rentals and revenue per film",
    ),
    define(
        "top_films_per_category",
        inputs=[
            source("film", "f"),
            required("film_category", "fc", on={"f.film_id": "film_id"}),
            required("category", "c", on={"fc.category_id": "category_id"}),
            required("film_rental_revenue", "t", on={"f.film_id": "film_id"}),
        ],
        group_by=[
            key("category_name", "c.name"),
            key("film_id", "f.film_id"),
            key("film_title", "f.title"),
            key("total_rentals", "t.total_rentals"),
            key("total_revenue", "t.total_revenue"),
        ],
        limit_per_group=top_per_group(5, "category_name", "total_rentals"),
        order_by=[asc("category_name"), desc("total_rentals")],
        select=["category_name", "film_title", "total_rentals", "total_revenue"],
        description="Five most rented films per category",
    ),
]

"""Average number of films rented per customer, broken down by city.

Two intermediate reports: rental counts per customer, and each
customer's city (customer -> address -> city). The final report averages
the counts per city.
"""

from ..definitions import asc, average, count, define, key, required, source

DEFINITIONS = [
    define(
        "customer_rental_totals",
        inputs=[source("rental", "r")],
        group_by=[key("customer_id", "r.customer_id")],
        aggregates=[count("total_film_rentals", "r.rental_id")],
        description="Rentals per customer",
    ),
    define(
        "customer_cities",
        inputs=[
            source("customer", "c"),
            required("address", "a", on={"c.address_id": "address_id"}),
            required("city", "ci", on={"a.city_id": "city_id"}),
        ],
        group_by=[
            key("customer_id", "c.customer_id"),
            key("city_name", "ci.city"),
        ],
        description="City each customer lives in",
    ),
    define(
        "avg_rentals_per_city",
        inputs=[
            source("customer_rental_totals", "t"),
            required("customer_cities", "cc", on={"t.customer_id": "customer_id"}),
        ],
        group_by=[key("city_name", "cc.city_name")],
        aggregates=[average("avg_rentals", "t.total_film_rentals")],
        order_by=[asc("city_name")],
        description="Average rentals per customer by city",
    ),
]

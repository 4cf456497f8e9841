"""Report catalog auto-discovery and public API.

Importing this package discovers every report module in this directory
and collects its ``DEFINITIONS`` list. Contributors just need to create a
new .py file exposing ``DEFINITIONS`` — no manual registration required.
Definitions may reference reports from other modules; the catalog
resolves the order.

Public API:
    discover      — every definition found in this package
    build_catalog — a ReportCatalog built from those definitions
"""

import importlib
import pkgutil

from ..catalog import ReportCatalog
from ..definitions import ReportDefinition
from ..schema import RENTAL_SCHEMA, Schema


def discover() -> list[ReportDefinition]:
    """Collect ``DEFINITIONS`` from every non-private module in this package."""
    definitions = []
    for info in pkgutil.iter_modules(__path__):
        if info.name.startswith("_"):
            continue
        module = importlib.import_module(f".{info.name}", __package__)
        definitions.extend(getattr(module, "DEFINITIONS", ()))
    return definitions


def build_catalog(schema: Schema = RENTAL_SCHEMA) -> ReportCatalog:
    return ReportCatalog.from_definitions(discover(), schema)

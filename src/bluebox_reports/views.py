"""Standing views: reports kept materialized and refreshed on demand."""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone

from .engine import ExecutionEngine
from .errors import UnknownReportError
from .formatter import ResultSet

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class MaterializedView:
    name: str
    result: ResultSet
    refreshed_at: datetime


class ViewManager:
    """Holds the latest ResultSet of every standing report in the catalog."""

    def __init__(self, engine: ExecutionEngine):
        self.engine = engine
        self._views: dict[str, MaterializedView] = {}
        self._lock = threading.Lock()

    @property
    def names(self) -> list[str]:
        return [d.name for d in self.engine.catalog if d.standing]

    def _check(self, name: str) -> None:
        if name not in self.names:
            raise UnknownReportError(name)

    def refresh(self, name: str) -> MaterializedView:
        """Recompute a standing view. Refreshing twice is harmless."""
        self._check(name)
        result = self.engine.run(name)
        view = MaterializedView(name, result, datetime.now(timezone.utc))
        with self._lock:
            self._views[name] = view
        log.info("Refreshed view '%s' (%d rows)", name, len(result))
        return view

    def refresh_all(self) -> list[MaterializedView]:
        return [self.refresh(name) for name in self.names]

    def get(self, name: str) -> MaterializedView:
        """Latest materialization, computing it on first access."""
        self._check(name)
        with self._lock:
            view = self._views.get(name)
        if view is None:
            view = self.refresh(name)
        return view

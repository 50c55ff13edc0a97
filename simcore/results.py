# simcore/results.py
"""
Result store: completed analyses keyed by result id.

Results are immutable once added. Removing one detaches whatever
visualization was attached to it.
"""

import logging
import threading
from typing import Dict, List, Optional

from .errors import ResultNotFoundError
from .model import SimulationResult


logger = logging.getLogger(__name__)


class ResultStore:
    """Lock-guarded, insertion-ordered map of result id -> SimulationResult."""

    def __init__(self):
        self._lock = threading.Lock()
        self._results: Dict[str, SimulationResult] = {}

    def add(self, result: SimulationResult) -> None:
        with self._lock:
            if result.id in self._results:
                raise ValueError(f"Result {result.id} already stored")
            self._results[result.id] = result
        logger.info("Stored %s result %s (converged=%s)", result.type, result.id, result.converged)

    def get(self, result_id: str) -> Optional[SimulationResult]:
        with self._lock:
            return self._results.get(result_id)

    def require(self, result_id: str) -> SimulationResult:
        result = self.get(result_id)
        if result is None:
            raise ResultNotFoundError(result_id)
        return result

    def all(self) -> List[SimulationResult]:
        with self._lock:
            return list(self._results.values())

    def remove(self, result_id: str) -> bool:
        """Drop a result; False if it was not stored."""
        with self._lock:
            result = self._results.pop(result_id, None)
        if result is None:
            return False
        result.visualization.detach()
        logger.debug("Removed result %s", result_id)
        return True

    def clear(self) -> None:
        with self._lock:
            results = list(self._results.values())
            self._results.clear()
        for result in results:
            result.visualization.detach()

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def __contains__(self, result_id) -> bool:
        with self._lock:
            return result_id in self._results

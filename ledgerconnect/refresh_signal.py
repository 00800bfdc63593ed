"""Refresh Signal - per-customer staleness counters.

The signal is not a cache. It holds one monotonically increasing number per
customer. Every successful mutation bumps the customer's number, and every
projection records the number it was computed under. A view holding a
projection whose revision is below the current one knows it must re-read.

One RefreshSignal belongs to one LedgerSDK instance and is passed to the
components that need it; there is no module-level counter.
"""

import threading
from typing import Dict, Iterable


class RefreshSignal:
    """Monotonic invalidation counters keyed by customer id.

    Usage Example:
        ```python
        signal = RefreshSignal()
        seen = signal.current("c1")      # 0
        signal.bump("c1")                # 1
        assert signal.is_stale("c1", seen)
        ```
    """

    def __init__(self):
        self._revisions: Dict[str, int] = {}
        self._global = 0
        self._lock = threading.Lock()

    def bump(self, customer_id: str) -> int:
        """Record a mutation on ``customer_id`` and return its new revision."""
        with self._lock:
            revision = self._revisions.get(customer_id, 0) + 1
            self._revisions[customer_id] = revision
            self._global += 1
            return revision

    def current(self, customer_id: str) -> int:
        """Current revision of ``customer_id`` (0 if never mutated)."""
        with self._lock:
            return self._revisions.get(customer_id, 0)

    @property
    def global_revision(self) -> int:
        """Total number of mutations across all customers."""
        with self._lock:
            return self._global

    def is_stale(self, customer_id: str, revision: int) -> bool:
        """True if ``revision`` was captured before the latest mutation."""
        return revision < self.current(customer_id)

    def invalidate_all(self, customer_ids: Iterable[str] = ()) -> None:
        """Bump every known customer, plus ``customer_ids``, at once.

        Used after a snapshot restore, where any customer's events may have
        changed. Counters never go backwards.
        """
        with self._lock:
            for customer_id in set(self._revisions) | set(customer_ids):
                self._revisions[customer_id] = self._revisions.get(customer_id, 0) + 1
            self._global += 1

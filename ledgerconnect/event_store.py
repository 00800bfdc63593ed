"""Event Store - the append-mostly log of debts and repayments.

The EventStore is responsible for:
- Appending DebtEvent and RepaymentEvent records
- Returning a customer's events in chronological order
- Rewriting the category of a single event
- Removing a single event

It holds no balances. Every balance is derived by the BalanceProjector from
what this store returns.

Ordering:
    Reads are sorted by event timestamp ascending. Ties are broken by the
    insertion sequence the store assigns on append, so the order is stable.

Atomicity:
    Each customer has its own re-entrant lock. Appends, reassignments and
    deletes on a customer run under that lock, and reads copy the customer's
    events under it too, so a reader sees either the whole mutation or none
    of it. Different customers never wait on each other. Events are frozen
    models; a reassignment swaps in a new copy rather than editing in place.
"""

import itertools
import threading
from typing import Dict, Iterable, List, Optional, Tuple, Union

from ledgerconnect.customer_registry import CustomerRegistry
from ledgerconnect.errors import NotFoundError, ValidationError
from ledgerconnect.models import DebtEvent, EventKind, RepaymentEvent, normalize_category

LedgerEvent = Union[DebtEvent, RepaymentEvent]


def event_sort_key(event: LedgerEvent) -> Tuple:
    """Chronological sort key: timestamp, then insertion sequence."""
    return (event.occurred_at, event.sequence)


class EventStore:
    """In-memory store of ledger events keyed by customer.

    Usage Example:
        ```python
        registry = CustomerRegistry()
        store = EventStore(registry)
        registry.register_customer(Customer(customer_id="c1", name="Juan"))

        debt = store.append(DebtEvent(customer_id="c1", amount=50000, category="Rice"))
        store.reassign_category(debt.event_id, "Grocery")

        for event in store.list_by_customer("c1"):
            print(event.kind, event.category, event.amount)
        ```
    """

    def __init__(self, customer_registry: CustomerRegistry):
        """Initialize the store.

        Args:
            customer_registry (CustomerRegistry): Used to reject events for
                unknown customers
        """
        self.customer_registry = customer_registry
        self._by_customer: Dict[str, Dict[str, LedgerEvent]] = {}
        self._index: Dict[str, str] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._store_lock = threading.Lock()
        self._sequence = itertools.count(1)

    def _customer_lock(self, customer_id: str) -> threading.RLock:
        with self._store_lock:
            lock = self._locks.get(customer_id)
            if lock is None:
                lock = self._locks[customer_id] = threading.RLock()
            return lock

    def append(self, event: LedgerEvent) -> LedgerEvent:
        """Append a debt or repayment.

        Args:
            event (LedgerEvent): The event to store. Its ``sequence`` is
                overwritten by the store.

        Returns:
            LedgerEvent: The stored copy, carrying its insertion sequence

        Raises:
            ValidationError: If amount <= 0, the customer is unknown, or the
                event id is already taken
        """
        if event.amount <= 0:
            raise ValidationError("Amount must be positive", field="amount")
        if not self.customer_registry.customer_exists(event.customer_id):
            raise ValidationError(
                f"Customer {event.customer_id} not found", field="customer_id"
            )

        with self._customer_lock(event.customer_id):
            with self._store_lock:
                if event.event_id in self._index:
                    raise ValidationError(
                        f"Event {event.event_id} already exists", field="event_id"
                    )
                stored = event.model_copy(update={"sequence": next(self._sequence)})
                self._index[stored.event_id] = stored.customer_id
                self._by_customer.setdefault(stored.customer_id, {})[stored.event_id] = stored
        return stored

    def append_all(self, events: Iterable[LedgerEvent]) -> List[LedgerEvent]:
        """Append several events for one customer as a single step.

        Every event is validated before any is stored, so either all are
        appended or none are.

        Raises:
            ValidationError: If any event is invalid, or the events span more
                than one customer
        """
        events = list(events)
        if not events:
            return []
        customer_ids = {e.customer_id for e in events}
        if len(customer_ids) != 1:
            raise ValidationError("Events must belong to one customer", field="customer_id")
        customer_id = customer_ids.pop()
        if not self.customer_registry.customer_exists(customer_id):
            raise ValidationError(f"Customer {customer_id} not found", field="customer_id")

        with self._customer_lock(customer_id):
            with self._store_lock:
                seen = set()
                for event in events:
                    if event.amount <= 0:
                        raise ValidationError("Amount must be positive", field="amount")
                    if event.event_id in self._index or event.event_id in seen:
                        raise ValidationError(
                            f"Event {event.event_id} already exists", field="event_id"
                        )
                    seen.add(event.event_id)

                stored = [e.model_copy(update={"sequence": next(self._sequence)}) for e in events]
                bucket = self._by_customer.setdefault(customer_id, {})
                for event in stored:
                    self._index[event.event_id] = customer_id
                    bucket[event.event_id] = event
        return stored

    def list_by_customer(self, customer_id: str) -> List[LedgerEvent]:
        """All events of a customer, oldest first.

        Returns a snapshot list; later mutations do not affect it.
        """
        with self._customer_lock(customer_id):
            events = list(self._by_customer.get(customer_id, {}).values())
        return sorted(events, key=event_sort_key)

    def get_event(self, event_id: str) -> Optional[LedgerEvent]:
        with self._store_lock:
            customer_id = self._index.get(event_id)
            if customer_id is None:
                return None
            return self._by_customer[customer_id].get(event_id)

    def _locate(self, event_id: str) -> str:
        with self._store_lock:
            customer_id = self._index.get(event_id)
        if customer_id is None:
            raise NotFoundError(f"Event {event_id} not found")
        return customer_id

    def _check_target(self, customer_id: str, event_id: str,
                      kind: Optional[EventKind]) -> LedgerEvent:
        # Caller holds the customer lock.
        event = self._by_customer.get(customer_id, {}).get(event_id)
        if event is None or (kind is not None and event.kind != kind):
            raise NotFoundError(f"Event {event_id} not found")
        return event

    def reassign_category(self, event_id: str, new_category: str,
                          kind: Optional[EventKind] = None) -> LedgerEvent:
        """Move one event to another category.

        Only the targeted event changes. Sibling events, including other
        debts from the same order, keep their categories.

        Args:
            event_id (str): Event to move
            new_category (str): Target category (trimmed, must be non-empty)
            kind (Optional[EventKind]): If given, the event must be of this kind

        Returns:
            LedgerEvent: The updated event

        Raises:
            ValidationError: If the category is empty after trimming
            NotFoundError: If no such event exists
        """
        category = normalize_category(new_category)
        customer_id = self._locate(event_id)

        with self._customer_lock(customer_id):
            event = self._check_target(customer_id, event_id, kind)
            updated = event.model_copy(update={"category": category})
            self._by_customer[customer_id][event_id] = updated
        return updated

    def delete(self, event_id: str, kind: Optional[EventKind] = None) -> LedgerEvent:
        """Remove one event.

        Returns:
            LedgerEvent: The removed event

        Raises:
            NotFoundError: If no such event exists (or it is of another kind)
        """
        customer_id = self._locate(event_id)

        with self._customer_lock(customer_id):
            event = self._check_target(customer_id, event_id, kind)
            with self._store_lock:
                del self._by_customer[customer_id][event_id]
                del self._index[event_id]
        return event

    def count(self) -> int:
        """Total number of stored events."""
        with self._store_lock:
            return len(self._index)

    def count_for_customer(self, customer_id: str) -> int:
        with self._customer_lock(customer_id):
            return len(self._by_customer.get(customer_id, {}))

    def customer_ids(self) -> List[str]:
        """Ids of customers that have at least one event."""
        with self._store_lock:
            return sorted(cid for cid, events in self._by_customer.items() if events)

    def all_events(self) -> List[LedgerEvent]:
        """Every event across customers, oldest first."""
        events: List[LedgerEvent] = []
        for customer_id in self.customer_ids():
            events.extend(self.list_by_customer(customer_id))
        return sorted(events, key=event_sort_key)

    def export(self) -> Tuple[List[DebtEvent], List[RepaymentEvent]]:
        """Split every stored event into (debts, repayments) for a snapshot."""
        events = self.all_events()
        debts = [e for e in events if e.kind == EventKind.DEBT]
        repayments = [e for e in events if e.kind == EventKind.REPAYMENT]
        return debts, repayments

    def restore(self, events: Iterable[LedgerEvent]) -> int:
        """Replace the store's contents with ``events`` from a snapshot.

        Stored sequences are kept so tie-breaking survives a round trip. The
        customer check is skipped because a snapshot may be restored before
        or without its customers.

        Returns:
            int: Number of events loaded

        Raises:
            ValidationError: If an event has a non-positive amount or a
                duplicate id; the store is left unchanged
        """
        events = sorted(events, key=lambda e: e.sequence)
        by_customer: Dict[str, Dict[str, LedgerEvent]] = {}
        index: Dict[str, str] = {}
        for event in events:
            if event.amount <= 0:
                raise ValidationError("Amount must be positive", field="amount")
            if event.event_id in index:
                raise ValidationError(f"Event {event.event_id} already exists", field="event_id")
            index[event.event_id] = event.customer_id
            by_customer.setdefault(event.customer_id, {})[event.event_id] = event

        highest = max((e.sequence for e in events), default=0)
        with self._store_lock:
            self._by_customer = by_customer
            self._index = index
            self._sequence = itertools.count(highest + 1)
        return len(events)

    def clear(self) -> None:
        """Remove every event. Intended for tests."""
        with self._store_lock:
            self._by_customer.clear()
            self._index.clear()

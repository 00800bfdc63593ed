"""Balance Projector - derives balances and ledgers from the event stream.

Nothing here is stored or maintained incrementally. Each call fetches a
customer's events once, then computes with plain integer arithmetic and no
I/O:

1. Partition events by category (alphabetical).
2. Walk each partition in (timestamp, sequence) order, adding debts and
   subtracting repayments.
3. With an as-of day D (a calendar day in the ledger timezone):
   - opening = running balance after the last event whose local day is before D
   - lines   = events whose local day is D, each carrying the running
               balance including itself
   - closing = running balance after the last event on or before D
4. Without a day, closing is the balance after the last event and lines is
   the full history (optionally newest first).

Per-category balances may go negative (overpayment). Nothing is clamped here;
only ``BalanceProjection.display_balance`` clamps, and only for display.
"""

from datetime import date, datetime, tzinfo
from typing import Dict, List, Optional, Sequence, Tuple, Union

from ledgerconnect.clock import ledger_tz, local_date
from ledgerconnect.errors import NotFoundError
from ledgerconnect.event_store import EventStore, LedgerEvent
from ledgerconnect.models import (
    BalanceProjection,
    CategoryProjection,
    EventKind,
    LedgerLine,
    normalize_category,
)
from ledgerconnect.partitioner import list_categories, partition
from ledgerconnect.refresh_signal import RefreshSignal

AsOf = Union[date, datetime, None]


class BalanceProjector:
    """Pull-based projections over the event store.

    Usage Example:
        ```python
        projector = BalanceProjector(store, signal)

        today = projector.project("c1", as_of=date(2024, 3, 2))
        print(today.opening, today.closing)
        for row in today.categories:
            print(row.category, row.opening, row.closing)

        rice = projector.project("c1", category="Rice")
        print([line.running_balance for line in rice.lines])
        ```
    """

    def __init__(self, event_store: EventStore, refresh_signal: RefreshSignal,
                 tz: Optional[tzinfo] = None):
        """Initialize the projector.

        Args:
            event_store (EventStore): Source of events
            refresh_signal (RefreshSignal): Read to stamp each projection with
                the revision it was computed under
            tz (Optional[tzinfo]): Timezone for calendar days. Defaults to the
                configured ledger timezone, looked up on each call.
        """
        self.event_store = event_store
        self.refresh_signal = refresh_signal
        self._tz = tz

    @property
    def tz(self) -> tzinfo:
        return self._tz or ledger_tz()

    def project(self, customer_id: str, category: Optional[str] = None,
                as_of: AsOf = None, newest_first: bool = False,
                search: Optional[str] = None) -> BalanceProjection:
        """Project one category, or the whole customer, optionally as of a day.

        Args:
            customer_id (str): Customer to project
            category (Optional[str]): One category, or None for all
            as_of (date | datetime | None): Calendar day to snapshot. A
                datetime is reduced to its local calendar day.
            newest_first (bool): Reverse the full ledger. Only applies when
                no ``as_of`` is given.
            search (Optional[str]): Case-insensitive text filter on line
                descriptions, notes, product names and categories. Filters
                lines only; opening and closing are unaffected.

        Returns:
            BalanceProjection: opening, lines, closing and per-category rows

        Raises:
            NotFoundError: If the customer is unknown

        Example:
            ```python
            # debt 100 on Jan 5, repayment 40 on Jan 6
            p = projector.project("c1", "Rice", as_of=date(2024, 1, 6))
            assert (p.opening, p.closing) == (100, 60)
            ```
        """
        if not self.event_store.customer_registry.customer_exists(customer_id):
            raise NotFoundError(f"Customer {customer_id} not found")

        # Read the revision before the events so a concurrent mutation can only
        # make this projection look stale, never fresh.
        revision = self.refresh_signal.current(customer_id)
        events = self.event_store.list_by_customer(customer_id)
        tz = self.tz
        day = self._as_day(as_of, tz)
        groups = partition(events)

        if category is not None:
            category = normalize_category(category)
            row = self._project_partition(category, groups.get(category, []),
                                          day, newest_first, search, tz)
            return BalanceProjection(
                customer_id=customer_id,
                category=category,
                as_of=day,
                opening=row.opening,
                closing=row.closing,
                lines=row.lines,
                categories=[row],
                revision=revision,
            )

        rows = []
        for name, group in groups.items():
            row = self._project_partition(name, group, day, newest_first, search, tz)
            # A row that netted to zero today is still shown; only a row with
            # nothing before and nothing matching is dropped.
            if row.opening == 0 and not row.lines:
                continue
            rows.append(row)

        opening, closing, lines = self._walk(events, day, tz)
        lines = self._finish_lines(lines, day, newest_first, search)
        return BalanceProjection(
            customer_id=customer_id,
            as_of=day,
            opening=opening,
            closing=closing,
            lines=lines,
            categories=rows,
            revision=revision,
        )

    def current_balance(self, customer_id: str, category: Optional[str] = None) -> int:
        """Balance after the last event, for one category or the whole customer."""
        return self.project(customer_id, category=category).closing

    def balance_as_of(self, customer_id: str, day: AsOf,
                      category: Optional[str] = None) -> int:
        """Closing balance at the end of ``day`` (everything on or before it)."""
        return self.project(customer_id, category=category, as_of=day).closing

    def category_balances(self, customer_id: str, as_of: AsOf = None) -> Dict[str, int]:
        """Closing balance of every category the customer has ever used.

        Unlike ``project(...).categories`` this is never pruned: a category
        that is settled to zero still appears with 0.
        """
        if not self.event_store.customer_registry.customer_exists(customer_id):
            raise NotFoundError(f"Customer {customer_id} not found")
        tz = self.tz
        day = self._as_day(as_of, tz)
        return {
            name: self._walk(group, day, tz)[1]
            for name, group in partition(self.event_store.list_by_customer(customer_id)).items()
        }

    def list_categories(self, customer_id: str) -> List[str]:
        """Sorted categories referenced by the customer's events."""
        if not self.event_store.customer_registry.customer_exists(customer_id):
            raise NotFoundError(f"Customer {customer_id} not found")
        return list_categories(self.event_store.list_by_customer(customer_id))

    # ===== PRIVATE HELPERS =====

    @staticmethod
    def _as_day(as_of: AsOf, tz: tzinfo) -> Optional[date]:
        if isinstance(as_of, datetime):
            return local_date(as_of, tz)
        return as_of

    def _project_partition(self, category: str, events: Sequence[LedgerEvent],
                           day: Optional[date], newest_first: bool,
                           search: Optional[str], tz: tzinfo) -> CategoryProjection:
        opening, closing, lines = self._walk(events, day, tz)
        return CategoryProjection(
            category=category,
            opening=opening,
            closing=closing,
            lines=self._finish_lines(lines, day, newest_first, search),
        )

    def _walk(self, events: Sequence[LedgerEvent], day: Optional[date],
              tz: tzinfo) -> Tuple[int, int, List[LedgerLine]]:
        """Chronological walk returning (opening, closing, lines).

        ``events`` must already be in (timestamp, sequence) order. Local days
        are non-decreasing along that order, so the walk stops at the first
        event after ``day``.
        """
        running = 0
        opening = 0
        lines: List[LedgerLine] = []
        for event in events:
            event_day = local_date(event.occurred_at, tz)
            if day is not None and event_day > day:
                break
            running += event.signed_amount
            if day is not None and event_day < day:
                opening = running
            else:
                lines.append(self._line(event, event_day, running))
        return opening, running, lines

    @staticmethod
    def _line(event: LedgerEvent, event_day: date, running: int) -> LedgerLine:
        is_debt = event.kind == EventKind.DEBT
        return LedgerLine(
            event_id=event.event_id,
            kind=event.kind,
            category=event.category,
            occurred_at=event.occurred_at,
            local_date=event_day,
            description=event.description,
            debit=event.amount if is_debt else 0,
            credit=0 if is_debt else event.amount,
            running_balance=running,
            items=list(event.items) if is_debt else [],
            note=event.note if is_debt else None,
        )

    @staticmethod
    def _finish_lines(lines: List[LedgerLine], day: Optional[date],
                      newest_first: bool, search: Optional[str]) -> List[LedgerLine]:
        if search and search.strip():
            needle = search.strip().lower()
            lines = [line for line in lines if _matches(line, needle)]
        if day is None and newest_first:
            lines = list(reversed(lines))
        return lines


def _matches(line: LedgerLine, needle: str) -> bool:
    haystack = [line.description, line.category, line.note or ""]
    haystack.extend(item.product_name for item in line.items)
    return any(needle in text.lower() for text in haystack)

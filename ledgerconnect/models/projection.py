"""Projection models - derived, never persisted.

Everything in this module is recomputed from the event store on every read.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ledgerconnect.models.debt import LineItem
from ledgerconnect.models.event import EventKind


class LedgerLine(BaseModel):
    """One event as it appears in a ledger, with the running balance after it.

    Attributes:
        event_id (str): Source event id.
        kind (EventKind): debt or repayment.
        category (str): Category at projection time.
        occurred_at (datetime): Event timestamp.
        local_date (date): Calendar day of the event in the ledger timezone.
        description (str): Short label for display.
        debit (int): Debt amount, 0 for repayments.
        credit (int): Repayment amount, 0 for debts.
        running_balance (int): Balance of the walked partition including this event.
        items (List[LineItem]): Line items of a debt.
        note (Optional[str]): Debt note.
    """

    event_id: str
    kind: EventKind
    category: str
    occurred_at: datetime
    local_date: date
    description: str
    debit: int = 0
    credit: int = 0
    running_balance: int
    items: List[LineItem] = Field(default_factory=list)
    note: Optional[str] = None

    @property
    def delta(self) -> int:
        return self.debit - self.credit


class CategoryProjection(BaseModel):
    """Opening, lines and closing for one category sub-ledger.

    Without an as-of date, ``opening`` is 0 and ``lines`` holds the full
    history.
    """

    category: str
    opening: int = 0
    closing: int = 0
    lines: List[LedgerLine] = Field(default_factory=list)

    @property
    def net(self) -> int:
        return self.closing - self.opening


class BalanceProjection(BaseModel):
    """Result of BalanceProjector.project.

    For a single-category request, ``categories`` holds just that category.
    For the whole customer, ``lines`` merges all categories in time order with
    a customer-wide running balance, and ``categories`` holds the per-category
    rows sorted by name (rows with zero opening and no matching lines are
    left out).

    Attributes:
        customer_id (str): Projected customer.
        category (Optional[str]): Requested category, None for all.
        as_of (Optional[date]): Requested day, None for "now".
        opening (int): Balance before ``as_of`` (0 without a date).
        closing (int): Balance after the last event on or before ``as_of``.
        lines (List[LedgerLine]): Day events, or the full ledger without a date.
        categories (List[CategoryProjection]): Per-category breakdown.
        revision (int): Refresh-signal value this projection was computed under.
    """

    customer_id: str
    category: Optional[str] = None
    as_of: Optional[date] = None
    opening: int = 0
    closing: int = 0
    lines: List[LedgerLine] = Field(default_factory=list)
    categories: List[CategoryProjection] = Field(default_factory=list)
    revision: int = 0

    @property
    def display_balance(self) -> int:
        """Closing balance clamped at zero for "good standing" displays.

        Only meaningful for the whole-customer view. Category balances are
        never clamped.
        """
        return max(0, self.closing)

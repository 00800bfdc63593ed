"""Repayment model - the immutable credit record."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ledgerconnect.clock import ensure_aware, now
from ledgerconnect.models.category import Category
from ledgerconnect.models.event import EventKind


class PaymentMethod(str, Enum):
    CASH = "cash"
    ONLINE = "online"


class RepaymentEvent(BaseModel):
    """A payment received from a customer, posted against exactly one category.

    A repayment is a flat credit on its category's running balance. It is not
    matched against particular debts, and it is never split across categories.

    Attributes:
        event_id (str): Unique id. Auto-generated UUID.
        customer_id (str): Paying customer.
        amount (int): Credit in minor units. Must be > 0.
        category (Category): Sub-ledger credited.
        timestamp (datetime): When the payment was received (timezone-aware).
        method (Optional[PaymentMethod]): cash or online.
        sequence (int): Insertion order, assigned by the event store.
    """

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: f"p-{uuid4()}")
    customer_id: str
    amount: int = Field(gt=0)
    category: Category
    timestamp: datetime = Field(default_factory=now)
    method: Optional[PaymentMethod] = None
    sequence: int = 0

    @field_validator("timestamp")
    @classmethod
    def make_aware(cls, v: datetime) -> datetime:
        return ensure_aware(v)

    @property
    def kind(self) -> EventKind:
        return EventKind.REPAYMENT

    @property
    def occurred_at(self) -> datetime:
        return self.timestamp

    @property
    def signed_amount(self) -> int:
        """Effect on the category balance (-amount)."""
        return -self.amount

    @property
    def description(self) -> str:
        return "Payment Received"

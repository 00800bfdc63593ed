"""Repayment Allocator - posts a payment against one category.

A repayment is a flat credit on a category. It is not matched against
particular debts, and there is no per-debt "paid so far" bookkeeping; the
projector's chronological walk nets the payment against the category the
moment it is included. The allocator therefore only validates and appends.
"""

from datetime import datetime, tzinfo
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from ledgerconnect.clock import ensure_aware, now
from ledgerconnect.errors import ValidationError, from_pydantic
from ledgerconnect.event_store import EventStore
from ledgerconnect.log import get_logger
from ledgerconnect.models import PaymentMethod, RepaymentEvent, normalize_category

logger = get_logger(__name__)


class RepaymentAllocator:
    """Validates and appends RepaymentEvents.

    Usage Example:
        ```python
        allocator = RepaymentAllocator(store)
        allocator.post("c1", "Rice", 20000, timestamp=datetime(2024, 3, 2, 9, 0))
        ```
    """

    def __init__(self, event_store: EventStore, tz: Optional[tzinfo] = None):
        self.event_store = event_store
        self.tz = tz

    def post(self, customer_id: str, category: str, amount: int,
             timestamp: Optional[datetime] = None,
             method: Optional[PaymentMethod] = None) -> RepaymentEvent:
        """Post a repayment.

        Args:
            customer_id (str): Paying customer
            category (str): Category credited (trimmed, must be non-empty)
            amount (int): Amount in minor units, must be > 0
            timestamp (Optional[datetime]): When the payment was received.
                Defaults to now. A naive value is read as wall-clock time
                in the allocator's timezone.
            method (Optional[PaymentMethod]): cash or online

        Returns:
            RepaymentEvent: The stored repayment

        Raises:
            ValidationError: On empty category, non-positive or non-integer
                amount, or unknown customer
        """
        category = normalize_category(category)
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError("Amount must be an integer in minor units", field="amount")
        if amount <= 0:
            raise ValidationError("Repayment amount must be positive", field="amount")

        if timestamp is None:
            timestamp = now(self.tz)
        elif isinstance(timestamp, datetime):
            timestamp = ensure_aware(timestamp, self.tz)
        fields = {"customer_id": customer_id, "category": category, "amount": amount,
                  "method": method, "timestamp": timestamp}
        try:
            repayment = RepaymentEvent(**fields)
        except PydanticValidationError as e:
            raise from_pydantic(e) from e

        stored = self.event_store.append(repayment)
        logger.info(
            "repayment_posted",
            customer_id=customer_id,
            event_id=stored.event_id,
            category=category,
            amount=amount,
        )
        return stored

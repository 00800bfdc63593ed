"""Debt models - line items and the DebtEvent charge record.

This module provides LineItem, the frozen snapshot of a product sold on credit,
and DebtEvent, the immutable charge that adds to a customer's category
balance.
"""

from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ledgerconnect.clock import ensure_aware, now
from ledgerconnect.errors import InvariantViolation
from ledgerconnect.models.category import Category
from ledgerconnect.models.event import EventKind
from ledgerconnect.models.product import Product


class LineItem(BaseModel):
    """One product line of a debt, frozen at creation.

    The name and price are copies taken from the catalog when the debt is
    created. Later catalog price changes never alter a historical debt.

    The per-line ``category`` is only a hint used when an order is split into
    one debt per category. Once the debt exists, the debt's own ``category``
    is authoritative and the hint is never rewritten.

    Attributes:
        product_id (str): Catalog id, or "manual" for hand-entered charges.
        product_name (str): Name snapshot.
        quantity (int): Units sold. Must be > 0.
        price (int): Unit price snapshot in minor units. Must be >= 0.
        category (Optional[str]): Creation-time category hint.
    """

    model_config = ConfigDict(frozen=True)

    product_id: str
    product_name: str
    quantity: int = Field(gt=0)
    price: int = Field(ge=0)
    category: Optional[str] = None

    @property
    def subtotal(self) -> int:
        """Line total in minor units (price * quantity)."""
        return self.price * self.quantity

    @classmethod
    def from_product(cls, product: Product, quantity: int,
                     category: Optional[str] = None) -> "LineItem":
        """Snapshot a catalog product into a line item.

        Args:
            product (Product): The catalog product.
            quantity (int): Units sold.
            category (Optional[str]): Override for the product's default category.

        Returns:
            LineItem: Frozen snapshot of name and price.

        Example:
            ```python
            rice = Product(name="Rice 5kg", category="Rice", price=25000)
            item = LineItem.from_product(rice, quantity=2)
            assert item.subtotal == 50000
            ```
        """
        return cls(
            product_id=product.product_id,
            product_name=product.name,
            quantity=quantity,
            price=product.price,
            category=category or product.category,
        )


class DebtEvent(BaseModel):
    """An immutable charge against a customer in one category.

    Only ``category`` may change after creation (through the event store's
    reassignment, which swaps in a copy). Amounts are never edited; to correct
    one, delete the debt and create a new one.

    There is deliberately no "amount already paid" counter on a debt. Balances
    are always derived by replaying the event stream.

    Invariants:
    - amount > 0
    - when items are present, amount == sum(item.subtotal)
    - created_at is timezone-aware

    Attributes:
        event_id (str): Unique id. Auto-generated UUID.
        customer_id (str): Owning customer.
        amount (int): Charge in minor units.
        items (List[LineItem]): Product lines; empty for manual entries.
        category (Category): Sub-ledger this debt belongs to.
        created_at (datetime): Authoritative timestamp for ordering and day bucketing.
        note (Optional[str]): Free-text note.
        order_id (Optional[str]): Originating order, when created from one.
        sequence (int): Insertion order, assigned by the event store. Breaks
            timestamp ties.
    """

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: f"d-{uuid4()}")
    customer_id: str
    amount: int = Field(gt=0)
    items: List[LineItem] = Field(default_factory=list)
    category: Category
    created_at: datetime = Field(default_factory=now)
    note: Optional[str] = None
    order_id: Optional[str] = None
    sequence: int = 0

    @field_validator("created_at")
    @classmethod
    def make_aware(cls, v: datetime) -> datetime:
        return ensure_aware(v)

    @model_validator(mode="after")
    def check_items_total(self) -> "DebtEvent":
        if self.items:
            items_total = sum(item.subtotal for item in self.items)
            if items_total != self.amount:
                raise InvariantViolation(
                    f"Debt {self.event_id} amount {self.amount} does not match "
                    f"line items total {items_total}"
                )
        return self

    @property
    def kind(self) -> EventKind:
        return EventKind.DEBT

    @property
    def occurred_at(self) -> datetime:
        return self.created_at

    @property
    def signed_amount(self) -> int:
        """Effect on the category balance (+amount)."""
        return self.amount

    @property
    def description(self) -> str:
        """Short ledger label.

        One item shows its name and quantity, several items show the first
        name plus a count, and a manual entry falls back to its note or
        category.
        """
        if len(self.items) == 1:
            item = self.items[0]
            return f"{item.product_name} (x{item.quantity})"
        if self.items:
            return f"{self.items[0].product_name} +{len(self.items) - 1} items"
        return self.note or self.category

"""Core data models for Ledger Connect."""

from ledgerconnect.models.category import Category, normalize_category
from ledgerconnect.models.customer import Customer, CustomerRole
from ledgerconnect.models.debt import DebtEvent, LineItem
from ledgerconnect.models.event import EventKind
from ledgerconnect.models.product import Product
from ledgerconnect.models.projection import BalanceProjection, CategoryProjection, LedgerLine
from ledgerconnect.models.repayment import PaymentMethod, RepaymentEvent
from ledgerconnect.models.report import (
    Debtor,
    LedgerSummary,
    Statement,
    StatementProductLine,
    StatementSection,
)

__all__ = [
    "Category",
    "normalize_category",
    "Customer",
    "CustomerRole",
    "DebtEvent",
    "LineItem",
    "EventKind",
    "Product",
    "BalanceProjection",
    "CategoryProjection",
    "LedgerLine",
    "PaymentMethod",
    "RepaymentEvent",
    "Debtor",
    "LedgerSummary",
    "Statement",
    "StatementProductLine",
    "StatementSection",
]

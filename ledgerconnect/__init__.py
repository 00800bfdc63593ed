"""Ledger Connect - store-credit ledgers with per-category running balances."""

__version__ = "0.1.0"

# Main SDK interface
from ledgerconnect.sdk import LedgerSDK, format_amount

# Core models (for advanced usage)
from ledgerconnect.models import (
    BalanceProjection,
    CategoryProjection,
    Customer,
    CustomerRole,
    DebtEvent,
    Debtor,
    EventKind,
    LedgerLine,
    LedgerSummary,
    LineItem,
    PaymentMethod,
    Product,
    RepaymentEvent,
    Statement,
)

# Components (for advanced usage)
from ledgerconnect.customer_registry import CustomerRegistry
from ledgerconnect.event_store import EventStore
from ledgerconnect.projector import BalanceProjector
from ledgerconnect.refresh_signal import RefreshSignal
from ledgerconnect.repayment_allocator import RepaymentAllocator
from ledgerconnect.mutation_gateway import MutationGateway, MutationResult, MutationState
from ledgerconnect.errors import (
    AuthError,
    InvariantViolation,
    LedgerError,
    NotFoundError,
    ValidationError,
)

__all__ = [
    # Main SDK
    "LedgerSDK",
    "format_amount",
    # Models
    "BalanceProjection",
    "CategoryProjection",
    "Customer",
    "CustomerRole",
    "DebtEvent",
    "Debtor",
    "EventKind",
    "LedgerLine",
    "LedgerSummary",
    "LineItem",
    "PaymentMethod",
    "Product",
    "RepaymentEvent",
    "Statement",
    # Components
    "CustomerRegistry",
    "EventStore",
    "BalanceProjector",
    "RefreshSignal",
    "RepaymentAllocator",
    "MutationGateway",
    "MutationResult",
    "MutationState",
    # Errors
    "AuthError",
    "InvariantViolation",
    "LedgerError",
    "NotFoundError",
    "ValidationError",
]

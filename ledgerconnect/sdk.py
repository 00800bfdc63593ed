"""Ledger Connect SDK - High-level API for store-credit ledgers.

This module provides the main SDK interface that wires the internal
components (registry, event store, projector, gateway, reports) into one
object with a simple API.
"""

from datetime import date, datetime, tzinfo
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ledgerconnect.clock import local_date, now
from ledgerconnect.collaborators import InMemoryCatalog, InMemorySecretStore, SecretProvider
from ledgerconnect.config import Settings, get_settings
from ledgerconnect.customer_registry import CustomerRegistry
from ledgerconnect.errors import NotFoundError, ValidationError, from_pydantic
from ledgerconnect.event_store import EventStore, LedgerEvent
from ledgerconnect.log import get_logger
from ledgerconnect.models import (
    BalanceProjection,
    Customer,
    CustomerRole,
    Debtor,
    EventKind,
    LedgerSummary,
    PaymentMethod,
    Product,
    Statement,
)
from ledgerconnect.mutation_gateway import (
    LineItemInput,
    MutationGateway,
    MutationResult,
    MutationState,
)
from ledgerconnect.projector import AsOf, BalanceProjector
from ledgerconnect.refresh_signal import RefreshSignal
from ledgerconnect.repayment_allocator import RepaymentAllocator
from ledgerconnect.reports import StatementBuilder, debtors, last_used_category, summarize
from ledgerconnect.storage import LedgerSnapshot, load_snapshot, save_snapshot

logger = get_logger(__name__)


def format_amount(amount: int, symbol: Optional[str] = None,
                  minor_units: Optional[int] = None) -> str:
    """Render minor units for display, e.g. ``format_amount(123450) == "₱1,234.50"``.

    Symbol and decimal places default to the configured currency.
    """
    settings = get_settings()
    symbol = settings.currency_symbol if symbol is None else symbol
    minor_units = settings.minor_units if minor_units is None else minor_units

    sign = "-" if amount < 0 else ""
    whole, fraction = divmod(abs(amount), 10 ** minor_units)
    text = f"{whole:,}"
    if minor_units:
        text += f".{fraction:0{minor_units}d}"
    return f"{sign}{symbol}{text}"


class LedgerSDK:
    """High-level SDK for store-credit ledgers.

    Key Features:
    - **Customers**: Register, update and remove customers
    - **Debts**: Manual charges, or orders split one debt per category
    - **Repayments**: Flat credits against one category
    - **Corrections**: Category reassignment and password-gated deletion
    - **Balances**: Per-category and whole-customer projections, by day
    - **Reports**: Statement of account and merchant summary
    - **Backup**: JSON snapshots of the whole ledger

    Usage Example:
        ```python
        sdk = LedgerSDK()

        juan = sdk.register_customer("Juan", phone="09171234567")
        sdk.register_customer("Store Owner", customer_id="admin-1",
                              role=CustomerRole.ADMIN, password="s3cret")

        # Charge 500.00 of rice, then receive 200.00
        debt = sdk.create_debt(juan.customer_id, "Rice", amount=50000)
        sdk.create_repayment(juan.customer_id, "Rice", 20000)

        print(format_amount(sdk.get_balance(juan.customer_id)))   # ₱300.00

        # Move the debt, then delete it with the admin's password
        sdk.reassign_category(debt.event.event_id, "debt", "Grocery", authorized=True)
        sdk.delete_event(debt.event.event_id, "debt", "s3cret", acting_user_id="admin-1")
        ```

    Attributes:
        registry (CustomerRegistry): Customers
        events (EventStore): Debts and repayments
        signal (RefreshSignal): Per-customer staleness counters
        projector (BalanceProjector): Balance derivation
        allocator (RepaymentAllocator): Repayment posting
        gateway (MutationGateway): Validated mutations
        secrets (SecretProvider): Password hashes for the delete challenge
        catalog (InMemoryCatalog): Product lookups for line-item snapshots
        statements (StatementBuilder): Statement of account builder
    """

    def __init__(self, secret_provider: Optional[SecretProvider] = None,
                 catalog: Optional[InMemoryCatalog] = None,
                 tz: Optional[tzinfo] = None,
                 settings: Optional[Settings] = None):
        """Initialize the SDK.

        Args:
            secret_provider: Source of password hashes. Defaults to an
                in-memory store hashing with ``settings.bcrypt_rounds``.
            catalog: Product catalog. Defaults to an empty in-memory catalog.
            tz: Timezone for calendar days and for naive timestamps.
                Defaults to ``settings.timezone``.
            settings: Settings to use instead of ``get_settings()``
        """
        self.settings = settings or get_settings()
        self.tz = tz or self.settings.tzinfo

        self.registry = CustomerRegistry()
        self.events = EventStore(self.registry)
        self.signal = RefreshSignal()
        self.projector = BalanceProjector(self.events, self.signal, tz=self.tz)
        self.allocator = RepaymentAllocator(self.events, tz=self.tz)
        self.secrets = secret_provider or InMemorySecretStore(rounds=self.settings.bcrypt_rounds)
        self.catalog = catalog if catalog is not None else InMemoryCatalog()
        self.gateway = MutationGateway(self.events, self.signal, self.allocator, self.secrets,
                                       tz=self.tz)
        self.statements = StatementBuilder(self.projector, self.registry)

    # ========== Customer Management ==========

    def register_customer(
        self,
        name: str,
        phone: str = "",
        customer_id: Optional[str] = None,
        role: CustomerRole = CustomerRole.CUSTOMER,
        address: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None
    ) -> Customer:
        """Register a new customer.

        Args:
            name (str): Display name
            phone (str): Phone number for SMS collaborators
            customer_id (Optional[str]): Id to use; generated if omitted
            role (CustomerRole): customer or admin
            address (Optional[str]): Free-text address
            email (Optional[str]): Contact address
            password (Optional[str]): If given, stored (hashed) in the secret
                store so this user can authorize deletions

        Returns:
            Customer: The registered customer

        Raises:
            ValidationError: If the id is taken or the name is blank
        """
        fields: Dict[str, Any] = {
            "name": name, "phone": phone, "role": role, "address": address, "email": email,
        }
        if customer_id is not None:
            fields["customer_id"] = customer_id
        customer = self._build_customer(fields)
        self.registry.register_customer(customer)
        if password is not None:
            self.set_password(customer.customer_id, password)
        logger.info("customer_registered", customer_id=customer.customer_id, role=customer.role.value)
        return customer

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        return self.registry.get_customer(customer_id)

    def customer_exists(self, customer_id: str) -> bool:
        return self.registry.customer_exists(customer_id)

    def list_customers(self) -> List[Customer]:
        """All customers sorted by name."""
        return self.registry.list_customers()

    def update_customer(self, customer_id: str, /, **updates: Any) -> Customer:
        """Update customer fields (name, phone, role, address, email).

        Raises:
            NotFoundError: If the customer does not exist
            ValidationError: If an unknown field is given

        Example:
            ```python
            sdk.update_customer("c1", phone="09998887777")
            ```
        """
        customer = self.registry.get_customer(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")
        unknown = set(updates) - {"name", "phone", "role", "address", "email"}
        if unknown:
            raise ValidationError(f"Cannot update {sorted(unknown)}", field=sorted(unknown)[0])
        updated = self._build_customer({**customer.model_dump(), **updates})
        return self.registry.update_customer(updated)

    def delete_customer(self, customer_id: str) -> bool:
        """Remove a customer.

        Their debts and repayments stay in the event store and still count
        toward the merchant summary.
        """
        return self.registry.delete_customer(customer_id)

    def set_password(self, user_id: str, password: str) -> None:
        """Store a password for ``user_id`` in the built-in secret store.

        Raises:
            NotImplementedError: If an external secret provider is in use
        """
        if not isinstance(self.secrets, InMemorySecretStore):
            raise NotImplementedError("Passwords are managed by the external secret provider")
        self.secrets.set_password(user_id, password)

    # ========== Products ==========

    def add_product(self, product: Product) -> Product:
        return self.catalog.add_product(product)

    def get_product(self, product_id: str) -> Optional[Product]:
        return self.catalog.get_product(product_id)

    def list_products(self) -> List[Product]:
        return self.catalog.list_products()

    # ========== Debts & Repayments ==========

    def create_debt(
        self,
        customer_id: str,
        category: str,
        amount: Optional[int] = None,
        items: Optional[List[LineItemInput]] = None,
        created_at: Optional[datetime] = None,
        note: Optional[str] = None,
        order_id: Optional[str] = None
    ) -> MutationResult:
        """Create a debt. See ``MutationGateway.create_debt``.

        Example:
            ```python
            result = sdk.create_debt("c1", "Load", amount=10000, note="Globe 100")
            if not result.success:
                print(f"{result.field}: {result.error_message}")
            ```
        """
        return self.gateway.create_debt(customer_id, category, amount=amount, items=items,
                                        created_at=created_at, note=note, order_id=order_id)

    def charge_products(
        self,
        customer_id: str,
        quantities: Mapping[str, int],
        created_at: Optional[datetime] = None,
        category_overrides: Optional[Mapping[str, str]] = None,
        order_id: Optional[str] = None,
        note: Optional[str] = None
    ) -> MutationResult:
        """Charge catalog products, one debt per category.

        Names and prices are snapshotted from the catalog now; later catalog
        edits never touch the debts. Each product's category is taken from
        ``category_overrides``, else the category this customer last used for
        it, else the product's default category.

        Args:
            customer_id (str): Customer charged
            quantities (Mapping[str, int]): product_id -> quantity
            created_at (Optional[datetime]): Shared timestamp of the debts
            category_overrides (Optional[Mapping[str, str]]): product_id -> category
            order_id (Optional[str]): Originating order id
            note (Optional[str]): Note copied to every debt

        Returns:
            MutationResult: ``events`` holds one debt per category

        Example:
            ```python
            sdk.add_product(Product(product_id="rice", name="Rice 5kg",
                                    category="Rice", price=25000))
            sdk.add_product(Product(product_id="soap", name="Soap",
                                    category="Grocery", price=3500))
            result = sdk.charge_products("c1", {"rice": 2, "soap": 1})
            assert [d.category for d in result.events] == ["Grocery", "Rice"]
            ```
        """
        overrides = dict(category_overrides or {})
        items: List[Dict[str, Any]] = []
        for product_id, quantity in quantities.items():
            product = self.catalog.get_product(product_id)
            if product is None:
                error = ValidationError(f"Product {product_id} not found", field="items")
                return MutationResult(False, MutationState.REJECTED,
                                      [MutationState.PENDING, MutationState.REJECTED],
                                      error=error)
            category = overrides.get(product_id) or self.last_used_category(customer_id, product_id)
            # Snapshot as plain fields so a bad quantity comes back as a result
            items.append({
                "product_id": product.product_id,
                "product_name": product.name,
                "quantity": quantity,
                "price": product.price,
                "category": category or product.category,
            })
        return self.gateway.create_debts_from_items(customer_id, items, created_at=created_at,
                                                    order_id=order_id, note=note)

    def create_repayment(
        self,
        customer_id: str,
        category: str,
        amount: int,
        timestamp: Optional[datetime] = None,
        method: Optional[PaymentMethod] = None
    ) -> MutationResult:
        """Record a payment against one category.

        Example:
            ```python
            sdk.create_repayment("c1", "Rice", 20000, method=PaymentMethod.CASH)
            ```
        """
        return self.gateway.create_repayment(customer_id, category, amount,
                                             timestamp=timestamp, method=method)

    def reassign_category(self, event_id: str, kind: Union[EventKind, str],
                          new_category: str, authorized: bool) -> MutationResult:
        """Move a debt or repayment to another category (admin only)."""
        return self.gateway.reassign_category(event_id, kind, new_category, authorized)

    def delete_event(self, event_id: str, kind: Union[EventKind, str],
                     supplied_secret: str, acting_user_id: str) -> MutationResult:
        """Delete a debt or repayment after re-checking the acting user's password."""
        return self.gateway.delete_event(event_id, kind, supplied_secret, acting_user_id)

    def get_event(self, event_id: str) -> Optional[LedgerEvent]:
        return self.events.get_event(event_id)

    def get_events(self, customer_id: str) -> List[LedgerEvent]:
        """All debts and repayments of a customer, oldest first."""
        return self.events.list_by_customer(customer_id)

    # ========== Balances ==========

    def project_balance(
        self,
        customer_id: str,
        category: Optional[str] = None,
        as_of: AsOf = None,
        newest_first: bool = False,
        search: Optional[str] = None
    ) -> BalanceProjection:
        """Opening, lines and closing for a category or the whole customer.

        Example:
            ```python
            p = sdk.project_balance("c1", as_of=date(2024, 3, 2))
            for row in p.categories:
                print(row.category, format_amount(row.opening), format_amount(row.closing))
            ```
        """
        return self.projector.project(customer_id, category=category, as_of=as_of,
                                      newest_first=newest_first, search=search)

    def get_balance(self, customer_id: str, category: Optional[str] = None) -> int:
        """Current balance (may be negative for an overpaid category)."""
        return self.projector.current_balance(customer_id, category)

    def balance_as_of(self, customer_id: str, day: AsOf,
                      category: Optional[str] = None) -> int:
        return self.projector.balance_as_of(customer_id, day, category)

    def category_balances(self, customer_id: str, as_of: AsOf = None) -> Dict[str, int]:
        return self.projector.category_balances(customer_id, as_of)

    def list_categories(self, customer_id: str) -> List[str]:
        """Sorted categories the customer has used."""
        return self.projector.list_categories(customer_id)

    def revision(self, customer_id: str) -> int:
        return self.signal.current(customer_id)

    def is_stale(self, customer_id: str, revision: int) -> bool:
        """True if the customer changed after a projection at ``revision``."""
        return self.signal.is_stale(customer_id, revision)

    # ========== Reports ==========

    def statement(self, customer_id: str, on: Union[date, datetime, None] = None) -> Statement:
        """Statement of account for ``on`` (default: today)."""
        return self.statements.build(customer_id, on or self._today())

    def summary(self, on: Union[date, datetime, None] = None) -> LedgerSummary:
        """Merchant-wide figures for ``on`` (default: today)."""
        return summarize(self.events, on or self._today(), tz=self.tz)

    def debtors(self, on: Union[date, datetime, None] = None) -> List[Debtor]:
        """Customers who owe money at the end of ``on`` (default: today).

        Example:
            ```python
            for debtor in sdk.debtors():
                reminders.send(debtor.email, format_amount(debtor.amount))
            ```
        """
        return debtors(self.events, self.registry, on or self._today(), tz=self.tz)

    def last_used_category(self, customer_id: str, product_id: str) -> Optional[str]:
        return last_used_category(self.events, customer_id, product_id)

    # ========== Backup & Restore ==========

    def backup(self) -> LedgerSnapshot:
        """Copy every customer, debt and repayment into a snapshot."""
        debts, repayments = self.events.export()
        return LedgerSnapshot(
            customers=self.registry.list_customers(),
            debts=debts,
            repayments=repayments,
        )

    def restore(self, snapshot: LedgerSnapshot) -> int:
        """Replace all customers and events with the snapshot's contents.

        Passwords and products are not part of a snapshot and are kept.
        Every customer's refresh counter is bumped afterwards.

        Returns:
            int: Number of events restored

        Raises:
            ValidationError: If the snapshot has duplicate ids; nothing changes
        """
        customer_ids = [c.customer_id for c in snapshot.customers]
        if len(customer_ids) != len(set(customer_ids)):
            raise ValidationError("Snapshot has duplicate customer ids", field="customers")

        count = self.events.restore([*snapshot.debts, *snapshot.repayments])
        self.registry.clear()
        for customer in snapshot.customers:
            self.registry.register_customer(customer)
        self.signal.invalidate_all(customer_ids + self.events.customer_ids())
        logger.info("ledger_restored", customers=len(customer_ids), events=count)
        return count

    def save(self, path: Union[str, Path, None] = None) -> Path:
        """Write a snapshot to ``path`` (default: ``settings.snapshot_path``)."""
        return save_snapshot(self.backup(), self._snapshot_path(path))

    def load(self, path: Union[str, Path, None] = None) -> int:
        """Restore from a snapshot file. Returns the number of events loaded."""
        return self.restore(load_snapshot(self._snapshot_path(path)))

    # ========== Utility Methods ==========

    def clear_all(self) -> None:
        """Clear all data from the SDK.

        Warning:
            This is for testing only. Removes all customers, events, products
            and passwords held by the built-in stores.
        """
        known = self.registry.list_customers()
        self.registry.clear()
        self.events.clear()
        self.catalog.clear()
        if isinstance(self.secrets, InMemorySecretStore):
            self.secrets.clear()
        self.signal.invalidate_all(c.customer_id for c in known)

    @staticmethod
    def _build_customer(fields: Dict[str, Any]) -> Customer:
        try:
            return Customer(**fields)
        except PydanticValidationError as e:
            raise from_pydantic(e) from e

    def _today(self) -> date:
        return local_date(now(self.tz), self.tz)

    def _snapshot_path(self, path: Union[str, Path, None]) -> Path:
        path = path or self.settings.snapshot_path
        if not path:
            raise ValidationError("No snapshot path given or configured", field="path")
        return Path(path)

"""Mutation Gateway - validated entry point for every ledger change.

The MutationGateway is the only component that changes the event store on
behalf of callers. It:
- Validates debt creation (customer exists, amount agrees with line items)
- Posts repayments through the RepaymentAllocator
- Applies category reassignment for pre-authorized callers
- Applies deletion only after the acting user re-enters their password
- Bumps the refresh signal after every successful mutation
- Returns a MutationResult instead of raising for domain failures

State flows:
    create:   pending -> validated -> appended            (or -> rejected)
    reassign: requested -> authorized -> applied          (or -> rejected)
    delete:   requested -> password_challenge -> verified -> applied
                                               -> rejected -> aborted

A failed mutation never changes the store.
"""

from datetime import datetime, tzinfo
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ledgerconnect.clock import ensure_aware, now
from ledgerconnect.collaborators import SecretProvider, verify_secret
from ledgerconnect.errors import (
    AuthError,
    InvariantViolation,
    LedgerError,
    NotFoundError,
    ValidationError,
    from_pydantic,
)
from ledgerconnect.event_store import EventStore, LedgerEvent
from ledgerconnect.log import get_logger
from ledgerconnect.models import DebtEvent, EventKind, LineItem, PaymentMethod, normalize_category
from ledgerconnect.refresh_signal import RefreshSignal
from ledgerconnect.repayment_allocator import RepaymentAllocator

logger = get_logger(__name__)

LineItemInput = Union[LineItem, Mapping[str, Any]]


class MutationState(str, Enum):
    """Steps of the mutation state machines."""
    PENDING = "pending"
    VALIDATED = "validated"
    APPENDED = "appended"
    REQUESTED = "requested"
    AUTHORIZED = "authorized"
    PASSWORD_CHALLENGE = "password_challenge"
    VERIFIED = "verified"
    APPLIED = "applied"
    REJECTED = "rejected"
    ABORTED = "aborted"


class MutationResult:
    """Outcome of a gateway call.

    Attributes:
        success (bool): True if the store was changed
        state (MutationState): Final state reached
        history (List[MutationState]): Every state passed through, in order
        event (Optional[LedgerEvent]): The created, updated or deleted event
        events (List[LedgerEvent]): All created events (order splits create several)
        error (Optional[LedgerError]): The failure, if any
        revision (Optional[int]): Refresh-signal revision after a success
    """

    def __init__(self, success: bool, state: MutationState,
                 history: Optional[List[MutationState]] = None,
                 event: Optional[LedgerEvent] = None,
                 events: Optional[List[LedgerEvent]] = None,
                 error: Optional[LedgerError] = None,
                 revision: Optional[int] = None):
        self.success = success
        self.state = state
        self.history = history or [state]
        self.event = event
        self.events = events if events is not None else ([event] if event is not None else [])
        self.error = error
        self.revision = revision

    @property
    def error_code(self) -> Optional[str]:
        return self.error.error_code if self.error else None

    @property
    def error_message(self) -> Optional[str]:
        return self.error.message if self.error else None

    @property
    def field(self) -> Optional[str]:
        return getattr(self.error, "field", None)

    def unwrap(self) -> Optional[LedgerEvent]:
        """Return the event, or raise the stored error."""
        if self.error is not None:
            raise self.error
        return self.event

    def __repr__(self) -> str:
        if self.success:
            event_id = self.event.event_id if self.event is not None else None
            return f"MutationResult(success=True, state={self.state.value}, event_id={event_id})"
        return f"MutationResult(success=False, state={self.state.value}, error={self.error_code})"


def parse_kind(kind: Union[EventKind, str]) -> EventKind:
    try:
        return EventKind(kind)
    except ValueError:
        raise ValidationError(f"Unknown event type: {kind}", field="kind")


class MutationGateway:
    """Validates and applies ledger mutations.

    Usage Example:
        ```python
        gateway = MutationGateway(store, signal, RepaymentAllocator(store), secrets)

        result = gateway.create_debt("c1", "Rice", amount=50000)
        if not result.success:
            print(result.error_code, result.field, result.error_message)

        gateway.reassign_category(result.event.event_id, "debt", "Grocery", authorized=True)
        gateway.delete_event(result.event.event_id, "debt", "s3cret", acting_user_id="admin-1")
        ```
    """

    def __init__(self, event_store: EventStore, refresh_signal: RefreshSignal,
                 allocator: RepaymentAllocator, secret_provider: SecretProvider,
                 tz: Optional[tzinfo] = None):
        """Initialize the gateway.

        Args:
            event_store (EventStore): Store being mutated
            refresh_signal (RefreshSignal): Bumped after each success
            allocator (RepaymentAllocator): Posts repayments
            secret_provider (SecretProvider): Source of password hashes for
                the delete challenge; queried on every attempt
            tz (Optional[tzinfo]): Zone given to naive ``created_at`` values.
                Defaults to the configured ledger timezone.
        """
        self.event_store = event_store
        self.refresh_signal = refresh_signal
        self.allocator = allocator
        self.secret_provider = secret_provider
        self.tz = tz

    # ========== Creation ==========

    def create_debt(self, customer_id: str, category: str,
                    amount: Optional[int] = None,
                    items: Optional[Iterable[LineItemInput]] = None,
                    created_at: Optional[datetime] = None,
                    note: Optional[str] = None,
                    order_id: Optional[str] = None) -> MutationResult:
        """Create one debt.

        Either ``amount`` (manual entry) or ``items`` must be given. With
        items, ``amount`` may be omitted and is then the items total; if it is
        given it must equal that total.

        Args:
            customer_id (str): Customer charged
            category (str): Category of the debt
            amount (Optional[int]): Amount in minor units
            items (Optional[Iterable[LineItem | dict]]): Product lines
            created_at (Optional[datetime]): Defaults to now
            note (Optional[str]): Free-text note
            order_id (Optional[str]): Originating order

        Returns:
            MutationResult: ``event`` is the stored DebtEvent on success; on
                failure ``error`` is a ValidationError naming the field

        Example:
            ```python
            result = gateway.create_debt(
                "c1", "Rice",
                items=[{"product_id": "p1", "product_name": "Rice 5kg",
                        "quantity": 2, "price": 25000}],
            )
            assert result.event.amount == 50000
            ```
        """
        history = [MutationState.PENDING]
        try:
            debt = self._build_debt(customer_id, category, amount, items, created_at,
                                    note, order_id)
            history.append(MutationState.VALIDATED)
            stored = self.event_store.append(debt)
        except LedgerError as e:
            return self._failed(history, e, "create_debt", customer_id=customer_id)

        history.append(MutationState.APPENDED)
        revision = self.refresh_signal.bump(customer_id)
        logger.info(
            "debt_created",
            customer_id=customer_id,
            event_id=stored.event_id,
            category=stored.category,
            amount=stored.amount,
            revision=revision,
        )
        return MutationResult(True, MutationState.APPENDED, history, event=stored,
                              revision=revision)

    def create_debts_from_items(self, customer_id: str, items: Iterable[LineItemInput],
                                created_at: Optional[datetime] = None,
                                category_overrides: Optional[Mapping[str, str]] = None,
                                default_category: str = "General",
                                order_id: Optional[str] = None,
                                note: Optional[str] = None) -> MutationResult:
        """Split an order into one debt per line-item category.

        Each item's category is, in order of preference: the override for its
        product id, its own category hint, ``default_category``. Items sharing
        a category become one debt whose amount is their total. All debts
        share ``created_at`` and are appended together or not at all.

        Returns:
            MutationResult: ``events`` holds the created debts ordered by category
        """
        history = [MutationState.PENDING]
        try:
            line_items = self._coerce_items(items)
            if not line_items:
                raise ValidationError("At least one line item is required", field="items")
            overrides = dict(category_overrides or {})
            if created_at is None:
                created_at = now(self.tz)

            groups: Dict[str, List[LineItem]] = {}
            for item in line_items:
                label = overrides.get(item.product_id) or item.category or default_category
                groups.setdefault(normalize_category(label), []).append(item)

            debts = [
                self._build_debt(customer_id, label, None, group, created_at, note, order_id)
                for label, group in sorted(groups.items())
            ]
            history.append(MutationState.VALIDATED)
            stored = self.event_store.append_all(debts)
        except LedgerError as e:
            return self._failed(history, e, "create_debts_from_items", customer_id=customer_id)

        history.append(MutationState.APPENDED)
        revision = self.refresh_signal.bump(customer_id)
        logger.info(
            "debts_created",
            customer_id=customer_id,
            event_ids=[d.event_id for d in stored],
            categories=[d.category for d in stored],
            amount=sum(d.amount for d in stored),
            revision=revision,
        )
        return MutationResult(True, MutationState.APPENDED, history,
                              event=stored[0], events=stored, revision=revision)

    def create_repayment(self, customer_id: str, category: str, amount: int,
                         timestamp: Optional[datetime] = None,
                         method: Optional[PaymentMethod] = None) -> MutationResult:
        """Post a repayment against one category through the allocator."""
        history = [MutationState.PENDING]
        try:
            stored = self.allocator.post(customer_id, category, amount, timestamp, method)
        except LedgerError as e:
            return self._failed(history, e, "create_repayment", customer_id=customer_id)

        history.extend([MutationState.VALIDATED, MutationState.APPENDED])
        revision = self.refresh_signal.bump(customer_id)
        return MutationResult(True, MutationState.APPENDED, history, event=stored,
                              revision=revision)

    # ========== Reassignment ==========

    def reassign_category(self, event_id: str, kind: Union[EventKind, str],
                          new_category: str, authorized: bool) -> MutationResult:
        """Move one event to another category.

        Role checks belong to the auth collaborator; the caller passes its
        verdict as ``authorized``. Only the targeted event changes: a debt
        moves as a whole, and its line-item category hints are left as they
        were at creation.

        Returns:
            MutationResult: ``event`` is the updated event on success.
                Errors: AuthError (code NOT_AUTHORIZED), ValidationError
                (empty category, bad kind), NotFoundError.
        """
        history = [MutationState.REQUESTED]
        if not authorized:
            error = AuthError("Caller is not authorized to reassign categories",
                              error_code="NOT_AUTHORIZED")
            return self._failed(history, error, "reassign_category", event_id=event_id)
        history.append(MutationState.AUTHORIZED)

        try:
            event_kind = parse_kind(kind)
            category = normalize_category(new_category)
            previous = self.event_store.get_event(event_id)
            updated = self.event_store.reassign_category(event_id, category, kind=event_kind)
        except LedgerError as e:
            return self._failed(history, e, "reassign_category", event_id=event_id)

        history.append(MutationState.APPLIED)
        revision = self.refresh_signal.bump(updated.customer_id)
        logger.info(
            "category_reassigned",
            customer_id=updated.customer_id,
            event_id=event_id,
            kind=event_kind.value,
            from_category=previous.category if previous is not None else None,
            to_category=updated.category,
            revision=revision,
        )
        return MutationResult(True, MutationState.APPLIED, history, event=updated,
                              revision=revision)

    # ========== Deletion ==========

    def delete_event(self, event_id: str, kind: Union[EventKind, str],
                     supplied_secret: str, acting_user_id: str) -> MutationResult:
        """Delete one event after a password challenge.

        The acting user's stored hash is fetched from the secret provider on
        every call, never cached. The secret is checked before the event is
        looked up, so a wrong secret gets the same AuthError whether or not
        the id exists. Every call is a fresh challenge; there is no session
        bypass.

        Args:
            event_id (str): Event to delete
            kind (EventKind | str): "debt" or "repayment"
            supplied_secret (str): Password re-entered by the acting user
            acting_user_id (str): User whose stored password is compared

        Returns:
            MutationResult: ``event`` is the removed event on success.
                Errors: AuthError, NotFoundError, ValidationError (bad kind).
        """
        history = [MutationState.REQUESTED, MutationState.PASSWORD_CHALLENGE]

        if not self._secret_matches(acting_user_id, supplied_secret):
            history.extend([MutationState.REJECTED, MutationState.ABORTED])
            logger.warning("delete_rejected", acting_user_id=acting_user_id)
            return MutationResult(
                False, MutationState.ABORTED, history,
                error=AuthError("Password verification failed"),
            )
        history.append(MutationState.VERIFIED)

        try:
            event_kind = parse_kind(kind)
            removed = self.event_store.delete(event_id, kind=event_kind)
        except LedgerError as e:
            history.append(MutationState.ABORTED)
            return MutationResult(False, MutationState.ABORTED, history, error=e)

        history.append(MutationState.APPLIED)
        revision = self.refresh_signal.bump(removed.customer_id)
        logger.info(
            "event_deleted",
            customer_id=removed.customer_id,
            event_id=event_id,
            kind=event_kind.value,
            category=removed.category,
            amount=removed.amount,
            acting_user_id=acting_user_id,
            revision=revision,
        )
        return MutationResult(True, MutationState.APPLIED, history, event=removed,
                              revision=revision)

    # ===== PRIVATE HELPERS =====

    def _secret_matches(self, user_id: str, supplied_secret: Optional[str]) -> bool:
        if not supplied_secret:
            return False
        try:
            stored_hash = self.secret_provider.get_user_secret(user_id)
        except NotFoundError:
            return False
        return verify_secret(supplied_secret, stored_hash)

    def _build_debt(self, customer_id: str, category: str, amount: Optional[int],
                    items: Optional[Iterable[LineItemInput]],
                    created_at: Optional[datetime], note: Optional[str],
                    order_id: Optional[str]) -> DebtEvent:
        category = normalize_category(category)
        if not self.event_store.customer_registry.customer_exists(customer_id):
            raise ValidationError(f"Customer {customer_id} not found", field="customer_id")

        line_items = self._coerce_items(items)
        if amount is not None and (isinstance(amount, bool) or not isinstance(amount, int)):
            raise ValidationError("Amount must be an integer in minor units", field="amount")

        if line_items:
            items_total = sum(item.subtotal for item in line_items)
            if amount is None:
                amount = items_total
            elif amount != items_total:
                raise ValidationError(
                    f"Amount {amount} does not equal line items total {items_total}",
                    field="amount",
                )
        if amount is None:
            raise ValidationError("Amount or line items are required", field="amount")
        if amount <= 0:
            raise ValidationError("Debt amount must be positive", field="amount")

        fields: Dict[str, Any] = {
            "customer_id": customer_id,
            "category": category,
            "amount": amount,
            "items": line_items,
            "note": note,
            "order_id": order_id,
            "created_at": now(self.tz) if created_at is None else created_at,
        }
        if isinstance(fields["created_at"], datetime):
            fields["created_at"] = ensure_aware(fields["created_at"], self.tz)
        try:
            return DebtEvent(**fields)
        except PydanticValidationError as e:
            raise from_pydantic(e) from e

    @staticmethod
    def _coerce_items(items: Optional[Iterable[LineItemInput]]) -> List[LineItem]:
        line_items: List[LineItem] = []
        for index, item in enumerate(items or []):
            if isinstance(item, LineItem):
                line_items.append(item)
                continue
            try:
                line_items.append(LineItem(**item))
            except PydanticValidationError as e:
                error = from_pydantic(e)
                error.field = f"items.{index}.{error.field}" if error.field else f"items.{index}"
                raise error from e
            except TypeError as e:
                raise ValidationError(f"Invalid line item: {e}", field=f"items.{index}") from e
        return line_items

    def _failed(self, history: List[MutationState], error: LedgerError,
                operation: str, **context) -> MutationResult:
        history.append(MutationState.REJECTED)
        if isinstance(error, InvariantViolation):
            logger.error("invariant_violation", operation=operation, error=error.message, **context)
        else:
            logger.info(
                "mutation_rejected",
                operation=operation,
                error_code=error.error_code,
                field=getattr(error, "field", None),
                **context,
            )
        return MutationResult(False, MutationState.REJECTED, history, error=error)

"""Tests for MutationGateway and RepaymentAllocator."""

import pytest
from datetime import date, datetime, timezone

from ledgerconnect.collaborators import InMemorySecretStore
from ledgerconnect.customer_registry import CustomerRegistry
from ledgerconnect.errors import NotFoundError, ValidationError
from ledgerconnect.event_store import EventStore
from ledgerconnect.models import Customer, CustomerRole, EventKind, LineItem, PaymentMethod
from ledgerconnect.mutation_gateway import MutationGateway, MutationState
from ledgerconnect.projector import BalanceProjector
from ledgerconnect.refresh_signal import RefreshSignal
from ledgerconnect.repayment_allocator import RepaymentAllocator

UTC = timezone.utc


class CountingSecrets(InMemorySecretStore):
    """Secret store that counts lookups."""

    def __init__(self):
        super().__init__(rounds=4)
        self.lookups = 0

    def get_user_secret(self, user_id):
        self.lookups += 1
        return super().get_user_secret(user_id)


@pytest.fixture
def registry():
    reg = CustomerRegistry()
    reg.register_customer(Customer(customer_id="c1", name="Juan"))
    reg.register_customer(Customer(customer_id="admin-1", name="Owner", role=CustomerRole.ADMIN))
    return reg


@pytest.fixture
def store(registry):
    return EventStore(registry)


@pytest.fixture
def signal():
    return RefreshSignal()


@pytest.fixture
def secrets():
    store = CountingSecrets()
    store.set_password("admin-1", "s3cret")
    return store


@pytest.fixture
def gateway(store, signal, secrets):
    return MutationGateway(store, signal, RepaymentAllocator(store), secrets)


@pytest.fixture
def projector(store, signal):
    return BalanceProjector(store, signal, tz=UTC)


def rice_items(quantity=2):
    return [{"product_id": "rice", "product_name": "Rice 5kg", "quantity": quantity,
             "price": 25000, "category": "Rice"}]


class TestCreateDebt:
    """Debt creation."""

    def test_manual_amount(self, gateway, store, signal):
        result = gateway.create_debt("c1", "Load", amount=10000, note="Globe 100")

        assert result.success is True
        assert result.state == MutationState.APPENDED
        assert result.history == [MutationState.PENDING, MutationState.VALIDATED,
                                  MutationState.APPENDED]
        assert result.event.amount == 10000
        assert result.revision == signal.current("c1") == 1
        assert store.count() == 1

    def test_amount_from_items(self, gateway):
        result = gateway.create_debt("c1", "Rice", items=rice_items())
        assert result.event.amount == 50000
        assert result.event.items[0].product_name == "Rice 5kg"

    def test_amount_must_match_items(self, gateway, store):
        result = gateway.create_debt("c1", "Rice", amount=40000, items=rice_items())

        assert result.success is False
        assert result.state == MutationState.REJECTED
        assert result.error_code == "VALIDATION_ERROR"
        assert result.field == "amount"
        assert store.count() == 0

    @pytest.mark.parametrize("amount", [0, -500])
    def test_non_positive_amount(self, gateway, amount):
        result = gateway.create_debt("c1", "Rice", amount=amount)
        assert result.success is False
        assert result.field == "amount"

    def test_float_amount_rejected(self, gateway):
        result = gateway.create_debt("c1", "Rice", amount=100.5)
        assert result.field == "amount"

    def test_missing_amount_and_items(self, gateway):
        assert gateway.create_debt("c1", "Rice").field == "amount"

    def test_blank_category(self, gateway):
        result = gateway.create_debt("c1", "   ", amount=100)
        assert result.success is False
        assert result.field == "category"

    def test_unknown_customer(self, gateway, signal):
        result = gateway.create_debt("ghost", "Rice", amount=100)
        assert result.field == "customer_id"
        assert signal.current("ghost") == 0

    def test_bad_line_item(self, gateway):
        items = [{"product_id": "rice", "product_name": "Rice", "quantity": 0, "price": 100}]
        result = gateway.create_debt("c1", "Rice", items=items)
        assert result.success is False
        assert result.field.startswith("items.0")

    def test_unwrap(self, gateway):
        assert gateway.create_debt("c1", "Rice", amount=100).unwrap().amount == 100
        with pytest.raises(ValidationError):
            gateway.create_debt("c1", "Rice", amount=0).unwrap()


class TestCreateDebtsFromItems:
    """Order split into one debt per category."""

    def test_one_debt_per_category(self, gateway, store):
        items = [
            LineItem(product_id="rice", product_name="Rice", quantity=1, price=25000,
                     category="Rice"),
            LineItem(product_id="egg", product_name="Egg", quantity=12, price=800,
                     category="Grocery"),
            LineItem(product_id="soap", product_name="Soap", quantity=2, price=3500,
                     category="Grocery"),
        ]
        when = datetime(2024, 3, 1, 10, 0, tzinfo=UTC)
        result = gateway.create_debts_from_items("c1", items, created_at=when, order_id="o1")

        assert result.success is True
        assert [(d.category, d.amount) for d in result.events] == [("Grocery", 16600),
                                                                   ("Rice", 25000)]
        assert all(d.created_at == when and d.order_id == "o1" for d in result.events)
        assert store.count() == 2

    def test_overrides_and_default(self, gateway):
        items = [
            LineItem(product_id="rice", product_name="Rice", quantity=1, price=100,
                     category="Rice"),
            LineItem(product_id="misc", product_name="Candy", quantity=1, price=5),
        ]
        result = gateway.create_debts_from_items("c1", items,
                                                 category_overrides={"rice": "Grocery"})
        assert [d.category for d in result.events] == ["General", "Grocery"]

    def test_empty_order(self, gateway):
        assert gateway.create_debts_from_items("c1", []).field == "items"

    def test_failure_appends_nothing(self, gateway, store):
        items = [
            {"product_id": "a", "product_name": "A", "quantity": 1, "price": 100, "category": "A"},
            {"product_id": "b", "product_name": "B", "quantity": 1, "price": 0, "category": "B"},
        ]
        result = gateway.create_debts_from_items("c1", items)
        assert result.success is False
        assert result.field == "amount"
        assert store.count() == 0


class TestRepayments:
    """Repayment posting through the allocator."""

    def test_post(self, gateway, projector):
        gateway.create_debt("c1", "Rice", amount=50000)
        result = gateway.create_repayment("c1", "Rice", 20000, method=PaymentMethod.ONLINE)

        assert result.success is True
        assert result.event.kind == EventKind.REPAYMENT
        assert result.event.method == PaymentMethod.ONLINE
        assert projector.current_balance("c1", "Rice") == 30000

    @pytest.mark.parametrize("amount", [0, -1])
    def test_non_positive(self, gateway, store, amount):
        result = gateway.create_repayment("c1", "Rice", amount)
        assert result.field == "amount"
        assert store.count() == 0

    def test_blank_category(self, gateway):
        assert gateway.create_repayment("c1", "", 100).field == "category"

    def test_allocator_raises_directly(self, store):
        with pytest.raises(ValidationError):
            RepaymentAllocator(store).post("c1", "Rice", 0)


class TestReassign:
    """Category reassignment."""

    def test_applied(self, gateway, store, signal):
        debt = gateway.create_debt("c1", "Rice", amount=500).event
        result = gateway.reassign_category(debt.event_id, "debt", " Grocery ", authorized=True)

        assert result.success is True
        assert result.history == [MutationState.REQUESTED, MutationState.AUTHORIZED,
                                  MutationState.APPLIED]
        assert store.get_event(debt.event_id).category == "Grocery"
        assert signal.current("c1") == 2

    def test_not_authorized(self, gateway, store):
        debt = gateway.create_debt("c1", "Rice", amount=500).event
        result = gateway.reassign_category(debt.event_id, EventKind.DEBT, "Grocery",
                                           authorized=False)

        assert result.success is False
        assert result.error_code == "NOT_AUTHORIZED"
        assert store.get_event(debt.event_id).category == "Rice"

    def test_line_item_hints_unchanged(self, gateway, store):
        debt = gateway.create_debt("c1", "Rice", items=rice_items()).event
        gateway.reassign_category(debt.event_id, "debt", "Grocery", authorized=True)
        moved = store.get_event(debt.event_id)
        assert moved.category == "Grocery"
        assert moved.items[0].category == "Rice"

    def test_unknown_event(self, gateway):
        result = gateway.reassign_category("missing", "debt", "Grocery", authorized=True)
        assert result.error_code == "NOT_FOUND"

    def test_wrong_kind(self, gateway):
        repayment = gateway.create_repayment("c1", "Rice", 100).event
        result = gateway.reassign_category(repayment.event_id, "debt", "X", authorized=True)
        assert result.error_code == "NOT_FOUND"

    def test_bad_kind(self, gateway):
        debt = gateway.create_debt("c1", "Rice", amount=500).event
        result = gateway.reassign_category(debt.event_id, "refund", "X", authorized=True)
        assert result.field == "kind"

    def test_blank_category(self, gateway):
        debt = gateway.create_debt("c1", "Rice", amount=500).event
        assert gateway.reassign_category(debt.event_id, "debt", " ", authorized=True).field == "category"


class TestDelete:
    """Password-gated deletion."""

    def test_correct_secret(self, gateway, store, signal):
        debt = gateway.create_debt("c1", "Rice", amount=500).event
        result = gateway.delete_event(debt.event_id, "debt", "s3cret", "admin-1")

        assert result.success is True
        assert result.history == [MutationState.REQUESTED, MutationState.PASSWORD_CHALLENGE,
                                  MutationState.VERIFIED, MutationState.APPLIED]
        assert store.count() == 0
        assert signal.current("c1") == 2

    def test_wrong_secret_changes_nothing(self, gateway, store, projector, signal):
        debt = gateway.create_debt("c1", "Rice", amount=500,
                                   created_at=datetime(2024, 1, 5, tzinfo=UTC)).event
        gateway.create_repayment("c1", "Load", 100)
        categories = projector.list_categories("c1")
        before = projector.project("c1", as_of=date(2024, 1, 5))
        count = store.count()
        revision = signal.current("c1")

        result = gateway.delete_event(debt.event_id, "debt", "wrong", "admin-1")

        assert result.success is False
        assert result.state == MutationState.ABORTED
        assert MutationState.REJECTED in result.history
        assert result.error_code == "AUTH_FAILED"
        assert projector.list_categories("c1") == categories
        assert projector.project("c1", as_of=date(2024, 1, 5)) == before
        assert store.count() == count
        assert signal.current("c1") == revision

    def test_wrong_secret_hides_existence(self, gateway):
        debt = gateway.create_debt("c1", "Rice", amount=500).event
        real = gateway.delete_event(debt.event_id, "debt", "wrong", "admin-1")
        fake = gateway.delete_event("no-such-id", "debt", "wrong", "admin-1")
        assert (real.error_code, real.error_message) == (fake.error_code, fake.error_message)

    def test_correct_secret_unknown_id(self, gateway):
        result = gateway.delete_event("no-such-id", "debt", "s3cret", "admin-1")
        assert result.error_code == "NOT_FOUND"
        assert result.state == MutationState.ABORTED

    def test_secret_fetched_every_attempt(self, gateway, secrets):
        debt = gateway.create_debt("c1", "Rice", amount=500).event
        gateway.delete_event(debt.event_id, "debt", "wrong", "admin-1")
        gateway.delete_event(debt.event_id, "debt", "wrong", "admin-1")
        assert secrets.lookups == 2

    def test_password_change_takes_effect_immediately(self, gateway, secrets):
        debt = gateway.create_debt("c1", "Rice", amount=500).event
        secrets.set_password("admin-1", "new-pass")
        assert gateway.delete_event(debt.event_id, "debt", "s3cret", "admin-1").success is False
        assert gateway.delete_event(debt.event_id, "debt", "new-pass", "admin-1").success is True

    def test_user_without_credentials(self, gateway):
        debt = gateway.create_debt("c1", "Rice", amount=500).event
        result = gateway.delete_event(debt.event_id, "debt", "anything", "c1")
        assert result.error_code == "AUTH_FAILED"

    def test_empty_secret(self, gateway, secrets):
        debt = gateway.create_debt("c1", "Rice", amount=500).event
        assert gateway.delete_event(debt.event_id, "debt", "", "admin-1").success is False

    def test_delete_repayment(self, gateway, projector):
        gateway.create_debt("c1", "Rice", amount=500)
        repayment = gateway.create_repayment("c1", "Rice", 200).event
        result = gateway.delete_event(repayment.event_id, EventKind.REPAYMENT, "s3cret", "admin-1")
        assert result.success is True
        assert projector.current_balance("c1") == 500

    def test_secret_not_in_result(self, gateway):
        result = gateway.delete_event("x", "debt", "wrong", "admin-1")
        assert "wrong" not in repr(result)
        assert "wrong" not in result.error_message

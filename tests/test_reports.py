"""Tests for statements, the merchant summary and category pre-fill."""

import pytest
from datetime import date, datetime, timezone

from ledgerconnect import LedgerSDK, NotFoundError, Product
from ledgerconnect.config import Settings

UTC = timezone.utc


def ts(month, day, hour=9):
    return datetime(2024, month, day, hour, 0, tzinfo=UTC)


@pytest.fixture
def sdk():
    """SDK with two customers and a small catalog."""
    s = LedgerSDK(tz=UTC, settings=Settings(bcrypt_rounds=4))
    s.register_customer("Juan", customer_id="c1")
    s.register_customer("Maria", customer_id="c2")
    s.add_product(Product(product_id="rice", name="Rice 5kg", category="Rice", price=25000))
    s.add_product(Product(product_id="egg", name="Egg", category="Grocery", price=800))
    s.add_product(Product(product_id="soap", name="Soap", category="Grocery", price=3500))
    return s


class TestStatement:
    """Statement of account for one day."""

    def test_sections(self, sdk):
        sdk.create_debt("c1", "Rice", amount=30000, created_at=ts(3, 1))
        sdk.charge_products("c1", {"egg": 12, "soap": 1, "rice": 1}, created_at=ts(3, 2, 10))
        sdk.charge_products("c1", {"egg": 6}, created_at=ts(3, 2, 15))
        sdk.create_repayment("c1", "Rice", 10000, timestamp=ts(3, 2, 11))
        sdk.create_repayment("c1", "Rice", 5000, timestamp=ts(3, 2, 12))

        statement = sdk.statement("c1", date(2024, 3, 2))

        assert statement.customer_name == "Juan"
        assert [s.category for s in statement.sections] == ["Grocery", "Rice"]

        grocery, rice = statement.sections
        assert grocery.beginning_balance == 0
        assert [(p.product_name, p.quantity, p.value) for p in grocery.products] == [
            ("Egg", 18, 14400),
            ("Soap", 1, 3500),
        ]
        assert grocery.ending_balance == 17900

        assert rice.beginning_balance == 30000
        assert rice.payments == [10000, 5000]
        assert rice.new_charges == 25000
        assert rice.total_payments == 15000
        assert rice.ending_balance == 40000

        assert statement.grand_total == 57900

    def test_settled_category_without_activity_omitted(self, sdk):
        sdk.create_debt("c1", "Load", amount=100, created_at=ts(3, 1))
        sdk.create_repayment("c1", "Load", 100, timestamp=ts(3, 1, 12))
        sdk.create_debt("c1", "Rice", amount=500, created_at=ts(3, 1))

        statement = sdk.statement("c1", date(2024, 3, 2))
        assert [s.category for s in statement.sections] == ["Rice"]

    def test_settled_on_the_day_is_kept(self, sdk):
        sdk.create_debt("c1", "Load", amount=100, created_at=ts(3, 1))
        sdk.create_repayment("c1", "Load", 100, timestamp=ts(3, 2))

        section = sdk.statement("c1", date(2024, 3, 2)).sections[0]
        assert (section.beginning_balance, section.ending_balance) == (100, 0)

    def test_manual_debt_counts_but_lists_no_products(self, sdk):
        sdk.create_debt("c1", "Load", amount=10000, created_at=ts(3, 2))
        section = sdk.statement("c1", date(2024, 3, 2)).sections[0]
        assert section.products == []
        assert section.new_charges == 10000

    def test_negative_section(self, sdk):
        sdk.create_repayment("c1", "Rice", 200, timestamp=ts(3, 2))
        statement = sdk.statement("c1", date(2024, 3, 2))
        assert statement.sections[0].ending_balance == -200
        assert statement.grand_total == -200

    def test_unknown_customer(self, sdk):
        with pytest.raises(NotFoundError):
            sdk.statement("ghost", date(2024, 3, 2))


class TestSummary:
    """Merchant-wide figures."""

    def test_figures(self, sdk):
        sdk.create_debt("c1", "Rice", amount=50000, created_at=ts(3, 1))
        sdk.create_repayment("c1", "Rice", 10000, timestamp=ts(3, 1))
        sdk.create_debt("c1", "Rice", amount=2000, created_at=ts(3, 5))
        sdk.create_debt("c2", "Load", amount=3000, created_at=ts(3, 5))
        sdk.create_repayment("c2", "Load", 5000, timestamp=ts(3, 5, 12))
        sdk.create_repayment("c1", "Rice", 1000, timestamp=ts(2, 28))
        sdk.create_repayment("c1", "Rice", 700, timestamp=ts(3, 6))

        summary = sdk.summary(date(2024, 3, 5))

        assert summary.debt_created == 5000
        assert summary.repayments_received == 5000
        assert summary.month_repayments == 15000
        # c1: 50000 - 10000 + 2000 - 1000; c2 is overpaid and counts as zero
        assert summary.total_outstanding == 41000
        assert summary.customers_with_balance == 1

    def test_empty_ledger(self, sdk):
        summary = sdk.summary(date(2024, 3, 5))
        assert summary.total_outstanding == 0
        assert summary.on == date(2024, 3, 5)

    def test_deleted_customer_still_counted(self, sdk):
        sdk.create_debt("c2", "Load", amount=3000, created_at=ts(3, 5))
        sdk.delete_customer("c2")
        assert sdk.summary(date(2024, 3, 5)).total_outstanding == 3000


class TestDebtors:
    """Customers owing money at the end of a day."""

    def test_lists_only_positive_balances(self, sdk):
        sdk.update_customer("c1", phone="09171234567", email="juan@example.com")
        sdk.register_customer("Ana", customer_id="c3")
        sdk.register_customer("Pedro", customer_id="c4")
        sdk.create_debt("c1", "Rice", amount=30000, created_at=ts(3, 1))
        sdk.create_debt("c2", "Load", amount=50000, created_at=ts(3, 1))
        # c3 overpaid, c4 settled
        sdk.create_repayment("c3", "Rice", 2000, timestamp=ts(3, 1))
        sdk.create_debt("c4", "Rice", amount=1000, created_at=ts(3, 1))
        sdk.create_repayment("c4", "Rice", 1000, timestamp=ts(3, 2))

        debtors = sdk.debtors(date(2024, 3, 2))

        assert [(d.customer_id, d.amount) for d in debtors] == [("c2", 50000), ("c1", 30000)]
        juan = debtors[1]
        assert (juan.name, juan.phone, juan.email) == ("Juan", "09171234567", "juan@example.com")

    def test_as_of_day(self, sdk):
        sdk.create_debt("c1", "Rice", amount=30000, created_at=ts(3, 1))
        sdk.create_repayment("c1", "Rice", 30000, timestamp=ts(3, 5))

        assert [d.customer_id for d in sdk.debtors(date(2024, 3, 4))] == ["c1"]
        assert sdk.debtors(date(2024, 3, 5)) == []

    def test_deleted_customer_left_out(self, sdk):
        sdk.create_debt("c1", "Rice", amount=30000, created_at=ts(3, 1))
        sdk.delete_customer("c1")
        assert sdk.debtors(date(2024, 3, 2)) == []


class TestLastUsedCategory:
    """Category pre-fill for repeat purchases."""

    def test_none_when_never_bought(self, sdk):
        assert sdk.last_used_category("c1", "rice") is None

    def test_most_recent_wins(self, sdk):
        sdk.charge_products("c1", {"rice": 1}, created_at=ts(3, 1))
        sdk.charge_products("c1", {"rice": 1}, created_at=ts(3, 2),
                            category_overrides={"rice": "Family"})
        assert sdk.last_used_category("c1", "rice") == "Family"

    def test_follows_reassignment(self, sdk):
        result = sdk.charge_products("c1", {"rice": 1}, created_at=ts(3, 1))
        sdk.reassign_category(result.event.event_id, "debt", "Pantry", authorized=True)
        assert sdk.last_used_category("c1", "rice") == "Pantry"

    def test_charge_uses_last_category(self, sdk):
        sdk.charge_products("c1", {"rice": 1}, created_at=ts(3, 1),
                            category_overrides={"rice": "Family"})
        result = sdk.charge_products("c1", {"rice": 2}, created_at=ts(3, 2))
        assert result.event.category == "Family"

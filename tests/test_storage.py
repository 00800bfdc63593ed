"""Tests for JSON snapshots and SDK backup/restore."""

import json
import pytest
from datetime import date, datetime, timezone

from ledgerconnect import LedgerSDK, NotFoundError, ValidationError
from ledgerconnect.config import Settings
from ledgerconnect.storage import LedgerSnapshot, load_snapshot, save_snapshot

UTC = timezone.utc


@pytest.fixture
def sdk():
    s = LedgerSDK(tz=UTC, settings=Settings(bcrypt_rounds=4))
    s.register_customer("Juan", customer_id="c1")
    s.register_customer("Owner", customer_id="admin-1", role="admin", password="s3cret")
    items = [{"product_id": "rice", "product_name": "Rice 5kg", "quantity": 2, "price": 25000}]
    s.create_debt("c1", "Rice", items=items, created_at=datetime(2024, 3, 1, 10, tzinfo=UTC))
    s.create_repayment("c1", "Rice", 20000, timestamp=datetime(2024, 3, 2, 9, tzinfo=UTC))
    return s


class TestSnapshotFiles:
    """save_snapshot / load_snapshot."""

    def test_round_trip_file(self, sdk, tmp_path):
        path = save_snapshot(sdk.backup(), tmp_path / "backups" / "ledger.json")

        loaded = load_snapshot(path)

        assert loaded.version == 1
        assert [c.customer_id for c in loaded.customers] == ["c1", "admin-1"]
        assert loaded.event_count == 2
        assert loaded.debts[0].items[0].product_name == "Rice 5kg"

    def test_file_is_plain_json(self, sdk, tmp_path):
        path = save_snapshot(sdk.backup(), tmp_path / "ledger.json")
        data = json.loads(path.read_text(encoding="utf-8"))
        assert set(data) >= {"customers", "debts", "repayments"}
        assert data["debts"][0]["amount"] == 50000

    def test_no_balances_or_secrets_written(self, sdk, tmp_path):
        text = save_snapshot(sdk.backup(), tmp_path / "ledger.json").read_text(encoding="utf-8")
        assert "s3cret" not in text
        assert "closing" not in text

    def test_missing_file(self, tmp_path):
        with pytest.raises(NotFoundError):
            load_snapshot(tmp_path / "nope.json")

    def test_invalid_file(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text('{"debts": [{"customer_id": "c1", "amount": -5}]}', encoding="utf-8")
        with pytest.raises(ValidationError):
            load_snapshot(path)


class TestBackupRestore:
    """LedgerSDK.backup / restore / save / load."""

    def test_restore_into_fresh_sdk(self, sdk):
        snapshot = sdk.backup()
        other = LedgerSDK(tz=UTC, settings=Settings(bcrypt_rounds=4))

        assert other.restore(snapshot) == 2
        assert other.get_customer("c1").name == "Juan"
        assert other.get_balance("c1") == sdk.get_balance("c1") == 30000
        assert other.project_balance("c1", as_of=date(2024, 3, 2)) \
            .model_dump(exclude={"revision"}) == \
            sdk.project_balance("c1", as_of=date(2024, 3, 2)).model_dump(exclude={"revision"})

    def test_restore_replaces_contents(self, sdk):
        snapshot = sdk.backup()
        sdk.register_customer("Extra", customer_id="c9")
        sdk.create_debt("c9", "Load", amount=100)

        sdk.restore(snapshot)

        assert sdk.get_customer("c9") is None
        assert sdk.events.count() == 2

    def test_restore_bumps_revisions(self, sdk):
        seen = sdk.revision("c1")
        sdk.restore(sdk.backup())
        assert sdk.is_stale("c1", seen)

    def test_restore_rejects_duplicate_customers(self, sdk):
        snapshot = sdk.backup()
        bad = LedgerSnapshot(customers=snapshot.customers * 2, debts=snapshot.debts)
        with pytest.raises(ValidationError):
            sdk.restore(bad)
        assert sdk.events.count() == 2

    def test_save_and_load(self, sdk, tmp_path):
        path = sdk.save(tmp_path / "ledger.json")
        sdk.clear_all()
        assert sdk.list_customers() == []

        assert sdk.load(path) == 2
        assert sdk.get_balance("c1", "Rice") == 30000

    def test_save_uses_configured_path(self, tmp_path):
        target = tmp_path / "configured.json"
        s = LedgerSDK(settings=Settings(bcrypt_rounds=4, snapshot_path=str(target)))
        s.save()
        assert target.exists()

    def test_save_without_path(self):
        s = LedgerSDK(settings=Settings(bcrypt_rounds=4, snapshot_path=None))
        with pytest.raises(ValidationError):
            s.save()

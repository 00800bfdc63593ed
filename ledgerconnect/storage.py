"""Snapshot persistence - JSON backup and restore of a whole ledger.

A snapshot holds the raw records only: customers, debts and repayments.
Balances are not written; they are recomputed after a restore like after any
other change.
"""

from datetime import datetime
from pathlib import Path
from typing import List, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ledgerconnect.clock import now
from ledgerconnect.errors import NotFoundError, from_pydantic
from ledgerconnect.models import Customer, DebtEvent, RepaymentEvent

SNAPSHOT_VERSION = 1


class LedgerSnapshot(BaseModel):
    """Serializable copy of every record in a ledger."""

    version: int = SNAPSHOT_VERSION
    exported_at: datetime = Field(default_factory=now)
    customers: List[Customer] = Field(default_factory=list)
    debts: List[DebtEvent] = Field(default_factory=list)
    repayments: List[RepaymentEvent] = Field(default_factory=list)

    @property
    def event_count(self) -> int:
        return len(self.debts) + len(self.repayments)


def save_snapshot(snapshot: LedgerSnapshot, path: Union[str, Path]) -> Path:
    """Write ``snapshot`` to ``path`` as indented JSON, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(snapshot.model_dump_json(indent=2), encoding="utf-8")
    return path


def load_snapshot(path: Union[str, Path]) -> LedgerSnapshot:
    """Read a snapshot written by ``save_snapshot``.

    Raises:
        NotFoundError: If the file does not exist
        ValidationError: If the file is not a valid snapshot
        InvariantViolation: If a stored debt's amount disagrees with its items
    """
    path = Path(path)
    if not path.exists():
        raise NotFoundError(f"Snapshot {path} not found")
    try:
        return LedgerSnapshot.model_validate_json(path.read_text(encoding="utf-8"))
    except PydanticValidationError as e:
        raise from_pydantic(e) from e

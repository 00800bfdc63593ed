"""Event kinds shared by debt and repayment records."""

from enum import Enum


class EventKind(str, Enum):
    """The two record kinds held by the event store.

    Attributes:
        DEBT (str): A charge; adds to the category balance.
        REPAYMENT (str): A credit; subtracts from the category balance.
    """
    DEBT = "debt"
    REPAYMENT = "repayment"

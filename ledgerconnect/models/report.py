"""Report models - statement of account and dashboard summary."""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field


class StatementProductLine(BaseModel):
    """Charges for one product on the statement day, summed over debts."""

    product_name: str
    quantity: int
    value: int


class StatementSection(BaseModel):
    """One category block of a statement."""

    category: str
    beginning_balance: int
    products: List[StatementProductLine] = Field(default_factory=list)
    payments: List[int] = Field(default_factory=list)
    new_charges: int = 0
    total_payments: int = 0
    ending_balance: int


class Statement(BaseModel):
    """Statement of account for one customer on one day.

    Attributes:
        customer_id (str): Customer the statement is for.
        customer_name (str): Name snapshot for the header.
        on (date): Statement day.
        sections (List[StatementSection]): Category blocks, sorted by name.
        grand_total (int): Sum of section ending balances.
    """

    customer_id: str
    customer_name: str
    on: date
    sections: List[StatementSection] = Field(default_factory=list)
    grand_total: int = 0


class LedgerSummary(BaseModel):
    """Merchant-wide figures for a day."""

    on: date
    debt_created: int = 0
    repayments_received: int = 0
    month_repayments: int = 0
    total_outstanding: int = 0
    customers_with_balance: int = 0


class Debtor(BaseModel):
    """A customer who owes money at the end of a day, with contact details."""

    customer_id: str
    name: str
    phone: str = ""
    email: Optional[str] = None
    amount: int = Field(gt=0, description="Whole-customer balance in minor units")

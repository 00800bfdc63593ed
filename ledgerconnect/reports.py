"""Reports - statement of account and merchant summary.

These functions return data only. Turning a Statement into an SMS, e-mail or
printout is the job of whatever collaborator sends it.

All figures are recomputed from the event stream on every call, the same way
the BalanceProjector computes balances.
"""

from collections import defaultdict
from datetime import date, datetime, tzinfo
from typing import Dict, List, Optional, Union

from ledgerconnect.clock import ledger_tz, local_date
from ledgerconnect.customer_registry import CustomerRegistry
from ledgerconnect.errors import NotFoundError
from ledgerconnect.event_store import EventStore
from ledgerconnect.models import (
    Debtor,
    EventKind,
    LedgerSummary,
    Statement,
    StatementProductLine,
    StatementSection,
)
from ledgerconnect.projector import BalanceProjector


class StatementBuilder:
    """Builds a customer's statement of account for one day.

    Each category block shows the balance carried in from earlier days, what
    was bought on the day (aggregated per product), the payments received and
    the ending balance. A category that ends at zero with no activity on the
    day is left out.

    Usage Example:
        ```python
        builder = StatementBuilder(projector, registry)
        statement = builder.build("c1", date(2024, 3, 2))
        for section in statement.sections:
            print(section.category, section.beginning_balance, section.ending_balance)
        print("Total:", statement.grand_total)
        ```
    """

    def __init__(self, projector: BalanceProjector, customer_registry: CustomerRegistry):
        self.projector = projector
        self.customer_registry = customer_registry

    def build(self, customer_id: str, on: Union[date, datetime]) -> Statement:
        """Build the statement of ``customer_id`` for the day ``on``.

        Raises:
            NotFoundError: If the customer is unknown
        """
        customer = self.customer_registry.get_customer(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")

        projection = self.projector.project(customer_id, as_of=on)
        sections = []
        for row in projection.categories:
            debits = [line for line in row.lines if line.kind == EventKind.DEBT]
            credits = [line for line in row.lines if line.kind == EventKind.REPAYMENT]
            if row.closing == 0 and not debits and not credits:
                continue

            quantities: Dict[str, int] = defaultdict(int)
            values: Dict[str, int] = defaultdict(int)
            for line in debits:
                for item in line.items:
                    quantities[item.product_name] += item.quantity
                    values[item.product_name] += item.subtotal
            products = sorted(
                (StatementProductLine(product_name=name, quantity=quantities[name],
                                      value=values[name])
                 for name in values),
                key=lambda p: (-p.value, p.product_name),
            )

            sections.append(StatementSection(
                category=row.category,
                beginning_balance=row.opening,
                products=products,
                payments=[line.credit for line in credits],
                new_charges=sum(line.debit for line in debits),
                total_payments=sum(line.credit for line in credits),
                ending_balance=row.closing,
            ))

        return Statement(
            customer_id=customer_id,
            customer_name=customer.name,
            on=projection.as_of,
            sections=sections,
            grand_total=sum(s.ending_balance for s in sections),
        )


def summarize(event_store: EventStore, on: Union[date, datetime],
              tz: Optional[tzinfo] = None) -> LedgerSummary:
    """Merchant-wide figures for the day ``on``.

    - debt_created: total of debts created on the day
    - repayments_received: total of repayments received on the day
    - month_repayments: repayments from the first of the month through the day
    - total_outstanding: sum of positive customer balances at the end of the
      day (an overpaid customer counts as zero, not as a credit)
    - customers_with_balance: customers whose balance is above zero
    """
    tz = tz or ledger_tz()
    if isinstance(on, datetime):
        on = local_date(on, tz)
    month_start = on.replace(day=1)

    summary = LedgerSummary(on=on)
    for customer_id in event_store.customer_ids():
        balance = 0
        for event in event_store.list_by_customer(customer_id):
            day = local_date(event.occurred_at, tz)
            if day > on:
                break
            balance += event.signed_amount
            if event.kind == EventKind.DEBT:
                if day == on:
                    summary.debt_created += event.amount
            else:
                if day == on:
                    summary.repayments_received += event.amount
                if day >= month_start:
                    summary.month_repayments += event.amount
        if balance > 0:
            summary.total_outstanding += balance
            summary.customers_with_balance += 1
    return summary


def debtors(event_store: EventStore, customer_registry: CustomerRegistry,
            on: Union[date, datetime], tz: Optional[tzinfo] = None) -> List[Debtor]:
    """Registered customers whose balance is above zero at the end of ``on``.

    Overpaid and settled customers are left out, as are deleted customers
    (there is no one left to contact). Sorted by amount owed, largest first.
    Composing and sending the reminders is up to the caller.
    """
    tz = tz or ledger_tz()
    if isinstance(on, datetime):
        on = local_date(on, tz)

    result = []
    for customer in customer_registry.list_customers():
        balance = sum(
            event.signed_amount
            for event in event_store.list_by_customer(customer.customer_id)
            if local_date(event.occurred_at, tz) <= on
        )
        if balance > 0:
            result.append(Debtor(
                customer_id=customer.customer_id,
                name=customer.name,
                phone=customer.phone,
                email=customer.email,
                amount=balance,
            ))
    result.sort(key=lambda d: (-d.amount, d.name))
    return result


def last_used_category(event_store: EventStore, customer_id: str,
                       product_id: str) -> Optional[str]:
    """Category of the customer's most recent debt that includes ``product_id``.

    Used to pre-fill the category when the same customer buys the same
    product again. Returns None if the product was never charged to them.
    """
    for event in reversed(event_store.list_by_customer(customer_id)):
        if event.kind != EventKind.DEBT:
            continue
        if any(item.product_id == product_id for item in event.items):
            return event.category
    return None

"""Customer Registry - storage and management of ledger customers.

The CustomerRegistry is responsible for:
- Storing and retrieving customers
- Ensuring customer id uniqueness
- Answering "does this customer exist" for the event store's append check

Deleting a customer does not touch their events. Referential cleanup is the
caller's job.
"""

import threading
from typing import Dict, List, Optional

from ledgerconnect.errors import NotFoundError, ValidationError
from ledgerconnect.models import Customer


class CustomerRegistry:
    """Registry for storing and managing customers.

    Storage:
        In-memory dictionary keyed by customer_id, guarded by a lock so the
        HTTP layer can share one registry across worker threads.

    Usage Example:
        ```python
        registry = CustomerRegistry()
        juan = registry.register_customer(Customer(name="Juan", phone="09171234567"))

        assert registry.customer_exists(juan.customer_id)
        print([c.name for c in registry.list_customers()])
        ```
    """

    def __init__(self):
        self._customers: Dict[str, Customer] = {}
        self._lock = threading.Lock()

    def register_customer(self, customer: Customer) -> Customer:
        """Register a new customer.

        Args:
            customer (Customer): The customer to add

        Returns:
            Customer: The registered customer (same instance)

        Raises:
            ValidationError: If a customer with this id is already registered
        """
        with self._lock:
            if customer.customer_id in self._customers:
                raise ValidationError(
                    f"Customer with ID {customer.customer_id} already exists",
                    field="customer_id",
                )
            self._customers[customer.customer_id] = customer
        return customer

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        """Retrieve a customer by id, or None."""
        with self._lock:
            return self._customers.get(customer_id)

    def customer_exists(self, customer_id: str) -> bool:
        with self._lock:
            return customer_id in self._customers

    def update_customer(self, customer: Customer) -> Customer:
        """Replace the stored customer with ``customer``.

        Raises:
            NotFoundError: If no customer with this id exists
        """
        with self._lock:
            if customer.customer_id not in self._customers:
                raise NotFoundError(f"Customer {customer.customer_id} does not exist")
            self._customers[customer.customer_id] = customer
        return customer

    def delete_customer(self, customer_id: str) -> bool:
        """Delete a customer.

        Returns:
            bool: True if the customer was deleted, False if it did not exist

        Warning:
            The customer's debts and repayments stay in the event store.
        """
        with self._lock:
            return self._customers.pop(customer_id, None) is not None

    def list_customers(self) -> List[Customer]:
        """All customers sorted by name (then id), as a new list."""
        with self._lock:
            customers = list(self._customers.values())
        return sorted(customers, key=lambda c: (c.name.lower(), c.customer_id))

    def count_customers(self) -> int:
        with self._lock:
            return len(self._customers)

    def clear(self) -> None:
        """Remove all customers. Intended for tests."""
        with self._lock:
            self._customers.clear()

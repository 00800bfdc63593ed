"""Boundary contracts for collaborators the ledger consumes.

The engine does not own users or products. It needs exactly two things from
outside:

- ``SecretProvider.get_user_secret(user_id)``: the acting user's stored
  password hash, fetched fresh on every delete attempt.
- ``ProductCatalog``: product lookups used once, at debt creation, to snapshot
  line items.

The in-memory implementations below back the SDK and the tests. Passwords are
hashed with bcrypt, using a fresh salt per password.
"""

import threading
from typing import Dict, List, Optional, Protocol, runtime_checkable

import bcrypt

from ledgerconnect.errors import NotFoundError, ValidationError
from ledgerconnect.models import Product


@runtime_checkable
class SecretProvider(Protocol):
    def get_user_secret(self, user_id: str) -> str:
        """Return the stored bcrypt hash for ``user_id``.

        Raises:
            NotFoundError: If the user has no stored secret
        """
        ...


@runtime_checkable
class ProductCatalog(Protocol):
    def get_product(self, product_id: str) -> Optional[Product]:
        ...

    def list_products(self) -> List[Product]:
        ...


def hash_secret(secret: str, rounds: int = 12) -> str:
    """Return a bcrypt hash of ``secret`` as a utf-8 string."""
    return bcrypt.hashpw(secret.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_secret(supplied: str, stored_hash: str) -> bool:
    """Check a plaintext secret against a stored bcrypt hash.

    Returns False (never raises) for a malformed hash.
    """
    try:
        return bcrypt.checkpw(supplied.encode("utf-8"), stored_hash.encode("utf-8"))
    except ValueError:
        return False


class InMemorySecretStore:
    """SecretProvider holding bcrypt hashes in memory.

    Usage Example:
        ```python
        secrets = InMemorySecretStore()
        secrets.set_password("admin-1", "s3cret")
        assert verify_secret("s3cret", secrets.get_user_secret("admin-1"))
        ```
    """

    def __init__(self, rounds: int = 12):
        self.rounds = rounds
        self._hashes: Dict[str, str] = {}
        self._lock = threading.Lock()

    def set_password(self, user_id: str, password: str) -> None:
        """Store (or replace) the password of ``user_id``."""
        if not password:
            raise ValidationError("Password must not be empty", field="password")
        hashed = hash_secret(password, self.rounds)
        with self._lock:
            self._hashes[user_id] = hashed

    def get_user_secret(self, user_id: str) -> str:
        with self._lock:
            hashed = self._hashes.get(user_id)
        if hashed is None:
            raise NotFoundError(f"No credentials for user {user_id}")
        return hashed

    def remove_user(self, user_id: str) -> bool:
        with self._lock:
            return self._hashes.pop(user_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._hashes.clear()


class InMemoryCatalog:
    """ProductCatalog backed by a dictionary."""

    def __init__(self):
        self._products: Dict[str, Product] = {}
        self._lock = threading.Lock()

    def add_product(self, product: Product) -> Product:
        with self._lock:
            if product.product_id in self._products:
                raise ValidationError(
                    f"Product with ID {product.product_id} already exists",
                    field="product_id",
                )
            self._products[product.product_id] = product
        return product

    def update_product(self, product: Product) -> Product:
        with self._lock:
            if product.product_id not in self._products:
                raise NotFoundError(f"Product {product.product_id} does not exist")
            self._products[product.product_id] = product
        return product

    def get_product(self, product_id: str) -> Optional[Product]:
        with self._lock:
            return self._products.get(product_id)

    def list_products(self) -> List[Product]:
        with self._lock:
            products = list(self._products.values())
        return sorted(products, key=lambda p: p.name.lower())

    def categories(self) -> List[str]:
        """Sorted default categories of catalog products."""
        return sorted({p.category for p in self.list_products()})

    def clear(self) -> None:
        with self._lock:
            self._products.clear()

"""Customer model - the identity anchor for all ledger data."""

from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


class CustomerRole(str, Enum):
    """Role of a ledger participant.

    The role is carried for the external auth collaborator, which decides what
    a caller may do. The engine itself never branches on it.
    """
    CUSTOMER = "customer"
    ADMIN = "admin"


class Customer(BaseModel):
    """A person who can owe the merchant money.

    Attributes:
        customer_id (str): Unique identifier. Auto-generated UUID if omitted.
        name (str): Display name.
        phone (str): Messaging key used by SMS collaborators, not by the engine.
        role (CustomerRole): customer or admin. Default: customer
        address (Optional[str]): Free-text address.
        email (Optional[str]): Contact address for statements.
    """

    customer_id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique customer identifier"
    )
    name: str = Field(min_length=1, description="Display name")
    phone: str = Field(default="", description="Phone number")
    role: CustomerRole = Field(default=CustomerRole.CUSTOMER)
    address: Optional[str] = None
    email: Optional[str] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v

    @property
    def is_admin(self) -> bool:
        return self.role == CustomerRole.ADMIN

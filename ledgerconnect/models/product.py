"""Product snapshot source.

Products belong to the external catalog. The ledger only reads them at debt
creation time to freeze a line item's name and price.
"""

from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


class Product(BaseModel):
    """A catalog product.

    Attributes:
        product_id (str): Unique identifier.
        name (str): Product name copied into line items.
        category (str): Default category suggested for debts of this product.
        price (int): Unit price in minor units.
        cost (int): Unit cost in minor units, for margin reports.
        stock (int): Units on hand.
    """

    product_id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    category: str = "General"
    price: int = Field(ge=0)
    cost: int = Field(default=0, ge=0)
    stock: int = Field(default=0, ge=0)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v

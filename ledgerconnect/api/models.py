"""Pydantic models for Ledger Connect HTTP API."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ledgerconnect.models import CustomerRole, EventKind, LineItem, PaymentMethod


# -------- Common --------

class ErrorDetail(BaseModel):
    error_code: str
    message: str
    field: Optional[str] = None


class ErrorResponse(BaseModel):
    detail: ErrorDetail


# -------- Customers --------

class RegisterCustomerRequest(BaseModel):
    name: str
    phone: str = ""
    customer_id: Optional[str] = None
    role: CustomerRole = CustomerRole.CUSTOMER
    address: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class UpdateCustomerRequest(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[CustomerRole] = None
    address: Optional[str] = None
    email: Optional[str] = None


class CustomerResponse(BaseModel):
    customer_id: str
    name: str
    phone: str
    role: CustomerRole
    address: Optional[str] = None
    email: Optional[str] = None


class DeleteCustomerResponse(BaseModel):
    deleted: bool


# -------- Products --------

class AddProductRequest(BaseModel):
    product_id: Optional[str] = None
    name: str
    category: str = "General"
    price: int = Field(ge=0)
    cost: int = Field(default=0, ge=0)
    stock: int = Field(default=0, ge=0)


# -------- Debts / Repayments --------

class CreateDebtRequest(BaseModel):
    category: str
    amount: Optional[int] = None
    items: Optional[List[LineItem]] = None
    created_at: Optional[datetime] = None
    note: Optional[str] = None
    order_id: Optional[str] = None


class ChargeProductsRequest(BaseModel):
    quantities: Dict[str, int]
    created_at: Optional[datetime] = None
    category_overrides: Optional[Dict[str, str]] = None
    order_id: Optional[str] = None
    note: Optional[str] = None


class CreateRepaymentRequest(BaseModel):
    category: str
    amount: int
    timestamp: Optional[datetime] = None
    method: Optional[PaymentMethod] = None


class ReassignCategoryRequest(BaseModel):
    kind: EventKind
    category: str
    # Must be an admin customer
    acting_user_id: str


class DeleteEventRequest(BaseModel):
    kind: EventKind
    password: str
    acting_user_id: str


class MutationResponse(BaseModel):
    success: bool
    state: str
    history: List[str]
    event_id: Optional[str] = None
    event_ids: List[str] = Field(default_factory=list)
    customer_id: Optional[str] = None
    category: Optional[str] = None
    amount: Optional[int] = None
    revision: Optional[int] = None


# -------- Queries --------

class EventResponse(BaseModel):
    event_id: str
    kind: EventKind
    customer_id: str
    category: str
    amount: int
    occurred_at: datetime
    description: str
    items: List[LineItem] = Field(default_factory=list)
    note: Optional[str] = None


class CategoriesResponse(BaseModel):
    customer_id: str
    categories: List[str]
    balances: Dict[str, int]

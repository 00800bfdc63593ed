"""HTTP routes for Ledger Connect API."""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError as PydanticValidationError

from ledgerconnect.api.models import (
    AddProductRequest,
    CategoriesResponse,
    ChargeProductsRequest,
    CreateDebtRequest,
    CreateRepaymentRequest,
    CustomerResponse,
    DeleteCustomerResponse,
    DeleteEventRequest,
    EventResponse,
    MutationResponse,
    ReassignCategoryRequest,
    RegisterCustomerRequest,
    UpdateCustomerRequest,
)
from ledgerconnect.errors import from_pydantic
from ledgerconnect.event_store import LedgerEvent
from ledgerconnect.models import (
    BalanceProjection,
    Customer,
    Debtor,
    EventKind,
    LedgerSummary,
    Product,
    Statement,
)
from ledgerconnect.mutation_gateway import MutationResult
from ledgerconnect.sdk import LedgerSDK


router = APIRouter()


def get_sdk(req: Request) -> LedgerSDK:
    sdk = getattr(req.app.state, "sdk", None)
    if sdk is None:
        raise RuntimeError("SDK not initialized")
    return sdk


def _customer_response(customer: Customer) -> CustomerResponse:
    return CustomerResponse(**customer.model_dump())


def _event_response(event: LedgerEvent) -> EventResponse:
    return EventResponse(
        event_id=event.event_id,
        kind=event.kind,
        customer_id=event.customer_id,
        category=event.category,
        amount=event.amount,
        occurred_at=event.occurred_at,
        description=event.description,
        items=list(event.items) if event.kind == EventKind.DEBT else [],
        note=event.note if event.kind == EventKind.DEBT else None,
    )


def _mutation_response(result: MutationResult) -> MutationResponse:
    # Failed results carry a LedgerError; the app's handler maps it to a status.
    if not result.success:
        raise result.error
    event = result.event
    return MutationResponse(
        success=True,
        state=result.state.value,
        history=[s.value for s in result.history],
        event_id=event.event_id,
        event_ids=[e.event_id for e in result.events],
        customer_id=event.customer_id,
        category=event.category,
        amount=sum(e.amount for e in result.events),
        revision=result.revision,
    )


# ------- Customers -------

@router.post("/customers", response_model=CustomerResponse)
def register_customer(payload: RegisterCustomerRequest, sdk: LedgerSDK = Depends(get_sdk)) -> CustomerResponse:
    customer = sdk.register_customer(
        payload.name,
        phone=payload.phone,
        customer_id=payload.customer_id,
        role=payload.role,
        address=payload.address,
        email=payload.email,
        password=payload.password,
    )
    return _customer_response(customer)


@router.get("/customers", response_model=List[CustomerResponse])
def list_customers(sdk: LedgerSDK = Depends(get_sdk)) -> List[CustomerResponse]:
    return [_customer_response(c) for c in sdk.list_customers()]


@router.get("/customers/{customer_id}", response_model=CustomerResponse)
def get_customer(customer_id: str, sdk: LedgerSDK = Depends(get_sdk)) -> CustomerResponse:
    customer = sdk.get_customer(customer_id)
    if customer is None:
        raise HTTPException(status_code=404, detail="Customer not found")
    return _customer_response(customer)


@router.patch("/customers/{customer_id}", response_model=CustomerResponse)
def update_customer(customer_id: str, payload: UpdateCustomerRequest,
                    sdk: LedgerSDK = Depends(get_sdk)) -> CustomerResponse:
    updates = payload.model_dump(exclude_none=True)
    return _customer_response(sdk.update_customer(customer_id, **updates))


@router.delete("/customers/{customer_id}", response_model=DeleteCustomerResponse)
def delete_customer(customer_id: str, sdk: LedgerSDK = Depends(get_sdk)) -> DeleteCustomerResponse:
    return DeleteCustomerResponse(deleted=sdk.delete_customer(customer_id))


# ------- Products -------

@router.post("/products", response_model=Product)
def add_product(payload: AddProductRequest, sdk: LedgerSDK = Depends(get_sdk)) -> Product:
    try:
        product = Product(**payload.model_dump(exclude_none=True))
    except PydanticValidationError as e:
        raise from_pydantic(e) from e
    return sdk.add_product(product)


@router.get("/products", response_model=List[Product])
def list_products(sdk: LedgerSDK = Depends(get_sdk)) -> List[Product]:
    return sdk.list_products()


# ------- Debts / Repayments -------

@router.post("/customers/{customer_id}/debts", response_model=MutationResponse)
def create_debt(customer_id: str, payload: CreateDebtRequest,
                sdk: LedgerSDK = Depends(get_sdk)) -> MutationResponse:
    result = sdk.create_debt(
        customer_id,
        payload.category,
        amount=payload.amount,
        items=payload.items,
        created_at=payload.created_at,
        note=payload.note,
        order_id=payload.order_id,
    )
    return _mutation_response(result)


@router.post("/customers/{customer_id}/orders", response_model=MutationResponse)
def charge_products(customer_id: str, payload: ChargeProductsRequest,
                    sdk: LedgerSDK = Depends(get_sdk)) -> MutationResponse:
    result = sdk.charge_products(
        customer_id,
        payload.quantities,
        created_at=payload.created_at,
        category_overrides=payload.category_overrides,
        order_id=payload.order_id,
        note=payload.note,
    )
    return _mutation_response(result)


@router.post("/customers/{customer_id}/repayments", response_model=MutationResponse)
def create_repayment(customer_id: str, payload: CreateRepaymentRequest,
                     sdk: LedgerSDK = Depends(get_sdk)) -> MutationResponse:
    result = sdk.create_repayment(
        customer_id,
        payload.category,
        payload.amount,
        timestamp=payload.timestamp,
        method=payload.method,
    )
    return _mutation_response(result)


# ------- Corrections -------

@router.post("/events/{event_id}/category", response_model=MutationResponse)
def reassign_category(event_id: str, payload: ReassignCategoryRequest,
                      sdk: LedgerSDK = Depends(get_sdk)) -> MutationResponse:
    actor = sdk.get_customer(payload.acting_user_id)
    authorized = actor is not None and actor.is_admin
    result = sdk.reassign_category(event_id, payload.kind, payload.category, authorized)
    return _mutation_response(result)


@router.post("/events/{event_id}/delete", response_model=MutationResponse)
def delete_event(event_id: str, payload: DeleteEventRequest,
                 sdk: LedgerSDK = Depends(get_sdk)) -> MutationResponse:
    result = sdk.delete_event(event_id, payload.kind, payload.password, payload.acting_user_id)
    return _mutation_response(result)


# ------- Balances / Reports -------

@router.get("/customers/{customer_id}/events", response_model=List[EventResponse])
def list_events(customer_id: str, sdk: LedgerSDK = Depends(get_sdk)) -> List[EventResponse]:
    if not sdk.customer_exists(customer_id):
        raise HTTPException(status_code=404, detail="Customer not found")
    return [_event_response(e) for e in sdk.get_events(customer_id)]


@router.get("/customers/{customer_id}/balance", response_model=BalanceProjection)
def project_balance(customer_id: str, category: Optional[str] = None,
                    as_of: Optional[date] = None, newest_first: bool = False,
                    search: Optional[str] = None,
                    sdk: LedgerSDK = Depends(get_sdk)) -> BalanceProjection:
    return sdk.project_balance(customer_id, category=category, as_of=as_of,
                               newest_first=newest_first, search=search)


@router.get("/customers/{customer_id}/categories", response_model=CategoriesResponse)
def list_categories(customer_id: str, sdk: LedgerSDK = Depends(get_sdk)) -> CategoriesResponse:
    return CategoriesResponse(
        customer_id=customer_id,
        categories=sdk.list_categories(customer_id),
        balances=sdk.category_balances(customer_id),
    )


@router.get("/customers/{customer_id}/statement", response_model=Statement)
def get_statement(customer_id: str, on: Optional[date] = None,
                  sdk: LedgerSDK = Depends(get_sdk)) -> Statement:
    return sdk.statement(customer_id, on)


@router.get("/summary", response_model=LedgerSummary)
def get_summary(on: Optional[date] = None, sdk: LedgerSDK = Depends(get_sdk)) -> LedgerSummary:
    return sdk.summary(on)


@router.get("/debtors", response_model=List[Debtor])
def list_debtors(on: Optional[date] = None, sdk: LedgerSDK = Depends(get_sdk)) -> List[Debtor]:
    return sdk.debtors(on)

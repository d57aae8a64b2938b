# storefront/api/routers/customers.py
from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_customer_id, get_db
from storefront.api.responses import ok
from storefront.domain.schemas import (
    AddressCreate,
    AddressRead,
    ApiResponse,
    CustomerCreate,
    CustomerRead,
)
from storefront.services.customer_service import CustomerService

router = APIRouter(prefix="/api/customers", tags=["customers"])


def get_service(db: Session):
    return CustomerService(db)


@router.post("", response_model=ApiResponse[CustomerRead], status_code=201)
def create_customer(payload: CustomerCreate, request: Request, db: Session = Depends(get_db)):
    return ok(request, get_service(db).create_customer(payload), status_code=201)


@router.get("/me", response_model=ApiResponse[CustomerRead])
def get_me(
    request: Request,
    customer_id: int = Depends(get_current_customer_id),
    db: Session = Depends(get_db),
):
    return ok(request, get_service(db).get_customer(customer_id))


@router.get("/me/addresses", response_model=ApiResponse[List[AddressRead]])
def list_addresses(
    request: Request,
    customer_id: int = Depends(get_current_customer_id),
    db: Session = Depends(get_db),
):
    return ok(request, get_service(db).list_addresses(customer_id))


@router.post("/me/addresses", response_model=ApiResponse[AddressRead], status_code=201)
def add_address(
    payload: AddressCreate,
    request: Request,
    customer_id: int = Depends(get_current_customer_id),
    db: Session = Depends(get_db),
):
    return ok(request, get_service(db).add_address(customer_id, payload), status_code=201)

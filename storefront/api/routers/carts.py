# storefront/api/routers/carts.py
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_customer_id, get_db
from storefront.api.responses import ok
from storefront.domain.schemas import ApiResponse, CartCountOut, CartOut, ItemIn, ItemQtyIn
from storefront.services.cart_service import CartService
from storefront.utils.settings import DEFAULT_CURRENCY

router = APIRouter(prefix="/api/cart", tags=["cart"])


def get_service(db: Session):
    return CartService(db)


def _currency(currency: str = Query(DEFAULT_CURRENCY, min_length=3, max_length=3)) -> str:
    return currency.upper()


@router.get("", response_model=ApiResponse[CartOut])
def get_cart(
    request: Request,
    currency: str = Depends(_currency),
    customer_id: int = Depends(get_current_customer_id),
    db: Session = Depends(get_db),
):
    return ok(request, get_service(db).get_cart(customer_id, currency))


@router.post("", response_model=ApiResponse[CartOut], status_code=201)
def create_cart(
    request: Request,
    currency: str = Depends(_currency),
    customer_id: int = Depends(get_current_customer_id),
    db: Session = Depends(get_db),
):
    """Returns the customer's cart, creating it on first use."""
    return ok(request, get_service(db).get_or_create_cart(customer_id, currency), status_code=201)


@router.get("/count", response_model=ApiResponse[CartCountOut])
def count_items(
    request: Request,
    customer_id: int = Depends(get_current_customer_id),
    db: Session = Depends(get_db),
):
    return ok(request, {"count": get_service(db).count_items(customer_id)})


@router.post("/items", response_model=ApiResponse[CartOut], status_code=201)
def add_item(
    payload: ItemIn,
    request: Request,
    currency: str = Depends(_currency),
    customer_id: int = Depends(get_current_customer_id),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    cart = svc.ensure_cart(customer_id)
    return ok(
        request,
        svc.add_item(customer_id, cart.id, payload.variant_id, payload.qty, currency),
        status_code=201,
    )


@router.patch("/items/{item_id}", response_model=ApiResponse[CartOut])
def update_item(
    item_id: int,
    payload: ItemQtyIn,
    request: Request,
    currency: str = Depends(_currency),
    customer_id: int = Depends(get_current_customer_id),
    db: Session = Depends(get_db),
):
    return ok(request, get_service(db).update_item_qty(customer_id, item_id, payload.qty, currency))


@router.delete("/items/{item_id}", response_model=ApiResponse[CartOut])
def remove_item(
    item_id: int,
    request: Request,
    currency: str = Depends(_currency),
    customer_id: int = Depends(get_current_customer_id),
    db: Session = Depends(get_db),
):
    return ok(request, get_service(db).remove_item(customer_id, item_id, currency))


@router.delete("", response_model=ApiResponse[CartOut])
def clear_cart(
    request: Request,
    currency: str = Depends(_currency),
    customer_id: int = Depends(get_current_customer_id),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    cart = svc.ensure_cart(customer_id)
    return ok(request, svc.clear(customer_id, cart.id, currency))

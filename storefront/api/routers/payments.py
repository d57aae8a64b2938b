# storefront/api/routers/payments.py
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Request

from storefront.api.deps import require_admin
from storefront.api.responses import ok
from storefront.api.routers.orders import get_payment_service
from storefront.domain.schemas import ApiResponse, CashPaymentIn, MessageOut, PaymentOut
from storefront.services.payment_service import PaymentService

router = APIRouter(prefix="/api/payment", tags=["payment"])


@router.post("/webhook", response_model=ApiResponse[MessageOut])
def webhook(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    payments: PaymentService = Depends(get_payment_service),
):
    """
    Gateway callback. Signature is checked before anything is read from
    the payload; replays of an already recorded transaction answer 200.
    """
    signature = request.headers.get(payments.provider.signature_header, "")
    message = payments.handle_webhook(payload, signature, dict(request.headers))
    return ok(request, MessageOut(message=message), message=message)


@router.post(
    "/orders/{order_id}/cash",
    response_model=ApiResponse[PaymentOut],
    status_code=201,
    dependencies=[Depends(require_admin)],
)
def record_cash_payment(
    order_id: int,
    payload: CashPaymentIn,
    request: Request,
    payments: PaymentService = Depends(get_payment_service),
):
    payment = payments.record_cash_payment(order_id, payload.amount, payload.currency)
    return ok(request, PaymentOut.model_validate(payment), status_code=201, message="Cash payment recorded")

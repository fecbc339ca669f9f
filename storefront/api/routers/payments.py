# storefront/api/routers/payments.py
from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from storefront.api.deps import get_gateway, get_ledger
from storefront.api.errors import unwrap
from storefront.data.database import get_db
from storefront.domain.result import Err
from storefront.domain.schemas import (
    PaymentCreateIn,
    PaymentIntentOut,
    PaymentStatusOut,
    PaymentVerifyIn,
    PaymentVerifyOut,
    WebhookAck,
)
from storefront.services.inventory_ledger import InventoryLedger
from storefront.services.payment_gateway import RazorpayClient
from storefront.services.payment_service import PaymentService
from storefront.services.webhook_reconciler import WebhookReconciler
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])

SIGNATURE_HEADER = "X-Razorpay-Signature"


def get_service(db: Session, gateway: RazorpayClient, ledger: InventoryLedger):
    return PaymentService(db, gateway, clock=ledger.clock)


@router.post("/create", response_model=PaymentIntentOut)
def create_payment(
    payload: PaymentCreateIn,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    gateway: RazorpayClient = Depends(get_gateway),
    ledger: InventoryLedger = Depends(get_ledger),
):
    svc = get_service(db, gateway, ledger)
    return unwrap(svc.create_intent(payload.order_id, user_id)).to_dict()


@router.post("/verify", response_model=PaymentVerifyOut)
def verify_payment(
    payload: PaymentVerifyIn,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    gateway: RazorpayClient = Depends(get_gateway),
    ledger: InventoryLedger = Depends(get_ledger),
):
    """
    Podpis z przeglądarki po płatności. Wynik tymczasowy -
    zamówienie opłaca dopiero webhook.
    """
    svc = get_service(db, gateway, ledger)
    payment = unwrap(
        svc.verify_client_signature(
            payload.order_id,
            user_id,
            payload.gateway_payment_id,
            payload.signature,
        )
    )
    return {"payment_id": payment.id, "status": payment.status, "provisional": payment.confirmed_at is None}


@router.get("/status/{order_id}", response_model=PaymentStatusOut)
def payment_status(
    order_id: int,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    gateway: RazorpayClient = Depends(get_gateway),
    ledger: InventoryLedger = Depends(get_ledger),
):
    svc = get_service(db, gateway, ledger)
    payment = unwrap(svc.payment_status(order_id, user_id))
    return {
        "payment_id": payment.id,
        "order_id": payment.order_id,
        "status": payment.status,
        "amount": payment.amount,
        "currency": payment.currency,
        "gateway_order_id": payment.gateway_order_id,
        "confirmed": payment.confirmed_at is not None,
    }


@router.post("/webhook", response_model=WebhookAck)
async def webhook(
    request: Request,
    db: Session = Depends(get_db),
    gateway: RazorpayClient = Depends(get_gateway),
    ledger: InventoryLedger = Depends(get_ledger),
):
    """
    Źródło prawdy o płatności. Body czytane jako surowe bajty - podpis
    liczony po dokładnie tych bajtach, bez parsowania.

    2xx tylko po commicie albo przy idempotentnym pominięciu;
    5xx przy błędzie wewnętrznym, żeby bramka ponowiła.
    """
    raw_body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)

    reconciler = WebhookReconciler(db, gateway, ledger=ledger, clock=ledger.clock)
    result = await run_in_threadpool(reconciler.handle, raw_body, signature)

    if isinstance(result, Err):
        return JSONResponse(status_code=result.error.status_code, content={"error": result.error.to_dict()})

    return {"received": True, "outcome": result.value.outcome}

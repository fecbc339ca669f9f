# storefront/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_gateway, get_ledger
from storefront.api.errors import unwrap
from storefront.data.database import get_db
from storefront.domain.schemas import (
    CancelIn,
    CheckoutIn,
    CheckoutOut,
    OrderOut,
    ReturnIn,
    ReturnOut,
)
from storefront.services.checkout_service import CheckoutService
from storefront.services.inventory_ledger import InventoryLedger
from storefront.services.order_service import OrderService
from storefront.services.payment_gateway import RazorpayClient
from storefront.services.payment_service import PaymentService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(db: Session, ledger: InventoryLedger):
    return OrderService(db, ledger=ledger, clock=ledger.clock)


@router.post("/checkout", response_model=CheckoutOut, status_code=201)
def checkout(
    payload: CheckoutIn,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    ledger: InventoryLedger = Depends(get_ledger),
    gateway: RazorpayClient = Depends(get_gateway),
):
    """
    Tworzy zamówienie PENDING i rezerwuje towar na 15 minut.
    Koszyk zostaje - czyści go dopiero potwierdzona płatność.
    """
    svc = CheckoutService(
        db,
        ledger=ledger,
        orders=get_service(db, ledger),
        payments=PaymentService(db, gateway, clock=ledger.clock),
    )
    outcome = unwrap(
        svc.checkout(
            user_id=user_id,
            items=[(i.product_id, i.quantity) for i in payload.items or []],
            shipping_address_id=payload.shipping_address_id,
            billing_address_id=payload.billing_address_id,
            shipping_address=payload.shipping_address.model_dump() if payload.shipping_address else None,
            create_intent=payload.create_intent,
        )
    )
    return {
        "order": outcome.order,
        "next_step": outcome.next_step,
        "payment_intent": outcome.payment_intent.to_dict() if outcome.payment_intent else None,
    }


@router.get("/", response_model=List[OrderOut])
def list_orders(
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    ledger: InventoryLedger = Depends(get_ledger),
):
    svc = get_service(db, ledger)
    return svc.list_orders(user_id)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    ledger: InventoryLedger = Depends(get_ledger),
):
    svc = get_service(db, ledger)
    return unwrap(svc.get_order(order_id, user_id))


@router.put("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    payload: CancelIn,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    ledger: InventoryLedger = Depends(get_ledger),
):
    svc = get_service(db, ledger)
    return unwrap(svc.cancel(order_id, user_id, payload.reason))


@router.post("/{order_id}/return", response_model=ReturnOut, status_code=201)
def request_return(
    order_id: int,
    payload: ReturnIn,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    ledger: InventoryLedger = Depends(get_ledger),
):
    svc = get_service(db, ledger)
    return unwrap(svc.request_return(order_id, user_id, payload.reason, payload.description))

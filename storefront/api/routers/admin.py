# storefront/api/routers/admin.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_gateway, get_ledger
from storefront.api.errors import unwrap
from storefront.data.database import get_db
from storefront.domain.schemas import FulfillmentIn, OrderOut, RefundIn, RefundOut, RestockOut, SweepOut
from storefront.services.inventory_ledger import InventoryLedger
from storefront.services.order_service import OrderService
from storefront.services.payment_gateway import RazorpayClient
from storefront.services.payment_service import PaymentService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.put("/orders/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: int,
    payload: FulfillmentIn,
    db: Session = Depends(get_db),
    ledger: InventoryLedger = Depends(get_ledger),
):
    svc = OrderService(db, ledger=ledger, clock=ledger.clock)
    return unwrap(svc.update_fulfillment(order_id, payload.status, payload.tracking_number))


@router.post("/payments/{payment_id}/refund", response_model=RefundOut)
def refund_payment(
    payment_id: int,
    payload: RefundIn,
    db: Session = Depends(get_db),
    gateway: RazorpayClient = Depends(get_gateway),
    ledger: InventoryLedger = Depends(get_ledger),
):
    """
    Zwrot pieniędzy. Towar wraca na stan osobno - /orders/{id}/restock.
    """
    svc = PaymentService(db, gateway, clock=ledger.clock)
    return unwrap(svc.refund(payment_id, payload.amount, payload.reason))


@router.post("/orders/{order_id}/restock", response_model=RestockOut)
def restock_order(
    order_id: int,
    ledger: InventoryLedger = Depends(get_ledger),
):
    restocked = unwrap(ledger.restock(order_id))
    return {"order_id": order_id, "restocked_units": restocked}


@router.post("/inventory/sweep", response_model=SweepOut)
def sweep_reservations(ledger: InventoryLedger = Depends(get_ledger)):
    return {"removed": ledger.sweep_expired()}

# storefront/api/deps.py
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.services.inventory_ledger import InventoryLedger
from storefront.services.payment_gateway import RazorpayClient


def get_gateway(request: Request) -> RazorpayClient:
    return request.app.state.gateway


def get_ledger(request: Request, db: Session = Depends(get_db)) -> InventoryLedger:
    return InventoryLedger(
        db,
        lock_service=request.app.state.lock_service,
        clock=request.app.state.clock,
    )

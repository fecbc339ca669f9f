#storefront/api/routers/carts.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_ledger
from storefront.api.errors import unwrap
from storefront.data.database import get_db
from storefront.domain.schemas import ItemIn, CartOut
from storefront.services.cart_service import CartService
from storefront.services.inventory_ledger import InventoryLedger

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(db: Session, ledger: InventoryLedger):
    return CartService(db=db, ledger=ledger)


@router.get("/", response_model=CartOut)
def get_cart(
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    ledger: InventoryLedger = Depends(get_ledger),
):
    svc = get_service(db, ledger)
    return svc.get_cart(user_id)


@router.post("/items", response_model=CartOut, status_code=201)
def add_item(
    payload: ItemIn,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    ledger: InventoryLedger = Depends(get_ledger),
):
    svc = get_service(db, ledger)
    return unwrap(svc.add_product(user_id, payload.product_id, payload.quantity))


@router.delete("/items/{product_id}", response_model=CartOut)
def remove_item(
    product_id: int,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    ledger: InventoryLedger = Depends(get_ledger),
):
    svc = get_service(db, ledger)
    return unwrap(svc.remove_product(user_id, product_id))


@router.delete("/", response_model=CartOut)
def clear_cart(
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    ledger: InventoryLedger = Depends(get_ledger),
):
    svc = get_service(db, ledger)
    return svc.clear_cart(user_id)

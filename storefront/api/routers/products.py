# storefront/api/routers/products.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_ledger
from storefront.api.errors import unwrap
from storefront.data.database import get_db
from storefront.domain.schemas import ProductCreate, ProductOut
from storefront.services.inventory_ledger import InventoryLedger
from storefront.services.product_service import ProductService

router = APIRouter(prefix="/products", tags=["products"])


@router.post("/", response_model=ProductOut, status_code=201)
def create_product(
    payload: ProductCreate,
    db: Session = Depends(get_db),
    ledger: InventoryLedger = Depends(get_ledger),
):
    svc = ProductService(db, ledger)
    return svc.create_product(payload)


@router.get("/{product_id}", response_model=ProductOut)
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    ledger: InventoryLedger = Depends(get_ledger),
):
    """
    Produkt razem ze stanem: total / locked / available.
    """
    svc = ProductService(db, ledger)
    return unwrap(svc.get_product(product_id))

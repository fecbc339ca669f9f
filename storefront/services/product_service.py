# storefront/services/product_service.py
from typing import Any, Dict

from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel
from storefront.domain.errors import ServiceError
from storefront.domain.result import Err, Ok, Result
from storefront.domain.schemas import ProductCreate
from storefront.repos.product_repo import ProductRepo
from storefront.services.inventory_ledger import InventoryLedger
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class ProductService:
    def __init__(self, db: Session, ledger: InventoryLedger):
        self.repo = ProductRepo(db)
        self.ledger = ledger

    def create_product(self, payload: ProductCreate) -> ProductModel:
        product = self.repo.create_product(ProductModel(**payload.model_dump()))
        logger.info(f"Product {product.id} created with stock {product.stock_quantity}")
        return product

    def get_product(self, product_id: int) -> Result[Dict[str, Any], ServiceError]:
        status = self.ledger.inventory_status(product_id)
        if isinstance(status, Err):
            return status

        product = self.repo.get_product(product_id)
        return Ok({
            "id": product.id,
            "name": product.name,
            "sku": product.sku,
            "price": product.price,
            "stock_quantity": product.stock_quantity,
            "is_active": product.is_active,
            "inventory": status.value,
        })

# storefront/repos/product_repo.py
from typing import Dict, Iterable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel


class ProductRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def get_products(self, product_ids: Iterable[int]) -> Dict[int, ProductModel]:
        ids = list(set(product_ids))
        if not ids:
            return {}
        rows = self.db.execute(
            select(ProductModel)
            .where(ProductModel.id.in_(ids))
            .execution_options(populate_existing=True)
        ).scalars()
        return {p.id: p for p in rows}

    def create_product(self, product: ProductModel) -> ProductModel:
        self.db.add(product)
        self.db.commit()
        self.db.refresh(product)
        return product

    def adjust_stock(self, product_id: int, delta: int) -> int:
        # UPDATE products SET stock_quantity = stock_quantity + :delta
        # liczone w bazie, bez read-modify-write w pythonie
        result = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id)
            .values(stock_quantity=ProductModel.stock_quantity + delta)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

# storefront/repos/cart_repo.py
from typing import List

from sqlalchemy import select, delete, update
from sqlalchemy.orm import Session

from storefront.data.models.cart_item import CartItemModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart_items(self, user_id: int) -> List[CartItemModel]:
        return list(
            self.db.execute(
                select(CartItemModel)
                .where(CartItemModel.user_id == user_id)
                .order_by(CartItemModel.id)
            ).scalars()
        )

    def get_cart_item(self, user_id: int, product_id: int) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.user_id == user_id,
                CartItemModel.product_id == product_id,
            )
        ).scalar_one_or_none()

    def add_cart_item(self, item: CartItemModel) -> CartItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def increment_quantity(self, user_id: int, product_id: int, quantity: int) -> int:
        # UPDATE ... SET quantity = quantity + :q, bez read-modify-write
        result = self.db.execute(
            update(CartItemModel)
            .where(
                CartItemModel.user_id == user_id,
                CartItemModel.product_id == product_id,
            )
            .values(quantity=CartItemModel.quantity + quantity)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def delete_cart_item(self, user_id: int, product_id: int) -> int:
        result = self.db.execute(
            delete(CartItemModel).where(
                CartItemModel.user_id == user_id,
                CartItemModel.product_id == product_id,
            )
        )
        return result.rowcount

    def clear_cart(self, user_id: int) -> int:
        result = self.db.execute(
            delete(CartItemModel).where(CartItemModel.user_id == user_id)
        )
        return result.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

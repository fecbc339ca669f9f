# storefront/repos/order_repo.py
from typing import List

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.order import OrderModel, OrderReturnModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        # zamowienie + pozycje jednym commitem
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel)
            .options(selectinload(OrderModel.items))
            .where(OrderModel.id == order_id)
        ).scalar_one_or_none()

    def get_owned_order(self, order_id: int, user_id: int) -> OrderModel | None:
        order = self.get_order(order_id)
        if order is None or order.user_id != user_id:
            return None
        return order

    def list_orders(self, user_id: int) -> List[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .options(selectinload(OrderModel.items))
                .where(OrderModel.user_id == user_id)
                .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            ).scalars()
        )

    def delete_order(self, order: OrderModel):
        self.db.delete(order)
        self.db.commit()

    def mark_paid_if_pending(self, order_id: int) -> int:
        # warunek na payment_status - drugi webhook nie przejdzie
        result = self.db.execute(
            update(OrderModel)
            .where(
                OrderModel.id == order_id,
                OrderModel.payment_status == "PENDING",
            )
            .values(payment_status="PAID", status="PROCESSING")
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def add_return(self, order_return: OrderReturnModel) -> OrderReturnModel:
        self.db.add(order_return)
        self.db.flush()
        return order_return

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

# storefront/repos/reservation_repo.py
from datetime import datetime
from typing import List

from sqlalchemy import select, delete, func
from sqlalchemy.orm import Session

from storefront.data.models.reservation import InventoryReservationModel


class ReservationRepo:
    def __init__(self, db: Session):
        self.db = db

    def locked_quantity(self, product_id: int, now: datetime) -> int:
        # SUM(quantity) tylko dla niewygaslych rezerwacji
        total = self.db.execute(
            select(func.coalesce(func.sum(InventoryReservationModel.quantity), 0)).where(
                InventoryReservationModel.product_id == product_id,
                InventoryReservationModel.expires_at > now,
            )
        ).scalar_one()
        return int(total)

    def add_reservations(self, reservations: List[InventoryReservationModel]) -> List[InventoryReservationModel]:
        self.db.add_all(reservations)
        self.db.flush()
        return reservations

    def get_for_order(self, order_id: int) -> List[InventoryReservationModel]:
        return list(
            self.db.execute(
                select(InventoryReservationModel)
                .where(InventoryReservationModel.order_id == order_id)
                .order_by(InventoryReservationModel.id)
            ).scalars()
        )

    def delete_for_order(self, order_id: int) -> int:
        result = self.db.execute(
            delete(InventoryReservationModel)
            .where(InventoryReservationModel.order_id == order_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_expired(self, now: datetime) -> int:
        result = self.db.execute(
            delete(InventoryReservationModel)
            .where(InventoryReservationModel.expires_at < now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

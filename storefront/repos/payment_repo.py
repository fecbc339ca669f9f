# storefront/repos/payment_repo.py
from datetime import datetime
from typing import Any, Dict, Iterable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.data.models.payment import PaymentModel, PaymentEventModel


class PaymentRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_payment(self, payment_id: int) -> PaymentModel | None:
        return self.db.get(PaymentModel, payment_id)

    def get_by_gateway_order_id(self, gateway_order_id: str, for_update: bool = False) -> PaymentModel | None:
        stmt = select(PaymentModel).where(PaymentModel.gateway_order_id == gateway_order_id)
        if for_update:
            # SELECT ... FOR UPDATE - rownolegle webhooki dla tej samej platnosci czekaja
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def find_for_order(self, order_id: int, statuses: Iterable[str]) -> PaymentModel | None:
        return self.db.execute(
            select(PaymentModel)
            .where(
                PaymentModel.order_id == order_id,
                PaymentModel.status.in_(list(statuses)),
            )
            .order_by(PaymentModel.created_at.desc(), PaymentModel.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def latest_for_order(self, order_id: int) -> PaymentModel | None:
        return self.db.execute(
            select(PaymentModel)
            .where(PaymentModel.order_id == order_id)
            .order_by(PaymentModel.created_at.desc(), PaymentModel.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def add_payment(self, payment: PaymentModel) -> PaymentModel:
        self.db.add(payment)
        self.db.flush()
        return payment

    def append_event(self, payment_id: int, event: str, payload: Dict[str, Any] | None = None) -> PaymentEventModel:
        entry = PaymentEventModel(payment_id=payment_id, event=event, payload=payload or {})
        self.db.add(entry)
        self.db.flush()
        return entry

    def confirm_if_unconfirmed(self, payment_id: int, gateway_payment_id: str | None, now: datetime) -> int:
        # compare-and-set: tylko jeden webhook widzi confirmed_at IS NULL
        values = {"status": "PAID", "confirmed_at": now}
        if gateway_payment_id:
            values["gateway_payment_id"] = gateway_payment_id
        result = self.db.execute(
            update(PaymentModel)
            .where(
                PaymentModel.id == payment_id,
                PaymentModel.confirmed_at.is_(None),
                PaymentModel.status != "REFUNDED",
            )
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

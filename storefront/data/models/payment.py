from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, JSON
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from storefront.data.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class PaymentModel(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    gateway = Column(String, nullable=False, default="RAZORPAY")
    # id zamowienia po stronie bramki - klucz idempotencji dla webhooka
    gateway_order_id = Column(String, nullable=False, unique=True)
    gateway_payment_id = Column(String, nullable=True)

    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)

    status = Column(String, nullable=False, default="PENDING")  # PENDING, PAID, REFUNDED
    # ustawiane wylacznie przez webhook
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    events = relationship(
        "PaymentEventModel",
        back_populates="payment",
        order_by="PaymentEventModel.id",
    )


class PaymentEventModel(Base):
    """Dziennik metadanych z bramki dla platnosci, tylko dopisywanie."""

    __tablename__ = "payment_events"

    id = Column(Integer, primary_key=True)
    payment_id = Column(Integer, ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, index=True)

    event = Column(String, nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    payment = relationship("PaymentModel", back_populates="events")

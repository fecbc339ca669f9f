from sqlalchemy import Column, Integer, ForeignKey, DateTime, CheckConstraint
from datetime import datetime, timezone

from storefront.data.database import Base


class InventoryReservationModel(Base):
    """
    Czasowa blokada ilosci produktu dla zamowienia.
    Usuwana przez webhook (zamiana na trwale zmniejszenie stanu) albo przez sweep po expires_at.
    """

    __tablename__ = "inventory_reservations"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_reservation_quantity_positive"),
    )

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=True, index=True)

    quantity = Column(Integer, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

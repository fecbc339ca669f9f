from sqlalchemy import Column, Integer, String, Numeric, Boolean, CheckConstraint

from storefront.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_product_price_non_negative"),
    )

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    sku = Column(String, nullable=True, unique=True)

    price = Column(Numeric(10, 2), nullable=False)
    # stan magazynowy; rezerwacje sa osobno w inventory_reservations
    stock_quantity = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

#import wszystkich modeli zeby SQLAlchemy je zarejestrowal w base metadata

from storefront.data.models.user import UserModel
from storefront.data.models.address import AddressModel
from storefront.data.models.product import ProductModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.order import OrderModel, OrderItemModel, OrderReturnModel
from storefront.data.models.reservation import InventoryReservationModel
from storefront.data.models.payment import PaymentModel, PaymentEventModel
from storefront.data.models.notification import NotificationModel

__all__ = [
    "UserModel",
    "AddressModel",
    "ProductModel",
    "CartItemModel",
    "OrderModel",
    "OrderItemModel",
    "OrderReturnModel",
    "InventoryReservationModel",
    "PaymentModel",
    "PaymentEventModel",
    "NotificationModel",
]

# storefront/services/order_service.py
import secrets
import string
import time
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Dict, Iterable, List, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel, OrderItemModel, OrderReturnModel
from storefront.domain.errors import ErrorKind, ServiceError, fail
from storefront.domain.result import Ok, Result
from storefront.repos.address_repo import AddressRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services.inventory_ledger import InventoryLedger
from storefront.utils.clock import utcnow
from storefront.utils.settings import TAX_RATE_PERCENT, FREE_SHIPPING_THRESHOLD, SHIPPING_FLAT_FEE
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

CENT = Decimal("0.01")
_ALPHABET = string.digits + string.ascii_uppercase

NOT_CANCELLABLE = ("SHIPPED", "DELIVERED", "CANCELLED", "RETURNED")
# admin: PROCESSING -> SHIPPED -> DELIVERED
FULFILLMENT_TRANSITIONS = {
    "SHIPPED": "PROCESSING",
    "DELIVERED": "SHIPPED",
}


def _base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_ALPHABET[rem])
    return "".join(reversed(digits)) or "0"


def generate_order_number() -> str:
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(5))
    return f"ORD{_base36(int(time.time() * 1000))}{suffix}"


def compute_totals(subtotal: Decimal) -> Dict[str, Decimal]:
    """
    tax = TAX_RATE_PERCENT% subtotalu, dostawa gratis od FREE_SHIPPING_THRESHOLD.
    Liczone raz przy tworzeniu zamowienia.
    """
    subtotal = subtotal.quantize(CENT, rounding=ROUND_HALF_UP)
    tax = (subtotal * TAX_RATE_PERCENT / Decimal(100)).quantize(CENT, rounding=ROUND_HALF_UP)
    shipping = Decimal("0.00") if subtotal >= FREE_SHIPPING_THRESHOLD else SHIPPING_FLAT_FEE.quantize(CENT)
    return {
        "subtotal": subtotal,
        "tax_amount": tax,
        "shipping_fee": shipping,
        "total_amount": subtotal + tax + shipping,
    }


class OrderService:
    """
    Agregat zamowienia: tworzenie (snapshot cen + sumy), anulowanie, zwrot,
    statusy wysylki dla admina. Oplacenie zamowienia robi wylacznie WebhookReconciler.
    """

    def __init__(
        self,
        db: Session,
        ledger: InventoryLedger | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.products = ProductRepo(db)
        self.addresses = AddressRepo(db)
        self.ledger = ledger or InventoryLedger(db, clock=clock)
        self.clock = clock

    #query
    def get_order(self, order_id: int, user_id: int) -> Result[OrderModel, ServiceError]:
        order = self.repo.get_owned_order(order_id, user_id)
        if not order:
            return fail(ErrorKind.NOT_FOUND, "Order not found", order_id=order_id)
        return Ok(order)

    def list_orders(self, user_id: int) -> List[OrderModel]:
        return self.repo.list_orders(user_id)

    #commands
    def create(
        self,
        user_id: int,
        line_items: Iterable[Tuple[int, int]],
        shipping_address_id: int | None,
        billing_address_id: int | None,
    ) -> Result[OrderModel, ServiceError]:
        """
        Tworzy zamowienie PENDING.

        1. Adresy musza nalezec do uzytkownika
        2. Lista pozycji nie moze byc pusta
        3. Ceny kopiowane z katalogu (snapshot), sumy liczone raz
        4. Zamowienie + pozycje jednym commitem
        """
        items = list(line_items)
        if not items:
            return fail(ErrorKind.EMPTY_CART, "Cart is empty")

        for product_id, quantity in items:
            if quantity <= 0:
                return fail(
                    ErrorKind.VALIDATION,
                    "Quantity must be greater than 0",
                    product_id=product_id,
                )

        if not shipping_address_id or not billing_address_id:
            return fail(ErrorKind.ADDRESS_INVALID, "Shipping and billing addresses are required")

        shipping_addr = self.addresses.get_owned(shipping_address_id, user_id)
        billing_addr = self.addresses.get_owned(billing_address_id, user_id)
        if not shipping_addr or not billing_addr:
            return fail(ErrorKind.ADDRESS_INVALID, "Invalid addresses")

        products = self.products.get_products(pid for pid, _ in items)

        order_items = []
        subtotal = Decimal("0.00")
        for product_id, quantity in items:
            product = products.get(product_id)
            if product is None or not product.is_active:
                return fail(ErrorKind.NOT_FOUND, f"Product {product_id} not found", product_id=product_id)

            unit_price = Decimal(str(product.price)).quantize(CENT)
            line_total = unit_price * quantity
            subtotal += line_total
            order_items.append(
                OrderItemModel(
                    product_id=product_id,
                    product_name=product.name,
                    quantity=quantity,
                    unit_price=unit_price,
                    line_total=line_total,
                )
            )

        totals = compute_totals(subtotal)

        order = OrderModel(
            order_number=generate_order_number(),
            user_id=user_id,
            status="PENDING",
            payment_status="PENDING",
            shipping_address_id=shipping_addr.id,
            billing_address_id=billing_addr.id,
            created_at=self.clock(),
            items=order_items,
            **totals,
        )

        try:
            created = self.repo.create_order(order)
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Failed to create order for user {user_id}: {e}")
            return fail(ErrorKind.TRANSACTION_FAILURE, "Failed to create order")

        logger.info(
            f"Order {created.id} ({created.order_number}) created for user {user_id}, "
            f"total={created.total_amount}"
        )
        return Ok(created)

    def cancel(self, order_id: int, user_id: int, reason: str | None = None) -> Result[OrderModel, ServiceError]:
        order = self.repo.get_owned_order(order_id, user_id)
        if not order:
            return fail(ErrorKind.NOT_FOUND, "Order not found", order_id=order_id)

        if order.status in NOT_CANCELLABLE:
            return fail(
                ErrorKind.INVALID_TRANSITION,
                "Cannot cancel order at this stage",
                status=order.status,
            )

        try:
            order.status = "CANCELLED"
            order.cancelled_at = self.clock()
            order.cancel_reason = reason
            # porzucony checkout - rezerwacje wracaja do puli od razu
            self.ledger.release(order.id, commit=False)
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Failed to cancel order {order_id}: {e}")
            return fail(ErrorKind.TRANSACTION_FAILURE, "Failed to cancel order")

        logger.info(f"Order {order_id} cancelled by user {user_id}")
        return Ok(order)

    def request_return(
        self,
        order_id: int,
        user_id: int,
        reason: str | None = None,
        description: str | None = None,
    ) -> Result[OrderReturnModel, ServiceError]:
        order = self.repo.get_owned_order(order_id, user_id)
        if not order:
            return fail(ErrorKind.NOT_FOUND, "Order not found", order_id=order_id)

        if order.status != "DELIVERED":
            return fail(
                ErrorKind.INVALID_TRANSITION,
                "Only delivered orders can be returned",
                status=order.status,
            )

        try:
            order_return = self.repo.add_return(
                OrderReturnModel(
                    order_id=order.id,
                    user_id=user_id,
                    reason=reason,
                    description=description,
                    created_at=self.clock(),
                )
            )
            order.status = "RETURNED"
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Failed to register return for order {order_id}: {e}")
            return fail(ErrorKind.TRANSACTION_FAILURE, "Failed to register return")

        logger.info(f"Return {order_return.id} requested for order {order_id}")
        return Ok(order_return)

    def update_fulfillment(
        self,
        order_id: int,
        status: str,
        tracking_number: str | None = None,
    ) -> Result[OrderModel, ServiceError]:
        order = self.repo.get_order(order_id)
        if not order:
            return fail(ErrorKind.NOT_FOUND, "Order not found", order_id=order_id)

        required = FULFILLMENT_TRANSITIONS.get(status)
        if required is None or order.status != required:
            return fail(
                ErrorKind.INVALID_TRANSITION,
                f"Cannot move order from {order.status} to {status}",
                status=order.status,
            )

        now = self.clock()
        order.status = status
        if status == "SHIPPED":
            order.shipped_at = now
            if tracking_number:
                order.tracking_number = tracking_number
        else:
            order.delivered_at = now

        try:
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Failed to update order {order_id} to {status}: {e}")
            return fail(ErrorKind.TRANSACTION_FAILURE, "Failed to update order status")

        logger.info(f"Order {order_id} moved to {status}")
        return Ok(order)

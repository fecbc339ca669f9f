# storefront/services/checkout_service.py
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.address import AddressModel
from storefront.data.models.order import OrderModel
from storefront.domain.errors import ErrorKind, ServiceError, fail
from storefront.domain.result import Err, Ok, Result
from storefront.repos.address_repo import AddressRepo
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.user_repo import UserRepo
from storefront.services.inventory_ledger import InventoryLedger
from storefront.services.order_service import OrderService
from storefront.services.payment_service import PaymentIntent, PaymentService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

_REQUIRED_INLINE_FIELDS = ("street", "city", "state", "zip_code")


@dataclass
class CheckoutOutcome:
    order: OrderModel
    payment_intent: Optional[PaymentIntent] = None
    next_step: str = "payment"


class CheckoutService:
    """
    Synchroniczna sciezka checkout:

    koszyk zwalidowany -> zamowienie utworzone -> towar zarezerwowany -> odpowiedz

    Blad po utworzeniu zamowienia = usuniecie tego zamowienia (akcja kompensujaca),
    zeby nie zostalo PENDING bez rezerwacji. Koszyk NIE jest czyszczony,
    robi to dopiero webhook po potwierdzonej platnosci.
    """

    def __init__(
        self,
        db: Session,
        ledger: InventoryLedger,
        orders: OrderService | None = None,
        payments: PaymentService | None = None,
    ):
        self.db = db
        self.ledger = ledger
        self.orders = orders or OrderService(db, ledger=ledger)
        self.payments = payments
        self.order_repo = OrderRepo(db)
        self.cart = CartRepo(db)
        self.addresses = AddressRepo(db)
        self.users = UserRepo(db)

    def _resolve_items(self, user_id: int, items: List[Tuple[int, int]] | None) -> List[Tuple[int, int]]:
        if items:
            return list(items)
        # brak pozycji w requescie -> koszyk z bazy
        return [(i.product_id, i.quantity) for i in self.cart.get_cart_items(user_id)]

    def _resolve_addresses(
        self,
        user_id: int,
        shipping_address_id: int | None,
        billing_address_id: int | None,
        shipping_address: Dict[str, Any] | None,
    ) -> Result[Tuple[int | None, int | None], ServiceError]:
        if not shipping_address or shipping_address_id:
            return Ok((shipping_address_id, billing_address_id))

        missing = [f for f in _REQUIRED_INLINE_FIELDS if not shipping_address.get(f)]
        if missing:
            return fail(ErrorKind.VALIDATION, "Shipping address is incomplete", missing=missing)

        user = self.users.get_user(user_id)
        if user is None:
            return fail(ErrorKind.NOT_FOUND, "User not found", user_id=user_id)

        try:
            address = self.addresses.add(
                AddressModel(
                    user_id=user_id,
                    full_name=user.name,
                    line1=shipping_address["street"],
                    city=shipping_address["city"],
                    state=shipping_address["state"],
                    pincode=shipping_address["zip_code"],
                    country=shipping_address.get("country") or "India",
                    phone=user.phone or "",
                )
            )
            self.addresses.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to save inline address for user {user_id}: {e}")
            return fail(ErrorKind.TRANSACTION_FAILURE, "Failed to save address")

        # ten sam adres do wysylki i faktury
        return Ok((address.id, address.id))

    def _compensate(self, order: OrderModel, release: bool = False):
        order_id = order.id
        try:
            if release:
                self.ledger.release(order_id, commit=False)
            self.order_repo.delete_order(order)
            logger.info(f"Checkout rolled back: order {order_id} deleted")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to delete order {order_id} during checkout rollback: {e}")

    def checkout(
        self,
        user_id: int,
        items: List[Tuple[int, int]] | None = None,
        shipping_address_id: int | None = None,
        billing_address_id: int | None = None,
        shipping_address: Dict[str, Any] | None = None,
        create_intent: bool = False,
    ) -> Result[CheckoutOutcome, ServiceError]:
        line_items = self._resolve_items(user_id, items)
        if not line_items:
            return fail(ErrorKind.EMPTY_CART, "Cart is empty")

        addresses = self._resolve_addresses(user_id, shipping_address_id, billing_address_id, shipping_address)
        if isinstance(addresses, Err):
            return addresses
        ship_id, bill_id = addresses.value

        created = self.orders.create(user_id, line_items, ship_id, bill_id)
        if isinstance(created, Err):
            return created
        order = created.value

        reserved = self.ledger.reserve(order.id, line_items)
        if isinstance(reserved, Err):
            logger.info(f"Checkout for user {user_id} failed at reservation: {reserved.error.message}")
            self._compensate(order)
            return reserved

        outcome = CheckoutOutcome(order=order)

        if create_intent and self.payments is not None:
            intent = self.payments.create_intent(order.id, user_id)
            if isinstance(intent, Err):
                self._compensate(order, release=True)
                return intent
            outcome.payment_intent = intent.value

        logger.info(f"Checkout complete for user {user_id}: order {order.id} awaiting payment")
        return Ok(outcome)

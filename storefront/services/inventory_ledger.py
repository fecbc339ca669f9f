# storefront/services/inventory_ledger.py
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Tuple

from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel, OrderItemModel
from storefront.data.models.product import ProductModel
from storefront.data.models.reservation import InventoryReservationModel
from storefront.domain.errors import ErrorKind, ServiceError, fail
from storefront.domain.result import Ok, Result
from storefront.repos.product_repo import ProductRepo
from storefront.repos.reservation_repo import ReservationRepo
from storefront.services.lock_service import LockService
from storefront.utils.clock import utcnow
from storefront.utils.retry import lock_wait_retry
from storefront.utils.settings import (
    RESERVATION_HOLD_SECONDS,
    RESERVE_LOCK_TTL_SECONDS,
    RESERVE_LOCK_WAIT_SECONDS,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class InventoryLedger:
    """
    Jedyne miejsce, ktore zmienia stan magazynu i rezerwacje.

    available = stock_quantity - SUM(niewygasle rezerwacje)

    - reserve: wszystko albo nic dla calego koszyka, rezerwacja na RESERVATION_HOLD_SECONDS
    - confirm_deduction: rezerwacje -> trwale zmniejszenie stanu (bez commita, w transakcji webhooka)
    - release: usuniecie rezerwacji bez zmiany stanu
    - sweep_expired: sprzatanie wygaslych rezerwacji (celery beat)
    """

    def __init__(
        self,
        db: Session,
        lock_service: LockService | None = None,
        hold_seconds: int = RESERVATION_HOLD_SECONDS,
        lock_ttl: int = RESERVE_LOCK_TTL_SECONDS,
        lock_wait: float = RESERVE_LOCK_WAIT_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.products = ProductRepo(db)
        self.reservations = ReservationRepo(db)
        self.lock_service = lock_service
        self.hold_seconds = hold_seconds
        self.lock_ttl = lock_ttl
        self.lock_wait = lock_wait
        self.clock = clock

    # =====================================================
    # QUERY
    # =====================================================
    def _raw_available(self, product: ProductModel, now: datetime) -> int:
        # moze byc ujemne, np. gdy admin zmniejszyl stan pod aktywnymi rezerwacjami
        return product.stock_quantity - self.reservations.locked_quantity(product.id, now)

    def available(self, product_id: int) -> int:
        product = self.products.get_products([product_id]).get(product_id)
        if product is None:
            return 0
        return max(0, self._raw_available(product, self.clock()))

    def inventory_status(self, product_id: int) -> Result[dict, ServiceError]:
        product = self.products.get_products([product_id]).get(product_id)
        if product is None:
            return fail(ErrorKind.NOT_FOUND, "Product not found", product_id=product_id)

        locked = self.reservations.locked_quantity(product_id, self.clock())
        return Ok({
            "product_id": product.id,
            "total": product.stock_quantity,
            "locked": locked,
            "available": max(0, product.stock_quantity - locked),
        })

    # =====================================================
    # COMMANDS
    # =====================================================
    def reserve(
        self,
        order_id: int,
        items: Iterable[Tuple[int, int]],
    ) -> Result[List[InventoryReservationModel], ServiceError]:
        """
        Rezerwuje cala liste (product_id, quantity) dla zamowienia albo nic.

        Najpierw walidacja wszystkich pozycji wzgledem available, dopiero potem zapis.
        Sprawdzenie + zapis sa chronione lockiem redis per produkt (kolejnosc po id,
        zeby dwa checkouty nie zakleszczyly sie na sobie). Zajety lock -> czekamy
        do lock_wait sekund, dopiero potem TRANSACTION_FAILURE.
        """
        quantities: "OrderedDict[int, int]" = OrderedDict()
        for product_id, quantity in items:
            if quantity <= 0:
                return fail(
                    ErrorKind.VALIDATION,
                    "Quantity must be greater than 0",
                    product_id=product_id,
                    requested=quantity,
                )
            quantities[product_id] = quantities.get(product_id, 0) + quantity

        if not quantities:
            return fail(ErrorKind.VALIDATION, "Nothing to reserve")

        token = f"order:{order_id}"
        acquired: List[int] = []
        try:
            if self.lock_service is not None:
                acquire = lock_wait_retry(self.lock_wait)(self.lock_service.acquire_product_lock)
                for product_id in sorted(quantities):
                    if not acquire(product_id, token, self.lock_ttl):
                        logger.error(
                            f"Reservation lock for product {product_id} still busy after "
                            f"{self.lock_wait}s (order {order_id})"
                        )
                        return fail(
                            ErrorKind.TRANSACTION_FAILURE,
                            "Timed out waiting for inventory lock",
                            product_id=product_id,
                        )
                    acquired.append(product_id)

            now = self.clock()
            products = self.products.get_products(quantities.keys())

            for product_id, quantity in quantities.items():
                product = products.get(product_id)
                if product is None or not product.is_active:
                    return fail(ErrorKind.NOT_FOUND, f"Product {product_id} not found", product_id=product_id)

                available = self._raw_available(product, now)
                if available < quantity:
                    logger.info(
                        f"Reservation rejected for order {order_id}: product {product_id} "
                        f"available={available} requested={quantity}"
                    )
                    return fail(
                        ErrorKind.INSUFFICIENT_STOCK,
                        f"Insufficient stock for {product.name}. "
                        f"Available: {max(0, available)}, Requested: {quantity}",
                        product_id=product_id,
                        available=max(0, available),
                        requested=quantity,
                    )

            expires_at = now + timedelta(seconds=self.hold_seconds)
            created = self.reservations.add_reservations([
                InventoryReservationModel(
                    product_id=product_id,
                    order_id=order_id,
                    quantity=quantity,
                    expires_at=expires_at,
                    created_at=now,
                )
                for product_id, quantity in quantities.items()
            ])
            self.reservations.commit()

            logger.info(
                f"Reserved {len(created)} item(s) for order {order_id} until {expires_at.isoformat()}"
            )
            return Ok(created)

        except RedisError as e:
            logger.error(f"Reservation lock unavailable for order {order_id}: {e}")
            return fail(ErrorKind.TRANSACTION_FAILURE, "Inventory lock service unavailable")
        except SQLAlchemyError as e:
            self.reservations.rollback()
            logger.error(f"Reservation failed for order {order_id}: {e}")
            return fail(ErrorKind.TRANSACTION_FAILURE, "Failed to reserve inventory")
        finally:
            for product_id in acquired:
                try:
                    self.lock_service.release_product_lock(product_id, token)
                except RedisError as e:
                    # lock i tak wygasnie po lock_ttl
                    logger.warning(f"Failed to release lock for product {product_id}: {e}")

    def confirm_deduction(self, order_id: int) -> int:
        """
        Zamienia rezerwacje zamowienia na trwale zmniejszenie stanu.
        Nie commituje - wywolywane w transakcji webhooka.
        Zwraca liczbe odjetych sztuk.
        """
        reservations = self.reservations.get_for_order(order_id)
        if not reservations:
            return self._deduct_lapsed(order_id)

        deducted = 0
        for reservation in reservations:
            self.products.adjust_stock(reservation.product_id, -reservation.quantity)
            deducted += reservation.quantity

        self.reservations.delete_for_order(order_id)
        self.db.flush()

        logger.info(f"Deducted {deducted} unit(s) for order {order_id} from {len(reservations)} reservation(s)")
        return deducted

    def _deduct_lapsed(self, order_id: int) -> int:
        # rezerwacje juz wysprzatane przed webhookiem - platnosc jest faktem,
        # wiec odejmujemy pozycje zamowienia i sygnalizujemy ewentualny oversell
        items = list(
            self.db.execute(
                select(OrderItemModel).where(OrderItemModel.order_id == order_id)
            ).scalars()
        )
        logger.warning(
            f"No reservations left for order {order_id} at confirmation; "
            f"deducting {len(items)} line item(s) directly"
        )

        deducted = 0
        for item in items:
            self.products.adjust_stock(item.product_id, -item.quantity)
            deducted += item.quantity
        self.db.flush()

        products = self.products.get_products(i.product_id for i in items)
        for product in products.values():
            if product.stock_quantity < 0:
                logger.error(
                    f"Product {product.id} oversold after order {order_id}: stock={product.stock_quantity}"
                )
        return deducted

    def release(self, order_id: int, commit: bool = True) -> int:
        removed = self.reservations.delete_for_order(order_id)
        if commit:
            self.reservations.commit()
        if removed:
            logger.info(f"Released {removed} reservation(s) for order {order_id}")
        return removed

    def sweep_expired(self) -> int:
        try:
            removed = self.reservations.delete_expired(self.clock())
            self.reservations.commit()
        except SQLAlchemyError:
            self.reservations.rollback()
            raise

        if removed > 0:
            logger.info(f"Cleaned up {removed} expired inventory reservation(s)")
        return removed

    def restock(self, order_id: int) -> Result[int, ServiceError]:
        """
        Zwrot towaru na stan po zwrocie / anulowaniu oplaconego zamowienia.
        Wywolywane jawnie przez admina, refund tego nie robi.
        """
        order = self.db.get(OrderModel, order_id)
        if order is None:
            return fail(ErrorKind.NOT_FOUND, "Order not found", order_id=order_id)

        if order.status not in ("RETURNED", "CANCELLED") or order.payment_status not in ("PAID", "REFUNDED"):
            return fail(
                ErrorKind.INVALID_TRANSITION,
                "Only paid orders that were returned or cancelled can be restocked",
                status=order.status,
                payment_status=order.payment_status,
            )

        if order.restocked_at is not None:
            return fail(ErrorKind.INVALID_TRANSITION, "Order already restocked", order_id=order_id)

        restocked = 0
        try:
            for item in order.items:
                self.products.adjust_stock(item.product_id, item.quantity)
                restocked += item.quantity
            order.restocked_at = self.clock()
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Restock failed for order {order_id}: {e}")
            return fail(ErrorKind.TRANSACTION_FAILURE, "Failed to restock inventory")

        logger.info(f"Restocked {restocked} unit(s) for order {order_id}")
        return Ok(restocked)

# storefront/services/webhook_reconciler.py
"""
Webhook bramki platnosci - jedyne zrodlo prawdy o tym, ze pieniadze przeszly.

Tylko ta sciezka:
- oznacza zamowienie jako PAID / PROCESSING
- trwale odejmuje towar ze stanu

Gateway dostarcza webhooki "at least once", wiec handler jest idempotentny:
drugi (i kazdy kolejny) webhook dla potwierdzonej platnosci nic nie zapisuje.
"""
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.domain.errors import ErrorKind, GatewayError, ServiceError, fail
from storefront.domain.result import Ok, Result
from storefront.repos.cart_repo import CartRepo
from storefront.repos.notification_repo import NotificationRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.payment_repo import PaymentRepo
from storefront.services.inventory_ledger import InventoryLedger
from storefront.services.notification_service import NotificationService, build_confirmation
from storefront.services.payment_gateway import RazorpayClient
from storefront.utils.clock import utcnow
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

HANDLED_EVENTS = ("payment.authorized", "payment.captured")


@dataclass(frozen=True)
class WebhookOutcome:
    outcome: str  # processed, already_processed, ignored
    payment_id: Optional[int] = None
    order_id: Optional[int] = None


class WebhookReconciler:

    def __init__(
        self,
        db: Session,
        gateway: RazorpayClient,
        ledger: InventoryLedger | None = None,
        notifier: Callable[[OrderModel], None] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.gateway = gateway
        self.ledger = ledger or InventoryLedger(db, clock=clock)
        self.payments = PaymentRepo(db)
        self.orders = OrderRepo(db)
        self.cart = CartRepo(db)
        self.notifications = NotificationRepo(db)
        self.notifier = notifier or NotificationService.send_order_confirmation
        self.clock = clock

    def handle(self, raw_body: bytes, signature: str | None) -> Result[WebhookOutcome, ServiceError]:
        """
        raw_body musi byc dokladnie tym, co przyszlo po sieci - podpis liczony po bajtach.
        """
        if not signature:
            logger.error("[Webhook] Missing signature header")
            return fail(ErrorKind.SIGNATURE_INVALID, "Missing signature header")

        try:
            valid = self.gateway.verify_webhook_signature(raw_body, signature)
        except GatewayError as e:
            logger.error(f"[Webhook] Cannot verify signature: {e}")
            return fail(ErrorKind.GATEWAY_ERROR, str(e))

        if not valid:
            logger.error("[Webhook] Signature verification failed")
            return fail(ErrorKind.SIGNATURE_INVALID, "Signature verification failed")

        try:
            event = json.loads(raw_body)
        except ValueError:
            return fail(ErrorKind.INVALID_PAYLOAD, "Body is not valid JSON")

        event_type = event.get("event") if isinstance(event, dict) else None
        if not event_type:
            logger.error("[Webhook] Missing event type")
            return fail(ErrorKind.INVALID_PAYLOAD, "Missing event type")

        logger.info(f"[Webhook] Received event: {event_type}")

        if event_type not in HANDLED_EVENTS:
            logger.info(f"[Webhook] Ignoring event: {event_type}")
            return Ok(WebhookOutcome(outcome="ignored"))

        entity = ((event.get("payload") or {}).get("payment") or {}).get("entity")
        if not isinstance(entity, dict) or not entity.get("order_id"):
            logger.error("[Webhook] Missing payment entity in payload")
            return fail(ErrorKind.INVALID_PAYLOAD, "Missing payment entity")

        return self._reconcile(event_type, entity)

    def _reconcile(self, event_type: str, entity: Dict[str, Any]) -> Result[WebhookOutcome, ServiceError]:
        gateway_order_id = entity["order_id"]
        gateway_payment_id = entity.get("id")

        logger.info(f"[Webhook] Processing payment {gateway_payment_id} for gateway order {gateway_order_id}")

        try:
            payment = self.payments.get_by_gateway_order_id(gateway_order_id, for_update=True)
            if payment is None:
                self.db.rollback()
                logger.error(f"[Webhook] Payment record not found for gateway order {gateway_order_id}")
                return fail(
                    ErrorKind.PAYMENT_RECORD_NOT_FOUND,
                    "Payment record not found",
                    gateway_order_id=gateway_order_id,
                )

            # IDEMPOTENCJA: juz potwierdzone tym webhookiem -> sukces bez zapisow
            payment_id, order_id = payment.id, payment.order_id
            if payment.confirmed_at is not None or payment.status == "REFUNDED":
                self.db.rollback()
                logger.info(f"[Webhook] Payment {payment_id} already confirmed. Skipping reprocessing.")
                return Ok(WebhookOutcome("already_processed", payment_id, order_id))

            order = self.orders.get_order(payment.order_id)
            if order is None:
                self.db.rollback()
                logger.error(f"[Webhook] Order not found for payment {payment_id}")
                return fail(
                    ErrorKind.PAYMENT_RECORD_NOT_FOUND,
                    "Order not found for payment",
                    payment_id=payment_id,
                )

            now = self.clock()

            # (a) platnosc PAID - compare-and-set, rownolegly webhook dostanie 0 wierszy
            if self.payments.confirm_if_unconfirmed(payment.id, gateway_payment_id, now) == 0:
                self.db.rollback()
                logger.info(f"[Webhook] Payment {payment_id} confirmed concurrently. Skipping.")
                return Ok(WebhookOutcome("already_processed", payment_id, order_id))

            self.payments.append_event(
                payment.id,
                "webhook_confirmed",
                {
                    "event": event_type,
                    "gateway_payment_id": gateway_payment_id,
                    "amount": entity.get("amount"),
                    "entity": entity,
                },
            )

            # (b) zamowienie PAID / PROCESSING
            if order.status == "CANCELLED":
                logger.warning(f"[Webhook] Payment captured for cancelled order {order.id}; reinstating")
            if self.orders.mark_paid_if_pending(order.id) == 0:
                self.db.rollback()
                logger.info(f"[Webhook] Order {order_id} already paid. Skipping.")
                return Ok(WebhookOutcome("already_processed", payment_id, order_id))

            # (c) rezerwacje -> trwale zmniejszenie stanu
            self.ledger.confirm_deduction(order.id)

            # (d) koszyk czyszczony dopiero teraz
            self.cart.clear_cart(order.user_id)

            # (e) powiadomienie
            self.notifications.create_notification(build_confirmation(order))

            self.db.commit()

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"[Webhook] Error processing payment for gateway order {gateway_order_id}: {e}")
            return fail(
                ErrorKind.TRANSACTION_FAILURE,
                "Internal error while confirming payment",
                gateway_order_id=gateway_order_id,
            )

        logger.info(f"[Webhook] Order {order.id} confirmed: payment {payment.id} PAID, stock deducted, cart cleared")
        self._after_commit(order)
        return Ok(WebhookOutcome("processed", payment.id, order.id))

    def _after_commit(self, order: OrderModel):
        # mail po commicie; blad wysylki nie cofa transakcji finansowej
        try:
            self.notifier(order)
        except Exception as e:
            logger.warning(f"[Webhook] Confirmation notification failed for order {order.id}: {e}")

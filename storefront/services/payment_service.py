# storefront/services/payment_service.py
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.payment import PaymentModel
from storefront.domain.errors import ErrorKind, GatewayError, ServiceError, fail
from storefront.domain.result import Ok, Result
from storefront.repos.order_repo import OrderRepo
from storefront.repos.payment_repo import PaymentRepo
from storefront.services.payment_gateway import RazorpayClient
from storefront.utils.clock import utcnow
from storefront.utils.settings import CURRENCY
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class PaymentIntent:
    payment_id: int
    gateway_order_id: str
    amount: int
    currency: str
    key_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "payment_id": self.payment_id,
            "gateway_order_id": self.gateway_order_id,
            "amount": self.amount,
            "currency": self.currency,
            "key_id": self.key_id,
        }


class PaymentService:
    """
    Adapter bramki platnosci od strony zamowienia:
    - create_intent: zdalne zamowienie w bramce + Payment(PENDING), idempotentne
    - verify_client_signature: podpis z przegladarki, tylko wstepne PAID
    - refund: zwrot pieniedzy (admin), bez zwrotu na stan
    """

    def __init__(
        self,
        db: Session,
        gateway: RazorpayClient,
        currency: str = CURRENCY,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.repo = PaymentRepo(db)
        self.orders = OrderRepo(db)
        self.gateway = gateway
        self.currency = currency
        self.clock = clock

    def _intent(self, payment: PaymentModel) -> PaymentIntent:
        return PaymentIntent(
            payment_id=payment.id,
            gateway_order_id=payment.gateway_order_id,
            amount=to_minor_units(payment.amount),
            currency=payment.currency,
            key_id=self.gateway.key_id or None,
        )

    def create_intent(self, order_id: int, user_id: int) -> Result[PaymentIntent, ServiceError]:
        order = self.orders.get_owned_order(order_id, user_id)
        if not order:
            return fail(ErrorKind.NOT_FOUND, "Order not found", order_id=order_id)

        if order.status != "PENDING":
            return fail(ErrorKind.ORDER_NOT_PAYABLE, "Order is not in PENDING state", status=order.status)

        if order.payment_status == "PAID":
            return fail(ErrorKind.ORDER_NOT_PAYABLE, "Order is already paid")

        # PAID/REFUNDED -> zwracamy stare dane bez nowego zamowienia w bramce
        existing = self.repo.find_for_order(order.id, ("PAID", "REFUNDED"))
        if existing:
            logger.info(f"Payment {existing.id} already {existing.status} for order {order.id}, returning stored intent")
            return Ok(self._intent(existing))

        # co najwyzej jedna aktywna platnosc na zamowienie
        pending = self.repo.find_for_order(order.id, ("PENDING",))
        if pending:
            logger.info(f"Reusing pending payment {pending.id} for order {order.id}")
            return Ok(self._intent(pending))

        amount_minor = to_minor_units(order.total_amount)
        try:
            remote = self.gateway.create_order(
                amount_minor=amount_minor,
                currency=self.currency,
                receipt=order.order_number,
                notes={"order_id": str(order.id), "order_number": order.order_number},
            )
        except GatewayError as e:
            return fail(ErrorKind.GATEWAY_ERROR, str(e), order_id=order.id)

        gateway_order_id = remote.get("id")
        if not gateway_order_id:
            logger.error(f"Gateway returned no order id for order {order.id}: {remote}")
            return fail(ErrorKind.GATEWAY_ERROR, "Gateway returned no order id", order_id=order.id)

        try:
            payment = self.repo.add_payment(
                PaymentModel(
                    order_id=order.id,
                    gateway=self.gateway.name,
                    gateway_order_id=gateway_order_id,
                    amount=order.total_amount,
                    currency=remote.get("currency", self.currency),
                    status="PENDING",
                    created_at=self.clock(),
                )
            )
            self.repo.append_event(
                payment.id,
                "intent_created",
                {"gateway_order_id": gateway_order_id, "amount": amount_minor},
            )
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Failed to persist payment for order {order.id}: {e}")
            return fail(ErrorKind.TRANSACTION_FAILURE, "Failed to create payment")

        logger.info(f"Payment {payment.id} created for order {order.id}, gateway order {gateway_order_id}")
        return Ok(self._intent(payment))

    def verify_client_signature(
        self,
        order_id: int,
        user_id: int,
        gateway_payment_id: str,
        signature: str,
    ) -> Result[PaymentModel, ServiceError]:
        """
        Sprawdza podpis z przegladarki (order_id|payment_id, klucz API).
        Tylko wstepne oznaczenie PAID: stan magazynu i zamowienie zmienia webhook.
        """
        order = self.orders.get_owned_order(order_id, user_id)
        if not order:
            return fail(ErrorKind.NOT_FOUND, "Order not found", order_id=order_id)

        payment = self.repo.latest_for_order(order.id)
        if not payment:
            return fail(ErrorKind.NOT_FOUND, "Payment record not found", order_id=order_id)

        if payment.status == "PAID":
            return Ok(payment)

        try:
            valid = self.gateway.verify_client_signature(payment.gateway_order_id, gateway_payment_id, signature)
        except GatewayError as e:
            return fail(ErrorKind.GATEWAY_ERROR, str(e))

        if not valid:
            logger.warning(f"Client signature mismatch for payment {payment.id}")
            return fail(ErrorKind.SIGNATURE_MISMATCH, "Payment signature verification failed")

        if payment.status != "PENDING":
            return fail(ErrorKind.INVALID_TRANSITION, f"Payment is {payment.status}", status=payment.status)

        try:
            payment.status = "PAID"
            payment.gateway_payment_id = gateway_payment_id
            self.repo.append_event(
                payment.id,
                "client_verified",
                {"gateway_payment_id": gateway_payment_id},
            )
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Failed to record client verification for payment {payment.id}: {e}")
            return fail(ErrorKind.TRANSACTION_FAILURE, "Failed to record verification")

        logger.info(f"Payment {payment.id} verified by client (provisional)")
        return Ok(payment)

    def payment_status(self, order_id: int, user_id: int) -> Result[PaymentModel, ServiceError]:
        order = self.orders.get_owned_order(order_id, user_id)
        if not order:
            return fail(ErrorKind.NOT_FOUND, "Order not found", order_id=order_id)

        payment = self.repo.latest_for_order(order.id)
        if not payment:
            return fail(ErrorKind.NOT_FOUND, "Payment not found", order_id=order_id)
        return Ok(payment)

    def refund(self, payment_id: int, amount: Decimal, reason: str | None = None) -> Result[dict, ServiceError]:
        payment = self.repo.get_payment(payment_id)
        if not payment:
            return fail(ErrorKind.NOT_FOUND, "Payment not found", payment_id=payment_id)

        if payment.status != "PAID":
            return fail(ErrorKind.INVALID_TRANSITION, "Can only refund paid payments", status=payment.status)

        amount = Decimal(str(amount))
        if amount <= 0 or amount > Decimal(str(payment.amount)):
            return fail(
                ErrorKind.VALIDATION,
                "Refund amount must be positive and not exceed the payment amount",
                amount=str(amount),
            )

        if not payment.gateway_payment_id:
            return fail(ErrorKind.INVALID_TRANSITION, "Payment has no captured gateway payment to refund")

        amount_minor = to_minor_units(amount)
        try:
            refund = self.gateway.refund(
                payment.gateway_payment_id,
                amount_minor,
                notes={"reason": reason or "Customer refund"},
            )
        except GatewayError as e:
            return fail(ErrorKind.GATEWAY_ERROR, str(e), payment_id=payment_id)

        try:
            payment.status = "REFUNDED"
            order = self.orders.get_order(payment.order_id)
            if order is not None:
                order.payment_status = "REFUNDED"
            self.repo.append_event(
                payment.id,
                "refunded",
                {"refund": refund, "reason": reason, "amount": amount_minor},
            )
            self.repo.commit()
        except SQLAlchemyError as e:
            # pieniadze juz zwrocone w bramce - to musi byc widoczne w logach
            self.repo.rollback()
            logger.error(f"Refund {refund.get('id')} done at gateway but not recorded for payment {payment_id}: {e}")
            return fail(ErrorKind.TRANSACTION_FAILURE, "Refund issued but could not be recorded")

        logger.info(f"Refund {refund.get('id')} processed for payment {payment_id}")
        return Ok({
            "payment_id": payment.id,
            "refund_id": str(refund.get("id", "")),
            "amount": int(refund.get("amount", amount_minor)),
            "status": payment.status,
        })

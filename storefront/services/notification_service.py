# storefront/services/notification_service.py
from storefront.celery_worker import celery_app
from storefront.data.models.notification import NotificationModel
from storefront.data.models.order import OrderModel
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def build_confirmation(order: OrderModel) -> NotificationModel:
    """Rekord powiadomienia zapisywany w transakcji webhooka."""
    return NotificationModel(
        user_id=order.user_id,
        order_id=order.id,
        type="ORDER_CONFIRMED",
        title="Order Confirmed",
        message=f"Your order #{order.order_number} has been confirmed and will be processed soon.",
        is_read=False,
    )


class NotificationService:
    """
    Serwis do wysyłania powiadomień.
    Używa Celery do asynchronicznego przetwarzania, wywolywany dopiero po commicie.
    """

    @staticmethod
    def send_order_confirmation(order: OrderModel):
        send_order_confirmation_task.delay(order.user_id, order.id, order.order_number)


@celery_app.task(name="storefront.services.notification_service.send_order_confirmation_task")
def send_order_confirmation_task(user_id: int, order_id: int, order_number: str):
    """
    Celery task - wysyłka maila z potwierdzeniem zamowienia.
    Doręczanie maili jest zewnętrzne, tutaj tylko log.
    """
    logger.info(f"[NOTIFICATION] User {user_id}: order {order_number} ({order_id}) confirmed")

    return {"user_id": user_id, "order_id": order_id, "status": "sent"}

# storefront/services/notification_service.py
from storefront.celery_worker import celery_app
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Order notifications.
    Delivery runs in Celery so the request that confirmed the payment never waits on it.
    """

    @staticmethod
    def send_order_confirmation(customer_id: int, order_id: int, order_no: str):
        send_order_confirmation_task.delay(customer_id, order_id, order_no)


@celery_app.task(name="storefront.services.notification_service.send_order_confirmation_task")
def send_order_confirmation_task(customer_id: int, order_id: int, order_no: str):
    """Only logs; email delivery lives outside this service."""
    logger.info(f"[NOTIFICATION] Customer {customer_id}: order {order_no} ({order_id}) confirmed")
    return {"customer_id": customer_id, "order_id": order_id, "status": "sent"}

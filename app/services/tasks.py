import logging
from celery import Celery
from app.core.config import settings

logger = logging.getLogger(__name__)

celery_app = Celery(
    "worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_BACKEND,
)
celery_app.conf.task_routes = {"app.services.tasks.dispatch_booking_event": {"queue": "events"}}

PRICE_CHANGED = "price_changed"
BOOKING_CANCELLED = "booking_cancelled"


def build_event(event: str, booking_id: int, **fields) -> dict:
    return {"event": event, "booking_id": booking_id, **fields}


@celery_app.task(bind=True, max_retries=3)
def dispatch_booking_event(self, payload: dict):
    import asyncio
    from app.services.webhook import send_webhook

    delivered = asyncio.run(send_webhook(payload))
    if not delivered and settings.WEBHOOK_URL:
        retry_kwargs = {"countdown": 2 ** self.request.retries}
        raise self.retry(exc=RuntimeError(f"Webhook delivery failed for {payload.get('event')}"), **retry_kwargs)
    return delivered


def enqueue_booking_event(event: str, booking_id: int, **fields) -> None:
    """Queue a booking event for webhook delivery; a no-op without WEBHOOK_URL."""
    if not settings.WEBHOOK_URL:
        return
    payload = build_event(event, booking_id, **fields)
    try:
        dispatch_booking_event.delay(payload)
    except Exception as e:
        # the admin action is already committed; delivery is best effort
        logger.warning(f"Could not enqueue {event} event for booking {booking_id}: {e}")

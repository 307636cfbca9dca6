import httpx
import asyncio
import logging
from app.core.config import settings
from app.core.metrics import webhook_deliveries

logger = logging.getLogger(__name__)


async def send_webhook(
    payload: dict,
    retries: int | None = None,
    url: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    backoff: float = 1.0,
) -> bool:
    url = url or settings.WEBHOOK_URL
    if not url:
        logger.debug(f"No webhook URL configured, dropping {payload.get('event')} event")
        webhook_deliveries.labels(status="skipped").inc()
        return False

    if retries is None:
        retries = settings.WEBHOOK_RETRIES

    booking_id = payload.get("booking_id")

    for attempt in range(1, retries + 1):
        try:
            async with httpx.AsyncClient(timeout=settings.WEBHOOK_TIMEOUT, transport=transport) as client:
                response = await client.post(url, json=payload)

                if 200 <= response.status_code < 300:
                    logger.info(f"Webhook delivery succeeded for booking {booking_id}")
                    webhook_deliveries.labels(status="delivered").inc()
                    return True
                else:
                    logger.warning(
                        f"Webhook delivery failed (attempt {attempt}/{retries}): "
                        f"Status {response.status_code} for booking {booking_id}"
                    )
        except httpx.TimeoutException:
            logger.warning(
                f"Webhook timeout (attempt {attempt}/{retries}) for booking {booking_id}"
            )
        except httpx.HTTPError as e:
            logger.warning(
                f"Webhook delivery error (attempt {attempt}/{retries}): {e} "
                f"for booking {booking_id}"
            )

        if attempt < retries:
            await asyncio.sleep(backoff)
            backoff *= 2.0

    logger.error(f"Webhook delivery failed after {retries} attempts for booking {booking_id}")
    webhook_deliveries.labels(status="failed").inc()
    return False

import logging
from typing import Optional

import httpx

from diagnosis.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


async def notify_completion(
    email: str,
    name: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bool:
    """
    Tell the automation endpoint that an account reached 100%.

    Fire-and-forget: failures are logged and never raised or retried.

    Returns:
        bool: whether the endpoint accepted the call
    """
    if not settings.COMPLETION_WEBHOOK_URL:
        logger.warning("COMPLETION_WEBHOOK_URL not set, skipping completion notice for %s", email)
        return False

    try:
        async with httpx.AsyncClient(timeout=settings.WEBHOOK_TIMEOUT_SECONDS, transport=transport) as client:
            response = await client.post(settings.COMPLETION_WEBHOOK_URL, json={"email": email, "name": name})
            response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error("Completion webhook failed for %s: %s", email, e)
        return False

    logger.info("Completion webhook sent for %s", email)
    return True

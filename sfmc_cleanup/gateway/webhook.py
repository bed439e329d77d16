"""Completion webhook delivery."""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_WEBHOOK_TIMEOUT = 10.0


def send_webhook(url: str, payload: dict[str, Any], timeout: float = DEFAULT_WEBHOOK_TIMEOUT) -> bool:
    """POST a run summary to a webhook URL.

    Delivery problems never affect the run outcome, so they are logged and
    reported through the return value only.

    Args:
        url: Webhook endpoint
        payload: JSON-serializable summary
        timeout: Request timeout in seconds

    Returns:
        True if the endpoint accepted the payload
    """
    if not url:
        return False

    try:
        response = httpx.post(url, json=payload, timeout=timeout)
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning(f"Webhook notification failed: {e}")
        return False

    logger.debug("Webhook notification sent successfully")
    return True

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from focus_companion.core.config import settings
from focus_companion.fetch.base import FetchPolicy, UpstreamUnavailable
from focus_companion.fetch.gateway import fan_out, fetch_with_retry

logger = logging.getLogger(__name__)

def advice_policy() -> FetchPolicy:
    return FetchPolicy(
        max_attempts=settings.ADVICE_MAX_ATTEMPTS,
        timeout_ms=settings.ADVICE_TIMEOUT_MS,
        backoff_base_ms=settings.FETCH_BACKOFF_BASE_MS,
    )

def _to_advice(slip: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize one upstream slip; raises ValueError when it carries no usable text."""
    text = slip.get("advice")
    if not isinstance(text, str) or not text.strip():
        raise ValueError(f"slip has no advice text: {slip!r}")

    # id 0 is a real id; only a missing one is replaced
    advice_id = slip.get("id")
    if advice_id is None:
        advice_id = slip.get("slip_id")
    if advice_id is None:
        advice_id = uuid.uuid4().hex[:7]
    if not isinstance(advice_id, (int, str)):
        raise ValueError(f"slip id has unexpected type: {advice_id!r}")
    return {"id": advice_id, "advice": text}

def parse_random_slip(response: httpx.Response) -> Optional[Dict[str, Any]]:
    slip = response.json().get("slip")
    if not slip:
        return None
    return _to_advice(slip)

async def random_advice(
    count: int,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep=asyncio.sleep,
) -> List[Dict[str, Any]]:
    """Fetch up to ADVICE_MAX_COUNT random advice slips concurrently."""
    return await fan_out(
        f"{settings.ADVICE_API_URL}/advice",
        count,
        settings.ADVICE_MAX_COUNT,
        advice_policy(),
        parse_random_slip,
        transport=transport,
        sleep=sleep,
    )

async def search_advice(
    query: str,
    count: int,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep=asyncio.sleep,
) -> List[Dict[str, Any]]:
    """Search advice slips; an empty list means the upstream found nothing."""
    url = f"{settings.ADVICE_API_URL}/advice/search/{quote(query, safe='')}"
    response = await fetch_with_retry(url, advice_policy(), transport=transport, sleep=sleep)

    try:
        slips = response.json().get("slips") or []
    except (ValueError, AttributeError) as e:
        logger.error("Unusable advice search payload for %r: %s", query, e)
        raise UpstreamUnavailable(f"Invalid advice search payload: {e}") from e

    advices = []
    for slip in slips if isinstance(slips, list) else []:
        try:
            advices.append(_to_advice(slip))
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning("Skipping advice slip for %r: %s", query, e)
    limit = max(0, min(count, settings.ADVICE_MAX_COUNT))
    return advices[:limit]

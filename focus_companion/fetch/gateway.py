import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Sequence

import httpx

from focus_companion.fetch.base import (
    AttemptOutcome,
    BatchResult,
    FetchAttempt,
    FetchExhausted,
    FetchPolicy,
    UpstreamUnavailable,
)

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[Any]]
SlotParser = Callable[[httpx.Response], Optional[Any]]

_HEADERS = {"Accept": "application/json"}

async def fetch_once(
    url: str,
    timeout_ms: int,
    *,
    index: int = 0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FetchAttempt:
    """
    Issue a single GET that is guaranteed to finish within timeout_ms.

    Never raises for timeouts, transport errors or non-2xx statuses; the
    outcome is recorded on the returned attempt instead.
    """
    if not url:
        raise ValueError("url must not be empty")
    if timeout_ms <= 0:
        raise ValueError("timeout_ms must be positive")

    timeout_s = timeout_ms / 1000
    attempt = FetchAttempt(url=url, index=index, deadline=time.monotonic() + timeout_s)

    try:
        async with httpx.AsyncClient(
            timeout=timeout_s,
            headers=_HEADERS,
            follow_redirects=True,
            transport=transport,
        ) as client:
            response = await asyncio.wait_for(client.get(url), timeout=timeout_s)
    except (asyncio.TimeoutError, httpx.TimeoutException):
        attempt.resolve(AttemptOutcome.TIMEOUT, error=f"no response within {timeout_ms}ms")
        return attempt
    except httpx.HTTPError as e:
        attempt.resolve(AttemptOutcome.NETWORK_FAILURE, error=str(e) or type(e).__name__)
        return attempt

    if response.is_success:
        attempt.resolve(AttemptOutcome.SUCCESS, response=response)
    else:
        attempt.resolve(AttemptOutcome.REJECTED, response=response, error=f"HTTP {response.status_code}")
    return attempt

async def fetch_with_retry(
    url: str,
    policy: FetchPolicy,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep: Sleeper = asyncio.sleep,
) -> httpx.Response:
    """
    Run fetch_once up to policy.max_attempts times with linear backoff.

    Returns the first successful response or raises FetchExhausted.
    """
    attempts: list[FetchAttempt] = []
    for i in range(policy.max_attempts):
        attempt = await fetch_once(url, policy.timeout_ms, index=i, transport=transport)
        attempts.append(attempt)
        if attempt.ok:
            return attempt.response

        if i < policy.max_attempts - 1:
            delay = policy.backoff_seconds(i)
            logger.warning(
                "Attempt %d/%d for %s failed (%s: %s), retrying in %.1fs",
                i + 1, policy.max_attempts, url, attempt.outcome.value, attempt.error, delay,
            )
            await sleep(delay)

    raise FetchExhausted(url, attempts)

async def gather_slots(
    urls: Sequence[str],
    policy: FetchPolicy,
    parse: SlotParser,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep: Sleeper = asyncio.sleep,
) -> BatchResult:
    """
    Run one independent retried fetch per URL concurrently.

    Slot i of the result belongs to urls[i]; a slot that exhausts its retries
    or returns an unusable payload holds None.
    """

    async def run_slot(slot: int, url: str):
        try:
            response = await fetch_with_retry(url, policy, transport=transport, sleep=sleep)
            return parse(response)
        except FetchExhausted as e:
            logger.error("Slot %d: %s", slot, e)
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            logger.error("Slot %d: unusable payload from %s: %s", slot, url, e)
        return None

    slots = await asyncio.gather(*(run_slot(i, url) for i, url in enumerate(urls)))
    return BatchResult(slots=list(slots))

async def fan_out(
    url: str,
    count: int,
    cap: int,
    policy: FetchPolicy,
    parse: SlotParser,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep: Sleeper = asyncio.sleep,
) -> list:
    """
    Fetch min(count, cap) items concurrently from a randomized endpoint.

    Partial success is success: only an empty result raises UpstreamUnavailable.
    """
    width = max(0, min(count, cap))
    batch = await gather_slots([url] * width, policy, parse, transport=transport, sleep=sleep)
    items = batch.items

    if batch.failed:
        logger.info("Fan-out to %s: %d/%d slots succeeded", url, len(items), width)
    if not items:
        raise UpstreamUnavailable(f"No results from {url} ({width} requested)")
    return items

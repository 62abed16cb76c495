import asyncio
import time

import httpx
import pytest

from focus_companion.fetch.base import (
    AttemptOutcome,
    BatchResult,
    FetchAttempt,
    FetchExhausted,
    FetchPolicy,
    UpstreamUnavailable,
)
from focus_companion.fetch.gateway import fan_out, fetch_once, fetch_with_retry, gather_slots

URL = "https://upstream.test/item"

def always(status, payload=None):
    def handler(request):
        return httpx.Response(status, json=payload if payload is not None else {})
    return handler

def fail_first(n, payload_fn=lambda call: {"call": call}):
    """Fail the first n requests with 503, then succeed."""
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        if calls["n"] <= n:
            return httpx.Response(503)
        return httpx.Response(200, json=payload_fn(calls["n"]))
    return handler

def parse_json(response):
    return response.json()

class TestFetchPolicy:
    def test_defaults(self):
        policy = FetchPolicy()
        assert policy.max_attempts == 3
        assert policy.backoff_base_ms == 1000

    def test_backoff_is_linear(self):
        policy = FetchPolicy(backoff_base_ms=1000)
        assert [policy.backoff_seconds(i) for i in range(3)] == [1.0, 2.0, 3.0]

    @pytest.mark.parametrize("kwargs", [
        {"max_attempts": 0},
        {"timeout_ms": 0},
        {"backoff_base_ms": -1},
    ])
    def test_invalid_policy_rejected(self, kwargs):
        with pytest.raises(ValueError):
            FetchPolicy(**kwargs)

class TestFetchAttempt:
    def test_outcome_decided_once(self):
        attempt = FetchAttempt(url=URL, index=0, deadline=0.0)
        attempt.resolve(AttemptOutcome.TIMEOUT, error="slow")
        with pytest.raises(RuntimeError):
            attempt.resolve(AttemptOutcome.SUCCESS)
        assert attempt.outcome is AttemptOutcome.TIMEOUT

    def test_batch_result_filters_failed_slots(self):
        batch = BatchResult(slots=["a", None, "c", None])
        assert batch.items == ["a", "c"]
        assert batch.failed == 2

class TestFetchOnce:
    def test_success(self, make_transport):
        transport = make_transport(always(200, {"ok": True}))
        attempt = asyncio.run(fetch_once(URL, 1000, transport=transport))

        assert attempt.ok
        assert attempt.response.json() == {"ok": True}
        assert transport.requests[0].headers["accept"] == "application/json"

    def test_non_success_status_is_returned_not_raised(self, make_transport):
        attempt = asyncio.run(fetch_once(URL, 1000, transport=make_transport(always(404))))

        assert attempt.outcome is AttemptOutcome.REJECTED
        assert attempt.response.status_code == 404
        assert "404" in attempt.error

    def test_network_error(self, make_transport):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        attempt = asyncio.run(fetch_once(URL, 1000, transport=make_transport(handler)))

        assert attempt.outcome is AttemptOutcome.NETWORK_FAILURE
        assert attempt.response is None

    def test_never_responding_upstream_times_out(self, make_transport):
        async def handler(request):
            await asyncio.sleep(10)
            return httpx.Response(200)

        started = time.monotonic()
        attempt = asyncio.run(fetch_once(URL, 50, transport=make_transport(handler)))
        elapsed = time.monotonic() - started

        assert attempt.outcome is AttemptOutcome.TIMEOUT
        assert elapsed < 2.0

    def test_empty_url_rejected(self):
        with pytest.raises(ValueError):
            asyncio.run(fetch_once("", 1000))

class TestFetchWithRetry:
    @pytest.mark.parametrize("max_attempts", [1, 2, 4])
    def test_always_failing_target_attempted_exactly_n_times(self, max_attempts, make_transport, sleep_recorder):
        transport = make_transport(always(500))
        policy = FetchPolicy(max_attempts=max_attempts, timeout_ms=1000, backoff_base_ms=1000)

        with pytest.raises(FetchExhausted) as exc_info:
            asyncio.run(fetch_with_retry(URL, policy, transport=transport, sleep=sleep_recorder))

        attempts = exc_info.value.attempts
        assert len(transport.requests) == max_attempts
        assert [a.index for a in attempts] == list(range(max_attempts))
        assert len({id(a) for a in attempts}) == max_attempts
        deadlines = [a.deadline for a in attempts]
        assert deadlines == sorted(deadlines)
        assert all(a.outcome is AttemptOutcome.REJECTED for a in attempts)

    def test_backoff_delays_grow_linearly(self, make_transport, sleep_recorder):
        policy = FetchPolicy(max_attempts=4, timeout_ms=1000, backoff_base_ms=1000)

        with pytest.raises(FetchExhausted):
            asyncio.run(fetch_with_retry(URL, policy, transport=make_transport(always(503)), sleep=sleep_recorder))

        # no pause after the final attempt
        assert sleep_recorder.delays == [1.0, 2.0, 3.0]

    def test_succeeds_on_third_attempt(self, make_transport, sleep_recorder):
        transport = make_transport(fail_first(2))
        policy = FetchPolicy(max_attempts=3, timeout_ms=1000, backoff_base_ms=1000)

        response = asyncio.run(fetch_with_retry(URL, policy, transport=transport, sleep=sleep_recorder))

        assert response.json() == {"call": 3}
        assert len(transport.requests) == 3
        assert sum(sleep_recorder.delays) >= 1.0 + 2.0

    def test_real_backoff_elapsed_time(self, make_transport):
        policy = FetchPolicy(max_attempts=3, timeout_ms=1000, backoff_base_ms=20)

        started = time.monotonic()
        response = asyncio.run(fetch_with_retry(URL, policy, transport=make_transport(fail_first(2))))
        elapsed = time.monotonic() - started

        assert response.status_code == 200
        assert elapsed >= 0.020 + 0.040

    def test_first_try_success_has_no_backoff(self, make_transport, sleep_recorder):
        transport = make_transport(always(200, {"ok": 1}))

        asyncio.run(fetch_with_retry(URL, FetchPolicy(), transport=transport, sleep=sleep_recorder))

        assert len(transport.requests) == 1
        assert sleep_recorder.delays == []

    def test_timeouts_are_retried(self, make_transport, sleep_recorder):
        calls = {"n": 0}

        async def handler(request):
            calls["n"] += 1
            if calls["n"] == 1:
                await asyncio.sleep(10)
            return httpx.Response(200, json={"call": calls["n"]})

        policy = FetchPolicy(max_attempts=3, timeout_ms=50, backoff_base_ms=1000)
        response = asyncio.run(fetch_with_retry(URL, policy, transport=make_transport(handler), sleep=sleep_recorder))

        assert response.json() == {"call": 2}
        assert sleep_recorder.delays == [1.0]

class TestFanOut:
    def test_count_clamped_to_cap(self, make_transport, sleep_recorder):
        transport = make_transport(always(200, {"v": 1}))

        items = asyncio.run(fan_out(URL, 999, 5, FetchPolicy(), parse_json, transport=transport, sleep=sleep_recorder))

        assert len(items) == 5
        assert len(transport.requests) == 5

    def test_all_succeed_first_try(self, make_transport, sleep_recorder):
        transport = make_transport(always(200, {"v": 1}))

        items = asyncio.run(fan_out(URL, 3, 5, FetchPolicy(), parse_json, transport=transport, sleep=sleep_recorder))

        assert len(items) == 3
        assert len(transport.requests) == 3
        assert sleep_recorder.delays == []

    def test_partial_failure_returns_partial_results(self, make_transport, sleep_recorder):
        served = {"n": 0}

        def handler(request):
            served["n"] += 1
            if served["n"] <= 2:
                return httpx.Response(200, json={"slot": served["n"]})
            return httpx.Response(500)

        policy = FetchPolicy(max_attempts=3, timeout_ms=1000, backoff_base_ms=0)
        items = asyncio.run(fan_out(URL, 5, 5, policy, parse_json, transport=make_transport(handler), sleep=sleep_recorder))

        assert len(items) == 2
        # 2 successes + 3 slots x 3 attempts
        assert served["n"] == 2 + 3 * 3

    def test_total_failure_raises_upstream_unavailable(self, make_transport, sleep_recorder):
        transport = make_transport(always(502))
        policy = FetchPolicy(max_attempts=2, timeout_ms=1000, backoff_base_ms=0)

        with pytest.raises(UpstreamUnavailable):
            asyncio.run(fan_out(URL, 3, 5, policy, parse_json, transport=transport, sleep=sleep_recorder))

        assert len(transport.requests) == 6

    def test_zero_count_is_total_failure(self, make_transport):
        transport = make_transport(always(200))

        with pytest.raises(UpstreamUnavailable):
            asyncio.run(fan_out(URL, 0, 5, FetchPolicy(), parse_json, transport=transport))

        assert transport.requests == []

    def test_unusable_slot_payload_is_dropped(self, make_transport, sleep_recorder):
        def handler(request):
            return httpx.Response(200, content=b"not json")

        batch = asyncio.run(gather_slots([URL, URL], FetchPolicy(), parse_json,
                                         transport=make_transport(handler), sleep=sleep_recorder))

        assert batch.slots == [None, None]

    def test_slots_run_concurrently(self, make_transport):
        async def slow(request):
            await asyncio.sleep(0.2)
            return httpx.Response(200, json={"v": 1})

        started = time.monotonic()
        items = asyncio.run(fan_out(URL, 5, 5, FetchPolicy(), parse_json, transport=make_transport(slow)))
        elapsed = time.monotonic() - started

        assert len(items) == 5
        # sequential slots would need at least 5 x 0.2s
        assert elapsed < 0.6

    def test_slots_keep_request_order(self, make_transport, sleep_recorder):
        async def handler(request):
            slot = int(request.url.params["slot"])
            # later slots answer first
            await asyncio.sleep(0.01 * (5 - slot))
            if slot == 2:
                return httpx.Response(500)
            return httpx.Response(200, json={"slot": slot})

        urls = [f"{URL}?slot={i}" for i in range(5)]
        policy = FetchPolicy(max_attempts=3, timeout_ms=1000, backoff_base_ms=0)
        batch = asyncio.run(gather_slots(urls, policy, parse_json,
                                         transport=make_transport(handler), sleep=sleep_recorder))

        assert batch.slots == [{"slot": 0}, {"slot": 1}, None, {"slot": 3}, {"slot": 4}]
        assert batch.items == [{"slot": 0}, {"slot": 1}, {"slot": 3}, {"slot": 4}]
        assert batch.failed == 1

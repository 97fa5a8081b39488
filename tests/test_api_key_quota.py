"""Tests for the per-API-key daily quota stage."""

from __future__ import annotations

import asyncio
from datetime import date
from unittest.mock import Mock

import pytest

from app.adapters.counter_store.in_memory import InMemoryCounterStore
from app.pipeline.context import RequestContext
from app.pipeline.stages.api_key_quota import (
    ApiKeyQuotaStage,
    build_quota_key,
    seconds_until_next_utc_midnight,
    utc_day,
)
from helpers import NOON, raiser, responder, run

KEY = "test-api-key-123"
TODAY_KEY = build_quota_key(KEY, date(2024, 3, 9))


@pytest.fixture
def stage(store: InMemoryCounterStore, clock: Mock) -> ApiKeyQuotaStage:
    return ApiKeyQuotaStage(store, daily_limit=3, clock=clock)


def keyed(make_context, api_key: str = KEY) -> RequestContext:
    return make_context(headers={"X-API-Key": api_key})


class TestQuotaKey:
    def test_key_includes_api_key_and_utc_day(self) -> None:
        assert TODAY_KEY == "api-key-daily-rate-limit-test-api-key-123-20240309"

    def test_distinct_days_and_keys_never_collide(self) -> None:
        keys = {
            build_quota_key("a", date(2024, 3, 9)),
            build_quota_key("a", date(2024, 3, 10)),
            build_quota_key("b", date(2024, 3, 9)),
            build_quota_key("a-20240309", date(2024, 3, 9)),
        }
        assert len(keys) == 4

    def test_ttl_runs_to_next_utc_midnight(self) -> None:
        assert utc_day(NOON) == date(2024, 3, 9)
        assert seconds_until_next_utc_midnight(NOON) == 12 * 3600
        assert seconds_until_next_utc_midnight(NOON - 12 * 3600) == 24 * 3600


class TestMissingKey:
    @pytest.mark.parametrize("headers", [{}, {"X-API-Key": ""}])
    def test_missing_or_empty_key_returns_401(
        self, stage, store, make_context, headers
    ) -> None:
        endpoint = responder()
        ctx = make_context(headers=headers)

        run(stage(ctx, endpoint))

        assert ctx.status_code == 401
        assert bytes(ctx.body) == b"API Key is missing."
        assert endpoint.calls == []
        assert store.stats()["entries"] == 0

    def test_header_lookup_is_case_insensitive(self, stage, store, make_context) -> None:
        ctx = make_context(headers={"x-api-key": KEY})

        run(stage(ctx, responder()))

        assert ctx.status_code == 200
        assert store.peek(TODAY_KEY) == 1


class TestConsumption:
    def test_success_consumes_one_unit(self, stage, store, make_context) -> None:
        ctx = keyed(make_context)

        run(stage(ctx, responder(200)))

        assert store.peek(TODAY_KEY) == 1
        assert ctx.response_headers["X-RateLimit-Remaining"] == "2"

    def test_any_2xx_consumes(self, stage, store, make_context) -> None:
        run(stage(keyed(make_context), responder(204, "")))
        run(stage(keyed(make_context), responder(299, "")))

        assert store.peek(TODAY_KEY) == 2

    @pytest.mark.parametrize("status_code", [199, 300, 400, 404, 500])
    def test_non_2xx_does_not_consume(self, stage, store, make_context, status_code) -> None:
        ctx = keyed(make_context)

        run(stage(ctx, responder(status_code)))

        assert store.peek(TODAY_KEY) == 0
        assert "X-RateLimit-Remaining" not in ctx.response_headers

    def test_raised_failure_does_not_consume(self, stage, store, make_context) -> None:
        with pytest.raises(RuntimeError):
            run(stage(keyed(make_context), raiser(RuntimeError("boom"))))

        assert store.peek(TODAY_KEY) == 0

    def test_last_unit_then_rejection(self, stage, store, make_context) -> None:
        store.set(TODAY_KEY, 2, ttl_seconds=3600)

        first = keyed(make_context)
        run(stage(first, responder()))
        assert first.status_code == 200
        assert first.response_headers["X-RateLimit-Remaining"] == "0"

        endpoint = responder()
        second = keyed(make_context)
        run(stage(second, endpoint))

        assert second.status_code == 429
        assert bytes(second.body) == b"Daily API rate limit exceeded."
        assert endpoint.calls == []
        assert store.peek(TODAY_KEY) == 3

    def test_keys_have_separate_budgets(self, stage, store, make_context) -> None:
        store.set(TODAY_KEY, 3, ttl_seconds=3600)

        other = keyed(make_context, "another-key")
        run(stage(other, responder()))

        assert other.status_code == 200

    def test_quota_resets_next_utc_day(self, stage, store, clock, make_context) -> None:
        for _ in range(3):
            run(stage(keyed(make_context), responder()))
        blocked = keyed(make_context)
        run(stage(blocked, responder()))
        assert blocked.status_code == 429

        clock.return_value = NOON + 12 * 3600 + 1
        fresh = keyed(make_context)
        run(stage(fresh, responder()))

        assert fresh.status_code == 200
        assert fresh.response_headers["X-RateLimit-Remaining"] == "2"

    def test_zero_limit_rejects_everything(self, store, clock, make_context) -> None:
        stage = ApiKeyQuotaStage(store, daily_limit=0, clock=clock)
        ctx = keyed(make_context)

        run(stage(ctx, responder()))

        assert ctx.status_code == 429

    def test_exempt_path_needs_no_key(self, store, clock, make_context) -> None:
        stage = ApiKeyQuotaStage(
            store, daily_limit=1, clock=clock, exempt_paths=frozenset({"/health"})
        )
        ctx = make_context(path="/health")

        run(stage(ctx, responder()))

        assert ctx.status_code == 200
        assert store.stats()["entries"] == 0

    def test_negative_limit_is_rejected(self, store) -> None:
        with pytest.raises(ValueError):
            ApiKeyQuotaStage(store, daily_limit=-1)


class TestConcurrency:
    @staticmethod
    async def _burst(stage: ApiKeyQuotaStage, n: int) -> list[RequestContext]:
        async def slow_ok(ctx: RequestContext) -> None:
            await asyncio.sleep(0.01)
            ctx.write(200, "ok")

        contexts = [
            RequestContext.create("GET", "/v1/forecast", {"X-API-Key": "burst"})
            for _ in range(n)
        ]
        await asyncio.gather(*(stage(ctx, slow_ok) for ctx in contexts))
        return contexts

    def test_atomic_increment_counts_every_success(self, store, clock) -> None:
        n = 10
        stage = ApiKeyQuotaStage(store, daily_limit=n, clock=clock)

        contexts = run(self._burst(stage, n))

        assert all(ctx.status_code == 200 for ctx in contexts)
        assert store.peek(build_quota_key("burst", date(2024, 3, 9))) == n

    def test_reference_mode_loses_concurrent_updates(self, store, clock) -> None:
        n = 10
        stage = ApiKeyQuotaStage(store, daily_limit=n, clock=clock, atomic_increment=False)

        contexts = run(self._burst(stage, n))

        # Every request read count 0 before any write landed.
        assert all(ctx.status_code == 200 for ctx in contexts)
        assert store.peek(build_quota_key("burst", date(2024, 3, 9))) == 1

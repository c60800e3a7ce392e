"""
Unit tests for SlidingWindowRateLimiter.

A fake clock whose ``sleep`` advances time keeps every test instantaneous
and deterministic.
"""

import threading

import pytest

from notion_vault.config import RateLimitConfig
from notion_vault.utils.rate_limiter import SlidingWindowRateLimiter
from tests.fixtures.sample_data import TEST_APP, TEST_WORKSPACE


def _record(limiter: SlidingWindowRateLimiter, count: int, app=TEST_APP, workspace=TEST_WORKSPACE):
    for _ in range(count):
        limiter.record_request(app, workspace)


class TestWaitIfNecessary:
    def test_no_wait_below_limit(self, rate_limiter: SlidingWindowRateLimiter, clock):
        _record(rate_limiter, 149)

        assert rate_limiter.wait_if_necessary(TEST_APP, TEST_WORKSPACE) == 0.0
        assert clock.sleeps == []

    def test_waits_at_limit(self, rate_limiter: SlidingWindowRateLimiter, clock):
        _record(rate_limiter, 150)

        waited = rate_limiter.wait_if_necessary(TEST_APP, TEST_WORKSPACE)

        assert waited > 0
        assert waited == pytest.approx(60.1)
        assert clock.sleeps == [pytest.approx(60.1)]

    def test_wait_ends_when_oldest_request_leaves_window(
        self, rate_limiter: SlidingWindowRateLimiter, clock
    ):
        rate_limiter.record_request(TEST_APP, TEST_WORKSPACE)
        clock.advance(10)
        _record(rate_limiter, 149)

        waited = rate_limiter.wait_if_necessary(TEST_APP, TEST_WORKSPACE)

        assert waited == pytest.approx(50.1)
        assert rate_limiter.get_current_request_count(TEST_APP, TEST_WORKSPACE) == 149

    def test_keys_are_independent(self, rate_limiter: SlidingWindowRateLimiter, clock):
        _record(rate_limiter, 150)

        assert rate_limiter.wait_if_necessary(TEST_APP, "other-workspace") == 0.0
        assert rate_limiter.wait_if_necessary("other-app", TEST_WORKSPACE) == 0.0
        assert clock.sleeps == []

    def test_reservation_counts_against_limit(self, clock):
        limiter = SlidingWindowRateLimiter(
            RateLimitConfig(requests_per_minute=2), clock=clock, sleep=clock.sleep
        )
        limiter.wait_if_necessary(TEST_APP, TEST_WORKSPACE)
        limiter.wait_if_necessary(TEST_APP, TEST_WORKSPACE)

        waited = limiter.wait_if_necessary(TEST_APP, TEST_WORKSPACE)

        assert waited == pytest.approx(60.1)

    def test_release_returns_slot(self, clock):
        limiter = SlidingWindowRateLimiter(
            RateLimitConfig(requests_per_minute=2), clock=clock, sleep=clock.sleep
        )
        limiter.wait_if_necessary(TEST_APP, TEST_WORKSPACE)
        limiter.wait_if_necessary(TEST_APP, TEST_WORKSPACE)
        limiter.release(TEST_APP, TEST_WORKSPACE)

        assert limiter.wait_if_necessary(TEST_APP, TEST_WORKSPACE) == 0.0
        assert limiter.get_current_request_count(TEST_APP, TEST_WORKSPACE) == 0

    def test_record_request_consumes_reservation(
        self, rate_limiter: SlidingWindowRateLimiter
    ):
        rate_limiter.wait_if_necessary(TEST_APP, TEST_WORKSPACE)
        rate_limiter.record_request(TEST_APP, TEST_WORKSPACE)

        stats = rate_limiter.stats()[f"{TEST_APP}:{TEST_WORKSPACE}"]
        assert stats["requests_in_window"] == 1
        assert stats["pending"] == 0

    def test_release_without_state_is_noop(self, rate_limiter: SlidingWindowRateLimiter):
        rate_limiter.release(TEST_APP, TEST_WORKSPACE)
        assert rate_limiter.stats() == {}

    def test_concurrent_callers_never_exceed_limit(self, clock):
        """Only ``limit`` callers are admitted; the rest would have to sleep."""

        class WouldBlock(Exception):
            pass

        def refuse_to_sleep(seconds):
            raise WouldBlock(seconds)

        limiter = SlidingWindowRateLimiter(
            RateLimitConfig(requests_per_minute=5), clock=clock, sleep=refuse_to_sleep
        )
        barrier = threading.Barrier(20)
        admitted = []
        blocked = []

        def worker():
            barrier.wait()
            try:
                limiter.wait_if_necessary(TEST_APP, TEST_WORKSPACE)
                admitted.append(1)
            except WouldBlock:
                blocked.append(1)

        threads = [threading.Thread(target=worker) for _ in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(admitted) == 5
        assert len(blocked) == 15


class TestIntrospection:
    def test_window_expiry(self, rate_limiter: SlidingWindowRateLimiter, clock):
        _record(rate_limiter, 3)

        clock.advance(59)
        assert rate_limiter.get_current_request_count(TEST_APP, TEST_WORKSPACE) == 3

        clock.advance(1)
        assert rate_limiter.get_current_request_count(TEST_APP, TEST_WORKSPACE) == 0

    def test_usage_percent(self, clock):
        limiter = SlidingWindowRateLimiter(
            RateLimitConfig(requests_per_minute=60), clock=clock, sleep=clock.sleep
        )
        _record(limiter, 30)

        percent = limiter.get_limit_usage_percent(TEST_APP, TEST_WORKSPACE)

        assert 49 <= percent <= 51

    def test_unknown_key_has_zero_usage(self, rate_limiter: SlidingWindowRateLimiter):
        assert rate_limiter.get_current_request_count("nobody", "nowhere") == 0
        assert rate_limiter.get_limit_usage_percent("nobody", "nowhere") == 0

    def test_reset_clears_one_key(self, rate_limiter: SlidingWindowRateLimiter):
        _record(rate_limiter, 5)
        _record(rate_limiter, 5, workspace="ws-other")

        rate_limiter.reset(TEST_APP, TEST_WORKSPACE)

        assert rate_limiter.get_current_request_count(TEST_APP, TEST_WORKSPACE) == 0
        assert rate_limiter.get_current_request_count(TEST_APP, "ws-other") == 5

    def test_clear_all(self, rate_limiter: SlidingWindowRateLimiter):
        _record(rate_limiter, 5)
        _record(rate_limiter, 5, app="other-app")

        rate_limiter.clear_all()

        assert rate_limiter.stats() == {}

    def test_stats_keyed_by_app_and_workspace(self, rate_limiter: SlidingWindowRateLimiter):
        _record(rate_limiter, 15)

        stats = rate_limiter.stats()

        assert list(stats) == [f"{TEST_APP}:{TEST_WORKSPACE}"]
        assert stats[f"{TEST_APP}:{TEST_WORKSPACE}"]["requests_in_window"] == 15
        assert stats[f"{TEST_APP}:{TEST_WORKSPACE}"]["limit_percent"] == pytest.approx(10.0)

    def test_stats_omit_idle_keys(self, rate_limiter: SlidingWindowRateLimiter, clock):
        _record(rate_limiter, 1)
        clock.advance(61)

        assert rate_limiter.stats() == {}

    def test_limit_comes_from_config(self, app_config):
        limiter = SlidingWindowRateLimiter()
        assert limiter.limit == app_config.rate_limit.requests_per_minute == 150

    def test_colon_in_names_does_not_merge_windows(self, rate_limiter: SlidingWindowRateLimiter):
        _record(rate_limiter, 4, app="a", workspace="b:c")

        assert rate_limiter.get_current_request_count("a", "b:c") == 4
        assert rate_limiter.get_current_request_count("a:b", "c") == 0

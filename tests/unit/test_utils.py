"""
Unit tests for utilities: per-user locks, time helpers and logging setup.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from loguru import logger

from tenant_ai.utils import UserLocks, as_utc, configure_logging, days_between, hours_between


class TestUserLocks:

    @pytest.mark.asyncio
    async def test_same_user_runs_in_arrival_order(self):
        locks = UserLocks()
        order = []

        async def job(name, delay):
            async with locks.hold("user-1"):
                order.append(f"{name}-start")
                await asyncio.sleep(delay)
                order.append(f"{name}-end")

        await asyncio.gather(job("a", 0.02), job("b", 0), job("c", 0))

        assert order == ["a-start", "a-end", "b-start", "b-end", "c-start", "c-end"]
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_different_users_do_not_wait(self):
        locks = UserLocks()

        async with locks.hold("user-1"):
            assert locks.is_locked("user-1")
            async with locks.hold("user-2"):
                assert locks.is_locked("user-2")

        assert not locks.is_locked("user-1")

    @pytest.mark.asyncio
    async def test_lock_released_on_error(self):
        locks = UserLocks()

        with pytest.raises(ValueError):
            async with locks.hold("user-1"):
                raise ValueError("boom")

        assert len(locks) == 0


class TestTimeUtils:

    def test_naive_is_utc(self):
        naive = datetime(2024, 6, 3, 10, 0)
        assert as_utc(naive) == datetime(2024, 6, 3, 10, 0, tzinfo=timezone.utc)
        assert as_utc(None) is None

    def test_spans(self, now):
        assert days_between(now - timedelta(hours=36), now) == pytest.approx(1.5)
        assert hours_between(now - timedelta(minutes=90), now) == pytest.approx(1.5)
        assert days_between(None, now) == 0.0


def test_configure_logging_filters_below_level():
    messages = []
    sink_id = configure_logging("warning")
    capture_id = logger.add(messages.append, level="WARNING", format="{message}")
    try:
        logger.info("quiet")
        logger.warning("loud")
    finally:
        logger.remove(capture_id)
        logger.remove(sink_id)

    assert [message.strip() for message in messages] == ["loud"]

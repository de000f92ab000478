import pytest

from synchro.infra.rate_limit import allow, refund

DAY = 24 * 60 * 60


@pytest.mark.asyncio
async def test_ping_budget_allows_within_limit():
    assert await allow("ping_send", "alice", limit=2, window_seconds=DAY, now=1_000.0)
    assert await allow("ping_send", "alice", limit=2, window_seconds=DAY, now=1_001.0)
    assert not await allow("ping_send", "alice", limit=2, window_seconds=DAY, now=1_002.0)


@pytest.mark.asyncio
async def test_budgets_are_per_user_and_per_window():
    assert await allow("ping_send", "bob", limit=1, window_seconds=DAY, now=1_000.0)
    assert await allow("ping_send", "carol", limit=1, window_seconds=DAY, now=1_000.0)
    assert await allow("ping_send", "bob", limit=1, window_seconds=DAY, now=DAY + 1.0)


@pytest.mark.asyncio
async def test_zero_limit_blocks_everything():
    assert not await allow("ping_send", "dave", limit=0, window_seconds=DAY)


@pytest.mark.asyncio
async def test_refund_returns_one_unit(fake_redis):
    assert await allow("ping_send", "erin", limit=1, window_seconds=DAY, now=1_000.0)
    await refund("ping_send", "erin", window_seconds=DAY, now=1_000.0)
    assert await allow("ping_send", "erin", limit=1, window_seconds=DAY, now=1_000.0)
    assert not await allow("ping_send", "erin", limit=1, window_seconds=DAY, now=1_000.0)


@pytest.mark.asyncio
async def test_refund_without_usage_leaves_no_key(fake_redis):
    await refund("ping_send", "frank", window_seconds=DAY, now=1_000.0)
    assert await fake_redis.keys("rl:ping_send:frank:*") == []

import asyncio
from datetime import datetime, timezone

import pytest

from synchro.infra import changefeed


async def _collect(iterator, count):
    events = []
    async for event in iterator:
        events.append(event)
        if len(events) == count:
            break
    return events


@pytest.mark.asyncio
async def test_subscribe_filters_rows(fake_redis):
    await changefeed.publish("match_messages", "insert", {"match_id": "m1", "content": "hi"})
    await changefeed.publish("match_messages", "insert", {"match_id": "m2", "content": "other"})
    await changefeed.publish(
        "match_messages",
        "insert",
        {"match_id": "m1", "content": "later", "created_at": datetime(2025, 6, 4, tzinfo=timezone.utc)},
    )

    feed = changefeed.subscribe("match_messages", match={"match_id": "m1"}, last_id="0-0", block_ms=10)
    events = await asyncio.wait_for(_collect(feed, 2), timeout=2)

    assert [event.row["content"] for event in events] == ["hi", "later"]
    assert events[1].row["created_at"] == "2025-06-04T00:00:00+00:00"
    assert all(event.op == "insert" and event.relation == "match_messages" for event in events)
    assert await fake_redis.xlen(changefeed.stream_name("match_messages")) == 3


@pytest.mark.asyncio
async def test_filter_matches_list_members(fake_redis):
    await changefeed.publish("synchronicities", "insert", {"id": "s1", "user_ids": ["alice", "bob"]})
    await changefeed.publish("synchronicities", "insert", {"id": "s2", "user_ids": ["carol", "dave"]})

    feed = changefeed.subscribe("synchronicities", match={"user_ids": "bob"}, last_id="0-0", block_ms=10)
    events = await asyncio.wait_for(_collect(feed, 1), timeout=2)

    assert [event.row["id"] for event in events] == ["s1"]


@pytest.mark.asyncio
async def test_publish_failure_is_swallowed(monkeypatch, fake_redis):
    async def _boom(*args, **kwargs):
        raise ConnectionError("redis down")

    monkeypatch.setattr(fake_redis, "xadd", _boom)
    await changefeed.publish("pings", "insert", {"id": "p1"})

from datetime import datetime, timedelta, timezone

import pytest

from synchro.domain.pings.exceptions import (
    MatchExpired,
    MatchForbidden,
    MatchNotFound,
    MessageInvalid,
    PingAlreadySent,
    PingDailyLimitReached,
    PingExpired,
    PingForbidden,
    PingGone,
    PingNotFound,
    PingSelfError,
)
from synchro.domain.pings.models import PingActivity, PingStatus
from synchro.domain.pings.service import PingService
from synchro.domain.pings.timing import format_time_remaining, get_time_remaining
from synchro.infra.memory import memory_store


@pytest.fixture
def pings(clock):
    return PingService(clock=clock)


@pytest.mark.asyncio
async def test_send_sets_fifteen_minute_window(pings, clock):
    ping = await pings.send_ping("alice", "bob", "gaming")

    assert ping.status == PingStatus.PENDING
    assert ping.activity == PingActivity.GAMING
    assert ping.expires_at == clock.now + timedelta(minutes=15)
    assert [p.id for p in await pings.get_active_pings("bob")] == [ping.id]
    assert [p.id for p in await pings.get_active_pings("alice")] == [ping.id]


@pytest.mark.asyncio
async def test_accept_just_after_expiry_fails(pings, clock):
    ping = await pings.send_ping("alice", "bob")
    clock.advance(minutes=15, seconds=1)

    with pytest.raises(PingExpired):
        await pings.accept_ping("bob", ping.id)

    assert memory_store.pings[ping.id].status == PingStatus.EXPIRED
    assert memory_store.matches == {}


@pytest.mark.asyncio
async def test_accept_creates_day_long_match(pings, clock):
    ping = await pings.send_ping("alice", "bob", PingActivity.DINNER)
    clock.advance(minutes=14)

    match = await pings.accept_ping("bob", ping.id)

    assert match.user_a == "alice"
    assert match.user_b == "bob"
    assert match.activity == PingActivity.DINNER
    assert match.expires_at == clock.now + timedelta(hours=24)
    assert memory_store.pings[ping.id].status == PingStatus.ACCEPTED
    assert [m.id for m in await pings.get_active_matches("alice")] == [match.id]

    with pytest.raises(PingGone):
        await pings.accept_ping("bob", ping.id)


@pytest.mark.asyncio
async def test_only_recipient_can_respond(pings):
    ping = await pings.send_ping("alice", "bob")
    with pytest.raises(PingForbidden):
        await pings.accept_ping("alice", ping.id)
    with pytest.raises(PingForbidden):
        await pings.decline_ping("carol", ping.id)
    with pytest.raises(PingNotFound):
        await pings.ignore_ping("bob", "missing")


@pytest.mark.asyncio
async def test_ignore_and_decline_are_terminal(pings):
    ignored = await pings.send_ping("alice", "bob")
    declined = await pings.send_ping("carol", "bob")

    assert (await pings.ignore_ping("bob", ignored.id)).status == PingStatus.IGNORED
    assert (await pings.decline_ping("bob", declined.id)).status == PingStatus.DECLINED
    assert await pings.get_active_pings("bob") == []
    with pytest.raises(PingGone):
        await pings.accept_ping("bob", declined.id)


@pytest.mark.asyncio
async def test_duplicate_pending_ping_rejected(pings):
    await pings.send_ping("alice", "bob", "coffee")
    with pytest.raises(PingAlreadySent):
        await pings.send_ping("alice", "bob", "coffee")
    # A different activity or direction is a separate ping
    await pings.send_ping("alice", "bob", "sports")
    await pings.send_ping("bob", "alice", "coffee")


@pytest.mark.asyncio
async def test_stale_pending_ping_is_replaced(pings, clock):
    first = await pings.send_ping("alice", "bob")
    clock.advance(minutes=16)

    second = await pings.send_ping("alice", "bob")

    assert second.id != first.id
    assert memory_store.pings[first.id].status == PingStatus.EXPIRED
    assert memory_store.pings[second.id].status == PingStatus.PENDING


@pytest.mark.asyncio
async def test_self_ping_rejected(pings):
    with pytest.raises(PingSelfError):
        await pings.send_ping("alice", "alice")


@pytest.mark.asyncio
async def test_daily_limit(clock):
    service = PingService(clock=clock, daily_limit=2)
    await service.send_ping("alice", "bob")
    await service.send_ping("alice", "carol")
    with pytest.raises(PingDailyLimitReached) as excinfo:
        await service.send_ping("alice", "dave")
    assert excinfo.value.reason == "daily_limit"
    await service.send_ping("bob", "dave")


@pytest.mark.asyncio
async def test_duplicate_sends_do_not_use_daily_budget(clock):
    service = PingService(clock=clock, daily_limit=3)
    await service.send_ping("alice", "bob")
    for _ in range(2):
        with pytest.raises(PingAlreadySent):
            await service.send_ping("alice", "bob")

    await service.send_ping("alice", "carol")
    await service.send_ping("alice", "dave")
    with pytest.raises(PingDailyLimitReached):
        await service.send_ping("alice", "erin")


@pytest.mark.asyncio
async def test_daily_budget_resets_on_the_next_day(clock):
    service = PingService(clock=clock, daily_limit=1)
    await service.send_ping("alice", "bob")
    with pytest.raises(PingDailyLimitReached):
        await service.send_ping("alice", "carol")

    clock.advance(hours=17)
    ping = await service.send_ping("alice", "carol")
    assert ping.created_at == clock.now


@pytest.mark.asyncio
async def test_unknown_activity_rejected(pings):
    with pytest.raises(ValueError):
        await pings.send_ping("alice", "bob", "karaoke")


@pytest.mark.asyncio
async def test_expire_old_pings_sweeps_pending_only(pings, clock):
    stale = await pings.send_ping("alice", "bob")
    accepted = await pings.send_ping("carol", "bob")
    await pings.accept_ping("bob", accepted.id)
    clock.advance(minutes=15)

    assert await pings.expire_old_pings() == 1
    assert memory_store.pings[stale.id].status == PingStatus.EXPIRED
    assert memory_store.pings[accepted.id].status == PingStatus.ACCEPTED
    assert await pings.expire_old_pings() == 0


@pytest.mark.asyncio
async def test_match_chat_window(pings, clock):
    ping = await pings.send_ping("alice", "bob")
    match = await pings.accept_ping("bob", ping.id)

    clock.now = match.expires_at - timedelta(seconds=1)
    message = await pings.send_message("alice", match.id, "  see you at 5?  ")
    assert message.content == "see you at 5?"
    assert message.sender_id == "alice"

    clock.now = match.expires_at + timedelta(seconds=1)
    with pytest.raises(MatchExpired):
        await pings.send_message("bob", match.id, "sorry, too late")
    assert await pings.get_active_matches("alice") == []
    assert [m.content for m in await pings.list_messages("bob", match.id)] == ["see you at 5?"]


@pytest.mark.asyncio
async def test_messages_are_ordered_and_guarded(pings, clock):
    ping = await pings.send_ping("alice", "bob")
    match = await pings.accept_ping("bob", ping.id)

    await pings.send_message("alice", match.id, "hi")
    clock.advance(seconds=5)
    await pings.send_message("bob", match.id, "hey!")

    assert [m.content for m in await pings.list_messages("alice", match.id)] == ["hi", "hey!"]
    with pytest.raises(MatchForbidden):
        await pings.send_message("carol", match.id, "hello")
    with pytest.raises(MatchForbidden):
        await pings.list_messages("carol", match.id)
    with pytest.raises(MatchNotFound):
        await pings.send_message("alice", "missing", "hello")
    with pytest.raises(MessageInvalid):
        await pings.send_message("alice", match.id, "   ")
    with pytest.raises(MessageInvalid):
        await pings.send_message("alice", match.id, "x" * 1001)


def test_time_remaining_breakdown():
    now = datetime(2025, 6, 4, 7, 0, tzinfo=timezone.utc)
    remaining = get_time_remaining(now + timedelta(minutes=14, seconds=5), now)
    assert remaining == {"total_ms": 845000, "minutes": 14, "seconds": 5, "is_expired": False}
    assert format_time_remaining(now + timedelta(minutes=14, seconds=5), now) == "14:05"
    # Minutes wrap within the hour
    assert format_time_remaining(now + timedelta(hours=23, minutes=2, seconds=9), now) == "2:09"
    assert get_time_remaining(now, now)["is_expired"] is True
    assert format_time_remaining(now - timedelta(seconds=1), now) == "expired"

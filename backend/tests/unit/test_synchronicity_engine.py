import asyncio
from datetime import timedelta

import pytest

from synchro.domain.activity.models import ActivityType
from synchro.domain.presence.models import DeviceSample
from synchro.infra.memory import memory_store

HOME = (55.676, 12.568)
# Roughly 80 m north of HOME
NEARBY = (55.676719, 12.568)


async def _coffee(services, user_id, coords, location_name="Cafe Norden"):
    return await services.activities.detect_and_log(
        user_id,
        DeviceSample(latitude=coords[0], longitude=coords[1], speed=0.0),
        location_name=location_name,
    )


@pytest.mark.asyncio
async def test_coffee_neighbours_score_full_marks(services, clock):
    clock.advance(minutes=-2)
    await _coffee(services, "bob", NEARBY)
    clock.advance(minutes=2)
    await _coffee(services, "alice", HOME)

    syncs = await services.synchronicity.scan_for_synchronicities("alice")

    assert len(syncs) == 1
    sync = syncs[0]
    assert sync.user_ids == ["alice", "bob"]
    assert sync.activity_type == ActivityType.COFFEE
    assert sync.sync_score == 1.0
    assert 70 < sync.distance_meters < 90
    assert sync.expires_at == clock.now + timedelta(minutes=60)
    assert await services.lobbies.should_create_lobby(sync) is True


@pytest.mark.asyncio
async def test_no_current_activity_returns_empty(services):
    assert await services.synchronicity.scan_for_synchronicities("ghost") == []


@pytest.mark.asyncio
async def test_different_activity_is_not_a_match(services, clock):
    await _coffee(services, "alice", HOME)
    # Bob is moving fast enough to be commuting
    await services.activities.detect_and_log(
        "bob", DeviceSample(latitude=NEARBY[0], longitude=NEARBY[1], speed=5.0)
    )
    assert await services.synchronicity.scan_for_synchronicities("alice") == []


@pytest.mark.asyncio
async def test_repeated_scans_reuse_open_record(services, clock):
    await _coffee(services, "bob", NEARBY)
    await _coffee(services, "alice", HOME)

    first = await services.synchronicity.scan_for_synchronicities("alice")
    second = await services.synchronicity.scan_for_synchronicities("bob")
    assert first[0].id == second[0].id
    assert len(memory_store.synchronicities) == 1


@pytest.mark.asyncio
async def test_concurrent_scans_converge_on_one_record(services, clock):
    await _coffee(services, "bob", NEARBY)
    await _coffee(services, "alice", HOME)

    results = await asyncio.gather(
        services.synchronicity.scan_for_synchronicities("alice"),
        services.synchronicity.scan_for_synchronicities("alice"),
        services.synchronicity.scan_for_synchronicities("alice"),
    )
    ids = {result[0].id for result in results}
    assert len(ids) == 1
    assert len(memory_store.synchronicities) == 1


@pytest.mark.asyncio
async def test_expired_record_is_replaced(services, clock):
    await _coffee(services, "bob", NEARBY)
    await _coffee(services, "alice", HOME)
    first = await services.synchronicity.scan_for_synchronicities("alice")

    clock.advance(minutes=61)
    await _coffee(services, "bob", NEARBY)
    await _coffee(services, "alice", HOME)
    second = await services.synchronicity.scan_for_synchronicities("alice")
    assert second[0].id != first[0].id
    assert [s.id for s in await services.synchronicity.get_synchronicities_for_user("alice")] == [second[0].id]


@pytest.mark.asyncio
async def test_listing_is_sorted_by_score(services, clock):
    await _coffee(services, "bob", NEARBY)
    await _coffee(services, "alice", HOME)
    await services.synchronicity.scan_for_synchronicities("alice")

    # Carol joins ~330 m away later; the wider group scores lower
    clock.advance(minutes=45)
    await _coffee(services, "carol", (55.679, 12.568))
    await _coffee(services, "alice", HOME)
    await services.synchronicity.scan_for_synchronicities("alice")

    listed = await services.synchronicity.get_synchronicities_for_user("alice")
    assert [sorted(sync.user_ids) for sync in listed] == [["alice", "bob"], ["alice", "bob", "carol"]]
    assert listed[0].sync_score > listed[1].sync_score



@pytest.mark.asyncio
async def test_mark_as_notified(services, clock):
    await _coffee(services, "bob", NEARBY)
    await _coffee(services, "alice", HOME)
    sync = (await services.synchronicity.scan_for_synchronicities("alice"))[0]
    assert await services.synchronicity.mark_as_notified(sync.id) is True
    assert (await services.synchronicity.get(sync.id)).notified_at == clock.now
    assert await services.synchronicity.mark_as_notified("missing") is False

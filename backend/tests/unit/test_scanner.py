import asyncio

import pytest

from synchro.domain.presence.models import DeviceSample
from synchro.domain.synchronicity.scanner import SynchronicityScanner
from synchro.infra.memory import memory_store

HOME = (55.676, 12.568)
NEARBY = (55.676719, 12.568)


async def _coffee(services, user_id, coords):
    return await services.activities.detect_and_log(
        user_id,
        DeviceSample(latitude=coords[0], longitude=coords[1], speed=0.0),
        location_name="Cafe Norden",
    )


class CountingEngine:
    def __init__(self, fail_first=False):
        self.calls = 0
        self.fail_first = fail_first
        self.ticked = asyncio.Event()

    async def scan_for_synchronicities(self, user_id):
        self.calls += 1
        self.ticked.set()
        if self.fail_first and self.calls == 1:
            raise RuntimeError("boom")
        return []

    async def mark_as_notified(self, sync_id):
        return True


@pytest.mark.asyncio
async def test_pipeline_opens_lobby_and_marks_notified(services):
    await _coffee(services, "bob", NEARBY)
    await _coffee(services, "alice", HOME)

    result = await services.scanner.run_pipeline_once("alice")

    assert len(result.synchronicities) == 1
    assert len(result.lobbies) == 1
    sync = memory_store.synchronicities[result.synchronicities[0].id]
    assert sync.lobby_created is True
    assert sync.lobby_id == result.lobbies[0].id
    assert sync.notified_at is not None

    # Bob's scan reuses the record and does not open a second lobby
    again = await services.scanner.run_pipeline_once("bob")
    assert [s.id for s in again.synchronicities] == [sync.id]
    assert again.lobbies == []
    assert len(memory_store.auto_lobbies) == 1


@pytest.mark.asyncio
async def test_start_twice_is_rejected_and_stop_cancels(services):
    engine = CountingEngine()
    scanner = SynchronicityScanner(engine, services.lobbies, interval_seconds=30)

    assert await scanner.start_scanning("alice") is True
    assert await scanner.start_scanning("alice") is False
    await asyncio.wait_for(engine.ticked.wait(), timeout=1)
    assert scanner.is_scanning("alice")

    assert await scanner.stop_scanning("alice") is True
    assert not scanner.is_scanning("alice")
    assert await scanner.stop_scanning("alice") is False
    assert engine.calls == 1


@pytest.mark.asyncio
async def test_failed_tick_keeps_loop_alive(services):
    engine = CountingEngine(fail_first=True)
    scanner = SynchronicityScanner(engine, services.lobbies, interval_seconds=0.01)

    await scanner.start_scanning("alice")
    for _ in range(100):
        if engine.calls >= 2:
            break
        await asyncio.sleep(0.01)
    await scanner.shutdown()

    assert engine.calls >= 2
    assert not scanner.is_scanning("alice")


class GatedEngine(CountingEngine):
    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()
        self.active = 0
        self.max_active = 0

    async def scan_for_synchronicities(self, user_id):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.ticked.set()
        await self.gate.wait()
        self.active -= 1
        return []


@pytest.mark.asyncio
async def test_user_locks_are_released_after_runs(services):
    engine = GatedEngine()
    scanner = SynchronicityScanner(engine, services.lobbies, interval_seconds=30)

    runs = [asyncio.create_task(scanner.run_pipeline_once("alice")) for _ in range(2)]
    await asyncio.wait_for(engine.ticked.wait(), timeout=1)
    assert list(scanner._user_locks) == ["alice"]

    engine.gate.set()
    await asyncio.gather(*runs)
    assert engine.max_active == 1
    assert scanner._user_locks == {}

    await scanner.start_scanning("bob")
    await scanner.stop_scanning("bob")
    assert scanner._user_locks == {}

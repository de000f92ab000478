from datetime import timedelta

import pytest

from synchro.domain.activity.models import ActivityType
from synchro.domain.synchronicity.models import Synchronicity
from synchro.infra.memory import memory_store
from synchro.infra.scheduler import MaintenanceScheduler
from synchro.maintenance.sweeps import SWEEP_JOB_ID, run_sweeps_once, schedule_sweeps


class BrokenLobbies:
    async def check_and_start_lobbies(self):
        raise RuntimeError("db down")


@pytest.mark.asyncio
async def test_sweeps_settle_lobbies_and_expire_pings(services, clock):
    sync = Synchronicity(
        user_ids=["alice", "bob"],
        activity_type=ActivityType.COFFEE,
        latitude=55.676,
        longitude=12.568,
        sync_score=0.9,
        distance_meters=80.0,
        created_at=clock.now,
        expires_at=clock.now + timedelta(minutes=60),
    )
    memory_store.synchronicities[sync.id] = sync
    await services.lobbies.create_auto_lobby(sync)
    await services.pings.send_ping("alice", "carol")

    assert await run_sweeps_once(services.lobbies, services.pings) == {
        "started": 0,
        "cancelled": 0,
        "expired_pings": 0,
    }
    clock.advance(minutes=60)
    assert await run_sweeps_once(services.lobbies, services.pings) == {
        "started": 1,
        "cancelled": 0,
        "expired_pings": 1,
    }


@pytest.mark.asyncio
async def test_failing_sweep_does_not_block_the_other(services, clock):
    await services.pings.send_ping("alice", "carol")
    clock.advance(minutes=20)

    result = await run_sweeps_once(BrokenLobbies(), services.pings)

    assert result == {"started": 0, "cancelled": 0, "expired_pings": 1}


@pytest.mark.asyncio
async def test_schedule_registers_single_job(services):
    scheduler = MaintenanceScheduler()
    schedule_sweeps(scheduler, services.lobbies, services.pings, interval_seconds=15)

    assert scheduler.job_ids() == [SWEEP_JOB_ID]

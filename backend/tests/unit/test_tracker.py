import asyncio

import pytest

from synchro.domain.activity.models import ActivityType
from synchro.domain.presence.models import DeviceSample
from synchro.domain.presence.service import GEO_KEY, online_key
from synchro.domain.presence.tracker import LocationTracker


class FakeWatch:
    def __init__(self):
        self.removed = False

    def remove(self):
        self.removed = True


class FakeProvider:
    def __init__(self, foreground=True, background=True):
        self.foreground = foreground
        self.background = background
        self.background_asked = False
        self.callback = None
        self.watches = []
        self.options = None

    async def request_foreground_permission(self):
        return self.foreground

    async def request_background_permission(self):
        self.background_asked = True
        return self.background

    async def get_current_position(self):
        return DeviceSample(latitude=55.676, longitude=12.568, speed=0.0)

    async def watch_position(self, callback, *, time_interval_s, distance_interval_m):
        self.callback = callback
        self.options = (time_interval_s, distance_interval_m)
        watch = FakeWatch()
        self.watches.append(watch)
        return watch


@pytest.fixture
def tracker(services):
    return LocationTracker(services.presence, services.activities, interval_seconds=30)


@pytest.mark.asyncio
async def test_denied_foreground_never_asks_background(tracker):
    provider = FakeProvider(foreground=False)
    assert await tracker.start_tracking("alice", provider) is False
    assert provider.background_asked is False
    assert not tracker.is_tracking("alice")


@pytest.mark.asyncio
async def test_denied_background_stops_tracking(tracker):
    provider = FakeProvider(background=False)
    assert await tracker.start_tracking("alice", provider) is False
    assert provider.watches == []


@pytest.mark.asyncio
async def test_samples_update_presence(tracker, services, fake_redis):
    provider = FakeProvider()
    assert await tracker.start_tracking("alice", provider) is True
    assert provider.options == (30.0, 50.0)

    await provider.callback(DeviceSample(latitude=55.676, longitude=12.568, speed=0.0))

    presence = await services.presence.get_presence("alice")
    assert presence.is_online is True
    assert presence.latitude == pytest.approx(55.676)
    assert await fake_redis.get(online_key("alice")) == "1"
    assert tracker.get_last_location("alice").latitude == 55.676

    observation = await tracker.detect_and_log("alice")
    assert observation.activity_type == ActivityType.COFFEE

    await services.presence.go_offline("alice")
    assert (await services.presence.get_presence("alice")).is_online is False
    assert await fake_redis.zscore(GEO_KEY, "alice") is None
    await tracker.stop_tracking("alice")


@pytest.mark.asyncio
async def test_start_is_idempotent_and_stop_cancels(tracker):
    provider = FakeProvider()
    assert await tracker.start_tracking("alice", provider) is True
    assert await tracker.start_tracking("alice", provider) is True
    assert len(provider.watches) == 1
    task = tracker._sessions["alice"].task

    await tracker.stop_tracking("alice")

    assert task.cancelled()
    assert provider.watches[0].removed is True
    assert not tracker.is_tracking("alice")
    assert tracker.get_last_location("alice") is None


@pytest.mark.asyncio
async def test_detection_without_sample_is_noop(tracker):
    assert await tracker.detect_and_log("ghost") is None


@pytest.mark.asyncio
async def test_shutdown_tears_down_all_sessions(tracker):
    providers = [FakeProvider(), FakeProvider()]
    await tracker.start_tracking("alice", providers[0])
    await tracker.start_tracking("bob", providers[1])

    await tracker.shutdown()
    await asyncio.sleep(0)

    assert all(p.watches[0].removed for p in providers)
    assert not tracker.is_tracking("alice")
    assert not tracker.is_tracking("bob")


class UnavailableProvider(FakeProvider):
    async def get_current_position(self):
        raise RuntimeError("location services disabled")


@pytest.mark.asyncio
async def test_get_current_location_reads_provider(tracker):
    sample = await tracker.get_current_location(FakeProvider())
    assert (sample.latitude, sample.longitude) == (55.676, 12.568)


@pytest.mark.asyncio
async def test_get_current_location_returns_none_when_unavailable(tracker):
    assert await tracker.get_current_location(UnavailableProvider()) is None

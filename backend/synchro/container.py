"""Service container wiring the pipeline together.

One `Services` instance is built per application (or per test) and handed to
request handlers through `app.state.services`.
"""

from __future__ import annotations

import random
from dataclasses import dataclass

from fastapi import Request

from synchro.domain.activity.service import ActivityService
from synchro.domain.common import clock as clock_mod
from synchro.domain.common.clock import Clock
from synchro.domain.karma.service import KarmaManager
from synchro.domain.lobbies.service import AutoLobbyCreator
from synchro.domain.pings.service import PingService
from synchro.domain.presence.service import PresenceService
from synchro.domain.presence.tracker import LocationTracker
from synchro.domain.proximity.service import ProximityMatcher
from synchro.domain.rhythm.service import RhythmDetector
from synchro.domain.synchronicity.scanner import SynchronicityScanner
from synchro.domain.synchronicity.service import SynchronicityEngine


@dataclass
class Services:
	presence: PresenceService
	activities: ActivityService
	tracker: LocationTracker
	proximity: ProximityMatcher
	synchronicity: SynchronicityEngine
	lobbies: AutoLobbyCreator
	scanner: SynchronicityScanner
	rhythm: RhythmDetector
	pings: PingService
	karma: KarmaManager
	clock: Clock = clock_mod.utcnow

	async def shutdown(self) -> None:
		await self.scanner.shutdown()
		await self.tracker.shutdown()


def build_services(*, clock: Clock = clock_mod.utcnow, rng: random.Random | None = None) -> Services:
	presence = PresenceService(clock=clock)
	activities = ActivityService(clock=clock)
	proximity = ProximityMatcher(activities.repository, clock=clock)
	synchronicity = SynchronicityEngine(activities, proximity, clock=clock)
	lobbies = AutoLobbyCreator(clock=clock, rng=rng)
	return Services(
		presence=presence,
		activities=activities,
		tracker=LocationTracker(presence, activities),
		proximity=proximity,
		synchronicity=synchronicity,
		lobbies=lobbies,
		scanner=SynchronicityScanner(synchronicity, lobbies),
		rhythm=RhythmDetector(activities, clock=clock),
		pings=PingService(clock=clock),
		karma=KarmaManager(clock=clock),
		clock=clock,
	)


def get_services(request: Request) -> Services:
	services = getattr(request.app.state, "services", None)
	if services is None:
		services = build_services()
		request.app.state.services = services
	return services

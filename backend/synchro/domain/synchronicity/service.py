"""Synchronicity detection: nearby users doing the same thing at the same time."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import List, Optional

from synchro.domain.activity.models import ActivityObservation, NearbyUser
from synchro.domain.activity.service import ActivityService
from synchro.domain.common import clock as clock_mod
from synchro.domain.common import sockets
from synchro.domain.common.clock import Clock
from synchro.domain.proximity.service import ProximityMatcher
from synchro.infra import changefeed
from synchro.obs import metrics as obs_metrics
from synchro.settings import settings

from .models import Synchronicity
from .repo import SynchronicityRepository
from .scoring import calculate_sync_score, mean

logger = logging.getLogger(__name__)


class SynchronicityEngine:
	def __init__(
		self,
		activities: ActivityService,
		matcher: ProximityMatcher,
		repository: SynchronicityRepository | None = None,
		*,
		clock: Clock = clock_mod.utcnow,
		ttl_minutes: int | None = None,
		radius_m: float | None = None,
	) -> None:
		self._activities = activities
		self._matcher = matcher
		self._repo = repository or SynchronicityRepository()
		self._clock = clock
		self._ttl = timedelta(
			minutes=ttl_minutes if ttl_minutes is not None else settings.synchronicity_ttl_minutes
		)
		self._radius_m = float(radius_m if radius_m is not None else settings.sync_radius_m)

	@property
	def repository(self) -> SynchronicityRepository:
		return self._repo

	async def scan_for_synchronicities(self, user_id: str) -> List[Synchronicity]:
		"""Look for nearby users sharing the user's current activity.

		Returns at most one synchronicity (new or reused). Storage failures are
		logged and yield an empty result so the next tick can retry.
		"""
		try:
			current = await self._activities.get_current_activity(user_id)
			if current is None:
				return []
			nearby = await self._matcher.find_nearby_users(
				user_id,
				current.latitude,
				current.longitude,
				self._radius_m,
			)
			matching = [user for user in nearby if user.activity_type == current.activity_type]
			if not matching:
				obs_metrics.inc_synchronicity("no_match")
				return []
			sync = await self._create_or_reuse(user_id, current, matching)
		except Exception:
			logger.exception("synchronicity scan failed", extra={"user_id": user_id})
			obs_metrics.inc_synchronicity("error")
			return []
		return [sync] if sync is not None else []

	async def _create_or_reuse(
		self,
		user_id: str,
		current: ActivityObservation,
		matching: List[NearbyUser],
	) -> Optional[Synchronicity]:
		now = self._clock()
		all_user_ids = [user_id] + [user.user_id for user in matching]
		avg_distance = mean(user.distance_meters for user in matching)
		avg_minutes = mean(abs((now - user.detected_at).total_seconds()) / 60 for user in matching)
		pattern = await self._activities.get_pattern_for(user_id, current.activity_type, at=now)
		score = calculate_sync_score(avg_distance, avg_minutes, pattern.frequency if pattern else None)
		candidate = Synchronicity(
			user_ids=all_user_ids,
			activity_type=current.activity_type,
			location_name=current.location_name,
			latitude=current.latitude,
			longitude=current.longitude,
			sync_score=score,
			distance_meters=avg_distance,
			created_at=now,
			expires_at=now + self._ttl,
		)
		sync, created = await self._repo.create_or_reuse(candidate, now)
		if not created:
			obs_metrics.inc_synchronicity("reused")
			return sync
		obs_metrics.inc_synchronicity("created")
		logger.info(
			"synchronicity created",
			extra={"sync_id": sync.id, "activity": sync.activity_type.value, "members": len(sync.user_ids)},
		)
		payload = sync.to_dict()
		await changefeed.publish("synchronicities", "insert", payload)
		await sockets.emit_to_users(sync.user_ids, "sync:new", sockets.jsonable(payload))
		return sync

	async def get(self, sync_id: str) -> Optional[Synchronicity]:
		return await self._repo.get(sync_id)

	async def get_synchronicities_for_user(self, user_id: str) -> List[Synchronicity]:
		try:
			return await self._repo.list_open_for_user(user_id, self._clock())
		except Exception:
			logger.warning("synchronicity listing failed", extra={"user_id": user_id}, exc_info=True)
			return []

	async def mark_as_notified(self, sync_id: str) -> bool:
		try:
			updated = await self._repo.mark_notified(sync_id, self._clock())
		except Exception:
			logger.warning("mark notified failed", extra={"sync_id": sync_id}, exc_info=True)
			return False
		if updated:
			await changefeed.publish("synchronicities", "update", {"id": sync_id, "notified": True})
		return updated


"""Activity detection, persistence and history lookups."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from synchro.domain.common import clock as clock_mod
from synchro.domain.common.clock import Clock
from synchro.domain.presence.models import DeviceSample
from synchro.infra import changefeed
from synchro.obs import metrics as obs_metrics
from synchro.settings import settings

from .classifier import detect_activity
from .models import ActivityDetection, ActivityObservation, ActivityPattern, ActivityType
from .repo import ActivityRepository

logger = logging.getLogger(__name__)


class ActivityService:
	def __init__(
		self,
		repository: ActivityRepository | None = None,
		*,
		clock: Clock = clock_mod.utcnow,
		ttl_minutes: int | None = None,
	) -> None:
		self._repo = repository or ActivityRepository()
		self._clock = clock
		self._ttl = timedelta(minutes=ttl_minutes if ttl_minutes is not None else settings.activity_ttl_minutes)

	@property
	def repository(self) -> ActivityRepository:
		return self._repo

	def classify(self, sample: DeviceSample, *, now: datetime | None = None) -> ActivityDetection:
		moment = now or self._clock()
		return detect_activity(clock_mod.local_hour(moment), sample.speed)

	async def detect_and_log(
		self,
		user_id: str,
		sample: DeviceSample,
		*,
		location_name: Optional[str] = None,
	) -> Optional[ActivityObservation]:
		"""Classify the sample and persist it when confident enough.

		Returns the stored observation, or None when the detection was discarded
		or storage failed.
		"""
		now = self._clock()
		detection = self.classify(sample, now=now)
		if location_name and detection.location_name is None:
			detection = ActivityDetection(
				activity_type=detection.activity_type,
				confidence=detection.confidence,
				venue_type=detection.venue_type,
				location_name=location_name,
			)
		if not detection.should_persist:
			obs_metrics.inc_activity_detection(detection.activity_type.value, False)
			return None
		return await self.log_detection(user_id, sample, detection, now=now)

	async def log_detection(
		self,
		user_id: str,
		sample: DeviceSample,
		detection: ActivityDetection,
		*,
		now: datetime | None = None,
	) -> Optional[ActivityObservation]:
		if not detection.should_persist:
			return None
		detected_at = now or self._clock()
		observation = ActivityObservation(
			user_id=user_id,
			activity_type=detection.activity_type,
			venue_type=detection.venue_type,
			latitude=sample.latitude,
			longitude=sample.longitude,
			confidence=detection.confidence,
			speed=sample.speed if sample.speed and sample.speed > 0 else 0.0,
			location_name=detection.location_name,
			detected_at=detected_at,
			expires_at=detected_at + self._ttl,
		)
		try:
			await self._repo.insert_observation(observation)
		except Exception:
			logger.warning("activity insert failed", extra={"user_id": user_id}, exc_info=True)
			return None
		obs_metrics.inc_activity_detection(detection.activity_type.value, True)
		await changefeed.publish("user_activities", "insert", observation.to_dict())
		try:
			await self._repo.upsert_pattern(
				user_id,
				clock_mod.day_of_week(detected_at),
				clock_mod.time_slot(detected_at),
				detection.activity_type,
				detected_at,
			)
		except Exception:
			logger.warning("activity pattern update failed", extra={"user_id": user_id}, exc_info=True)
		return observation

	async def get_current_activity(self, user_id: str) -> Optional[ActivityObservation]:
		try:
			return await self._repo.latest_observation(user_id, self._clock())
		except Exception:
			logger.warning("current activity lookup failed", extra={"user_id": user_id}, exc_info=True)
			return None

	async def get_pattern_for(
		self,
		user_id: str,
		activity_type: ActivityType,
		*,
		at: datetime | None = None,
	) -> Optional[ActivityPattern]:
		"""Pattern row for the (local weekday, hour slot) containing `at`."""
		moment = at or self._clock()
		try:
			return await self._repo.get_pattern(
				user_id,
				clock_mod.day_of_week(moment),
				clock_mod.time_slot(moment),
				activity_type,
			)
		except Exception:
			logger.warning("activity pattern lookup failed", extra={"user_id": user_id}, exc_info=True)
			return None

	async def list_recent(self, user_id: str, days: int) -> List[ActivityObservation]:
		since = self._clock() - timedelta(days=days)
		return await self._repo.list_since(user_id, since)

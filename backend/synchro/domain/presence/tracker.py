"""Per-user location tracking sessions.

A session owns the provider watch (feeding presence on every sample) and a
periodic task that classifies the most recent sample. Both are torn down by
`stop_tracking` or `shutdown`.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from typing import Dict, Optional

from synchro.domain.activity.models import ActivityObservation
from synchro.domain.activity.service import ActivityService
from synchro.obs import metrics as obs_metrics
from synchro.settings import settings

from .models import DeviceSample
from .provider import GeolocationProvider, WatchHandle
from .service import PresenceService

logger = logging.getLogger(__name__)


@dataclass
class TrackingSession:
	user_id: str
	provider: GeolocationProvider
	watch: Optional[WatchHandle] = None
	task: Optional[asyncio.Task] = None
	last_sample: Optional[DeviceSample] = None


class LocationTracker:
	def __init__(
		self,
		presence: PresenceService,
		activities: ActivityService,
		*,
		interval_seconds: float | None = None,
		distance_interval_m: float | None = None,
	) -> None:
		self._presence = presence
		self._activities = activities
		self._interval = float(
			interval_seconds if interval_seconds is not None else settings.location_time_interval_seconds
		)
		self._distance = float(
			distance_interval_m if distance_interval_m is not None else settings.location_distance_interval_m
		)
		self._sessions: Dict[str, TrackingSession] = {}
		self._lock = asyncio.Lock()

	async def request_permissions(self, provider: GeolocationProvider) -> bool:
		"""Foreground first; background is only asked for once foreground is granted."""
		try:
			if not await provider.request_foreground_permission():
				return False
			return bool(await provider.request_background_permission())
		except Exception:
			logger.warning("location permission request failed", exc_info=True)
			return False

	async def get_current_location(self, provider: GeolocationProvider) -> Optional[DeviceSample]:
		try:
			return await provider.get_current_position()
		except Exception:
			logger.warning("current position unavailable", exc_info=True)
			return None

	async def start_tracking(self, user_id: str, provider: GeolocationProvider) -> bool:
		if self.is_tracking(user_id):
			return True
		if not await self.request_permissions(provider):
			return False
		session = TrackingSession(user_id=user_id, provider=provider)

		async def _on_sample(sample: DeviceSample) -> None:
			await self.record_sample(user_id, sample)

		try:
			session.watch = await provider.watch_position(
				_on_sample,
				time_interval_s=self._interval,
				distance_interval_m=self._distance,
			)
		except Exception:
			logger.warning("location watch failed to start", extra={"user_id": user_id}, exc_info=True)
			return False
		async with self._lock:
			existing = self._sessions.get(user_id)
			if existing is not None:
				session.watch.remove()
				return True
			session.task = asyncio.create_task(self._detect_loop(session), name=f"location-tracker:{user_id}")
			self._sessions[user_id] = session
			obs_metrics.set_trackers_active(len(self._sessions))
		return True

	async def stop_tracking(self, user_id: str) -> None:
		async with self._lock:
			session = self._sessions.pop(user_id, None)
			obs_metrics.set_trackers_active(len(self._sessions))
		if session is not None:
			await self._teardown(session)

	def is_tracking(self, user_id: str) -> bool:
		return user_id in self._sessions

	def get_last_location(self, user_id: str) -> Optional[DeviceSample]:
		session = self._sessions.get(user_id)
		return session.last_sample if session else None

	async def record_sample(self, user_id: str, sample: DeviceSample) -> None:
		session = self._sessions.get(user_id)
		if session is not None:
			session.last_sample = sample
		await self._presence.update_presence(user_id, sample)

	async def detect_and_log(self, user_id: str) -> Optional[ActivityObservation]:
		sample = self.get_last_location(user_id)
		if sample is None:
			return None
		return await self._activities.detect_and_log(user_id, sample)

	async def shutdown(self) -> None:
		async with self._lock:
			sessions = list(self._sessions.values())
			self._sessions.clear()
			obs_metrics.set_trackers_active(0)
		for session in sessions:
			await self._teardown(session)

	async def _teardown(self, session: TrackingSession) -> None:
		if session.watch is not None:
			try:
				session.watch.remove()
			except Exception:
				logger.warning("location watch removal failed", extra={"user_id": session.user_id}, exc_info=True)
			session.watch = None
		task = session.task
		if task is not None:
			task.cancel()
			with suppress(asyncio.CancelledError):
				await task
			session.task = None

	async def _detect_loop(self, session: TrackingSession) -> None:
		while True:
			await asyncio.sleep(self._interval)
			try:
				await self.detect_and_log(session.user_id)
			except Exception:
				logger.exception("activity detection tick failed", extra={"user_id": session.user_id})

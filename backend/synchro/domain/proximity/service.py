"""Radius queries for users near a coordinate."""

from __future__ import annotations

import logging
from typing import List, Optional

from synchro.domain.activity.models import NearbyUser
from synchro.domain.activity.repo import ActivityRepository
from synchro.domain.common import clock as clock_mod
from synchro.domain.common.clock import Clock
from synchro.settings import settings

logger = logging.getLogger(__name__)


class ProximityMatcher:
	"""Finds other users whose latest unexpired observation is within a radius.

	Results are ordered nearest first and are not filtered by activity; callers
	post-filter as needed.
	"""

	def __init__(
		self,
		repository: ActivityRepository | None = None,
		*,
		clock: Clock = clock_mod.utcnow,
	) -> None:
		self._repo = repository or ActivityRepository()
		self._clock = clock

	async def find_nearby_users(
		self,
		user_id: str,
		latitude: float,
		longitude: float,
		radius_m: Optional[float] = None,
	) -> List[NearbyUser]:
		radius = float(radius_m if radius_m is not None else settings.nearby_radius_m)
		try:
			return await self._repo.find_nearby(user_id, latitude, longitude, radius, self._clock())
		except Exception:
			logger.warning("nearby user query failed", extra={"user_id": user_id}, exc_info=True)
			return []

"""Presence records kept in Redis."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from synchro.domain.common import clock as clock_mod
from synchro.domain.common.clock import Clock
from synchro.infra.redis import RedisProxy, redis_client
from synchro.obs import metrics as obs_metrics
from synchro.settings import settings

from .models import DeviceSample, PresenceRecord

logger = logging.getLogger(__name__)

GEO_KEY = "geo:presence"


def presence_key(user_id: str) -> str:
	return f"presence:{user_id}"


def online_key(user_id: str) -> str:
	return f"online:user:{user_id}"


class PresenceService:
	def __init__(
		self,
		redis: RedisProxy | None = None,
		*,
		clock: Clock = clock_mod.utcnow,
		ttl_seconds: int | None = None,
	) -> None:
		self._redis = redis or redis_client
		self._clock = clock
		self._ttl = int(ttl_seconds if ttl_seconds is not None else settings.presence_ttl_seconds)

	async def update_presence(self, user_id: str, sample: DeviceSample) -> bool:
		"""Write current coordinates and mark the user online.

		Runs for every raw sample regardless of what the classifier decides.
		"""
		now = self._clock()
		mapping = {
			"lat": sample.latitude,
			"lon": sample.longitude,
			"accuracy": sample.accuracy,
			"speed": sample.speed if sample.speed is not None else 0.0,
			"is_online": 1,
			"location_updated_at": now.isoformat(),
			"last_seen": now.isoformat(),
		}
		key = presence_key(user_id)
		try:
			await self._redis.hset(key, mapping=mapping)
			await self._redis.expire(key, self._ttl)
			await self._redis.setex(online_key(user_id), self._ttl, "1")
			await self._redis.geoadd(GEO_KEY, {user_id: (sample.longitude, sample.latitude)})
		except Exception:
			logger.warning("presence update failed", extra={"user_id": user_id}, exc_info=True)
			obs_metrics.inc_presence_sample("error")
			return False
		obs_metrics.inc_presence_sample("ok")
		return True

	async def go_offline(self, user_id: str) -> None:
		now = self._clock()
		try:
			await self._redis.delete(online_key(user_id))
			await self._redis.zrem(GEO_KEY, user_id)
			if await self._redis.exists(presence_key(user_id)):
				await self._redis.hset(
					presence_key(user_id),
					mapping={"is_online": 0, "last_seen": now.isoformat()},
				)
		except Exception:
			logger.warning("presence offline failed", extra={"user_id": user_id}, exc_info=True)

	async def get_presence(self, user_id: str) -> Optional[PresenceRecord]:
		raw = await self._redis.hgetall(presence_key(user_id))
		if not raw or "lat" not in raw or "lon" not in raw:
			return None
		try:
			return PresenceRecord(
				user_id=user_id,
				latitude=float(raw["lat"]),
				longitude=float(raw["lon"]),
				is_online=str(raw.get("is_online", "0")) == "1",
				location_updated_at=datetime.fromisoformat(raw["location_updated_at"]),
				last_seen=datetime.fromisoformat(raw["last_seen"]),
			)
		except (KeyError, ValueError):
			logger.warning("presence record malformed", extra={"user_id": user_id})
			return None

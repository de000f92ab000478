"""Shared Redis handle.

Modules import `redis_client` once; the connection behind it can be replaced
(fakeredis in tests) without re-importing anything.
"""

from __future__ import annotations

from typing import Mapping

import redis.asyncio as redis

from synchro.settings import settings


class RedisProxy:
	def __init__(self, client: redis.Redis):
		self._client: redis.Redis = client

	@property
	def client(self) -> redis.Redis:
		return self._client

	def set_client(self, client: redis.Redis) -> None:
		self._client = client

	async def geoadd(self, name: str, values, nx: bool = False, xx: bool = False, ch: bool = False):
		"""GEOADD that also takes {member: (lon, lat)}."""
		if isinstance(values, Mapping):
			values = [part for member, (lon, lat) in values.items() for part in (lon, lat, member)]
		return await self._client.geoadd(name, values, nx=nx, xx=xx, ch=ch)

	async def close(self) -> None:
		await self._client.aclose()

	def __getattr__(self, item):
		return getattr(self._client, item)


redis_client = RedisProxy(redis.from_url(settings.redis_url, decode_responses=True))


def set_redis_client(client: redis.Redis) -> None:
	redis_client.set_client(client)

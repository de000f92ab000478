"""In-memory fallback relations used when Postgres is unavailable.

Repositories fall back to this store in tests and local development. All
relations share one lock so multi-relation writes (auto-lobby creation,
ping acceptance, karma pairs) stay atomic exactly as they are inside a
Postgres transaction.
"""

from __future__ import annotations

import asyncio
from typing import Any

from synchro.infra import postgres


class MemoryStore:
	def __init__(self) -> None:
		self.reset()

	def reset(self) -> None:
		self.lock = asyncio.Lock()
		self.user_activities: list[Any] = []
		self.activity_patterns: dict[tuple[str, int, str, str], Any] = {}
		self.synchronicities: dict[str, Any] = {}
		self.auto_lobbies: dict[str, Any] = {}
		self.lobby_participants: dict[tuple[str, str], Any] = {}
		self.user_rhythms: dict[str, Any] = {}
		self.mirror_matches: dict[tuple[str, str], Any] = {}
		self.pings: dict[str, Any] = {}
		self.matches: dict[str, Any] = {}
		self.match_messages: list[Any] = []
		self.karma_transactions: list[Any] = []
		self.profiles: dict[str, int] = {}


memory_store = MemoryStore()


def reset_memory_state() -> None:
	memory_store.reset()


class PoolBackedRepository:
	"""Base for repositories backed by asyncpg with an in-memory fallback."""

	def __init__(self) -> None:
		self._pool_checked = False
		self._pool = None

	async def _pool_or_none(self):
		if self._pool_checked:
			return self._pool
		self._pool_checked = True
		self._pool = await postgres.pool_or_none()
		return self._pool

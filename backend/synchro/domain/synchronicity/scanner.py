"""Cancellable per-user scanning loop driving the synchronicity pipeline."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass, field
from typing import Dict, List

from synchro.domain.lobbies.models import AutoLobby
from synchro.domain.lobbies.service import AutoLobbyCreator
from synchro.obs import metrics as obs_metrics
from synchro.settings import settings

from .models import Synchronicity
from .service import SynchronicityEngine

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
	synchronicities: List[Synchronicity] = field(default_factory=list)
	lobbies: List[AutoLobby] = field(default_factory=list)


class SynchronicityScanner:
	def __init__(
		self,
		engine: SynchronicityEngine,
		lobby_creator: AutoLobbyCreator,
		*,
		interval_seconds: float | None = None,
	) -> None:
		self._engine = engine
		self._lobbies = lobby_creator
		self._interval = float(
			interval_seconds if interval_seconds is not None else settings.sync_scan_interval_seconds
		)
		self._tasks: Dict[str, asyncio.Task] = {}
		self._user_locks: Dict[str, asyncio.Lock] = {}
		self._lock_holders: Dict[str, int] = {}
		self._lock = asyncio.Lock()

	@asynccontextmanager
	async def _user_lock(self, user_id: str):
		"""Per-user lock, dropped once nobody holds or waits on it."""
		lock = self._user_locks.setdefault(user_id, asyncio.Lock())
		self._lock_holders[user_id] = self._lock_holders.get(user_id, 0) + 1
		try:
			async with lock:
				yield
		finally:
			remaining = self._lock_holders[user_id] - 1
			if remaining:
				self._lock_holders[user_id] = remaining
			else:
				del self._lock_holders[user_id]
				del self._user_locks[user_id]

	async def run_pipeline_once(self, user_id: str) -> PipelineResult:
		"""Scan, open lobbies for eligible synchronicities, then mark them notified."""
		result = PipelineResult()
		async with self._user_lock(user_id):
			result.synchronicities = await self._engine.scan_for_synchronicities(user_id)
			for sync in result.synchronicities:
				if await self._lobbies.should_create_lobby(sync):
					lobby = await self._lobbies.create_auto_lobby(sync)
					if lobby is not None:
						result.lobbies.append(lobby)
				if sync.notified_at is None:
					await self._engine.mark_as_notified(sync.id)
		return result

	async def start_scanning(self, user_id: str, interval_seconds: float | None = None) -> bool:
		"""Start the loop for a user. Returns False if one was already running."""
		interval = float(interval_seconds) if interval_seconds is not None else self._interval
		async with self._lock:
			if user_id in self._tasks:
				return False
			self._tasks[user_id] = asyncio.create_task(
				self._scan_loop(user_id, interval),
				name=f"synchronicity-scanner:{user_id}",
			)
			obs_metrics.set_scanners_active(len(self._tasks))
		logger.info("synchronicity scanning started", extra={"user_id": user_id, "interval": interval})
		return True

	async def stop_scanning(self, user_id: str) -> bool:
		async with self._lock:
			task = self._tasks.pop(user_id, None)
			obs_metrics.set_scanners_active(len(self._tasks))
		if task is None:
			return False
		task.cancel()
		with suppress(asyncio.CancelledError):
			await task
		logger.info("synchronicity scanning stopped", extra={"user_id": user_id})
		return True

	def is_scanning(self, user_id: str) -> bool:
		return user_id in self._tasks

	async def shutdown(self) -> None:
		async with self._lock:
			tasks = list(self._tasks.values())
			self._tasks.clear()
			obs_metrics.set_scanners_active(0)
		for task in tasks:
			task.cancel()
		for task in tasks:
			with suppress(asyncio.CancelledError):
				await task

	async def _scan_loop(self, user_id: str, interval: float) -> None:
		while True:
			try:
				await self.run_pipeline_once(user_id)
			except Exception:
				logger.exception("synchronicity scan tick failed", extra={"user_id": user_id})
			await asyncio.sleep(interval)

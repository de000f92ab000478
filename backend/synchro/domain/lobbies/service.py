"""Auto-lobby formation and lifecycle for strong synchronicities."""

from __future__ import annotations

import logging
import random
from typing import Dict, List, Optional

from synchro.domain.common import clock as clock_mod
from synchro.domain.common import sockets
from synchro.domain.common.clock import Clock
from synchro.domain.common.geo import haversine_km
from synchro.domain.synchronicity.models import Synchronicity
from synchro.infra import changefeed
from synchro.obs import metrics as obs_metrics
from synchro.settings import settings

from . import templates
from .models import (
	AUTO_START_OFFSET,
	DEFAULT_LOCATION_NAME,
	MIN_PARTICIPANTS,
	MIN_SYNC_SCORE,
	SCHEDULE_OFFSET,
	AutoLobby,
	lobby_type_for,
	max_participants_for,
)
from .repo import AutoLobbyRepository

logger = logging.getLogger(__name__)


class AutoLobbyCreator:
	def __init__(
		self,
		repository: AutoLobbyRepository | None = None,
		*,
		clock: Clock = clock_mod.utcnow,
		rng: random.Random | None = None,
	) -> None:
		self._repo = repository or AutoLobbyRepository()
		self._clock = clock
		self._rng = rng or random.Random()

	@property
	def repository(self) -> AutoLobbyRepository:
		return self._repo

	async def should_create_lobby(self, sync: Synchronicity) -> bool:
		if sync.lobby_created:
			return False
		if sync.sync_score < MIN_SYNC_SCORE:
			return False
		if len(sync.user_ids) < MIN_PARTICIPANTS:
			return False
		try:
			return not await self._repo.exists_for_synchronicity(sync.id)
		except Exception:
			logger.warning("lobby existence check failed", extra={"sync_id": sync.id}, exc_info=True)
			return False

	async def create_auto_lobby(self, sync: Synchronicity) -> Optional[AutoLobby]:
		"""Create a lobby seeded with every synchronicity member.

		The lobby insert, participant rows and the synchronicity flag are written
		as one unit. Returns None when ineligible or when another lobby already
		claimed the synchronicity.
		"""
		if not await self.should_create_lobby(sync):
			return None
		now = self._clock()
		member_count = len(sync.user_ids)
		location_name = sync.location_name or DEFAULT_LOCATION_NAME
		lobby = AutoLobby(
			host_id=sync.user_ids[0],
			title=templates.generate_title(sync.activity_type, sync.location_name, self._rng),
			description=templates.generate_description(sync.activity_type, member_count, sync.location_name),
			activity_type=sync.activity_type,
			lobby_type=lobby_type_for(sync.activity_type),
			location_name=location_name,
			latitude=sync.latitude,
			longitude=sync.longitude,
			max_participants=max_participants_for(member_count),
			min_participants=MIN_PARTICIPANTS,
			current_participants=member_count,
			scheduled_time=now + SCHEDULE_OFFSET,
			auto_start_at=now + AUTO_START_OFFSET,
			created_at=now,
			synchronicity_id=sync.id,
			user_ids=list(sync.user_ids),
		)
		try:
			created = await self._repo.create_with_members(lobby, now)
		except Exception:
			logger.exception("auto lobby creation failed", extra={"sync_id": sync.id})
			obs_metrics.inc_auto_lobby("error")
			return None
		if created is None:
			obs_metrics.inc_auto_lobby("conflict")
			return None
		sync.lobby_created = True
		sync.lobby_id = created.id
		obs_metrics.inc_auto_lobby("created")
		logger.info(
			"auto lobby created",
			extra={"lobby_id": created.id, "sync_id": sync.id, "members": created.current_participants},
		)
		payload = created.to_dict()
		await changefeed.publish("auto_lobbies", "insert", payload)
		await sockets.emit_to_users(created.user_ids, "lobby:new", sockets.jsonable(payload))
		return created

	async def check_and_start_lobbies(self) -> Dict[str, int]:
		started, cancelled = await self._repo.settle_due(self._clock())
		if started:
			obs_metrics.inc_auto_lobby("started", len(started))
		if cancelled:
			obs_metrics.inc_auto_lobby("cancelled", len(cancelled))
		for lobby_id in started:
			await changefeed.publish("auto_lobbies", "update", {"id": lobby_id, "status": "started"})
		for lobby_id in cancelled:
			await changefeed.publish("auto_lobbies", "update", {"id": lobby_id, "status": "cancelled"})
		return {"started": len(started), "cancelled": len(cancelled)}

	async def get_auto_lobbies_nearby(
		self,
		latitude: float,
		longitude: float,
		radius_km: float | None = None,
	) -> List[AutoLobby]:
		radius = float(radius_km if radius_km is not None else settings.lobby_nearby_radius_km)
		try:
			lobbies = await self._repo.list_open_upcoming(self._clock())
		except Exception:
			logger.warning("nearby lobby lookup failed", exc_info=True)
			return []
		return [
			lobby
			for lobby in lobbies
			if haversine_km(latitude, longitude, lobby.latitude, lobby.longitude) <= radius
		]

	async def get_lobby(self, lobby_id: str) -> Optional[AutoLobby]:
		return await self._repo.get(lobby_id)

	async def join_lobby(self, lobby_id: str, user_id: str) -> AutoLobby:
		lobby = await self._repo.add_participant(lobby_id, user_id, self._clock())
		await changefeed.publish(
			"lobby_participants",
			"insert",
			{"lobby_id": lobby.id, "user_id": user_id},
		)
		return lobby

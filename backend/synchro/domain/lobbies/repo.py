"""Persistence for auto lobbies and their participants."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from synchro.domain.activity.models import ActivityType
from synchro.infra.memory import PoolBackedRepository, memory_store

from .exceptions import LobbyClosed, LobbyFull, LobbyNotFound
from .models import AutoLobby, LobbyParticipant, LobbyStatus, LobbyType


def _row_to_lobby(row, user_ids: List[str] | None = None) -> AutoLobby:
	return AutoLobby(
		id=str(row["id"]),
		host_id=str(row["host_id"]),
		title=row["title"],
		description=row["description"],
		activity_type=ActivityType(row["activity_type"]),
		lobby_type=LobbyType(row["lobby_type"]),
		location_name=row["location_name"],
		latitude=float(row["latitude"]),
		longitude=float(row["longitude"]),
		max_participants=int(row["max_participants"]),
		min_participants=int(row["min_participants"]),
		current_participants=int(row["current_participants"]),
		scheduled_time=row["scheduled_time"],
		auto_start_at=row["auto_start_at"],
		status=LobbyStatus(row["status"]),
		synchronicity_id=str(row["synchronicity_id"]) if row["synchronicity_id"] else None,
		is_auto_generated=bool(row["is_auto_generated"]),
		is_paid=bool(row["is_paid"]),
		created_at=row["created_at"],
		user_ids=list(user_ids or []),
	)


def _as_uuid(value: str) -> Optional[UUID]:
	try:
		return UUID(str(value))
	except ValueError:
		return None


def _memory_members(lobby_id: str) -> List[str]:
	members = [p for (lid, _), p in memory_store.lobby_participants.items() if lid == lobby_id]
	members.sort(key=lambda p: p.joined_at)
	return [p.user_id for p in members]


class AutoLobbyRepository(PoolBackedRepository):
	async def exists_for_synchronicity(self, sync_id: str) -> bool:
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				return any(
					lobby.synchronicity_id == sync_id for lobby in memory_store.auto_lobbies.values()
				)
		key = _as_uuid(sync_id)
		if key is None:
			return False
		async with pool.acquire() as conn:
			found = await conn.fetchval("SELECT 1 FROM auto_lobbies WHERE synchronicity_id = $1", key)
		return bool(found)

	async def create_with_members(self, lobby: AutoLobby, now: datetime) -> Optional[AutoLobby]:
		"""Insert the lobby, seed its members and flag the synchronicity as one unit.

		Returns None when another lobby already references the synchronicity.
		"""
		members = list(dict.fromkeys(lobby.user_ids))
		lobby.user_ids = members
		lobby.current_participants = len(members)
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				if lobby.synchronicity_id and any(
					existing.synchronicity_id == lobby.synchronicity_id
					for existing in memory_store.auto_lobbies.values()
				):
					return None
				memory_store.auto_lobbies[lobby.id] = lobby
				for user_id in members:
					memory_store.lobby_participants[(lobby.id, user_id)] = LobbyParticipant(
						lobby_id=lobby.id,
						user_id=user_id,
						joined_at=now,
					)
				sync = memory_store.synchronicities.get(lobby.synchronicity_id or "")
				if sync is not None:
					sync.lobby_created = True
					sync.lobby_id = lobby.id
				return lobby
		sync_key = _as_uuid(lobby.synchronicity_id) if lobby.synchronicity_id else None
		async with pool.acquire() as conn:
			async with conn.transaction():
				row = await conn.fetchrow(
					"""
					INSERT INTO auto_lobbies (
						id, host_id, title, description, activity_type, lobby_type, location_name,
						latitude, longitude, max_participants, min_participants, current_participants,
						scheduled_time, auto_start_at, status, synchronicity_id,
						is_auto_generated, is_paid, created_at
					) VALUES ($1,$2,$3,$4,$5,$6,$7,$8,$9,$10,$11,$12,$13,$14,$15,$16,TRUE,FALSE,$17)
					ON CONFLICT (synchronicity_id) DO NOTHING
					RETURNING *
					""",
					UUID(lobby.id),
					lobby.host_id,
					lobby.title,
					lobby.description,
					lobby.activity_type.value,
					lobby.lobby_type.value,
					lobby.location_name,
					lobby.latitude,
					lobby.longitude,
					lobby.max_participants,
					lobby.min_participants,
					lobby.current_participants,
					lobby.scheduled_time,
					lobby.auto_start_at,
					lobby.status.value,
					sync_key,
					now,
				)
				if row is None:
					return None
				await conn.executemany(
					"""
					INSERT INTO lobby_participants (lobby_id, user_id, status, payment_status, joined_at)
					VALUES ($1, $2, 'joined', 'completed', $3)
					""",
					[(UUID(lobby.id), user_id, now) for user_id in members],
				)
				if sync_key is not None:
					await conn.execute(
						"UPDATE synchronicities SET lobby_created = TRUE, lobby_id = $2 WHERE id = $1",
						sync_key,
						UUID(lobby.id),
					)
		return _row_to_lobby(row, members)

	async def get(self, lobby_id: str) -> Optional[AutoLobby]:
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				lobby = memory_store.auto_lobbies.get(lobby_id)
				if lobby is not None:
					lobby.user_ids = _memory_members(lobby_id)
				return lobby
		key = _as_uuid(lobby_id)
		if key is None:
			return None
		async with pool.acquire() as conn:
			row = await conn.fetchrow("SELECT * FROM auto_lobbies WHERE id = $1", key)
			if row is None:
				return None
			members = await conn.fetch(
				"SELECT user_id FROM lobby_participants WHERE lobby_id = $1 ORDER BY joined_at",
				key,
			)
		return _row_to_lobby(row, [str(m["user_id"]) for m in members])

	async def list_open_upcoming(self, now: datetime) -> List[AutoLobby]:
		"""Open auto lobbies whose auto-start time is still ahead."""
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				return [
					lobby
					for lobby in memory_store.auto_lobbies.values()
					if lobby.is_auto_generated and lobby.status == LobbyStatus.OPEN and lobby.auto_start_at > now
				]
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT * FROM auto_lobbies
				WHERE is_auto_generated AND status = 'open' AND auto_start_at > $1
				""",
				now,
			)
		return [_row_to_lobby(row) for row in rows]

	async def settle_due(self, now: datetime) -> Tuple[List[str], List[str]]:
		"""Start or cancel every open auto lobby whose auto-start time has passed.

		Returns (started_ids, cancelled_ids).
		"""
		started: List[str] = []
		cancelled: List[str] = []
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				for lobby in memory_store.auto_lobbies.values():
					if not lobby.is_auto_generated or lobby.status != LobbyStatus.OPEN:
						continue
					if lobby.auto_start_at > now:
						continue
					if lobby.has_quorum:
						lobby.status = LobbyStatus.STARTED
						started.append(lobby.id)
					else:
						lobby.status = LobbyStatus.CANCELLED
						cancelled.append(lobby.id)
			return started, cancelled
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				UPDATE auto_lobbies
				SET status = CASE
					WHEN current_participants >= min_participants THEN 'started'
					ELSE 'cancelled'
				END
				WHERE is_auto_generated AND status = 'open' AND auto_start_at <= $1
				RETURNING id, status
				""",
				now,
			)
		for row in rows:
			target = started if row["status"] == LobbyStatus.STARTED.value else cancelled
			target.append(str(row["id"]))
		return started, cancelled

	async def add_participant(self, lobby_id: str, user_id: str, now: datetime) -> AutoLobby:
		"""Join an open lobby; re-joining is a no-op. Capacity is checked under lock."""
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				lobby = memory_store.auto_lobbies.get(lobby_id)
				if lobby is None:
					raise LobbyNotFound()
				if (lobby_id, user_id) not in memory_store.lobby_participants:
					if lobby.status != LobbyStatus.OPEN:
						raise LobbyClosed()
					if lobby.is_full:
						raise LobbyFull()
					memory_store.lobby_participants[(lobby_id, user_id)] = LobbyParticipant(
						lobby_id=lobby_id,
						user_id=user_id,
						joined_at=now,
					)
					lobby.current_participants += 1
				lobby.user_ids = _memory_members(lobby_id)
				return lobby
		key = _as_uuid(lobby_id)
		if key is None:
			raise LobbyNotFound()
		async with pool.acquire() as conn:
			async with conn.transaction():
				row = await conn.fetchrow("SELECT * FROM auto_lobbies WHERE id = $1 FOR UPDATE", key)
				if row is None:
					raise LobbyNotFound()
				already = await conn.fetchval(
					"SELECT 1 FROM lobby_participants WHERE lobby_id = $1 AND user_id = $2",
					key,
					user_id,
				)
				if not already:
					if row["status"] != LobbyStatus.OPEN.value:
						raise LobbyClosed()
					if int(row["current_participants"]) >= int(row["max_participants"]):
						raise LobbyFull()
					await conn.execute(
						"""
						INSERT INTO lobby_participants (lobby_id, user_id, status, payment_status, joined_at)
						VALUES ($1, $2, 'joined', 'completed', $3)
						""",
						key,
						user_id,
						now,
					)
					row = await conn.fetchrow(
						"""
						UPDATE auto_lobbies SET current_participants = current_participants + 1
						WHERE id = $1
						RETURNING *
						""",
						key,
					)
				members = await conn.fetch(
					"SELECT user_id FROM lobby_participants WHERE lobby_id = $1 ORDER BY joined_at",
					key,
				)
		return _row_to_lobby(row, [str(m["user_id"]) for m in members])

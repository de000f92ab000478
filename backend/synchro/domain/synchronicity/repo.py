"""Persistence for synchronicities."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from synchro.domain.activity.models import ActivityType
from synchro.infra.memory import PoolBackedRepository, memory_store

from .models import Synchronicity


def _row_to_sync(row) -> Synchronicity:
	return Synchronicity(
		id=str(row["id"]),
		user_ids=[str(uid) for uid in row["user_ids"]],
		activity_type=ActivityType(row["activity_type"]),
		location_name=row["location_name"],
		latitude=float(row["latitude"]),
		longitude=float(row["longitude"]),
		sync_score=float(row["sync_score"]),
		distance_meters=float(row["distance_meters"]),
		lobby_created=bool(row["lobby_created"]),
		lobby_id=str(row["lobby_id"]) if row["lobby_id"] else None,
		created_at=row["created_at"],
		expires_at=row["expires_at"],
		notified_at=row["notified_at"],
	)


def _as_uuid(value: str) -> Optional[UUID]:
	try:
		return UUID(str(value))
	except ValueError:
		return None


def _newest_covering(
	candidates: List[Synchronicity],
	user_ids: List[str],
	activity_type: ActivityType,
	now: datetime,
) -> Optional[Synchronicity]:
	open_matches = [
		sync for sync in candidates if sync.is_open(now) and sync.covers(user_ids, activity_type)
	]
	if not open_matches:
		return None
	return max(open_matches, key=lambda sync: sync.created_at)


class SynchronicityRepository(PoolBackedRepository):
	async def create_or_reuse(self, candidate: Synchronicity, now: datetime) -> Tuple[Synchronicity, bool]:
		"""Return the newest open record covering the candidate's users, else insert it.

		The lookup and insert are serialized per activity type (advisory lock in
		Postgres, the store lock in memory) so concurrent scans converge on one row.
		"""
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				existing = _newest_covering(
					list(memory_store.synchronicities.values()),
					candidate.user_ids,
					candidate.activity_type,
					now,
				)
				if existing is not None:
					return existing, False
				memory_store.synchronicities[candidate.id] = candidate
				return candidate, True
		async with pool.acquire() as conn:
			async with conn.transaction():
				await conn.execute(
					"SELECT pg_advisory_xact_lock(hashtext($1))",
					f"synchronicity:{candidate.activity_type.value}",
				)
				row = await conn.fetchrow(
					"""
					SELECT * FROM synchronicities
					WHERE user_ids @> $1::text[] AND activity_type = $2 AND expires_at > $3
					ORDER BY created_at DESC
					LIMIT 1
					""",
					candidate.user_ids,
					candidate.activity_type.value,
					now,
				)
				if row:
					return _row_to_sync(row), False
				row = await conn.fetchrow(
					"""
					INSERT INTO synchronicities (
						id, user_ids, activity_type, location_name, latitude, longitude,
						sync_score, distance_meters, lobby_created, lobby_id, created_at, expires_at
					) VALUES ($1, $2::text[], $3, $4, $5, $6, $7, $8, FALSE, NULL, $9, $10)
					RETURNING *
					""",
					UUID(candidate.id),
					candidate.user_ids,
					candidate.activity_type.value,
					candidate.location_name,
					candidate.latitude,
					candidate.longitude,
					candidate.sync_score,
					candidate.distance_meters,
					candidate.created_at,
					candidate.expires_at,
				)
				return _row_to_sync(row), True

	async def get(self, sync_id: str) -> Optional[Synchronicity]:
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				return memory_store.synchronicities.get(sync_id)
		key = _as_uuid(sync_id)
		if key is None:
			return None
		async with pool.acquire() as conn:
			row = await conn.fetchrow("SELECT * FROM synchronicities WHERE id = $1", key)
		return _row_to_sync(row) if row else None

	async def list_open_for_user(self, user_id: str, now: datetime) -> List[Synchronicity]:
		"""Open synchronicities containing the user, highest score first."""
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				rows = [
					sync
					for sync in memory_store.synchronicities.values()
					if user_id in sync.user_ids and sync.is_open(now)
				]
			return sorted(rows, key=lambda sync: sync.sync_score, reverse=True)
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT * FROM synchronicities
				WHERE user_ids @> ARRAY[$1]::text[] AND expires_at > $2
				ORDER BY sync_score DESC
				""",
				user_id,
				now,
			)
		return [_row_to_sync(row) for row in rows]

	async def mark_notified(self, sync_id: str, now: datetime) -> bool:
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				sync = memory_store.synchronicities.get(sync_id)
				if sync is None:
					return False
				sync.notified_at = now
				return True
		key = _as_uuid(sync_id)
		if key is None:
			return False
		async with pool.acquire() as conn:
			result = await conn.execute(
				"UPDATE synchronicities SET notified_at = $2 WHERE id = $1",
				key,
				now,
			)
		return result.endswith(" 1")

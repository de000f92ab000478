"""Persistence for activity observations and activity patterns."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID, uuid4

from synchro.domain.common.geo import haversine
from synchro.infra.memory import PoolBackedRepository, memory_store

from .models import (
	ActivityObservation,
	ActivityPattern,
	ActivityType,
	NearbyUser,
	VenueType,
	pattern_frequency,
)


def _row_to_observation(row) -> ActivityObservation:
	return ActivityObservation(
		id=str(row["id"]),
		user_id=str(row["user_id"]),
		activity_type=ActivityType(row["activity_type"]),
		venue_type=VenueType(row["venue_type"]) if row["venue_type"] else None,
		latitude=float(row["latitude"]),
		longitude=float(row["longitude"]),
		confidence=float(row["confidence"]),
		speed=float(row["speed"] or 0.0),
		location_name=row["location_name"],
		detected_at=row["detected_at"],
		expires_at=row["expires_at"],
	)


def _row_to_pattern(row) -> ActivityPattern:
	return ActivityPattern(
		id=str(row["id"]),
		user_id=str(row["user_id"]),
		day_of_week=int(row["day_of_week"]),
		time_slot=str(row["time_slot"]),
		activity_type=ActivityType(row["activity_type"]),
		frequency=float(row["frequency"]),
		occurrence_count=int(row["occurrence_count"]),
		last_occurred=row["last_occurred"],
	)


class ActivityRepository(PoolBackedRepository):
	"""Reads and writes `user_activities` and `activity_patterns`."""

	async def insert_observation(self, observation: ActivityObservation) -> ActivityObservation:
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				memory_store.user_activities.append(observation)
			return observation
		async with pool.acquire() as conn:
			await conn.execute(
				"""
				INSERT INTO user_activities (
					id, user_id, activity_type, venue_type, latitude, longitude,
					confidence, speed, location_name, detected_at, expires_at
				) VALUES ($1,$2,$3,$4,$5,$6,$7,$8,$9,$10,$11)
				""",
				UUID(observation.id),
				observation.user_id,
				observation.activity_type.value,
				observation.venue_type.value if observation.venue_type else None,
				observation.latitude,
				observation.longitude,
				observation.confidence,
				observation.speed,
				observation.location_name,
				observation.detected_at,
				observation.expires_at,
			)
		return observation

	async def upsert_pattern(
		self,
		user_id: str,
		day_of_week: int,
		time_slot: str,
		activity_type: ActivityType,
		occurred_at: datetime,
	) -> ActivityPattern:
		"""Insert the pattern row or bump its occurrence count in one statement."""
		pool = await self._pool_or_none()
		if pool is None:
			key = (user_id, day_of_week, time_slot, activity_type.value)
			async with memory_store.lock:
				existing: Optional[ActivityPattern] = memory_store.activity_patterns.get(key)
				if existing is None:
					existing = ActivityPattern(
						user_id=user_id,
						day_of_week=day_of_week,
						time_slot=time_slot,
						activity_type=activity_type,
						frequency=pattern_frequency(1),
						occurrence_count=1,
						last_occurred=occurred_at,
					)
					memory_store.activity_patterns[key] = existing
				else:
					existing.occurrence_count += 1
					existing.frequency = pattern_frequency(existing.occurrence_count)
					existing.last_occurred = occurred_at
				return existing
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				INSERT INTO activity_patterns (
					id, user_id, day_of_week, time_slot, activity_type,
					frequency, occurrence_count, last_occurred
				) VALUES ($1, $2, $3, $4, $5, $6, 1, $7)
				ON CONFLICT (user_id, day_of_week, time_slot, activity_type) DO UPDATE SET
					occurrence_count = activity_patterns.occurrence_count + 1,
					frequency = LEAST((activity_patterns.occurrence_count + 1) / 20.0, 1.0),
					last_occurred = EXCLUDED.last_occurred
				RETURNING *
				""",
				uuid4(),
				user_id,
				day_of_week,
				time_slot,
				activity_type.value,
				pattern_frequency(1),
				occurred_at,
			)
		return _row_to_pattern(row)

	async def get_pattern(
		self,
		user_id: str,
		day_of_week: int,
		time_slot: str,
		activity_type: ActivityType,
	) -> Optional[ActivityPattern]:
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				return memory_store.activity_patterns.get((user_id, day_of_week, time_slot, activity_type.value))
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				SELECT * FROM activity_patterns
				WHERE user_id = $1 AND day_of_week = $2 AND time_slot = $3 AND activity_type = $4
				""",
				user_id,
				day_of_week,
				time_slot,
				activity_type.value,
			)
		return _row_to_pattern(row) if row else None

	async def latest_observation(self, user_id: str, now: datetime) -> Optional[ActivityObservation]:
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				candidates = [
					obs
					for obs in memory_store.user_activities
					if obs.user_id == user_id and obs.is_active(now)
				]
			if not candidates:
				return None
			return max(candidates, key=lambda obs: obs.detected_at)
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				SELECT * FROM user_activities
				WHERE user_id = $1 AND expires_at > $2
				ORDER BY detected_at DESC
				LIMIT 1
				""",
				user_id,
				now,
			)
		return _row_to_observation(row) if row else None

	async def list_since(self, user_id: str, since: datetime) -> List[ActivityObservation]:
		"""Observations detected at or after `since`, oldest first."""
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				rows = [
					obs
					for obs in memory_store.user_activities
					if obs.user_id == user_id and obs.detected_at >= since
				]
			return sorted(rows, key=lambda obs: obs.detected_at)
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT * FROM user_activities
				WHERE user_id = $1 AND detected_at >= $2
				ORDER BY detected_at ASC
				""",
				user_id,
				since,
			)
		return [_row_to_observation(row) for row in rows]

	async def find_nearby(
		self,
		user_id: str,
		latitude: float,
		longitude: float,
		radius_m: float,
		now: datetime,
	) -> List[NearbyUser]:
		"""Other users whose latest unexpired observation lies within `radius_m`."""
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				latest: dict[str, ActivityObservation] = {}
				for obs in memory_store.user_activities:
					if obs.user_id == user_id or not obs.is_active(now):
						continue
					current = latest.get(obs.user_id)
					if current is None or obs.detected_at > current.detected_at:
						latest[obs.user_id] = obs
			nearby: List[NearbyUser] = []
			for obs in latest.values():
				distance = haversine(latitude, longitude, obs.latitude, obs.longitude)
				if distance <= radius_m:
					nearby.append(
						NearbyUser(
							user_id=obs.user_id,
							distance_meters=distance,
							activity_type=obs.activity_type,
							location_name=obs.location_name,
							detected_at=obs.detected_at,
						)
					)
			nearby.sort(key=lambda item: item.distance_meters)
			return nearby
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"SELECT * FROM find_nearby_users($1, $2, $3, $4, $5)",
				user_id,
				latitude,
				longitude,
				float(radius_m),
				now,
			)
		return [
			NearbyUser(
				user_id=str(row["user_id"]),
				distance_meters=float(row["distance_meters"]),
				activity_type=ActivityType(row["activity_type"]),
				location_name=row["location_name"],
				detected_at=row["detected_at"],
			)
			for row in rows
		]

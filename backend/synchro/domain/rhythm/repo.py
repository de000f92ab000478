"""Persistence for rhythm profiles and mirror matches."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, List, Optional

from synchro.infra.memory import PoolBackedRepository, memory_store

from . import analysis
from .models import RhythmType, StoredMirrorMatch, UserRhythm


def _json_value(value: Any, default: Any) -> Any:
	if value is None:
		return default
	if isinstance(value, str):
		return json.loads(value)
	return value


def _row_to_rhythm(row) -> UserRhythm:
	return UserRhythm(
		user_id=str(row["user_id"]),
		wake_time=row["wake_time"],
		sleep_time=row["sleep_time"],
		lunch_time=row["lunch_time"],
		workout_pattern=_json_value(row["workout_pattern"], []),
		commute_pattern=_json_value(row["commute_pattern"], []),
		social_peaks=list(row["social_peaks"] or []),
		rhythm_type=RhythmType(row["rhythm_type"]),
		energy_peaks=list(row["energy_peaks"] or []),
		coffee_spots=list(row["coffee_spots"] or []),
		favorite_venues=list(row["favorite_venues"] or []),
		weekend_routine=_json_value(row["weekend_routine"], {}),
		calculated_at=row["calculated_at"],
		updated_at=row["updated_at"],
	)


def canonical_pair(user_a: str, user_b: str) -> tuple[str, str]:
	"""Code-point order; mirror_matches compares with COLLATE "C" to agree."""
	return (user_a, user_b) if user_a < user_b else (user_b, user_a)


class RhythmRepository(PoolBackedRepository):
	async def upsert_rhythm(self, rhythm: UserRhythm, now: datetime) -> UserRhythm:
		"""Replace the user's profile wholesale."""
		rhythm.calculated_at = now
		rhythm.updated_at = now
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				memory_store.user_rhythms[rhythm.user_id] = rhythm
			return rhythm
		async with pool.acquire() as conn:
			await conn.execute(
				"""
				INSERT INTO user_rhythms (
					user_id, wake_time, sleep_time, lunch_time, workout_pattern, commute_pattern,
					social_peaks, rhythm_type, energy_peaks, coffee_spots, favorite_venues,
					weekend_routine, calculated_at, updated_at
				) VALUES ($1, $2, $3, $4, $5::jsonb, $6::jsonb, $7, $8, $9, $10, $11, $12::jsonb, $13, $13)
				ON CONFLICT (user_id) DO UPDATE SET
					wake_time = EXCLUDED.wake_time,
					sleep_time = EXCLUDED.sleep_time,
					lunch_time = EXCLUDED.lunch_time,
					workout_pattern = EXCLUDED.workout_pattern,
					commute_pattern = EXCLUDED.commute_pattern,
					social_peaks = EXCLUDED.social_peaks,
					rhythm_type = EXCLUDED.rhythm_type,
					energy_peaks = EXCLUDED.energy_peaks,
					coffee_spots = EXCLUDED.coffee_spots,
					favorite_venues = EXCLUDED.favorite_venues,
					weekend_routine = EXCLUDED.weekend_routine,
					calculated_at = EXCLUDED.calculated_at,
					updated_at = EXCLUDED.updated_at
				""",
				rhythm.user_id,
				rhythm.wake_time,
				rhythm.sleep_time,
				rhythm.lunch_time,
				json.dumps(rhythm.workout_pattern),
				json.dumps(rhythm.commute_pattern),
				rhythm.social_peaks,
				rhythm.rhythm_type.value,
				rhythm.energy_peaks,
				rhythm.coffee_spots,
				rhythm.favorite_venues,
				json.dumps(rhythm.weekend_routine),
				now,
			)
		return rhythm

	async def get_rhythm(self, user_id: str) -> Optional[UserRhythm]:
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				return memory_store.user_rhythms.get(user_id)
		async with pool.acquire() as conn:
			row = await conn.fetchrow("SELECT * FROM user_rhythms WHERE user_id = $1", user_id)
		return _row_to_rhythm(row) if row else None

	async def list_others(self, user_id: str) -> List[UserRhythm]:
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				return [rhythm for uid, rhythm in memory_store.user_rhythms.items() if uid != user_id]
		async with pool.acquire() as conn:
			rows = await conn.fetch("SELECT * FROM user_rhythms WHERE user_id <> $1", user_id)
		return [_row_to_rhythm(row) for row in rows]

	async def compatibility(self, user_a: str, user_b: str) -> float:
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				left = memory_store.user_rhythms.get(user_a)
				right = memory_store.user_rhythms.get(user_b)
			if left is None or right is None:
				return 0.0
			return analysis.routine_similarity(left, right)
		async with pool.acquire() as conn:
			score = await conn.fetchval("SELECT calculate_rhythm_compatibility($1, $2)", user_a, user_b)
		return float(score or 0.0)

	async def upsert_mirror_match(
		self,
		user_a: str,
		user_b: str,
		score: float,
		routines: List[str],
		now: datetime,
	) -> StoredMirrorMatch:
		first, second = canonical_pair(user_a, user_b)
		record = StoredMirrorMatch(
			user_a=first,
			user_b=second,
			overlap_score=score,
			shared_routines=list(routines),
			last_updated=now,
		)
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				memory_store.mirror_matches[(first, second)] = record
			return record
		async with pool.acquire() as conn:
			await conn.execute(
				"""
				INSERT INTO mirror_matches (user_a, user_b, overlap_score, shared_routines, last_updated)
				VALUES ($1, $2, $3, $4, $5)
				ON CONFLICT (user_a, user_b) DO UPDATE SET
					overlap_score = EXCLUDED.overlap_score,
					shared_routines = EXCLUDED.shared_routines,
					last_updated = EXCLUDED.last_updated
				""",
				first,
				second,
				score,
				list(routines),
				now,
			)
		return record

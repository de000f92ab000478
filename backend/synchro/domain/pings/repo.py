"""Persistence for pings, matches and match messages."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional, Tuple
from uuid import UUID, uuid4

from synchro.infra.memory import PoolBackedRepository, memory_store

from .exceptions import PingForbidden, PingGone, PingNotFound
from .models import ACTIVE_PING_STATUSES, Match, MatchMessage, Ping, PingActivity, PingStatus


def _row_to_ping(row) -> Ping:
	return Ping(
		id=str(row["id"]),
		from_user=str(row["from_user"]),
		to_user=str(row["to_user"]),
		activity=PingActivity(row["activity"]),
		status=PingStatus(row["status"]),
		created_at=row["created_at"],
		expires_at=row["expires_at"],
	)


def _row_to_match(row) -> Match:
	return Match(
		id=str(row["id"]),
		ping_id=str(row["ping_id"]),
		user_a=str(row["user_a"]),
		user_b=str(row["user_b"]),
		activity=PingActivity(row["activity"]),
		created_at=row["created_at"],
		expires_at=row["expires_at"],
	)


def _row_to_message(row) -> MatchMessage:
	return MatchMessage(
		id=str(row["id"]),
		match_id=str(row["match_id"]),
		sender_id=str(row["sender_id"]),
		content=row["content"],
		created_at=row["created_at"],
	)


def _as_uuid(value: str) -> Optional[UUID]:
	try:
		return UUID(str(value))
	except ValueError:
		return None


def _check_recipient(ping: Ping, user_id: str) -> None:
	if ping.to_user != user_id:
		raise PingForbidden()
	if ping.status != PingStatus.PENDING:
		raise PingGone()


class PingRepository(PoolBackedRepository):
	async def create_pending(self, ping: Ping, now: datetime) -> Optional[Ping]:
		"""Insert a pending ping unless one is still open for the same triple.

		Stale pending rows for the triple are expired first so they do not hold
		the unique slot. Returns None when a live pending ping already exists.
		"""
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				for existing in memory_store.pings.values():
					if (
						existing.status == PingStatus.PENDING
						and existing.from_user == ping.from_user
						and existing.to_user == ping.to_user
						and existing.activity == ping.activity
					):
						if not existing.is_expired(now):
							return None
						existing.status = PingStatus.EXPIRED
				memory_store.pings[ping.id] = ping
				return ping
		async with pool.acquire() as conn:
			async with conn.transaction():
				await conn.execute(
					"""
					UPDATE pings SET status = 'expired'
					WHERE from_user = $1 AND to_user = $2 AND activity = $3
						AND status = 'pending' AND expires_at <= $4
					""",
					ping.from_user,
					ping.to_user,
					ping.activity.value,
					now,
				)
				row = await conn.fetchrow(
					"""
					INSERT INTO pings (id, from_user, to_user, activity, status, created_at, expires_at)
					VALUES ($1, $2, $3, $4, 'pending', $5, $6)
					ON CONFLICT (from_user, to_user, activity) WHERE status = 'pending' DO NOTHING
					RETURNING *
					""",
					UUID(ping.id),
					ping.from_user,
					ping.to_user,
					ping.activity.value,
					ping.created_at,
					ping.expires_at,
				)
		return _row_to_ping(row) if row else None

	async def get(self, ping_id: str) -> Optional[Ping]:
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				return memory_store.pings.get(ping_id)
		key = _as_uuid(ping_id)
		if key is None:
			return None
		async with pool.acquire() as conn:
			row = await conn.fetchrow("SELECT * FROM pings WHERE id = $1", key)
		return _row_to_ping(row) if row else None

	async def accept(
		self,
		ping_id: str,
		user_id: str,
		now: datetime,
		match_ttl: timedelta,
	) -> Tuple[Ping, Optional[Match]]:
		"""Accept a pending ping and create its match in one transaction.

		An expired ping is moved to `expired` instead and no match is returned.
		"""
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				ping = memory_store.pings.get(ping_id)
				if ping is None:
					raise PingNotFound()
				_check_recipient(ping, user_id)
				if ping.is_expired(now):
					ping.status = PingStatus.EXPIRED
					return ping, None
				ping.status = PingStatus.ACCEPTED
				match = Match(
					ping_id=ping.id,
					user_a=ping.from_user,
					user_b=ping.to_user,
					activity=ping.activity,
					created_at=now,
					expires_at=now + match_ttl,
				)
				memory_store.matches[match.id] = match
				return ping, match
		key = _as_uuid(ping_id)
		if key is None:
			raise PingNotFound()
		async with pool.acquire() as conn:
			async with conn.transaction():
				row = await conn.fetchrow("SELECT * FROM pings WHERE id = $1 FOR UPDATE", key)
				if row is None:
					raise PingNotFound()
				ping = _row_to_ping(row)
				_check_recipient(ping, user_id)
				if ping.is_expired(now):
					await conn.execute("UPDATE pings SET status = 'expired' WHERE id = $1", key)
					ping.status = PingStatus.EXPIRED
					return ping, None
				await conn.execute("UPDATE pings SET status = 'accepted' WHERE id = $1", key)
				ping.status = PingStatus.ACCEPTED
				match_row = await conn.fetchrow(
					"""
					INSERT INTO matches (id, ping_id, user_a, user_b, activity, created_at, expires_at)
					VALUES ($1, $2, $3, $4, $5, $6, $7)
					RETURNING *
					""",
					uuid4(),
					key,
					ping.from_user,
					ping.to_user,
					ping.activity.value,
					now,
					now + match_ttl,
				)
		return ping, _row_to_match(match_row)

	async def resolve(self, ping_id: str, user_id: str, status: PingStatus) -> Ping:
		"""Move a pending ping addressed to the user into a terminal status."""
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				ping = memory_store.pings.get(ping_id)
				if ping is None:
					raise PingNotFound()
				_check_recipient(ping, user_id)
				ping.status = status
				return ping
		key = _as_uuid(ping_id)
		if key is None:
			raise PingNotFound()
		async with pool.acquire() as conn:
			async with conn.transaction():
				row = await conn.fetchrow("SELECT * FROM pings WHERE id = $1 FOR UPDATE", key)
				if row is None:
					raise PingNotFound()
				ping = _row_to_ping(row)
				_check_recipient(ping, user_id)
				await conn.execute("UPDATE pings SET status = $2 WHERE id = $1", key, status.value)
		ping.status = status
		return ping

	async def list_active_pings(self, user_id: str, now: datetime) -> List[Ping]:
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				rows = [
					ping
					for ping in memory_store.pings.values()
					if ping.involves(user_id)
					and ping.status in ACTIVE_PING_STATUSES
					and not ping.is_expired(now)
				]
			return sorted(rows, key=lambda ping: ping.created_at, reverse=True)
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT * FROM pings
				WHERE (from_user = $1 OR to_user = $1)
					AND status IN ('pending', 'accepted')
					AND expires_at > $2
				ORDER BY created_at DESC
				""",
				user_id,
				now,
			)
		return [_row_to_ping(row) for row in rows]

	async def expire_pending(self, now: datetime) -> int:
		pool = await self._pool_or_none()
		if pool is None:
			swept = 0
			async with memory_store.lock:
				for ping in memory_store.pings.values():
					if ping.status == PingStatus.PENDING and ping.is_expired(now):
						ping.status = PingStatus.EXPIRED
						swept += 1
			return swept
		async with pool.acquire() as conn:
			result = await conn.execute(
				"UPDATE pings SET status = 'expired' WHERE status = 'pending' AND expires_at <= $1",
				now,
			)
		return int(result.split()[-1])


class MatchRepository(PoolBackedRepository):
	async def get(self, match_id: str) -> Optional[Match]:
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				return memory_store.matches.get(match_id)
		key = _as_uuid(match_id)
		if key is None:
			return None
		async with pool.acquire() as conn:
			row = await conn.fetchrow("SELECT * FROM matches WHERE id = $1", key)
		return _row_to_match(row) if row else None

	async def list_active(self, user_id: str, now: datetime) -> List[Match]:
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				rows = [
					match
					for match in memory_store.matches.values()
					if match.involves(user_id) and not match.is_expired(now)
				]
			return sorted(rows, key=lambda match: match.created_at, reverse=True)
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT * FROM matches
				WHERE (user_a = $1 OR user_b = $1) AND expires_at > $2
				ORDER BY created_at DESC
				""",
				user_id,
				now,
			)
		return [_row_to_match(row) for row in rows]

	async def insert_message(self, message: MatchMessage) -> MatchMessage:
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				memory_store.match_messages.append(message)
			return message
		async with pool.acquire() as conn:
			await conn.execute(
				"""
				INSERT INTO match_messages (id, match_id, sender_id, content, created_at)
				VALUES ($1, $2, $3, $4, $5)
				""",
				message.id,
				UUID(message.match_id),
				message.sender_id,
				message.content,
				message.created_at,
			)
		return message

	async def list_messages(self, match_id: str) -> List[MatchMessage]:
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				rows = [msg for msg in memory_store.match_messages if msg.match_id == match_id]
			return sorted(rows, key=lambda msg: (msg.created_at, msg.id))
		key = _as_uuid(match_id)
		if key is None:
			return []
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"SELECT * FROM match_messages WHERE match_id = $1 ORDER BY created_at, id",
				key,
			)
		return [_row_to_message(row) for row in rows]

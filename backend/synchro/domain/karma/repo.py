"""Persistence for karma transactions and the profile balance cache."""

from __future__ import annotations

import json
from typing import List, Sequence
from uuid import UUID

from synchro.infra.memory import PoolBackedRepository, memory_store

from .models import STARTING_BALANCE, KarmaTransaction, LeaderboardEntry, TransactionType, calculate_level


def _row_to_transaction(row) -> KarmaTransaction:
	metadata = row["metadata"]
	if isinstance(metadata, str):
		metadata = json.loads(metadata)
	return KarmaTransaction(
		id=str(row["id"]),
		user_id=str(row["user_id"]),
		amount=int(row["amount"]),
		transaction_type=TransactionType(row["transaction_type"]),
		related_user_id=row["related_user_id"],
		description=row["description"],
		multiplier=float(row["multiplier"]),
		metadata=metadata or {},
		created_at=row["created_at"],
	)


def _memory_balance(user_id: str) -> int:
	return STARTING_BALANCE + sum(
		tx.amount for tx in memory_store.karma_transactions if tx.user_id == user_id
	)


class KarmaRepository(PoolBackedRepository):
	async def record(self, transactions: Sequence[KarmaTransaction]) -> None:
		"""Insert the transactions and refresh each affected profile balance atomically."""
		affected = list(dict.fromkeys(tx.user_id for tx in transactions))
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				memory_store.karma_transactions.extend(transactions)
				for user_id in affected:
					memory_store.profiles[user_id] = _memory_balance(user_id)
			return
		async with pool.acquire() as conn:
			async with conn.transaction():
				await conn.executemany(
					"""
					INSERT INTO karma_transactions (
						id, user_id, amount, transaction_type, related_user_id,
						description, multiplier, metadata, created_at
					) VALUES ($1, $2, $3, $4, $5, $6, $7, $8::jsonb, $9)
					""",
					[
						(
							UUID(tx.id),
							tx.user_id,
							tx.amount,
							tx.transaction_type.value,
							tx.related_user_id,
							tx.description,
							tx.multiplier,
							json.dumps(tx.metadata),
							tx.created_at,
						)
						for tx in transactions
					],
				)
				for user_id in affected:
					await conn.execute(
						"""
						INSERT INTO profiles (id, karma_balance, updated_at)
						VALUES ($1, get_karma_balance($1), now())
						ON CONFLICT (id) DO UPDATE
						SET karma_balance = EXCLUDED.karma_balance, updated_at = EXCLUDED.updated_at
						""",
						user_id,
					)

	async def balance(self, user_id: str) -> int:
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				return _memory_balance(user_id)
		async with pool.acquire() as conn:
			value = await conn.fetchval("SELECT get_karma_balance($1)", user_id)
		return int(value if value is not None else STARTING_BALANCE)

	async def history(self, user_id: str, limit: int) -> List[KarmaTransaction]:
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				rows = [tx for tx in memory_store.karma_transactions if tx.user_id == user_id]
			rows.reverse()
			rows.sort(key=lambda tx: tx.created_at, reverse=True)
			return rows[:limit]
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT * FROM karma_transactions
				WHERE user_id = $1
				ORDER BY created_at DESC
				LIMIT $2
				""",
				user_id,
				limit,
			)
		return [_row_to_transaction(row) for row in rows]

	async def leaderboard(self, limit: int) -> List[LeaderboardEntry]:
		pool = await self._pool_or_none()
		if pool is None:
			async with memory_store.lock:
				ranked = sorted(memory_store.profiles.items(), key=lambda item: item[1], reverse=True)
			return [
				LeaderboardEntry(user_id=user_id, display_name=None, balance=balance, level=calculate_level(balance))
				for user_id, balance in ranked[:limit]
			]
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT id, display_name, karma_balance FROM profiles
				ORDER BY karma_balance DESC
				LIMIT $1
				""",
				limit,
			)
		return [
			LeaderboardEntry(
				user_id=str(row["id"]),
				display_name=row["display_name"],
				balance=int(row["karma_balance"]),
				level=calculate_level(int(row["karma_balance"])),
			)
			for row in rows
		]

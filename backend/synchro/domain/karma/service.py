"""Karma awards, debits and balances.

Every write goes through `_record`, which applies the time/weather multiplier
and stores one or more transactions as a single unit. Storage failures are
logged and reported as ``False``.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional

from synchro.domain.common import clock as clock_mod
from synchro.domain.common.clock import Clock
from synchro.infra import changefeed
from synchro.obs import metrics as obs_metrics

from .models import (
	DEFAULT_BONUS,
	DEFAULT_PENALTY,
	DEFAULT_REQUEST_COST,
	EMERGENCY_REWARD,
	HELP_REWARDS,
	STARTING_BALANCE,
	Difficulty,
	KarmaBalance,
	KarmaTransaction,
	LeaderboardEntry,
	TransactionType,
	calculate_multiplier,
	round_half_up,
)
from .repo import KarmaRepository

logger = logging.getLogger(__name__)


class KarmaManager:
	def __init__(self, repository: KarmaRepository | None = None, *, clock: Clock = clock_mod.utcnow) -> None:
		self._repo = repository or KarmaRepository()
		self._clock = clock

	async def get_balance(self, user_id: str) -> KarmaBalance:
		try:
			balance = await self._repo.balance(user_id)
		except Exception:
			logger.warning("karma balance lookup failed", extra={"user_id": user_id}, exc_info=True)
			balance = STARTING_BALANCE
		return KarmaBalance.for_balance(balance)

	def _build(
		self,
		user_id: str,
		amount: int,
		transaction_type: TransactionType,
		description: str,
		related_user_id: Optional[str],
		metadata: Optional[Dict[str, Any]],
	) -> KarmaTransaction:
		now = self._clock()
		multiplier = calculate_multiplier(transaction_type, metadata, clock_mod.local_hour(now))
		return KarmaTransaction(
			user_id=user_id,
			amount=round_half_up(amount * multiplier),
			transaction_type=transaction_type,
			description=description,
			related_user_id=related_user_id,
			multiplier=multiplier,
			metadata=dict(metadata or {}),
			created_at=now,
		)

	async def _record(self, transactions: List[KarmaTransaction]) -> bool:
		try:
			await self._repo.record(transactions)
		except Exception:
			logger.exception(
				"karma transaction failed",
				extra={"users": [tx.user_id for tx in transactions]},
			)
			return False
		for tx in transactions:
			obs_metrics.inc_karma_transaction(tx.transaction_type.value)
			await changefeed.publish("karma_transactions", "insert", tx.to_dict())
		return True

	async def add_karma(
		self,
		user_id: str,
		amount: int,
		transaction_type: TransactionType | str,
		description: str,
		related_user_id: Optional[str] = None,
		metadata: Optional[Dict[str, Any]] = None,
	) -> bool:
		tx = self._build(
			user_id,
			amount,
			TransactionType(transaction_type),
			description,
			related_user_id,
			metadata,
		)
		return await self._record([tx])

	async def help_neighbor(
		self,
		helper_id: str,
		helped_id: str,
		task_description: str,
		difficulty: Difficulty | str = Difficulty.MEDIUM,
	) -> bool:
		"""Credit the helper and debit the helped user; both land or neither does."""
		difficulty = Difficulty(difficulty)
		base = HELP_REWARDS[difficulty]
		metadata = {"task": task_description, "difficulty": difficulty.value}
		given = self._build(
			helper_id,
			base,
			TransactionType.HELP_GIVEN,
			f"Helped neighbor: {task_description}",
			helped_id,
			metadata,
		)
		received = self._build(
			helped_id,
			-math.ceil(base / 2),
			TransactionType.HELP_RECEIVED,
			f"Received help: {task_description}",
			helper_id,
			metadata,
		)
		return await self._record([given, received])

	async def request_help(self, requester_id: str, task: str, karma_cost: int = DEFAULT_REQUEST_COST) -> bool:
		balance = await self.get_balance(requester_id)
		if balance.balance < karma_cost:
			return False
		return await self.add_karma(
			requester_id,
			-karma_cost,
			TransactionType.REQUEST,
			f"Requested help: {task}",
			metadata={"task": task},
		)

	async def emergency_help(self, helper_id: str, helped_id: str, emergency_description: str) -> bool:
		return await self.add_karma(
			helper_id,
			EMERGENCY_REWARD,
			TransactionType.EMERGENCY,
			f"Emergency help: {emergency_description}",
			helped_id,
			{"emergency": True, "description": emergency_description},
		)

	async def give_bonus(self, user_id: str, reason: str, amount: int = DEFAULT_BONUS) -> bool:
		return await self.add_karma(
			user_id,
			amount,
			TransactionType.BONUS,
			f"Bonus: {reason}",
			metadata={"reason": reason},
		)

	async def apply_penalty(self, user_id: str, reason: str, amount: int = DEFAULT_PENALTY) -> bool:
		return await self.add_karma(
			user_id,
			-amount,
			TransactionType.PENALTY,
			f"Penalty: {reason}",
			metadata={"reason": reason},
		)

	async def get_transaction_history(self, user_id: str, limit: int = 50) -> List[KarmaTransaction]:
		try:
			return await self._repo.history(user_id, limit)
		except Exception:
			logger.warning("karma history lookup failed", extra={"user_id": user_id}, exc_info=True)
			return []

	async def get_leaderboard(self, limit: int = 10) -> List[LeaderboardEntry]:
		try:
			return await self._repo.leaderboard(limit)
		except Exception:
			logger.warning("karma leaderboard lookup failed", exc_info=True)
			return []

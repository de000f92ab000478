"""Karma ledger models, levels and multipliers."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional
from uuid import uuid4


class TransactionType(str, Enum):
	HELP_GIVEN = "help_given"
	HELP_RECEIVED = "help_received"
	REQUEST = "request"
	EMERGENCY = "emergency"
	BONUS = "bonus"
	PENALTY = "penalty"
	REWARD = "reward"


class Difficulty(str, Enum):
	EASY = "easy"
	MEDIUM = "medium"
	HARD = "hard"


STARTING_BALANCE = 10
LEVEL_THRESHOLDS = (0, 50, 150, 300, 500, 1000, 2000, 5000, 10000, 25000, 50000)
LEVEL_NAMES = (
	"Newcomer",
	"Neighbor",
	"Friend",
	"Helper",
	"Guardian",
	"Champion",
	"Hero",
	"Legend",
	"Master",
	"Grandmaster",
)
FALLBACK_NEXT_LEVEL = 100000
HELP_REWARDS = {Difficulty.EASY: 2, Difficulty.MEDIUM: 5, Difficulty.HARD: 10}
EMERGENCY_REWARD = 15
DEFAULT_REQUEST_COST = 2
DEFAULT_BONUS = 5
DEFAULT_PENALTY = 5


def calculate_level(balance: int) -> int:
	for level, threshold in enumerate(LEVEL_THRESHOLDS[1:10], start=1):
		if balance < threshold:
			return level
	return 10


def level_name(level: int) -> str:
	if 1 <= level <= len(LEVEL_NAMES):
		return LEVEL_NAMES[level - 1]
	return LEVEL_NAMES[-1]


def next_level_threshold(level: int) -> int:
	if 0 <= level < len(LEVEL_THRESHOLDS):
		return LEVEL_THRESHOLDS[level]
	return FALLBACK_NEXT_LEVEL


def is_night(hour: int) -> bool:
	return hour >= 22 or hour <= 6


def calculate_multiplier(
	transaction_type: TransactionType,
	metadata: Optional[Mapping[str, Any]],
	local_hour: int,
) -> float:
	metadata = metadata or {}
	if transaction_type == TransactionType.EMERGENCY or metadata.get("emergency"):
		return 1.0
	multiplier = 1.0
	if is_night(local_hour):
		multiplier *= 2.0
	weather = metadata.get("weather")
	if weather == "rain":
		multiplier *= 1.5
	elif weather == "storm":
		multiplier *= 2.0
	return multiplier


def round_half_up(value: float) -> int:
	return int(math.floor(value + 0.5))


@dataclass(slots=True)
class KarmaTransaction:
	user_id: str
	amount: int
	transaction_type: TransactionType
	description: str
	created_at: datetime
	multiplier: float = 1.0
	related_user_id: Optional[str] = None
	metadata: Dict[str, Any] = field(default_factory=dict)
	id: str = field(default_factory=lambda: str(uuid4()))

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"user_id": self.user_id,
			"amount": self.amount,
			"transaction_type": self.transaction_type.value,
			"related_user_id": self.related_user_id,
			"description": self.description,
			"multiplier": self.multiplier,
			"metadata": dict(self.metadata),
			"created_at": self.created_at,
		}


@dataclass(slots=True, frozen=True)
class KarmaBalance:
	balance: int
	level: int
	level_name: str
	next_level_at: int

	@classmethod
	def for_balance(cls, balance: int) -> "KarmaBalance":
		level = calculate_level(balance)
		return cls(
			balance=balance,
			level=level,
			level_name=level_name(level),
			next_level_at=next_level_threshold(level),
		)

	def to_dict(self) -> dict:
		return {
			"balance": self.balance,
			"level": self.level,
			"level_name": self.level_name,
			"next_level_at": self.next_level_at,
		}


@dataclass(slots=True, frozen=True)
class LeaderboardEntry:
	user_id: str
	display_name: Optional[str]
	balance: int
	level: int

	def to_dict(self) -> dict:
		return {
			"user_id": self.user_id,
			"display_name": self.display_name,
			"balance": self.balance,
			"level": self.level,
		}

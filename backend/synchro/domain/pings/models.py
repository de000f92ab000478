"""Domain models for pings, matches and match messages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from uuid import uuid4


class PingStatus(str, Enum):
	PENDING = "pending"
	ACCEPTED = "accepted"
	IGNORED = "ignored"
	DECLINED = "declined"
	EXPIRED = "expired"


class PingActivity(str, Enum):
	COFFEE = "coffee"
	GAMING = "gaming"
	SPORTS = "sports"
	DINNER = "dinner"


PING_TTL = timedelta(minutes=15)
MATCH_TTL = timedelta(hours=24)
MESSAGE_MAX_LENGTH = 1000
ACTIVE_PING_STATUSES = (PingStatus.PENDING, PingStatus.ACCEPTED)


@dataclass(slots=True)
class Ping:
	from_user: str
	to_user: str
	activity: PingActivity
	created_at: datetime
	expires_at: datetime
	status: PingStatus = PingStatus.PENDING
	id: str = field(default_factory=lambda: str(uuid4()))

	def is_expired(self, now: datetime) -> bool:
		return self.expires_at <= now

	def involves(self, user_id: str) -> bool:
		return user_id in (self.from_user, self.to_user)

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"from_user": self.from_user,
			"to_user": self.to_user,
			"activity": self.activity.value,
			"status": self.status.value,
			"created_at": self.created_at,
			"expires_at": self.expires_at,
		}


@dataclass(slots=True)
class Match:
	ping_id: str
	user_a: str
	user_b: str
	activity: PingActivity
	created_at: datetime
	expires_at: datetime
	id: str = field(default_factory=lambda: str(uuid4()))

	def is_expired(self, now: datetime) -> bool:
		return now >= self.expires_at

	def involves(self, user_id: str) -> bool:
		return user_id in (self.user_a, self.user_b)

	def other(self, user_id: str) -> str:
		return self.user_b if user_id == self.user_a else self.user_a

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"ping_id": self.ping_id,
			"user_a": self.user_a,
			"user_b": self.user_b,
			"activity": self.activity.value,
			"created_at": self.created_at,
			"expires_at": self.expires_at,
		}


@dataclass(slots=True)
class MatchMessage:
	id: str
	match_id: str
	sender_id: str
	content: str
	created_at: datetime

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"match_id": self.match_id,
			"sender_id": self.sender_id,
			"content": self.content,
			"created_at": self.created_at,
		}

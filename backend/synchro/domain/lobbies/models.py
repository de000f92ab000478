"""Domain models for auto lobbies."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from synchro.domain.activity.models import ActivityType


class LobbyStatus(str, Enum):
	OPEN = "open"
	STARTED = "started"
	CANCELLED = "cancelled"


class LobbyType(str, Enum):
	DINNER = "dinner"
	SPORTS = "sports"
	SOCIAL = "social"


MIN_SYNC_SCORE = 0.7
MIN_PARTICIPANTS = 2
MAX_PARTICIPANTS_CAP = 6
EXTRA_SEATS = 3
SCHEDULE_OFFSET = timedelta(minutes=15)
AUTO_START_OFFSET = timedelta(minutes=60)
DEFAULT_LOCATION_NAME = "Nearby"

_LOBBY_TYPES = {
	ActivityType.LUNCH: LobbyType.DINNER,
	ActivityType.DINNER: LobbyType.DINNER,
	ActivityType.EXERCISE: LobbyType.SPORTS,
}


def lobby_type_for(activity_type: ActivityType) -> LobbyType:
	return _LOBBY_TYPES.get(activity_type, LobbyType.SOCIAL)


def max_participants_for(member_count: int) -> int:
	return min(member_count + EXTRA_SEATS, MAX_PARTICIPANTS_CAP)


@dataclass(slots=True)
class LobbyParticipant:
	lobby_id: str
	user_id: str
	joined_at: datetime
	status: str = "joined"
	payment_status: str = "completed"


@dataclass(slots=True)
class AutoLobby:
	host_id: str
	title: str
	description: str
	activity_type: ActivityType
	lobby_type: LobbyType
	location_name: str
	latitude: float
	longitude: float
	max_participants: int
	min_participants: int
	scheduled_time: datetime
	auto_start_at: datetime
	created_at: datetime
	synchronicity_id: Optional[str] = None
	current_participants: int = 0
	status: LobbyStatus = LobbyStatus.OPEN
	is_auto_generated: bool = True
	is_paid: bool = False
	user_ids: List[str] = field(default_factory=list)
	id: str = field(default_factory=lambda: str(uuid4()))

	@property
	def is_full(self) -> bool:
		return self.current_participants >= self.max_participants

	@property
	def has_quorum(self) -> bool:
		return self.current_participants >= self.min_participants

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"host_id": self.host_id,
			"title": self.title,
			"description": self.description,
			"activity_type": self.activity_type.value,
			"lobby_type": self.lobby_type.value,
			"location_name": self.location_name,
			"max_participants": self.max_participants,
			"min_participants": self.min_participants,
			"current_participants": self.current_participants,
			"scheduled_time": self.scheduled_time,
			"auto_start_at": self.auto_start_at,
			"status": self.status.value,
			"synchronicity_id": self.synchronicity_id,
			"user_ids": list(self.user_ids),
		}

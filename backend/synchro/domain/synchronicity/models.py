"""Domain models for synchronicities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from synchro.domain.activity.models import ActivityType


@dataclass(slots=True)
class Synchronicity:
	user_ids: List[str]
	activity_type: ActivityType
	latitude: float
	longitude: float
	sync_score: float
	distance_meters: float
	created_at: datetime
	expires_at: datetime
	location_name: Optional[str] = None
	lobby_created: bool = False
	lobby_id: Optional[str] = None
	notified_at: Optional[datetime] = None
	id: str = field(default_factory=lambda: str(uuid4()))

	def is_open(self, now: datetime) -> bool:
		return self.expires_at > now

	def covers(self, user_ids: List[str], activity_type: ActivityType) -> bool:
		"""True when this record already contains every user for the activity."""
		return self.activity_type == activity_type and set(user_ids).issubset(self.user_ids)

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"user_ids": list(self.user_ids),
			"activity_type": self.activity_type.value,
			"location_name": self.location_name,
			"sync_score": self.sync_score,
			"distance_meters": self.distance_meters,
			"lobby_created": self.lobby_created,
			"lobby_id": self.lobby_id,
			"created_at": self.created_at,
			"expires_at": self.expires_at,
			"notified_at": self.notified_at,
		}

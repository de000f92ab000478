"""Domain models for activity observations and patterns."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4


class ActivityType(str, Enum):
	COFFEE = "coffee"
	LUNCH = "lunch"
	DINNER = "dinner"
	COMMUTE = "commute"
	EXERCISE = "exercise"
	LEISURE = "leisure"
	WORK = "work"
	SHOPPING = "shopping"
	SOCIAL = "social"


class VenueType(str, Enum):
	CAFE = "cafe"
	RESTAURANT = "restaurant"
	BAR = "bar"
	GYM = "gym"
	PARK = "park"
	COWORKING = "coworking"
	CINEMA = "cinema"
	SHOP = "shop"
	VENUE = "venue"
	OUTDOOR = "outdoor"
	TRANSIT = "transit"
	HOME = "home"


# Detections at or below this confidence are discarded
PERSIST_CONFIDENCE_THRESHOLD = 0.6
# Occurrences needed for a pattern to reach frequency 1.0
PATTERN_SATURATION_COUNT = 20


def pattern_frequency(occurrence_count: int) -> float:
	return min(occurrence_count / PATTERN_SATURATION_COUNT, 1.0)


@dataclass(slots=True, frozen=True)
class ActivityDetection:
	activity_type: ActivityType
	confidence: float
	venue_type: Optional[VenueType] = None
	location_name: Optional[str] = None

	@property
	def should_persist(self) -> bool:
		return self.confidence > PERSIST_CONFIDENCE_THRESHOLD


@dataclass(slots=True)
class ActivityObservation:
	user_id: str
	activity_type: ActivityType
	latitude: float
	longitude: float
	confidence: float
	detected_at: datetime
	expires_at: datetime
	venue_type: Optional[VenueType] = None
	speed: float = 0.0
	location_name: Optional[str] = None
	id: str = field(default_factory=lambda: str(uuid4()))

	def is_active(self, now: datetime) -> bool:
		return self.expires_at > now

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"user_id": self.user_id,
			"activity_type": self.activity_type.value,
			"venue_type": self.venue_type.value if self.venue_type else None,
			"confidence": self.confidence,
			"speed": self.speed,
			"location_name": self.location_name,
			"detected_at": self.detected_at,
			"expires_at": self.expires_at,
		}


@dataclass(slots=True)
class ActivityPattern:
	user_id: str
	day_of_week: int
	time_slot: str
	activity_type: ActivityType
	frequency: float
	occurrence_count: int
	last_occurred: datetime
	id: str = field(default_factory=lambda: str(uuid4()))


@dataclass(slots=True)
class NearbyUser:
	user_id: str
	distance_meters: float
	activity_type: ActivityType
	location_name: Optional[str]
	detected_at: datetime

"""Domain models for rhythm profiles and mirror matches."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class RhythmType(str, Enum):
	EARLY_BIRD = "early_bird"
	NIGHT_OWL = "night_owl"
	FLEXIBLE = "flexible"
	UNKNOWN = "unknown"


# Observations required in the analysis window before a profile is built
MIN_OBSERVATIONS = 5
MIRROR_MATCH_THRESHOLD = 0.6


@dataclass(slots=True)
class UserRhythm:
	user_id: str
	rhythm_type: RhythmType
	wake_time: Optional[str] = None
	sleep_time: Optional[str] = None
	lunch_time: Optional[str] = None
	workout_pattern: List[Dict[str, Any]] = field(default_factory=list)
	commute_pattern: List[Dict[str, Any]] = field(default_factory=list)
	social_peaks: List[int] = field(default_factory=list)
	energy_peaks: List[int] = field(default_factory=list)
	coffee_spots: List[str] = field(default_factory=list)
	favorite_venues: List[str] = field(default_factory=list)
	weekend_routine: Dict[str, Any] = field(default_factory=dict)
	calculated_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None

	def to_dict(self) -> dict:
		return {
			"user_id": self.user_id,
			"wake_time": self.wake_time,
			"sleep_time": self.sleep_time,
			"lunch_time": self.lunch_time,
			"workout_pattern": list(self.workout_pattern),
			"commute_pattern": list(self.commute_pattern),
			"social_peaks": list(self.social_peaks),
			"rhythm_type": self.rhythm_type.value,
			"energy_peaks": list(self.energy_peaks),
			"coffee_spots": list(self.coffee_spots),
			"favorite_venues": list(self.favorite_venues),
			"weekend_routine": dict(self.weekend_routine),
			"calculated_at": self.calculated_at,
			"updated_at": self.updated_at,
		}


@dataclass(slots=True)
class MirrorMatch:
	user_id: str
	overlap_score: float
	shared_routines: List[str]
	routine_similarity: float
	location_overlap: float
	time_overlap: float
	suggested_meetup: Optional[str] = None

	def to_dict(self) -> dict:
		return {
			"user_id": self.user_id,
			"overlap_score": self.overlap_score,
			"shared_routines": list(self.shared_routines),
			"routine_similarity": self.routine_similarity,
			"location_overlap": self.location_overlap,
			"time_overlap": self.time_overlap,
			"suggested_meetup": self.suggested_meetup,
		}


@dataclass(slots=True)
class StoredMirrorMatch:
	user_a: str
	user_b: str
	overlap_score: float
	shared_routines: List[str]
	last_updated: datetime

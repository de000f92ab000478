"""Pure derivations of a rhythm profile from activity observations.

All clock values are read in the configured local timezone. Inputs are
expected oldest first.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Sequence

from synchro.domain.activity.models import ActivityObservation, ActivityType
from synchro.domain.common import clock as clock_mod

from .models import RhythmType, UserRhythm

SOCIAL_ACTIVITIES = frozenset(
	{
		ActivityType.COFFEE,
		ActivityType.LUNCH,
		ActivityType.DINNER,
		ActivityType.SOCIAL,
		ActivityType.LEISURE,
	}
)


def _hour(obs: ActivityObservation) -> int:
	return clock_mod.local_hour(obs.detected_at)


def _top_hours(hours: Iterable[int], limit: int) -> List[int]:
	counts = Counter(hours)
	ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
	return [hour for hour, _ in ranked[:limit]]


def _hour_of(value: Optional[str]) -> Optional[int]:
	if not value:
		return None
	return int(value.split(":")[0])


def estimate_wake_time(observations: Sequence[ActivityObservation]) -> Optional[str]:
	morning = [clock_mod.to_local(obs.detected_at) for obs in observations if 5 <= _hour(obs) <= 10]
	if not morning:
		return None
	avg_hour = sum(moment.hour for moment in morning) / len(morning)
	avg_minute = sum(moment.minute for moment in morning) / len(morning)
	return f"{int(avg_hour):02d}:{int(avg_minute):02d}:00"


def estimate_sleep_time(observations: Sequence[ActivityObservation]) -> Optional[str]:
	# Hours past midnight count as 24+ so 23h and 1h average to 0h, not 12h
	night = [_hour(obs) for obs in observations if _hour(obs) >= 22 or _hour(obs) <= 2]
	if not night:
		return None
	avg_hour = sum(hour + 24 if hour < 12 else hour for hour in night) / len(night)
	if avg_hour >= 24:
		avg_hour -= 24
	return f"{int(avg_hour):02d}:00:00"


def estimate_lunch_time(observations: Sequence[ActivityObservation]) -> Optional[str]:
	hours = [
		_hour(obs)
		for obs in observations
		if obs.activity_type in (ActivityType.LUNCH, ActivityType.COFFEE) and 11 <= _hour(obs) <= 15
	]
	if len(hours) < 3:
		return None
	return f"{int(sum(hours) / len(hours)):02d}:00:00"


def detect_social_peaks(observations: Sequence[ActivityObservation]) -> List[int]:
	return _top_hours((_hour(obs) for obs in observations if obs.activity_type in SOCIAL_ACTIVITIES), 5)


def calculate_energy_peaks(observations: Sequence[ActivityObservation]) -> List[int]:
	return _top_hours((_hour(obs) for obs in observations), 3)


def detect_workout_pattern(observations: Sequence[ActivityObservation]) -> List[Dict[str, Any]]:
	return [
		{
			"day_of_week": clock_mod.day_of_week(obs.detected_at),
			"hour": _hour(obs),
			"location": obs.location_name,
		}
		for obs in observations
		if obs.activity_type == ActivityType.EXERCISE
	]


def commute_direction(hour: int) -> str:
	if 6 <= hour <= 10:
		return "to_work"
	if 15 <= hour <= 19:
		return "from_work"
	return "other"


def detect_commute_pattern(observations: Sequence[ActivityObservation]) -> List[Dict[str, Any]]:
	return [
		{
			"day_of_week": clock_mod.day_of_week(obs.detected_at),
			"hour": _hour(obs),
			"direction": commute_direction(_hour(obs)),
		}
		for obs in observations
		if obs.activity_type == ActivityType.COMMUTE
	]


def classify_rhythm_type(
	wake_time: Optional[str],
	sleep_time: Optional[str],
	social_peaks: Sequence[int],
) -> RhythmType:
	wake_hour = _hour_of(wake_time)
	sleep_hour = _hour_of(sleep_time)
	if wake_hour is None or sleep_hour is None:
		return RhythmType.UNKNOWN
	if wake_hour <= 6 and sleep_hour <= 22:
		return RhythmType.EARLY_BIRD
	if wake_hour >= 9 and (sleep_hour >= 24 or sleep_hour <= 2):
		return RhythmType.NIGHT_OWL
	evening = any(hour >= 20 for hour in social_peaks)
	morning = any(hour <= 10 for hour in social_peaks)
	if evening and not morning:
		return RhythmType.NIGHT_OWL
	if morning and not evening:
		return RhythmType.EARLY_BIRD
	return RhythmType.FLEXIBLE


def extract_coffee_spots(observations: Sequence[ActivityObservation]) -> List[str]:
	spots = dict.fromkeys(
		obs.location_name
		for obs in observations
		if obs.activity_type == ActivityType.COFFEE and obs.location_name
	)
	return list(spots)[:5]


def extract_favorite_venues(observations: Sequence[ActivityObservation]) -> List[str]:
	counts = Counter(obs.location_name for obs in observations if obs.location_name)
	return [venue for venue, _ in counts.most_common(10)]


def analyze_weekend_routine(observations: Sequence[ActivityObservation]) -> Dict[str, Any]:
	weekend = [obs for obs in observations if clock_mod.day_of_week(obs.detected_at) in (0, 6)]
	most_common = Counter(obs.activity_type.value for obs in weekend).most_common(1)
	average_start = None
	if weekend:
		average_start = f"{int(sum(_hour(obs) for obs in weekend) / len(weekend)):02d}:00"
	return {
		"most_common_activity": most_common[0][0] if most_common else None,
		"average_start_time": average_start,
		"total_activities": len(weekend),
	}


def build_rhythm(user_id: str, observations: Sequence[ActivityObservation]) -> UserRhythm:
	wake_time = estimate_wake_time(observations)
	sleep_time = estimate_sleep_time(observations)
	social_peaks = detect_social_peaks(observations)
	return UserRhythm(
		user_id=user_id,
		wake_time=wake_time,
		sleep_time=sleep_time,
		lunch_time=estimate_lunch_time(observations),
		workout_pattern=detect_workout_pattern(observations),
		commute_pattern=detect_commute_pattern(observations),
		social_peaks=social_peaks,
		rhythm_type=classify_rhythm_type(wake_time, sleep_time, social_peaks),
		energy_peaks=calculate_energy_peaks(observations),
		coffee_spots=extract_coffee_spots(observations),
		favorite_venues=extract_favorite_venues(observations),
		weekend_routine=analyze_weekend_routine(observations),
	)


def _shared(left: Sequence, right: Sequence) -> list:
	return [item for item in left if item in right]


def _overlap_ratio(left: Sequence, right: Sequence) -> float:
	return len(_shared(left, right)) / max(len(left), len(right), 1)


def routine_similarity(a: UserRhythm, b: UserRhythm) -> float:
	score = 0.4 if a.rhythm_type == b.rhythm_type else 0.0
	score += _overlap_ratio(a.social_peaks, b.social_peaks) * 0.3
	score += _overlap_ratio(a.favorite_venues, b.favorite_venues) * 0.3
	return min(score, 1.0)


def location_overlap(a: UserRhythm, b: UserRhythm) -> float:
	return _overlap_ratio(a.favorite_venues, b.favorite_venues)


def time_overlap(a: UserRhythm, b: UserRhythm) -> float:
	return _overlap_ratio(a.social_peaks, b.social_peaks)


def shared_routines(a: UserRhythm, b: UserRhythm) -> List[str]:
	routines: List[str] = []
	if a.rhythm_type == b.rhythm_type:
		routines.append(f"Both are {a.rhythm_type.value}s")
	venues = _shared(a.favorite_venues, b.favorite_venues)
	if venues:
		routines.append(f"Visit same venues: {', '.join(venues[:3])}")
	coffee = _shared(a.coffee_spots, b.coffee_spots)
	if coffee:
		routines.append(f"Same coffee spots: {coffee[0]}")
	return routines


def meetup_suggestion(a: UserRhythm, b: UserRhythm, routines: Sequence[str]) -> Optional[str]:
	if not routines:
		return None
	venues = _shared(a.favorite_venues, b.favorite_venues)
	if venues:
		peaks = _shared(a.social_peaks, b.social_peaks)
		# Hour 0 falls back to noon as well
		best_hour = peaks[0] if peaks and peaks[0] else 12
		return f"Meet at {venues[0]} around {best_hour}:00"
	return "Coffee together at mutual favorite time"

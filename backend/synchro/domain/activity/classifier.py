"""Rule-based activity classifier.

Rules are evaluated in order and the first match wins. The hour is the local
clock hour; speed is in meters per second.
"""

from __future__ import annotations

from typing import Optional

from .models import ActivityDetection, ActivityType, VenueType

COMMUTE_MIN_SPEED_MPS = 1.5
STATIONARY_MAX_SPEED_MPS = 0.5
EXERCISE_SPEED_RANGE_MPS = (1.0, 3.0)


def detect_activity(hour: int, speed: Optional[float]) -> ActivityDetection:
	"""Infer a coarse activity from the local hour and the device speed."""
	velocity = speed if speed is not None and speed > 0 else 0.0

	if velocity > COMMUTE_MIN_SPEED_MPS:
		return ActivityDetection(ActivityType.COMMUTE, 0.8, VenueType.TRANSIT)
	if 7 <= hour <= 10 and velocity < STATIONARY_MAX_SPEED_MPS:
		return ActivityDetection(ActivityType.COFFEE, 0.7, VenueType.CAFE)
	if 11 <= hour <= 14:
		return ActivityDetection(ActivityType.LUNCH, 0.75, VenueType.RESTAURANT)
	if 17 <= hour <= 21:
		return ActivityDetection(ActivityType.DINNER, 0.75, VenueType.RESTAURANT)
	low, high = EXERCISE_SPEED_RANGE_MPS
	if 6 <= hour <= 9 and low < velocity < high:
		return ActivityDetection(ActivityType.EXERCISE, 0.8, VenueType.OUTDOOR)
	return ActivityDetection(ActivityType.LEISURE, 0.5)

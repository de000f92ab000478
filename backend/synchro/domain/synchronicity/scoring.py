"""Synchronicity confidence score."""

from __future__ import annotations

from typing import Iterable, Optional

BASE_SCORE = 0.5
MAX_SCORE = 1.0
PATTERN_FREQUENCY_THRESHOLD = 0.5


def mean(values: Iterable[float]) -> float:
	items = list(values)
	if not items:
		return 0.0
	return sum(items) / len(items)


def distance_bonus(avg_distance_m: float) -> float:
	if avg_distance_m < 100:
		return 0.3
	if avg_distance_m < 300:
		return 0.2
	if avg_distance_m < 500:
		return 0.1
	return 0.0


def recency_bonus(avg_minutes_since: float) -> float:
	if avg_minutes_since < 5:
		return 0.2
	if avg_minutes_since < 15:
		return 0.1
	return 0.0


def calculate_sync_score(
	avg_distance_m: float,
	avg_minutes_since: float,
	pattern_frequency: Optional[float] = None,
) -> float:
	"""Base 0.5 plus distance, recency and habit bonuses, capped at 1.0."""
	score = BASE_SCORE + distance_bonus(avg_distance_m) + recency_bonus(avg_minutes_since)
	if pattern_frequency is not None and pattern_frequency > PATTERN_FREQUENCY_THRESHOLD:
		score += 0.1
	return round(min(score, MAX_SCORE), 6)

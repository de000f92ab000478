"""Title and description copy for auto lobbies."""

from __future__ import annotations

import random
from typing import Optional

from synchro.domain.activity.models import ActivityType

TITLE_TEMPLATES: dict[ActivityType, tuple[str, ...]] = {
	ActivityType.COFFEE: (
		"Coffee Meet-up @ {location}",
		"☕ Spontaneous Coffee {location}",
		"Coffee Break Together",
	),
	ActivityType.LUNCH: (
		"Lunch Squad @ {location}",
		"🍽️ Lunch Together {location}",
		"Spontaneous Lunch Meet",
	),
	ActivityType.DINNER: (
		"Dinner Crew @ {location}",
		"🍴 Evening Dinner {location}",
		"Spontaneous Dinner",
	),
	ActivityType.EXERCISE: (
		"Workout Buddies @ {location}",
		"💪 Exercise Together",
		"Spontaneous Workout",
	),
	ActivityType.LEISURE: (
		"Hangout @ {location}",
		"Social Meet-up",
		"Spontaneous Gathering",
	),
}

DESCRIPTION_TEMPLATES: dict[ActivityType, str] = {
	ActivityType.COFFEE: "{count} people are having coffee at {location} right now! Join for a relaxed chat and a spontaneous connection.",
	ActivityType.LUNCH: "{count} people are having lunch at {location}! Perfect timing to meet new people over food.",
	ActivityType.DINNER: "{count} people are about to have dinner at {location}! Join for good food and good company.",
	ActivityType.EXERCISE: "{count} people are working out at {location} right now! Find workout buddies and stay motivated.",
	ActivityType.LEISURE: "{count} people are hanging out at {location}! A spontaneous social plan, come along!",
	ActivityType.SOCIAL: "{count} people are meeting up at {location}! Perfect timing for new connections.",
}

FALLBACK_DESCRIPTION = "{count} people are active at {location}! Join and make new connections."


def generate_title(
	activity_type: ActivityType,
	location_name: Optional[str],
	rng: random.Random | None = None,
) -> str:
	pool = TITLE_TEMPLATES.get(activity_type, TITLE_TEMPLATES[ActivityType.LEISURE])
	template = (rng or random).choice(pool)
	return template.format(location=location_name or "nearby")


def generate_description(activity_type: ActivityType, member_count: int, location_name: Optional[str]) -> str:
	template = DESCRIPTION_TEMPLATES.get(activity_type, FALLBACK_DESCRIPTION)
	return template.format(count=member_count, location=location_name or "this area")

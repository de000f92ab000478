"""Clock and local-time helpers.

Services take a `Clock` so tests can pin "now". Every hour-of-day rule reads the
hour in the configured local timezone, never UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
from typing import Callable
from zoneinfo import ZoneInfo

from synchro.settings import settings

Clock = Callable[[], datetime]


def utcnow() -> datetime:
	return datetime.now(timezone.utc)


@lru_cache(maxsize=8)
def _zone(name: str) -> ZoneInfo:
	return ZoneInfo(name)


def to_local(moment: datetime) -> datetime:
	if moment.tzinfo is None:
		moment = moment.replace(tzinfo=timezone.utc)
	return moment.astimezone(_zone(settings.local_timezone))


def local_hour(moment: datetime) -> int:
	return to_local(moment).hour


def day_of_week(moment: datetime) -> int:
	"""Local weekday with Sunday=0 … Saturday=6."""
	return (to_local(moment).weekday() + 1) % 7


def time_slot(moment: datetime) -> str:
	return f"{local_hour(moment):02d}:00"

"""Countdown helpers for pings and matches."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Union


def get_time_remaining(expires_at: datetime, now: datetime) -> Dict[str, Union[int, bool]]:
	total_ms = int((expires_at - now).total_seconds() * 1000)
	if total_ms <= 0:
		return {"total_ms": 0, "minutes": 0, "seconds": 0, "is_expired": True}
	return {
		"total_ms": total_ms,
		"minutes": (total_ms // 60000) % 60,
		"seconds": (total_ms // 1000) % 60,
		"is_expired": False,
	}


def format_time_remaining(expires_at: datetime, now: datetime) -> str:
	remaining = get_time_remaining(expires_at, now)
	if remaining["is_expired"]:
		return "expired"
	return f"{remaining['minutes']}:{remaining['seconds']:02d}"

"""Domain models for device sampling and presence."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(slots=True)
class DeviceSample:
	"""One reading from the device geolocation provider."""

	latitude: float
	longitude: float
	accuracy: float = 0.0
	speed: Optional[float] = None
	timestamp: Optional[datetime] = None


@dataclass(slots=True)
class PresenceRecord:
	user_id: str
	latitude: float
	longitude: float
	is_online: bool
	location_updated_at: datetime
	last_seen: datetime

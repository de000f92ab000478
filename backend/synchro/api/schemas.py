"""Request payloads for the HTTP surface."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from synchro.domain.karma.models import Difficulty
from synchro.domain.pings.models import PingActivity


class SamplePayload(BaseModel):
	latitude: float = Field(..., ge=-90, le=90)
	longitude: float = Field(..., ge=-180, le=180)
	accuracy: float = Field(default=0.0, ge=0)
	speed: Optional[float] = Field(default=None, description="Metres per second; negative means unknown")
	timestamp: Optional[datetime] = None
	location_name: Optional[str] = Field(default=None, max_length=200)


class ScanningToggle(BaseModel):
	enabled: bool
	interval_seconds: Optional[int] = Field(default=None, ge=10, le=3600)


class PingSendRequest(BaseModel):
	to_user_id: str = Field(..., min_length=1)
	activity: PingActivity = PingActivity.COFFEE


class MessageSendRequest(BaseModel):
	# Length is enforced after stripping whitespace by the service
	content: str = Field(..., max_length=4000)


class HelpRequest(BaseModel):
	helped_user_id: str = Field(..., min_length=1)
	task: str = Field(..., min_length=1, max_length=500)
	difficulty: Difficulty = Difficulty.MEDIUM
	emergency: bool = False


class HelpAskRequest(BaseModel):
	task: str = Field(..., min_length=1, max_length=500)
	karma_cost: int = Field(default=2, ge=0, le=1000)


class ToggleResponse(BaseModel):
	user_id: str
	scanning: bool
	state: Literal["started", "stopped", "unchanged"]

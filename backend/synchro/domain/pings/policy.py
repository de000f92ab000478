"""Guard checks for sending pings and chatting in matches."""

from __future__ import annotations

from synchro.infra import rate_limit
from synchro.settings import settings

from .exceptions import MessageInvalid, PingDailyLimitReached, PingSelfError
from .models import MESSAGE_MAX_LENGTH

DAY_SECONDS = 24 * 60 * 60


def ensure_not_self(from_user: str, to_user: str) -> None:
	if from_user == to_user:
		raise PingSelfError()


async def enforce_daily_limit(user_id: str, *, now: float, limit: int | None = None) -> None:
	budget = settings.ping_daily_limit if limit is None else limit
	if not await rate_limit.allow("ping_send", user_id, limit=budget, window_seconds=DAY_SECONDS, now=now):
		raise PingDailyLimitReached()


async def release_daily_slot(user_id: str, *, now: float) -> None:
	await rate_limit.refund("ping_send", user_id, window_seconds=DAY_SECONDS, now=now)


def normalize_message(content: str) -> str:
	text = (content or "").strip()
	if not text:
		raise MessageInvalid("empty")
	if len(text) > MESSAGE_MAX_LENGTH:
		raise MessageInvalid("too_long")
	return text

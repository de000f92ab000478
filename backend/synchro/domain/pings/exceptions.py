"""Domain-level exceptions for pings and match chat."""

from __future__ import annotations

from synchro.infra.rate_limit import RateLimitExceeded


class PingError(Exception):
	"""Base class for ping and match errors."""

	reason: str = "unknown"

	def __init__(self, reason: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason


class PingConflict(PingError):
	reason = "conflict"


class PingAlreadySent(PingConflict):
	reason = "already_sent"


class PingSelfError(PingConflict):
	reason = "self_ping"


class PingForbidden(PingError):
	reason = "forbidden"


class PingNotFound(PingError):
	reason = "not_found"


class PingGone(PingError):
	reason = "gone"


class PingExpired(PingGone):
	reason = "expired"


class PingDailyLimitReached(RateLimitExceeded):
	"""Raised when a user has used up the day's ping budget."""

	def __init__(self, reason: str = "daily_limit") -> None:
		super().__init__(reason)
		self.reason = reason


class MatchNotFound(PingError):
	reason = "match_not_found"


class MatchForbidden(PingForbidden):
	reason = "match_forbidden"


class MatchExpired(PingGone):
	reason = "match_expired"


class MessageInvalid(PingError):
	reason = "message_invalid"

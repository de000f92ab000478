"""Domain-level exceptions for auto lobbies."""

from __future__ import annotations


class LobbyError(Exception):
	"""Base class for lobby errors."""

	reason: str = "unknown"

	def __init__(self, reason: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason


class LobbyNotFound(LobbyError):
	reason = "lobby_not_found"


class LobbyClosed(LobbyError):
	reason = "lobby_closed"


class LobbyFull(LobbyError):
	reason = "lobby_full"

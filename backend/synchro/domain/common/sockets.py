"""Socket.IO namespace pushing pipeline events to connected users."""

from __future__ import annotations

import logging
from typing import Optional

import socketio
from jwt import InvalidTokenError

from synchro.infra import jwt as jwt_helper
from synchro.obs import metrics as obs_metrics
from synchro.settings import settings

logger = logging.getLogger(__name__)

_namespace: "SynchroNamespace" | None = None


def _header(scope: dict, name: str) -> Optional[str]:
	target = name.encode().lower()
	for key, value in scope.get("headers", []):
		if key.lower() == target:
			return value.decode()
	return None


class SynchroNamespace(socketio.AsyncNamespace):
	"""Namespace that keeps each client in their personal room."""

	def __init__(self) -> None:
		super().__init__("/synchro")
		self._sessions: dict[str, str] = {}

	def _resolve_user(self, scope: dict, auth_payload: dict) -> Optional[str]:
		token = auth_payload.get("token")
		if token:
			try:
				return str(jwt_helper.decode_access(token)["sub"])
			except InvalidTokenError:
				return None
		if settings.is_dev():
			return auth_payload.get("userId") or _header(scope, "x-user-id")
		return None

	async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
		scope = environ.get("asgi.scope", environ)
		user_id = self._resolve_user(scope, auth or {})
		if not user_id:
			raise ConnectionRefusedError("unauthenticated")
		obs_metrics.socket_connected(self.namespace)
		self._sessions[sid] = user_id
		await self.enter_room(sid, self.user_room(user_id))
		await self.emit("synchro:ack", {"ok": True}, room=sid)

	async def on_disconnect(self, sid: str) -> None:
		user_id = self._sessions.pop(sid, None)
		if user_id:
			obs_metrics.socket_disconnected(self.namespace)
			await self.leave_room(sid, self.user_room(user_id))

	@staticmethod
	def user_room(user_id: str) -> str:
		return f"user:{user_id}"


def set_namespace(ns: SynchroNamespace | None) -> None:
	global _namespace
	_namespace = ns


async def emit_to_user(user_id: str, event: str, payload: dict) -> None:
	"""Best-effort push; delivery failures never fail the calling operation."""
	if _namespace is None:
		return
	obs_metrics.socket_event(_namespace.namespace, event)
	try:
		await _namespace.emit(event, payload, room=SynchroNamespace.user_room(user_id))
	except Exception:
		logger.warning("socket emit failed", extra={"event": event, "user_id": user_id}, exc_info=True)


async def emit_to_users(user_ids, event: str, payload: dict) -> None:
	for user_id in dict.fromkeys(user_ids):
		await emit_to_user(user_id, event, payload)


def jsonable(payload: dict) -> dict:
	"""Shallow copy with datetimes rendered as ISO strings."""
	return {
		key: value.isoformat() if hasattr(value, "isoformat") else value
		for key, value in payload.items()
	}

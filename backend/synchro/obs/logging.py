"""JSON logging with request context and location-safe extras."""

from __future__ import annotations

import json
import logging
import random
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from synchro.settings import settings

_CONTEXT: ContextVar[Mapping[str, str]] = ContextVar("synchro_log_context", default={})

_LOGGER_NAME = "synchro"
ACCESS_LOGGER_NAME = "synchro.http"

# Credentials and chat text never reach the log stream
_REDACTED_KEYS = frozenset({"token", "secret", "authorization", "password", "content", "task"})
# Coordinates are coarsened to ~1 km so logs cannot pinpoint a user
_COORDINATE_KEYS = frozenset({"lat", "lon", "latitude", "longitude"})
_COORDINATE_DECIMALS = 2
_MAX_STRING_LENGTH = 256
_MAX_ITEMS = 10

_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime", "taskName"}


def bind_context(**fields: Optional[str]) -> Token:
	"""Add fields (request_id, route, user_id, ...) to every log line in this task."""
	merged = dict(_CONTEXT.get())
	merged.update({key: value for key, value in fields.items() if value is not None})
	return _CONTEXT.set(merged)


def reset_context(token: Token) -> None:
	_CONTEXT.reset(token)


def current_request_id() -> Optional[str]:
	return _CONTEXT.get().get("request_id")


def _clean(key: str, value: Any) -> Any:
	lowered = key.lower()
	if lowered in _REDACTED_KEYS or lowered.endswith("_token"):
		return "[redacted]"
	if lowered in _COORDINATE_KEYS and isinstance(value, (int, float)):
		return round(float(value), _COORDINATE_DECIMALS)
	if isinstance(value, str):
		return value if len(value) <= _MAX_STRING_LENGTH else f"{value[:_MAX_STRING_LENGTH]}…"
	if isinstance(value, Mapping):
		items = list(value.items())[:_MAX_ITEMS]
		return {str(k): _clean(str(k), v) for k, v in items}
	if isinstance(value, (list, tuple, set, frozenset)):
		items = list(value)
		cleaned = [_clean(key, item) for item in items[:_MAX_ITEMS]]
		if len(items) > _MAX_ITEMS:
			cleaned.append(f"+{len(items) - _MAX_ITEMS}")
		return cleaned
	if isinstance(value, (int, float, bool)) or value is None:
		return value
	return str(value)


class JSONLogFormatter(logging.Formatter):
	def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (match logging api)
		payload: Dict[str, Any] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"msg": record.getMessage(),
			"logger": record.name,
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
		}
		payload.update(_CONTEXT.get())
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		for key, value in record.__dict__.items():
			if key in _RECORD_ATTRS or key in payload:
				continue
			payload[key] = _clean(key, value)
		return json.dumps(payload, separators=(",", ":"), default=str)


class AccessLogSamplingFilter(logging.Filter):
	"""Sample info-level access logs; domain events and warnings always pass."""

	def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
		if record.levelno != logging.INFO or record.name != ACCESS_LOGGER_NAME:
			return True
		rate = max(0.0, min(1.0, settings.obs_log_sampling_rate_info))
		return rate >= 1.0 or random.random() < rate


def configure_logging() -> logging.Logger:
	root = logging.getLogger()
	root.handlers.clear()
	handler = logging.StreamHandler()
	handler.setFormatter(JSONLogFormatter())
	handler.addFilter(AccessLogSamplingFilter())
	root.addHandler(handler)
	root.setLevel(settings.obs_log_level)
	return logging.getLogger(_LOGGER_NAME)


def get_logger(name: Optional[str] = None) -> logging.Logger:
	return logging.getLogger(name or _LOGGER_NAME)

"""Redis Stream change feed for persisted relations.

Every service that writes a row publishes an insert/update event on
`x:changes.{relation}`. Subscribers tail the stream and receive only the
events whose row matches their filter (e.g. `{"match_id": "..."}`).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncIterator, Mapping, Optional
from uuid import UUID

from synchro.infra.redis import redis_client

logger = logging.getLogger(__name__)

STREAM_PREFIX = "x:changes."
STREAM_MAXLEN = 10_000


@dataclass(slots=True)
class ChangeEvent:
	relation: str
	op: str
	row: dict[str, Any]
	event_id: str = ""


def stream_name(relation: str) -> str:
	return f"{STREAM_PREFIX}{relation}"


def _default(value: Any) -> Any:
	if isinstance(value, datetime):
		return value.isoformat()
	if isinstance(value, UUID):
		return str(value)
	if isinstance(value, (set, frozenset, tuple)):
		return list(value)
	return str(value)


def _matches(row: Mapping[str, Any], match: Optional[Mapping[str, Any]]) -> bool:
	if not match:
		return True
	for key, expected in match.items():
		value = row.get(key)
		if isinstance(value, list):
			if str(expected) not in {str(item) for item in value}:
				return False
		elif str(value) != str(expected):
			return False
	return True


async def publish(relation: str, op: str, row: Mapping[str, Any]) -> None:
	"""Append a change event; failures are logged and never raised to the writer."""
	fields = {
		"relation": relation,
		"op": op,
		"row": json.dumps(dict(row), default=_default, separators=(",", ":")),
	}
	try:
		await redis_client.xadd(stream_name(relation), fields, maxlen=STREAM_MAXLEN, approximate=True)
	except Exception:
		logger.warning("changefeed publish failed", extra={"relation": relation, "op": op}, exc_info=True)


async def subscribe(
	relation: str,
	*,
	match: Optional[Mapping[str, Any]] = None,
	last_id: str = "$",
	block_ms: int = 5000,
	count: int = 100,
) -> AsyncIterator[ChangeEvent]:
	"""Yield new change events for `relation` whose row matches `match`.

	Starts from `last_id` ("$" means only events published after subscribing).
	The iterator runs until the consumer stops iterating or the task is cancelled.
	"""
	stream = stream_name(relation)
	cursor = last_id
	if cursor == "$":
		latest = await redis_client.xrevrange(stream, count=1)
		cursor = latest[0][0] if latest else "0-0"
	while True:
		response = await redis_client.xread({stream: cursor}, count=count, block=block_ms)
		if not response:
			continue
		for _stream, entries in response:
			for event_id, fields in entries:
				cursor = event_id
				try:
					row = json.loads(fields.get("row") or "{}")
				except ValueError:
					logger.warning("changefeed entry undecodable", extra={"relation": relation, "event_id": event_id})
					continue
				if not _matches(row, match):
					continue
				yield ChangeEvent(relation=relation, op=fields.get("op", ""), row=row, event_id=event_id)

"""Ping → match lifecycle and timed match chat."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import List

import ulid

from synchro.domain.common import clock as clock_mod
from synchro.domain.common import sockets
from synchro.domain.common.clock import Clock
from synchro.infra import changefeed
from synchro.infra.rate_limit import RateLimitExceeded
from synchro.obs import metrics as obs_metrics
from synchro.settings import settings

from . import policy
from .exceptions import (
	MatchExpired,
	MatchForbidden,
	MatchNotFound,
	PingAlreadySent,
	PingError,
	PingExpired,
)
from .models import Match, MatchMessage, Ping, PingActivity, PingStatus
from .repo import MatchRepository, PingRepository

logger = logging.getLogger(__name__)


class PingService:
	def __init__(
		self,
		pings: PingRepository | None = None,
		matches: MatchRepository | None = None,
		*,
		clock: Clock = clock_mod.utcnow,
		ping_ttl_minutes: int | None = None,
		match_ttl_hours: int | None = None,
		daily_limit: int | None = None,
	) -> None:
		self._pings = pings or PingRepository()
		self._matches = matches or MatchRepository()
		self._clock = clock
		self._ping_ttl = timedelta(
			minutes=ping_ttl_minutes if ping_ttl_minutes is not None else settings.ping_ttl_minutes
		)
		self._match_ttl = timedelta(
			hours=match_ttl_hours if match_ttl_hours is not None else settings.match_ttl_hours
		)
		self._daily_limit = daily_limit

	async def send_ping(
		self,
		from_user: str,
		to_user: str,
		activity: PingActivity | str = PingActivity.COFFEE,
	) -> Ping:
		activity = PingActivity(activity)
		now = self._clock()
		try:
			policy.ensure_not_self(from_user, to_user)
			await policy.enforce_daily_limit(from_user, now=now.timestamp(), limit=self._daily_limit)
		except (PingError, RateLimitExceeded) as exc:
			obs_metrics.inc_ping_reject(exc.reason)
			raise
		ping = Ping(
			from_user=from_user,
			to_user=to_user,
			activity=activity,
			created_at=now,
			expires_at=now + self._ping_ttl,
		)
		created = await self._pings.create_pending(ping, now)
		if created is None:
			await policy.release_daily_slot(from_user, now=now.timestamp())
			obs_metrics.inc_ping_reject(PingAlreadySent.reason)
			raise PingAlreadySent()
		obs_metrics.inc_ping("sent")
		logger.info("ping sent", extra={"ping_id": created.id, "activity": activity.value})
		payload = created.to_dict()
		await changefeed.publish("pings", "insert", payload)
		await sockets.emit_to_user(to_user, "ping:new", sockets.jsonable(payload))
		return created

	async def accept_ping(self, user_id: str, ping_id: str) -> Match:
		now = self._clock()
		ping, match = await self._pings.accept(ping_id, user_id, now, self._match_ttl)
		if match is None:
			obs_metrics.inc_ping("expired")
			await self._publish_ping_update(ping)
			raise PingExpired()
		obs_metrics.inc_ping("accepted")
		logger.info("ping accepted", extra={"ping_id": ping.id, "match_id": match.id})
		await self._publish_ping_update(ping)
		payload = match.to_dict()
		await changefeed.publish("matches", "insert", payload)
		await sockets.emit_to_users([match.user_a, match.user_b], "match:new", sockets.jsonable(payload))
		return match

	async def ignore_ping(self, user_id: str, ping_id: str) -> Ping:
		ping = await self._pings.resolve(ping_id, user_id, PingStatus.IGNORED)
		obs_metrics.inc_ping("ignored")
		await self._publish_ping_update(ping, notify_sender=False)
		return ping

	async def decline_ping(self, user_id: str, ping_id: str) -> Ping:
		ping = await self._pings.resolve(ping_id, user_id, PingStatus.DECLINED)
		obs_metrics.inc_ping("declined")
		await self._publish_ping_update(ping)
		return ping

	async def get_active_pings(self, user_id: str) -> List[Ping]:
		return await self._pings.list_active_pings(user_id, self._clock())

	async def get_active_matches(self, user_id: str) -> List[Match]:
		return await self._matches.list_active(user_id, self._clock())

	async def expire_old_pings(self) -> int:
		swept = await self._pings.expire_pending(self._clock())
		if swept:
			obs_metrics.inc_ping("expired", swept)
			logger.info("expired stale pings", extra={"count": swept})
		return swept

	async def _load_match_for(self, user_id: str, match_id: str) -> Match:
		match = await self._matches.get(match_id)
		if match is None:
			raise MatchNotFound()
		if not match.involves(user_id):
			raise MatchForbidden()
		return match

	async def send_message(self, user_id: str, match_id: str, content: str) -> MatchMessage:
		match = await self._load_match_for(user_id, match_id)
		now = self._clock()
		if match.is_expired(now):
			obs_metrics.inc_match_message("expired")
			raise MatchExpired()
		try:
			text = policy.normalize_message(content)
		except PingError:
			obs_metrics.inc_match_message("invalid")
			raise
		message = MatchMessage(
			id=str(ulid.new()),
			match_id=match.id,
			sender_id=user_id,
			content=text,
			created_at=now,
		)
		await self._matches.insert_message(message)
		obs_metrics.inc_match_message("sent")
		payload = message.to_dict()
		await changefeed.publish("match_messages", "insert", payload)
		await sockets.emit_to_user(match.other(user_id), "match:message", sockets.jsonable(payload))
		return message

	async def list_messages(self, user_id: str, match_id: str) -> List[MatchMessage]:
		await self._load_match_for(user_id, match_id)
		return await self._matches.list_messages(match_id)

	async def _publish_ping_update(self, ping: Ping, *, notify_sender: bool = True) -> None:
		payload = ping.to_dict()
		await changefeed.publish("pings", "update", payload)
		if notify_sender:
			await sockets.emit_to_user(ping.from_user, "ping:update", sockets.jsonable(payload))

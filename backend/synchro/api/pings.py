"""Pings, matches and timed match chat."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends

from synchro.api.errors import map_error
from synchro.api.schemas import MessageSendRequest, PingSendRequest
from synchro.container import Services, get_services
from synchro.domain.pings.exceptions import PingError
from synchro.domain.pings.models import Match, Ping
from synchro.domain.pings.timing import format_time_remaining, get_time_remaining
from synchro.infra.auth import AuthenticatedUser, get_current_user
from synchro.infra.rate_limit import RateLimitExceeded

router = APIRouter()


def _with_countdown(payload: dict, expires_at: datetime, now: datetime) -> dict:
	payload["time_remaining"] = get_time_remaining(expires_at, now)
	payload["time_remaining_label"] = format_time_remaining(expires_at, now)
	return payload


def _ping_out(ping: Ping, now: datetime) -> dict:
	return _with_countdown(ping.to_dict(), ping.expires_at, now)


def _match_out(match: Match, now: datetime) -> dict:
	return _with_countdown(match.to_dict(), match.expires_at, now)


@router.post("/pings")
async def send_ping(
	payload: PingSendRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	try:
		ping = await services.pings.send_ping(auth_user.id, payload.to_user_id, payload.activity)
	except (PingError, RateLimitExceeded) as exc:
		raise map_error(exc) from None
	return _ping_out(ping, services.clock())


@router.post("/pings/{ping_id}/accept")
async def accept_ping(
	ping_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	try:
		match = await services.pings.accept_ping(auth_user.id, ping_id)
	except PingError as exc:
		raise map_error(exc) from None
	return _match_out(match, services.clock())


@router.post("/pings/{ping_id}/ignore")
async def ignore_ping(
	ping_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	try:
		ping = await services.pings.ignore_ping(auth_user.id, ping_id)
	except PingError as exc:
		raise map_error(exc) from None
	return ping.to_dict()


@router.post("/pings/{ping_id}/decline")
async def decline_ping(
	ping_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	try:
		ping = await services.pings.decline_ping(auth_user.id, ping_id)
	except PingError as exc:
		raise map_error(exc) from None
	return ping.to_dict()


@router.get("/pings/active")
async def active_pings(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	now = services.clock()
	pings = await services.pings.get_active_pings(auth_user.id)
	return {"items": [_ping_out(ping, now) for ping in pings]}


@router.get("/matches/active")
async def active_matches(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	now = services.clock()
	matches = await services.pings.get_active_matches(auth_user.id)
	return {"items": [_match_out(match, now) for match in matches]}


@router.get("/matches/{match_id}/messages")
async def list_messages(
	match_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	try:
		messages = await services.pings.list_messages(auth_user.id, match_id)
	except PingError as exc:
		raise map_error(exc) from None
	return {"items": [message.to_dict() for message in messages]}


@router.post("/matches/{match_id}/messages")
async def send_message(
	match_id: str,
	payload: MessageSendRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	try:
		message = await services.pings.send_message(auth_user.id, match_id, payload.content)
	except PingError as exc:
		raise map_error(exc) from None
	return message.to_dict()

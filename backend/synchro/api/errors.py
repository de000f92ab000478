"""Error handlers and the domain-error → HTTP status mapping."""

from __future__ import annotations

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from synchro.domain.lobbies.exceptions import LobbyClosed, LobbyError, LobbyFull, LobbyNotFound
from synchro.domain.pings.exceptions import (
	MatchNotFound,
	MessageInvalid,
	PingConflict,
	PingError,
	PingForbidden,
	PingGone,
	PingNotFound,
)
from synchro.infra.rate_limit import RateLimitExceeded
from synchro.obs import logging as obs_logging


def _request_id(request: Request) -> str:
	return getattr(request.state, "request_id", None) or obs_logging.current_request_id() or "unknown"


def map_error(exc: Exception) -> HTTPException:
	reason = getattr(exc, "reason", None)
	if isinstance(exc, RateLimitExceeded):
		return HTTPException(status.HTTP_429_TOO_MANY_REQUESTS, detail=reason or "rate_limited")
	if isinstance(exc, (PingConflict, LobbyFull)):
		return HTTPException(status.HTTP_409_CONFLICT, detail=reason or "conflict")
	if isinstance(exc, PingForbidden):
		return HTTPException(status.HTTP_403_FORBIDDEN, detail=reason or "forbidden")
	if isinstance(exc, (PingGone, LobbyClosed)):
		return HTTPException(status.HTTP_410_GONE, detail=reason or "gone")
	if isinstance(exc, (PingNotFound, MatchNotFound, LobbyNotFound)):
		return HTTPException(status.HTTP_404_NOT_FOUND, detail=reason or "not_found")
	if isinstance(exc, (MessageInvalid, PingError, LobbyError)):
		return HTTPException(status.HTTP_400_BAD_REQUEST, detail=reason or "bad_request")
	return HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc))


def install_error_handlers(app: FastAPI) -> None:
	@app.exception_handler(StarletteHTTPException)
	async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
		payload = {"detail": exc.detail, "request_id": _request_id(request)}
		return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

	@app.exception_handler(RequestValidationError)
	async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
		payload = {"detail": "validation_error", "errors": exc.errors(), "request_id": _request_id(request)}
		return JSONResponse(status_code=422, content=payload)

"""Caller identity for HTTP routes.

A Bearer access token always wins. Development builds also accept a bare
X-User-Id header so the mobile client can be driven without a login flow.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import InvalidTokenError

from synchro.infra import jwt as jwt_helper
from synchro.settings import settings


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	display_name: Optional[str] = None


_bearer = HTTPBearer(auto_error=False)


def _unauthorized(reason: str) -> HTTPException:
	return HTTPException(
		status_code=status.HTTP_401_UNAUTHORIZED,
		detail=reason,
		headers={"WWW-Authenticate": "Bearer"},
	)


def user_from_token(token: str) -> AuthenticatedUser:
	try:
		claims = jwt_helper.decode_access(token)
	except InvalidTokenError as exc:
		raise _unauthorized("invalid_token") from exc
	name = claims.get("name")
	return AuthenticatedUser(id=str(claims["sub"]).strip(), display_name=str(name) if name else None)


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> AuthenticatedUser:
	if credentials is not None:
		return user_from_token(credentials.credentials)
	if settings.is_dev() and x_user_id and x_user_id.strip():
		return AuthenticatedUser(id=x_user_id.strip())
	raise _unauthorized("missing_identity")

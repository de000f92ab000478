"""Access tokens for the HTTP API and the /synchro socket namespace.

Tokens are HS256, signed with the application secret, and carry the user id
in `sub` plus an optional display name.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

import jwt
from jwt import InvalidTokenError

from synchro.settings import settings

ALGORITHM = "HS256"


def issue_access_token(
	user_id: str,
	*,
	display_name: Optional[str] = None,
	ttl_seconds: Optional[int] = None,
	now: Optional[int] = None,
) -> str:
	issued_at = int(now if now is not None else time.time())
	ttl = int(ttl_seconds if ttl_seconds is not None else settings.access_token_ttl_seconds)
	claims: Dict[str, Any] = {
		"sub": user_id,
		"iss": settings.jwt_issuer,
		"aud": settings.jwt_audience,
		"iat": issued_at,
		"exp": issued_at + ttl,
	}
	if display_name:
		claims["name"] = display_name
	return jwt.encode(claims, settings.secret_key, algorithm=ALGORITHM)


def decode_access(token: str) -> dict[str, Any]:
	"""Validate signature, expiry, issuer and audience.

	Raises jwt.InvalidTokenError subclasses on failure.
	"""
	payload = jwt.decode(
		token,
		settings.secret_key,
		algorithms=[ALGORITHM],
		audience=settings.jwt_audience,
		issuer=settings.jwt_issuer,
		leeway=5,
		options={"require": ["sub", "exp", "iat", "iss", "aud"]},
	)
	if not str(payload.get("sub") or "").strip():
		raise InvalidTokenError("missing_claim:sub")
	return payload

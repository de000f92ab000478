import jwt
import pytest

from synchro.infra.jwt import issue_access_token
from synchro.settings import settings


def _bearer(token: str) -> dict:
	return {"Authorization": f"Bearer {token}"}


@pytest.mark.asyncio
async def test_bearer_token_identifies_caller(api_client):
	token = issue_access_token("alice", display_name="Alice")
	response = await api_client.get("/karma/balance", headers=_bearer(token))
	assert response.status_code == 200
	assert response.json()["balance"] == 10


@pytest.mark.asyncio
async def test_bearer_token_wins_over_header(api_client):
	await api_client.post("/karma/request", json={"task": "carry sofa"}, headers={"X-User-Id": "bob"})
	token = issue_access_token("alice")
	response = await api_client.get("/karma/balance", headers={**_bearer(token), "X-User-Id": "bob"})
	assert response.json()["balance"] == 10


@pytest.mark.asyncio
async def test_expired_token_rejected(api_client):
	token = issue_access_token("alice", ttl_seconds=60, now=1_000_000)
	response = await api_client.get("/karma/balance", headers=_bearer(token))
	assert response.status_code == 401
	assert response.json()["detail"] == "invalid_token"
	assert response.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_token_for_other_audience_rejected(api_client):
	token = jwt.encode(
		{"sub": "alice", "iss": settings.jwt_issuer, "aud": "someone-else", "iat": 0, "exp": 2**31},
		settings.secret_key,
		algorithm="HS256",
	)
	response = await api_client.get("/karma/balance", headers=_bearer(token))
	assert response.status_code == 401


@pytest.mark.asyncio
async def test_header_identity_only_in_dev(api_client):
	settings.environment = "production"
	response = await api_client.get("/karma/balance", headers={"X-User-Id": "alice"})
	assert response.status_code == 401
	assert response.json()["detail"] == "missing_identity"

import pytest

ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}


@pytest.mark.asyncio
async def test_help_exchange_updates_balances(api_client):
	response = await api_client.post(
		"/karma/help",
		json={"helped_user_id": "bob", "task": "fix bike", "difficulty": "hard"},
		headers=ALICE,
	)
	assert response.status_code == 200
	assert response.json()["balance"]["balance"] == 20

	bob = await api_client.get("/karma/balance", headers=BOB)
	assert bob.json() == {"balance": 5, "level": 1, "level_name": "Newcomer", "next_level_at": 50}

	history = await api_client.get("/karma/history", headers=BOB)
	assert [item["transaction_type"] for item in history.json()["items"]] == ["help_received"]

	board = await api_client.get("/karma/leaderboard", headers=BOB)
	assert [item["user_id"] for item in board.json()["items"]] == ["alice", "bob"]


@pytest.mark.asyncio
async def test_emergency_help(api_client):
	response = await api_client.post(
		"/karma/help",
		json={"helped_user_id": "bob", "task": "locked out", "emergency": True},
		headers=ALICE,
	)
	assert response.json()["balance"]["balance"] == 25


@pytest.mark.asyncio
async def test_help_rules(api_client):
	self_help = await api_client.post("/karma/help", json={"helped_user_id": "alice", "task": "x"}, headers=ALICE)
	assert self_help.status_code == 409
	assert self_help.json()["detail"] == "self_help"

	too_expensive = await api_client.post("/karma/request", json={"task": "paint fence", "karma_cost": 11}, headers=ALICE)
	assert too_expensive.status_code == 409
	assert too_expensive.json()["detail"] == "insufficient_karma"

	ok = await api_client.post("/karma/request", json={"task": "paint fence"}, headers=ALICE)
	assert ok.json()["balance"]["balance"] == 8

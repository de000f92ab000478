import pytest

ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}
CAROL = {"X-User-Id": "carol"}

CAFE = {"latitude": 55.676, "longitude": 12.568, "speed": 0.0, "location_name": "Cafe Norden"}
NEXT_DOOR = {"latitude": 55.676719, "longitude": 12.568, "speed": 0.0, "location_name": "Cafe Norden"}


@pytest.mark.asyncio
async def test_samples_to_lobby(api_client):
	bob = await api_client.post("/presence/sample", json=NEXT_DOOR, headers=BOB)
	assert bob.status_code == 200
	assert bob.json()["activity"]["activity_type"] == "coffee"
	await api_client.post("/presence/sample", json=CAFE, headers=ALICE)

	nearby = await api_client.get("/proximity/nearby", params={"lat": 55.676, "lon": 12.568}, headers=ALICE)
	assert [item["user_id"] for item in nearby.json()["items"]] == ["bob"]

	scan = await api_client.post("/synchronicities/scan", headers=ALICE)
	body = scan.json()
	assert len(body["synchronicities"]) == 1
	assert len(body["lobbies"]) == 1
	lobby = body["lobbies"][0]
	assert lobby["current_participants"] == 2
	assert lobby["max_participants"] == 5

	listed = await api_client.get("/synchronicities", headers=BOB)
	assert [item["id"] for item in listed.json()["items"]] == [body["synchronicities"][0]["id"]]

	found = await api_client.get("/lobbies/auto/nearby", params={"lat": 55.68, "lon": 12.57}, headers=CAROL)
	assert [item["id"] for item in found.json()["items"]] == [lobby["id"]]

	joined = await api_client.post(f"/lobbies/{lobby['id']}/join", headers=CAROL)
	assert joined.status_code == 200
	assert joined.json()["current_participants"] == 3

	fetched = await api_client.get(f"/lobbies/{lobby['id']}", headers=CAROL)
	assert sorted(fetched.json()["user_ids"]) == ["alice", "bob", "carol"]

	again = await api_client.post(f"/synchronicities/{body['synchronicities'][0]['id']}/lobby", headers=BOB)
	assert again.json() == {"created": False, "lobby": fetched.json()}


@pytest.mark.asyncio
async def test_lobby_errors(api_client):
	assert (await api_client.get("/lobbies/missing", headers=ALICE)).status_code == 404
	assert (await api_client.post("/lobbies/missing/join", headers=ALICE)).status_code == 404
	response = await api_client.post("/synchronicities/missing/lobby", headers=ALICE)
	assert response.status_code == 404
	assert response.json()["detail"] == "synchronicity_not_found"


@pytest.mark.asyncio
async def test_scanning_toggle(api_client, services):
	started = await api_client.post("/synchronicities/scanning", json={"enabled": True, "interval_seconds": 60}, headers=ALICE)
	assert started.json() == {"user_id": "alice", "scanning": True, "state": "started"}

	again = await api_client.post("/synchronicities/scanning", json={"enabled": True}, headers=ALICE)
	assert again.json()["state"] == "unchanged"

	stopped = await api_client.post("/synchronicities/scanning", json={"enabled": False}, headers=ALICE)
	assert stopped.json() == {"user_id": "alice", "scanning": False, "state": "stopped"}
	assert not services.scanner.is_scanning("alice")


@pytest.mark.asyncio
async def test_offline_hides_presence(api_client, services):
	await api_client.post("/presence/sample", json=CAFE, headers=ALICE)
	response = await api_client.post("/presence/offline", headers=ALICE)
	assert response.json() == {"user_id": "alice", "online": False}
	assert (await services.presence.get_presence("alice")).is_online is False


@pytest.mark.asyncio
async def test_rhythm_endpoints(api_client):
	missing = await api_client.get("/rhythm", headers=ALICE)
	assert missing.status_code == 404
	assert missing.json()["detail"] == "rhythm_not_found"

	analyzed = await api_client.post("/rhythm/analyze", headers=ALICE)
	assert analyzed.json() == {"rhythm": None}

	matches = await api_client.get("/rhythm/mirror-matches", headers=ALICE)
	assert matches.json() == {"items": []}

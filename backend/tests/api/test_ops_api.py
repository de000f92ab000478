import pytest


@pytest.mark.asyncio
async def test_liveness(api_client):
	response = await api_client.get("/health/live")
	assert response.status_code == 200
	assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_metrics_exposition(api_client):
	await api_client.post("/pings", json={"to_user_id": "bob"}, headers={"X-User-Id": "alice"})
	response = await api_client.get("/metrics")
	assert response.status_code == 200
	assert "synchro_pings_total" in response.text


@pytest.mark.asyncio
async def test_validation_errors_carry_request_id(api_client):
	response = await api_client.post("/presence/sample", json={"latitude": 123}, headers={"X-User-Id": "alice"})
	assert response.status_code == 422
	body = response.json()
	assert body["detail"] == "validation_error"
	assert body["request_id"]

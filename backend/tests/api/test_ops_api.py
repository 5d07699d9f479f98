import pytest


@pytest.mark.asyncio
async def test_health_reports_redis(api_client):
	resp = await api_client.get("/health")
	assert resp.status_code == 200
	body = resp.json()
	assert body["status"] == "ok"
	assert body["redis"]["ok"] is True


@pytest.mark.asyncio
async def test_metrics_exposes_request_counter(api_client):
	await api_client.get("/health")
	resp = await api_client.get("/metrics")
	assert resp.status_code == 200
	assert "matchmaker_http_requests_total" in resp.text

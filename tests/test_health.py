"""Health endpoint tests."""

import pytest


@pytest.mark.asyncio
async def test_health_returns_ok(hub_client):
    """Health endpoint should return server status, version and broker state."""
    resp = await hub_client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["server"] == "ok"
    assert data["broker"] == "ok"
    assert data["hub"] == "taxidata"
    assert "version" in data


@pytest.mark.asyncio
async def test_health_degraded_when_broker_down(hub_app, hub_client):
    await hub_app.state.provider.disconnect()

    resp = await hub_client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "degraded"
    assert resp.json()["broker"] == "disconnected"


@pytest.mark.asyncio
async def test_health_with_external_provider(client):
    resp = await client.get("/api/health")
    assert resp.json()["broker"] == "external"
    assert resp.json()["status"] == "healthy"

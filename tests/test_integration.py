"""End-to-end checks against a running stack (order service, PostgreSQL, RabbitMQ).

Skipped unless ORDER_SERVICE_URL points at a live order service, e.g.
ORDER_SERVICE_URL=http://localhost:8000 JWT_SECRET=... pytest tests/test_integration.py
"""
import os
import pytest
import httpx

from conftest import order_payload
from order_service.auth import create_access_token

ORDER_SERVICE_URL = os.getenv("ORDER_SERVICE_URL")
JWT_SECRET = os.getenv("JWT_SECRET", "change-me")

pytestmark = pytest.mark.skipif(not ORDER_SERVICE_URL, reason="ORDER_SERVICE_URL not set")


@pytest.fixture
async def client():
    async with httpx.AsyncClient(base_url=ORDER_SERVICE_URL) as client:
        yield client


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_access_token(JWT_SECRET, 'integration-admin', 'admin')}"}


@pytest.mark.asyncio
async def test_full_order_flow_confirm_then_cancel(client, admin_headers):
    response = await client.post("/api/orders", json=order_payload())
    assert response.status_code == 201
    order = response.json()["order"]
    if order["status"] != "Pending":
        pytest.skip("service requires customer email confirmation")

    listed = await client.get("/api/orders", headers=admin_headers)
    assert listed.status_code == 200
    assert order["id"] in [o["id"] for o in listed.json()]

    confirmed = await client.patch(f"/api/orders/{order['id']}/confirm", headers=admin_headers)
    assert confirmed.status_code == 200
    assert confirmed.json()["order"]["status"] == "Confirmed"

    cancelled = await client.patch(f"/api/orders/{order['id']}/cancel", headers=admin_headers)
    assert cancelled.status_code == 200
    assert cancelled.json()["order"]["status"] == "Cancelled"

    confirm_again = await client.patch(f"/api/orders/{order['id']}/confirm", headers=admin_headers)
    assert confirm_again.status_code == 400
    assert "Cancelled" in confirm_again.json()["message"]


@pytest.mark.asyncio
async def test_unknown_order_is_404(client, admin_headers):
    response = await client.patch(
        "/api/orders/0b7e4a3c-2f55-4b8e-9a41-7f1c2d3e4f50/cancel", headers=admin_headers
    )
    assert response.status_code == 404

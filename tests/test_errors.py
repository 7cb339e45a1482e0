"""Tests for the shared error envelope on framework-level failures."""

from httpx import AsyncClient

from portal.api.v1.endpoints.auth import limiter


async def test_unknown_route_uses_error_envelope(async_client: AsyncClient):
    resp = await async_client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Not Found"}


async def test_wrong_method_uses_error_envelope(async_client: AsyncClient):
    resp = await async_client.patch("/api/health")
    assert resp.status_code == 405
    assert resp.json() == {"success": False, "message": "Method Not Allowed"}
    assert "GET" in resp.headers["allow"]


async def test_login_throttling_uses_error_envelope(async_client: AsyncClient, member, audit_entries):
    limiter.enabled = True
    try:
        for _ in range(10):
            resp = await async_client.post(
                "/api/auth/login", json={"login": member.email, "password": "wrong"}
            )
            assert resp.status_code == 401

        resp = await async_client.post(
            "/api/auth/login", json={"login": member.email, "password": "wrong"}
        )
    finally:
        limiter.reset()
        limiter.enabled = False

    assert resp.status_code == 429
    body = resp.json()
    assert body["success"] is False
    assert body["message"] == "Too many attempts. Please try again later."
    assert await audit_entries("create-error") == []

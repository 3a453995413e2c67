import pytest

from mibuks.web.routes.auth import identity_for_email


@pytest.mark.integration
class TestAuthRoutes:
    async def test_login_sets_session(self, client, login) -> None:
        data = await login("Owner@Example.com ")
        assert data["email"] == "owner@example.com"
        assert data["user_id"] == identity_for_email("owner@example.com").user_id
        assert client.cookies.get("session")

        resp = await client.get("/api/auth/session")
        assert resp.json() == {
            "authenticated": True,
            "user_id": data["user_id"],
            "email": "owner@example.com",
        }

    async def test_session_when_signed_out(self, client) -> None:
        resp = await client.get("/api/auth/session")
        assert resp.json() == {"authenticated": False}

    async def test_logout(self, authed_client) -> None:
        resp = await authed_client.post("/api/auth/logout")
        assert resp.status_code == 200
        resp = await authed_client.get("/api/suppliers")
        assert resp.status_code == 401

    async def test_bearer_token(self, client, login) -> None:
        await login("owner@example.com")
        token = client.cookies.get("session")
        client.cookies.clear()
        resp = await client.get(
            "/api/auth/session", headers={"Authorization": f"Bearer {token}"}
        )
        assert resp.json()["authenticated"] is True

    async def test_login_validation(self, client) -> None:
        resp = await client.post("/api/auth/login", json={"email": "a@b.c"})
        assert resp.status_code == 422

    def test_identity_is_stable(self) -> None:
        assert identity_for_email("x@y.z") == identity_for_email("X@Y.Z")
        assert identity_for_email("x@y.z") != identity_for_email("q@y.z")

"""Tests for the /users/me endpoints."""

from httpx import AsyncClient

from tests.conftest import TEST_USER_EMAIL, TEST_USER_ID


class TestGetMe:
    """GET /api/v1/users/me."""

    async def test_returns_profile(self, client: AsyncClient):
        """The signed-in user's public fields, nothing secret."""
        response = await client.get("/api/v1/users/me")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data == {
            "id": str(TEST_USER_ID),
            "email": TEST_USER_EMAIL,
            "first_name": "Test",
            "last_name": "User",
            "email_verified": True,
        }

    async def test_requires_session(self, unauthenticated_client):
        """No session is a 401."""
        response = await unauthenticated_client.get("/api/v1/users/me")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    async def test_bogus_bearer_token(self, unauthenticated_client):
        """An unknown token gets the same 401."""
        response = await unauthenticated_client.get(
            "/api/v1/users/me", headers={"Authorization": "Bearer auth:nope"}
        )
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Authentication required"


class TestUpdateMe:
    """PATCH /api/v1/users/me."""

    async def test_updates_name(self, client: AsyncClient):
        """Changed fields are persisted and returned."""
        response = await client.patch(
            "/api/v1/users/me", json={"first_name": "Grace", "last_name": "Hopper"}
        )
        again = await client.get("/api/v1/users/me")

        assert response.status_code == 200
        assert response.json()["data"]["first_name"] == "Grace"
        assert again.json()["data"]["last_name"] == "Hopper"

    async def test_partial_update_keeps_other_field(self, client: AsyncClient):
        """Omitted fields are left alone."""
        response = await client.patch("/api/v1/users/me", json={"last_name": "Z"})

        assert response.status_code == 200
        assert response.json()["data"]["first_name"] == "Test"
        assert response.json()["data"]["last_name"] == "Z"

    async def test_empty_first_name_rejected(self, client: AsyncClient):
        """first_name may not be blank."""
        response = await client.patch("/api/v1/users/me", json={"first_name": ""})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_email_is_not_writable(self, client: AsyncClient):
        """The email cannot be changed through this endpoint."""
        response = await client.patch(
            "/api/v1/users/me", json={"email": "other@example.com"}
        )
        again = await client.get("/api/v1/users/me")

        assert response.status_code == 400
        assert again.json()["data"]["email"] == TEST_USER_EMAIL

    async def test_requires_session(self, unauthenticated_client):
        """Anonymous updates are a 401."""
        response = await unauthenticated_client.patch(
            "/api/v1/users/me", json={"first_name": "X"}
        )
        assert response.status_code == 401

"""
Tests for the auth blueprint: registration, login, logout and profile.
"""

from helpers import TEST_PASSWORD


class TestRegisterRoute:
    """Tests for POST /auth/register."""

    def test_register_signs_in(self, client):
        response = client.post(
            "/auth/register",
            json={
                "email": "nuevo@example.com",
                "password": "una-clave-larga",
                "first_name": "Jose",
                "last_name": "Vargas",
                "role": "client",
            },
        )
        assert response.status_code == 201
        assert response.get_json()["data"]["role"] == "client"

        me = client.get("/auth/me")
        assert me.status_code == 200
        assert me.get_json()["data"]["email"] == "nuevo@example.com"

    def test_register_validation_error_envelope(self, client):
        response = client.post("/auth/register", json={"email": "bad"})
        assert response.status_code == 400
        body = response.get_json()
        assert body["success"] is False
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["error"]["details"][0]["field"] == "email"

    def test_non_object_body_is_rejected(self, client):
        response = client.post("/auth/register", json=["not", "an", "object"])
        assert response.status_code == 400


class TestLoginRoute:
    """Tests for POST /auth/login and logout."""

    def test_valid_login(self, client, owner):
        response = client.post(
            "/auth/login", json={"email": owner.email, "password": TEST_PASSWORD}
        )
        assert response.status_code == 200
        assert response.get_json()["data"]["id"] == owner.id

    def test_bad_password_is_401(self, client, owner):
        response = client.post(
            "/auth/login", json={"email": owner.email, "password": "nope-nope"}
        )
        assert response.status_code == 401
        assert response.get_json()["error"]["code"] == "AUTHENTICATION_ERROR"

    def test_logout_ends_session(self, client, login, owner):
        login(owner)
        assert client.post("/auth/logout").status_code == 200
        assert client.get("/auth/me").status_code == 401


class TestSessionRequired:
    """Protected routes answer anonymous callers with a JSON 401."""

    def test_me_requires_login(self, client):
        response = client.get("/auth/me")
        assert response.status_code == 401
        assert response.get_json()["success"] is False

    def test_admin_routes_refuse_owners(self, client, login, owner):
        login(owner)
        response = client.get("/admin/users")
        assert response.status_code == 403

    def test_admin_lists_users(self, client, login, admin, owner):
        login(admin)
        response = client.get("/admin/users")
        assert response.status_code == 200
        emails = [user["email"] for user in response.get_json()["data"]]
        assert owner.email in emails

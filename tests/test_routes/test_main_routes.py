"""
Smoke tests for the main blueprint routes.

These verify that the application starts up correctly and the index
and health check endpoints respond.
"""


class TestIndex:
    """Tests for the API banner."""

    def test_index_returns_200(self, client):
        """The index should return HTTP 200."""
        response = client.get("/")
        assert response.status_code == 200

    def test_index_contains_app_name(self, client):
        """The index should name the API."""
        response = client.get("/")
        assert response.get_json()["data"]["name"] == "BookSite API"


class TestHealthCheck:
    """Tests for the health check endpoint."""

    def test_health_check_returns_200(self, client):
        """The health check should report a reachable database."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.get_json() == {"status": "healthy", "database": "connected"}


class TestErrorEnvelope:
    """Unknown routes still answer with the JSON error envelope."""

    def test_unknown_route_is_json_404(self, client):
        response = client.get("/no-such-route")
        assert response.status_code == 404
        body = response.get_json()
        assert body["success"] is False
        assert body["error"]["code"] == "NOT_FOUND_ERROR"

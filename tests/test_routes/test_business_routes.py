"""
Tests for the businesses and catalog blueprints over HTTP.
"""

import pytest
from helpers import make_business

from app.constants import BUSINESS_DRAFT


class TestBusinessRoutes:
    """Tests for business creation, publication and public reads."""

    @pytest.fixture(autouse=True)
    def _setup(self, client, login, owner, universal_template):
        self.client = client
        self.login = login
        self.owner = owner
        self.template = universal_template

    def test_create_requires_login(self):
        response = self.client.post(
            "/businesses", json={"name": "Spa Zen", "category": "spa"}
        )
        assert response.status_code == 401

    def test_clients_cannot_create(self, client_user):
        self.login(client_user)
        response = self.client.post(
            "/businesses", json={"name": "Spa Zen", "category": "spa"}
        )
        assert response.status_code == 403

    def test_owner_creates_and_publishes(self):
        self.login(self.owner)
        created = self.client.post(
            "/businesses", json={"name": "Spa Zen", "category": "spa"}
        )
        assert created.status_code == 201
        business = created.get_json()["data"]
        assert business["status"] == BUSINESS_DRAFT
        assert business["slug"] == "spa-zen"
        assert business["template_id"] == self.template.id

        published = self.client.post(
            f"/businesses/{business['id']}/status", json={"status": "active"}
        )
        assert published.status_code == 200
        assert published.get_json()["data"]["published_at"] is not None

        by_slug = self.client.get("/businesses/slug/spa-zen")
        assert by_slug.status_code == 200

    def test_invalid_category_is_400(self):
        self.login(self.owner)
        response = self.client.post(
            "/businesses", json={"name": "Taller", "category": "mecanica"}
        )
        assert response.status_code == 400
        assert response.get_json()["error"]["details"][0]["field"] == "category"

    def test_malformed_template_id_is_400(self):
        self.login(self.owner)
        response = self.client.post(
            "/businesses",
            json={"name": "Spa Zen", "category": "spa", "template_id": [1]},
        )
        assert response.status_code == 400
        assert response.get_json()["error"]["details"][0]["field"] == "template_id"

    def test_second_business_is_409(self):
        self.login(self.owner)
        self.client.post("/businesses", json={"name": "Spa Zen", "category": "spa"})
        response = self.client.post(
            "/businesses", json={"name": "Spa Dos", "category": "spa"}
        )
        assert response.status_code == 409
        assert response.get_json()["error"]["code"] == "CONFLICT_ERROR"

    def test_draft_is_hidden_from_guests(self, db_session, other_owner):
        draft = make_business(
            db_session, other_owner, self.template.id, status=BUSINESS_DRAFT
        )
        response = self.client.get(f"/businesses/{draft.id}")
        assert response.status_code == 404

    def test_public_listing(self, business):
        response = self.client.get("/businesses?category=barberia")
        assert response.status_code == 200
        body = response.get_json()
        assert [item["id"] for item in body["data"]] == [business.id]
        assert body["pagination"]["total"] == 1

    def test_stranger_cannot_patch(self, other_owner, business):
        self.login(other_owner)
        response = self.client.patch(
            f"/businesses/{business.id}", json={"description": "hackeado"}
        )
        assert response.status_code == 403


class TestCatalogRoutes:
    """Tests for the service catalog endpoints."""

    @pytest.fixture(autouse=True)
    def _setup(self, client, login, owner, business):
        self.client = client
        self.login = login
        self.owner = owner
        self.business = business

    def test_owner_adds_service(self):
        self.login(self.owner)
        response = self.client.post(
            f"/businesses/{self.business.id}/services",
            json={"name": "Corte y barba", "price": 8000, "duration": 45},
        )
        assert response.status_code == 201
        assert response.get_json()["data"]["price"] == "8000.00"

        listing = self.client.get(f"/businesses/{self.business.id}/services")
        assert [item["name"] for item in listing.get_json()["data"]] == ["Corte y barba"]

    def test_bad_duration_is_400(self):
        self.login(self.owner)
        response = self.client.post(
            f"/businesses/{self.business.id}/services",
            json={"name": "Corte", "price": 8000, "duration": 50},
        )
        assert response.status_code == 400

    def test_guests_read_services(self, service):
        response = self.client.get(f"/services/{service.id}")
        assert response.status_code == 200
        assert response.get_json()["data"]["name"] == service.name

    def test_delete_without_reservations_is_hard(self, service):
        self.login(self.owner)
        response = self.client.delete(f"/services/{service.id}")
        assert response.status_code == 200
        assert response.get_json()["data"]["hard_deleted"] is True

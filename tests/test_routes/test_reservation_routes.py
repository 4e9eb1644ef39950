"""
Tests for the reservations blueprint over HTTP.
"""

import pytest
from helpers import future


class TestReservationRoutes:
    """Booking, listing and cancelling through the API."""

    @pytest.fixture(autouse=True)
    def _setup(self, client, login, business, service):
        self.client = client
        self.login = login
        self.business = business
        self.service = service

    def _payload(self, **overrides):
        return {
            "business_id": self.business.id,
            "service_id": self.service.id,
            "date_time": future().isoformat() + "Z",
            **overrides,
        }

    def test_guest_books_without_session(self):
        response = self.client.post(
            "/reservations",
            json=self._payload(
                guest={"name": "Ana", "email": "ana@example.com", "phone": "8888-1234"}
            ),
        )
        assert response.status_code == 201
        data = response.get_json()["data"]
        assert data["status"] == "pending"
        assert data["client"]["type"] == "guest"
        assert data["price"] == "5000.00"

    def test_guest_without_details_is_400(self):
        response = self.client.post("/reservations", json=self._payload())
        assert response.status_code == 400

    def test_client_books_and_cancels(self, client_user):
        self.login(client_user)
        created = self.client.post("/reservations", json=self._payload())
        assert created.status_code == 201
        reservation_id = created.get_json()["data"]["id"]

        mine = self.client.get("/reservations/mine")
        assert [item["id"] for item in mine.get_json()["data"]] == [reservation_id]

        cancelled = self.client.post(
            f"/reservations/{reservation_id}/cancel", json={"reason": "Viaje"}
        )
        assert cancelled.status_code == 200
        assert cancelled.get_json()["data"]["cancellation_reason"] == "Viaje"

        again = self.client.post(f"/reservations/{reservation_id}/cancel", json={})
        assert again.status_code == 409

    def test_owner_confirms(self, owner):
        booked = self.client.post(
            "/reservations",
            json=self._payload(
                guest={"name": "Ana", "email": "ana@example.com", "phone": "8888-1234"}
            ),
        )
        reservation_id = booked.get_json()["data"]["id"]

        self.login(owner)
        response = self.client.post(
            f"/reservations/{reservation_id}/status", json={"status": "confirmed"}
        )
        assert response.status_code == 200
        assert response.get_json()["data"]["status"] == "confirmed"

        listing = self.client.get(f"/reservations?business_id={self.business.id}")
        assert listing.get_json()["pagination"]["total"] == 1

        stats = self.client.get(f"/reservations/stats?business_id={self.business.id}")
        assert stats.get_json()["data"]["by_status"]["confirmed"]["count"] == 1

    def test_staff_listing_refuses_clients(self, client_user):
        self.login(client_user)
        response = self.client.get("/reservations")
        assert response.status_code == 403

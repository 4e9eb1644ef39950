"""
Tests for catalog_service: price and duration rules, the per-business
service quota, and soft versus hard deletion.
"""

from decimal import Decimal

import pytest
from helpers import as_caller, future, make_service

from app.constants import BUSINESS_DRAFT, RES_CANCELLED, RES_COMPLETED, RES_PENDING
from app.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from app.models.business import Business
from app.models.catalog import Service
from app.models.reservation import GuestClient, Reservation
from app.services import catalog_service, reservation_service


class TestValidators:
    """Tests for the price and duration rules."""

    @pytest.fixture(autouse=True)
    def _setup(self, app):
        with app.app_context():
            yield

    @pytest.mark.parametrize("duration", [15, 45, 60, 480])
    def test_valid_durations(self, duration):
        assert catalog_service.validate_duration(duration) == duration

    @pytest.mark.parametrize("duration", [0, 10, 50, 495, 500])
    def test_invalid_durations(self, duration):
        with pytest.raises(ValidationError):
            catalog_service.validate_duration(duration)

    def test_fractional_duration_is_rejected(self):
        with pytest.raises(ValidationError):
            catalog_service.validate_duration(30.5)

    def test_price_accepts_two_decimals(self):
        assert catalog_service.validate_price("12.50") == Decimal("12.50")

    @pytest.mark.parametrize("price", [-1, "1.005", "abc", None, True])
    def test_invalid_prices(self, price):
        with pytest.raises(ValidationError):
            catalog_service.validate_price(price)


class TestCreateService:
    """Tests for adding services to a business."""

    @pytest.fixture(autouse=True)
    def _setup(self, db_session, business, owner, other_owner):
        self.session = db_session
        self.business = business
        self.owner = as_caller(owner)
        self.other_owner = as_caller(other_owner)

    def _create(self, **overrides):
        data = {"name": "Corte", "price": 5000, "duration": 30, **overrides}
        return catalog_service.create_service(self.owner, self.business.id, data)

    def test_creates_service_and_counts_it(self):
        service = self._create()
        assert service.price == Decimal("5000")
        assert service.currency == "CRC"
        assert self.session.get(Business, self.business.id).service_count == 1

    def test_duration_not_on_step_is_rejected(self):
        with pytest.raises(ValidationError):
            self._create(duration=50)

    def test_duration_on_step_is_accepted(self):
        assert self._create(name="Corte 45", duration=45).duration == 45
        assert self._create(name="Corte 60", duration=60).duration == 60

    def test_duplicate_name_conflicts_case_insensitively(self):
        self._create(name="Barba")
        with pytest.raises(ConflictError):
            self._create(name="barba")

    def test_quota_is_enforced(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "MAX_SERVICES_PER_BUSINESS", 2)
        self._create(name="Uno")
        self._create(name="Dos")
        with pytest.raises(ConflictError):
            self._create(name="Tres")

        assert Service.query.filter_by(business_id=self.business.id).count() == 2
        assert self.session.get(Business, self.business.id).service_count == 2

    def test_stranger_cannot_add_services(self):
        with pytest.raises(AuthenticationError):
            catalog_service.create_service(
                self.other_owner,
                self.business.id,
                {"name": "Intruso", "price": 1, "duration": 15},
            )

    def test_unknown_business_is_not_found(self):
        with pytest.raises(NotFoundError):
            catalog_service.create_service(
                self.owner, 9999, {"name": "Corte", "price": 1, "duration": 15}
            )


class TestListAndUpdate:
    """Tests for listing and editing services."""

    @pytest.fixture(autouse=True)
    def _setup(self, db_session, business, owner):
        self.session = db_session
        self.business = business
        self.owner = as_caller(owner)
        self.visible = make_service(db_session, business, name="Visible", sort_order=1)
        self.hidden = make_service(
            db_session, business, name="Oculto", is_active=False
        )

    def test_public_listing_hides_inactive(self):
        services = catalog_service.list_services(None, self.business.id)
        assert [service.name for service in services] == ["Visible"]

    def test_managers_may_include_inactive(self):
        services = catalog_service.list_services(
            self.owner, self.business.id, include_inactive=True
        )
        assert {service.name for service in services} == {"Visible", "Oculto"}

    def test_guests_cannot_include_inactive(self):
        services = catalog_service.list_services(
            None, self.business.id, include_inactive=True
        )
        assert [service.name for service in services] == ["Visible"]

    def test_draft_business_services_are_hidden(self):
        self.business.status = BUSINESS_DRAFT
        self.session.commit()
        with pytest.raises(AuthenticationError):
            catalog_service.list_services(None, self.business.id)

    def test_partial_update(self):
        service = catalog_service.update_service(
            self.owner, self.visible.id, {"price": "6500.00"}
        )
        assert service.price == Decimal("6500.00")
        assert service.duration == 30

    def test_update_rejects_bad_duration(self):
        with pytest.raises(ValidationError):
            catalog_service.update_service(self.owner, self.visible.id, {"duration": 20})

    def test_deleted_service_cannot_be_reactivated(self):
        self.hidden.deleted_at = future(0)
        self.session.commit()
        with pytest.raises(ConflictError):
            catalog_service.set_service_active(self.owner, self.hidden.id, True)


class TestDeleteService:
    """Tests for soft and hard deletion of services."""

    @pytest.fixture(autouse=True)
    def _setup(self, db_session, business, service, owner):
        self.session = db_session
        self.business = business
        self.service = service
        self.owner = as_caller(owner)

    def _book(self, status):
        reservation = Reservation(
            business_id=self.business.id,
            service_id=self.service.id,
            date_time=future(),
            duration=30,
            price=Decimal("5000.00"),
            currency="CRC",
            status=status,
        )
        reservation.client = GuestClient(
            name="Luis", email="luis@example.com", phone="8888-0000"
        )
        self.session.add(reservation)
        self.session.commit()
        return reservation

    def test_open_reservation_forces_soft_delete(self):
        self._book(RES_PENDING)
        result = catalog_service.delete_service(self.owner, self.service.id)

        assert result.hard_deleted is False
        assert result.active_reservations == 1
        service = self.session.get(Service, self.service.id)
        assert service.is_active is False
        assert service.deleted_at is not None
        assert self.session.get(Business, self.business.id).service_count == 1

    def test_soft_deleted_service_still_counts_against_quota(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "MAX_SERVICES_PER_BUSINESS", 1)
        self._book(RES_PENDING)
        catalog_service.delete_service(self.owner, self.service.id)
        with pytest.raises(ConflictError):
            catalog_service.create_service(
                self.owner,
                self.business.id,
                {"name": "Nuevo", "price": 100, "duration": 15},
            )

    def test_no_open_reservations_hard_deletes(self):
        self._book(RES_COMPLETED)
        service_id = self.service.id
        result = catalog_service.delete_service(self.owner, service_id)

        assert result.hard_deleted is True
        assert result.detached_reservations == 1
        assert self.session.get(Service, service_id) is None
        assert self.session.get(Business, self.business.id).service_count == 0

    def test_hard_delete_keeps_finished_reservations(self):
        completed = self._book(RES_COMPLETED)
        cancelled = self._book(RES_CANCELLED)
        reservation_ids = [completed.id, cancelled.id]

        catalog_service.delete_service(self.owner, self.service.id)

        kept = Reservation.query.filter(Reservation.id.in_(reservation_ids)).all()
        assert len(kept) == 2
        assert all(reservation.service_id is None for reservation in kept)
        assert {reservation.price for reservation in kept} == {Decimal("5000.00")}

        stats = reservation_service.get_reservation_stats(self.owner, self.business.id)
        assert stats["by_status"][RES_COMPLETED]["count"] == 1
        assert Decimal(stats["by_status"][RES_COMPLETED]["revenue"]) == Decimal("5000")

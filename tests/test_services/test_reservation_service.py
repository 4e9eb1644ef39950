"""
Tests for reservation_service: booking rules, snapshots, listing scope,
the status state machine, and optimistic concurrency.
"""

from decimal import Decimal

import pytest
from helpers import as_caller, future, make_business, make_service, make_user
from sqlalchemy import update

from app.constants import (
    BUSINESS_DRAFT,
    RES_CANCELLED,
    RES_COMPLETED,
    RES_CONFIRMED,
    RES_NO_SHOW,
    RES_PENDING,
)
from app.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from app.models.reservation import GuestClient, RegisteredClient, Reservation
from app.services import catalog_service, reservation_service

_GUEST = {"name": "Ana Mora", "email": "Ana@Example.com", "phone": "8888-1234"}


class _ReservationTest:
    """Shared rows: a business, its service, and the people involved."""

    @pytest.fixture(autouse=True)
    def _setup(self, db_session, business, service, owner, other_owner, client_user, admin):
        self.session = db_session
        self.business = business
        self.service = service
        self.owner = as_caller(owner)
        self.other_owner = as_caller(other_owner)
        self.client = as_caller(client_user)
        self.admin = as_caller(admin)

    def _payload(self, **overrides):
        return {
            "business_id": self.business.id,
            "service_id": self.service.id,
            "date_time": future().isoformat(),
            **overrides,
        }

    def _book_as_client(self, **overrides):
        return reservation_service.create_reservation(
            self.client, self._payload(**overrides)
        )


class TestCreateReservation(_ReservationTest):
    """Tests for booking a service."""

    def test_client_books_for_themself(self):
        reservation = self._book_as_client()
        assert reservation.status == RES_PENDING
        assert reservation.client == RegisteredClient(user_id=self.client.id)
        assert reservation.source == "web"
        assert reservation.payment_method == "cash"

    def test_guest_booking_needs_contact_details(self):
        reservation = reservation_service.create_reservation(
            None, self._payload(guest=_GUEST)
        )
        assert reservation.client == GuestClient(
            name="Ana Mora", email="ana@example.com", phone="8888-1234"
        )

        with pytest.raises(ValidationError):
            reservation_service.create_reservation(
                None, self._payload(guest={"name": "Ana"})
            )

    def test_client_cannot_book_as_guest(self):
        with pytest.raises(ValidationError):
            self._book_as_client(guest=_GUEST)

    def test_owner_books_for_guest_with_admin_source(self):
        reservation = reservation_service.create_reservation(
            self.owner, self._payload(guest=_GUEST)
        )
        assert reservation.source == "admin"

    def test_owner_must_pick_exactly_one_client(self):
        with pytest.raises(ValidationError):
            reservation_service.create_reservation(self.owner, self._payload())
        with pytest.raises(ValidationError):
            reservation_service.create_reservation(
                self.owner,
                self._payload(client_user_id=self.client.id, guest=_GUEST),
            )

    def test_owner_books_for_registered_client(self):
        reservation = reservation_service.create_reservation(
            self.owner, self._payload(client_user_id=self.client.id)
        )
        assert reservation.client_user_id == self.client.id

    def test_owner_cannot_book_for_non_client_user(self):
        with pytest.raises(NotFoundError):
            reservation_service.create_reservation(
                self.owner, self._payload(client_user_id=self.admin.id)
            )

    def test_other_owner_cannot_book_for_guests(self):
        with pytest.raises(AuthenticationError):
            reservation_service.create_reservation(
                self.other_owner, self._payload(guest=_GUEST)
            )

    def test_past_date_is_rejected(self):
        with pytest.raises(ValidationError):
            self._book_as_client(date_time=future(-1).isoformat())

    def test_malformed_date_is_rejected(self):
        with pytest.raises(ValidationError):
            self._book_as_client(date_time="next tuesday")

    def test_service_of_another_business_is_not_found(self, other_owner, universal_template):
        other = make_business(
            self.session, other_owner, universal_template.id, name="Spa Zen", category="spa"
        )
        with pytest.raises(NotFoundError):
            self._book_as_client(business_id=other.id)

    def test_inactive_service_is_not_bookable(self):
        self.service.is_active = False
        self.session.commit()
        with pytest.raises(ConflictError):
            self._book_as_client()

    def test_unpublished_business_is_not_found(self):
        self.business.status = BUSINESS_DRAFT
        self.session.commit()
        with pytest.raises(NotFoundError):
            self._book_as_client()

    def test_online_booking_can_be_disabled(self):
        self.business.settings = {**self.business.settings, "allow_online_booking": False}
        self.session.commit()
        with pytest.raises(ConflictError):
            self._book_as_client()

        # Staff can still book on a client's behalf.
        reservation = reservation_service.create_reservation(
            self.owner, self._payload(guest=_GUEST)
        )
        assert reservation.id is not None

    def test_unknown_payment_method_is_rejected(self):
        with pytest.raises(ValidationError):
            self._book_as_client(payment_method="bitcoin")

    def test_price_and_duration_are_snapshots(self):
        reservation = self._book_as_client()
        catalog_service.update_service(
            self.owner, self.service.id, {"price": 6000, "duration": 60}
        )
        self.session.expire_all()

        reservation = self.session.get(Reservation, reservation.id)
        assert reservation.price == Decimal("5000.00")
        assert reservation.duration == 30


class TestStateMachine(_ReservationTest):
    """Tests for status transitions and cancellation."""

    def test_full_happy_path(self):
        reservation = self._book_as_client()
        reservation = reservation_service.update_status(
            self.owner, reservation.id, RES_CONFIRMED
        )
        assert reservation.confirmed_by == self.owner.id
        assert reservation.confirmed_at is not None

        reservation = reservation_service.update_status(
            self.owner, reservation.id, RES_COMPLETED
        )
        assert reservation.completed_at is not None

    def test_pending_cannot_complete(self):
        reservation = self._book_as_client()
        with pytest.raises(ConflictError):
            reservation_service.update_status(self.owner, reservation.id, RES_COMPLETED)

    def test_terminal_states_are_final(self):
        reservation = self._book_as_client()
        reservation_service.update_status(self.owner, reservation.id, RES_CONFIRMED)
        reservation_service.update_status(self.owner, reservation.id, RES_NO_SHOW)
        with pytest.raises(ConflictError):
            reservation_service.update_status(self.owner, reservation.id, RES_CONFIRMED)

    def test_unknown_status_is_rejected(self):
        reservation = self._book_as_client()
        with pytest.raises(ValidationError):
            reservation_service.update_status(self.owner, reservation.id, "archived")

    def test_clients_cannot_confirm(self):
        reservation = self._book_as_client()
        with pytest.raises(AuthenticationError):
            reservation_service.update_status(self.client, reservation.id, RES_CONFIRMED)

    def test_client_cancels_own_reservation(self):
        reservation = self._book_as_client()
        reservation = reservation_service.cancel_reservation(
            self.client, reservation.id, "  No puedo llegar  "
        )
        assert reservation.status == RES_CANCELLED
        assert reservation.cancelled_by == self.client.id
        assert reservation.cancellation_reason == "No puedo llegar"

    def test_double_cancel_conflicts(self):
        reservation = self._book_as_client()
        reservation_service.cancel_reservation(self.client, reservation.id)
        with pytest.raises(ConflictError, match="already cancelled"):
            reservation_service.cancel_reservation(self.client, reservation.id)

    def test_another_client_cannot_cancel(self):
        reservation = self._book_as_client()
        stranger = as_caller(make_user(self.session, "otro@example.com", "client"))
        with pytest.raises(AuthenticationError):
            reservation_service.cancel_reservation(stranger, reservation.id)

    def test_cancellation_reason_is_limited(self):
        reservation = self._book_as_client()
        with pytest.raises(ValidationError):
            reservation_service.cancel_reservation(
                self.client, reservation.id, "x" * 201
            )

    def test_stale_write_conflicts(self):
        reservation = self._book_as_client()
        reservation = self.session.get(Reservation, reservation.id)
        loaded_version = reservation.version

        # Another writer bumps the row behind this session's back.
        self.session.execute(
            update(Reservation.__table__)
            .where(Reservation.__table__.c.id == reservation.id)
            .values(version=loaded_version + 1)
        )

        with pytest.raises(ConflictError):
            reservation_service.update_status(self.owner, reservation.id, RES_CONFIRMED)

        self.session.expire_all()
        assert self.session.get(Reservation, reservation.id).status == RES_PENDING


class TestListing(_ReservationTest):
    """Tests for reservation listings and statistics."""

    @pytest.fixture(autouse=True)
    def _bookings(self, _setup, other_owner, universal_template):  # pylint: disable=unused-argument
        self.mine = self._book_as_client()
        other = make_business(
            self.session, other_owner, universal_template.id, name="Spa Zen", category="spa"
        )
        other_service = make_service(self.session, other, name="Masaje", duration=60)
        self.foreign = reservation_service.create_reservation(
            self.client,
            {
                "business_id": other.id,
                "service_id": other_service.id,
                "date_time": future(72).isoformat(),
            },
        )
        self.other_business = other

    def test_owner_sees_only_own_business(self):
        page = reservation_service.list_reservations(self.owner)
        assert [reservation.id for reservation in page.items] == [self.mine.id]

    def test_owner_filtering_foreign_business_gets_nothing(self):
        page = reservation_service.list_reservations(
            self.owner, {"business_id": self.other_business.id}
        )
        assert page.items == []

    def test_admin_sees_everything(self):
        page = reservation_service.list_reservations(self.admin)
        assert page.total == 2

    def test_clients_cannot_use_staff_listing(self):
        with pytest.raises(AuthenticationError):
            reservation_service.list_reservations(self.client)

    def test_client_lists_own_reservations(self):
        page = reservation_service.list_my_reservations(self.client)
        assert {reservation.id for reservation in page.items} == {
            self.mine.id,
            self.foreign.id,
        }

    def test_stats_group_by_status(self):
        reservation_service.update_status(self.owner, self.mine.id, RES_CONFIRMED)
        stats = reservation_service.get_reservation_stats(self.owner, self.business.id)

        assert stats["total"] == 1
        assert stats["by_status"][RES_CONFIRMED]["count"] == 1
        assert stats["by_status"][RES_PENDING]["count"] == 0

    def test_stats_require_management(self):
        with pytest.raises(AuthenticationError):
            reservation_service.get_reservation_stats(
                self.owner, self.other_business.id
            )

"""
Tests for the authorization policy predicates and enforcement helpers.

The predicates are pure functions of the caller and the resource, so
most of these tests only need rows to exist, not any service calls.
"""

import pytest
from helpers import as_caller, future, make_service, make_user

from app.constants import BUSINESS_DRAFT
from app.errors import AuthenticationError
from app.models.reservation import GuestClient, RegisteredClient, Reservation
from app.services import authorization_policy as policy
from app.services.authorization_policy import Caller


class TestCaller:
    """Tests for building callers from users."""

    def test_anonymous_user_has_no_caller(self):
        assert policy.Caller.from_user(None) is None

    def test_from_user_copies_role(self, owner):
        caller = Caller.from_user(owner)
        assert caller.id == owner.id
        assert caller.is_owner
        assert not caller.is_admin

    def test_inactive_caller_has_no_role_flags(self):
        caller = Caller(id=1, role="admin", is_active=False)
        assert not caller.is_admin


class TestBusinessAccess:
    """Who may view and manage a business."""

    @pytest.fixture(autouse=True)
    def _setup(self, db_session, business, owner, other_owner, admin, client_user):
        self.business = business
        self.owner = as_caller(owner)
        self.other_owner = as_caller(other_owner)
        self.admin = as_caller(admin)
        self.client = as_caller(client_user)
        self.session = db_session

    def test_owner_manages_own_business(self):
        assert policy.can_manage(self.owner, self.business)
        assert policy.owns_business(self.owner, self.business)

    def test_other_owner_cannot_manage(self):
        assert not policy.can_manage(self.other_owner, self.business)

    def test_admin_manages_everything(self):
        assert policy.can_manage(self.admin, self.business)

    def test_client_cannot_manage(self):
        assert not policy.can_manage(self.client, self.business)

    def test_active_business_visible_to_guests(self):
        assert policy.can_view(None, self.business)

    def test_draft_business_hidden_from_everyone_but_managers(self):
        self.business.status = BUSINESS_DRAFT
        self.session.commit()

        assert not policy.can_view(None, self.business)
        assert not policy.can_view(self.client, self.business)
        assert not policy.can_view(self.other_owner, self.business)
        assert policy.can_view(self.owner, self.business)
        assert policy.can_view(self.admin, self.business)

    def test_deactivated_owner_loses_access(self):
        inactive = Caller(id=self.owner.id, role="owner", is_active=False)
        assert not policy.can_manage(inactive, self.business)

    def test_require_manage_raises_for_stranger(self):
        with pytest.raises(AuthenticationError):
            policy.require_manage(self.other_owner, self.business)

    def test_service_follows_its_business(self):
        service = make_service(self.session, self.business)
        assert policy.can_manage(self.owner, service)
        assert not policy.can_manage(self.other_owner, service)
        assert policy.can_view(None, service)

        service.is_active = False
        self.session.commit()
        assert not policy.can_view(None, service)
        assert policy.can_view(self.owner, service)


class TestReservationAccess:
    """Reservations are visible to their client and the business staff."""

    @pytest.fixture(autouse=True)
    def _setup(self, db_session, business, service, owner, other_owner, client_user):
        self.session = db_session
        self.owner = as_caller(owner)
        self.other_owner = as_caller(other_owner)
        self.client = as_caller(client_user)
        self.stranger = as_caller(
            make_user(db_session, "stranger@example.com", "client")
        )

        self.reservation = Reservation(
            business_id=business.id,
            service_id=service.id,
            date_time=future(),
            duration=30,
            price=service.price,
            currency="CRC",
        )
        self.reservation.client = RegisteredClient(user_id=client_user.id)
        db_session.add(self.reservation)
        db_session.commit()

    def test_client_sees_and_cancels_own_reservation(self):
        assert policy.can_view(self.client, self.reservation)
        assert policy.can_cancel(self.client, self.reservation)

    def test_other_client_is_refused(self):
        assert not policy.can_view(self.stranger, self.reservation)
        assert not policy.can_cancel(self.stranger, self.reservation)

    def test_business_owner_can_cancel(self):
        assert policy.can_cancel(self.owner, self.reservation)
        assert not policy.can_cancel(self.other_owner, self.reservation)

    def test_guests_never_see_reservations(self):
        assert not policy.can_view(None, self.reservation)

    def test_guest_reservation_has_no_client_user(self):
        self.reservation.client = GuestClient(
            name="Ana", email="ana@example.com", phone="8888-1234"
        )
        self.session.commit()
        assert not policy.can_view(self.client, self.reservation)
        assert policy.can_view(self.owner, self.reservation)


class TestRequireRole:
    def test_returns_caller_with_matching_role(self):
        caller = Caller(id=5, role="owner")
        assert policy.require_role(caller, "owner", "admin") is caller

    def test_anonymous_is_refused(self):
        with pytest.raises(AuthenticationError):
            policy.require_role(None, "client")

    def test_inactive_caller_is_refused(self):
        with pytest.raises(AuthenticationError):
            policy.require_role(Caller(id=5, role="owner", is_active=False), "owner")

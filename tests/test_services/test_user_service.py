"""
Tests for user_service: registration, password login with lockout, and
admin account management.
"""

from datetime import timedelta

import pytest
from helpers import TEST_PASSWORD, as_caller

from app.errors import AuthenticationError, ConflictError, ValidationError
from app.models.audit import AuditLog
from app.services import user_service
from app.utils import utcnow

_REGISTRATION = {
    "email": "Nueva@Example.com",
    "password": "una-clave-larga",
    "first_name": "Maria",
    "last_name": "Solis",
    "role": "owner",
}


class TestRegister:
    """Tests for self-registration."""

    def test_registers_owner(self, db_session):  # pylint: disable=unused-argument
        user = user_service.register_user(dict(_REGISTRATION))
        assert user.email == "nueva@example.com"
        assert user.role == "owner"
        assert user.check_password("una-clave-larga")
        assert AuditLog.query.filter_by(entity_type="auth.user").count() == 1

    def test_admin_role_cannot_be_self_assigned(self, db_session):  # pylint: disable=unused-argument
        with pytest.raises(ValidationError):
            user_service.register_user({**_REGISTRATION, "role": "admin"})

    def test_short_password_is_rejected(self, db_session):  # pylint: disable=unused-argument
        with pytest.raises(ValidationError):
            user_service.register_user({**_REGISTRATION, "password": "corta"})

    def test_duplicate_email_conflicts(self, db_session):  # pylint: disable=unused-argument
        user_service.register_user(dict(_REGISTRATION))
        with pytest.raises(ConflictError):
            user_service.register_user(
                {**_REGISTRATION, "email": "NUEVA@example.com"}
            )


class TestAuthenticate:
    """Tests for password login and the lockout window."""

    @pytest.fixture(autouse=True)
    def _setup(self, app, db_session, client_user, monkeypatch):
        self.session = db_session
        self.user = client_user
        monkeypatch.setitem(app.config, "MAX_LOGIN_ATTEMPTS", 3)

    def test_valid_credentials(self):
        user = user_service.authenticate("CLIENT@example.com", TEST_PASSWORD)
        assert user.id == self.user.id
        assert user.last_login is not None
        assert user.failed_login_attempts == 0

    def test_wrong_password(self):
        with pytest.raises(AuthenticationError):
            user_service.authenticate(self.user.email, "wrong-password")
        assert self.user.failed_login_attempts == 1

    def test_unknown_email(self):
        with pytest.raises(AuthenticationError):
            user_service.authenticate("nobody@example.com", TEST_PASSWORD)

    def test_account_locks_after_repeated_failures(self):
        for _ in range(3):
            with pytest.raises(AuthenticationError):
                user_service.authenticate(self.user.email, "wrong-password")
        assert self.user.locked_until is not None

        # Even the right password is refused while locked.
        with pytest.raises(AuthenticationError, match="locked"):
            user_service.authenticate(self.user.email, TEST_PASSWORD)

    def test_expired_lock_allows_login(self):
        self.user.failed_login_attempts = 3
        self.user.locked_until = utcnow() - timedelta(minutes=1)
        self.session.commit()

        user = user_service.authenticate(self.user.email, TEST_PASSWORD)
        assert user.locked_until is None
        assert user.failed_login_attempts == 0

    def test_deactivated_account_is_refused(self):
        self.user.is_active = False
        self.session.commit()
        with pytest.raises(AuthenticationError):
            user_service.authenticate(self.user.email, TEST_PASSWORD)


class TestAdminActions:
    """Tests for admin-only account management."""

    @pytest.fixture(autouse=True)
    def _setup(self, db_session, admin, owner, client_user):
        self.session = db_session
        self.admin = as_caller(admin)
        self.owner = as_caller(owner)
        self.client_user = client_user

    def test_change_role(self):
        user = user_service.change_role(self.admin, self.client_user.id, "owner")
        assert user.role == "owner"

    def test_admin_cannot_demote_themself(self):
        with pytest.raises(ConflictError):
            user_service.change_role(self.admin, self.admin.id, "client")

    def test_non_admin_cannot_change_roles(self):
        with pytest.raises(AuthenticationError):
            user_service.change_role(self.owner, self.client_user.id, "admin")

    def test_deactivate_and_reactivate(self):
        assert user_service.deactivate_user(self.admin, self.client_user.id).is_active is False
        assert user_service.reactivate_user(self.admin, self.client_user.id).is_active is True

    def test_admin_cannot_deactivate_themself(self):
        with pytest.raises(ConflictError):
            user_service.deactivate_user(self.admin, self.admin.id)

    def test_unlock_clears_lockout(self):
        self.client_user.failed_login_attempts = 5
        self.client_user.locked_until = utcnow() + timedelta(hours=1)
        self.session.commit()

        user = user_service.unlock_user(self.admin, self.client_user.id)
        assert user.locked_until is None
        assert user.failed_login_attempts == 0

    def test_user_listing_hides_inactive_by_default(self):
        user_service.deactivate_user(self.admin, self.client_user.id)
        page = user_service.get_all_users(self.admin)
        assert self.client_user.id not in [user.id for user in page.items]

        page = user_service.get_all_users(self.admin, include_inactive=True)
        assert self.client_user.id in [user.id for user in page.items]

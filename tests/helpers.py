"""
Row factories shared by the test modules.

These insert rows directly, bypassing the services, so a test can set
up state that the services would refuse to create (for example a second
business for the same owner).
"""

from datetime import timedelta
from decimal import Decimal

from app.constants import BUSINESS_ACTIVE, DEFAULT_BUSINESS_SETTINGS
from app.models.business import Business
from app.models.catalog import Service
from app.models.user import User
from app.services.authorization_policy import Caller
from app.utils import utcnow

TEST_PASSWORD = "s3cret-pass"


def make_user(session, email: str, role: str, **overrides) -> User:
    """Insert and commit a user with the shared test password."""
    user = User(
        email=email,
        first_name=overrides.pop("first_name", "Test"),
        last_name=overrides.pop("last_name", role.title()),
        role=role,
        **overrides,
    )
    user.set_password(TEST_PASSWORD)
    session.add(user)
    session.commit()
    return user


def make_business(session, owner: User, template_id: int, **overrides) -> Business:
    name = overrides.pop("name", "Barberia Central")
    business = Business(
        owner_id=owner.id,
        name=name,
        slug=overrides.pop("slug", name.lower().replace(" ", "-")),
        category=overrides.pop("category", "barberia"),
        status=overrides.pop("status", BUSINESS_ACTIVE),
        template_id=template_id,
        settings=overrides.pop("settings", dict(DEFAULT_BUSINESS_SETTINGS)),
        published_at=overrides.pop("published_at", utcnow()),
        **overrides,
    )
    session.add(business)
    session.commit()
    return business


def make_service(session, business: Business, **overrides) -> Service:
    """Insert a service and claim its quota slot on the business."""
    service = Service(
        business_id=business.id,
        name=overrides.pop("name", "Corte clasico"),
        duration=overrides.pop("duration", 30),
        price=overrides.pop("price", Decimal("5000.00")),
        currency=overrides.pop("currency", "CRC"),
        **overrides,
    )
    business.service_count = (business.service_count or 0) + 1
    session.add(service)
    session.commit()
    return service


def future(hours: int = 48):
    """A naive UTC datetime ``hours`` from now."""
    return utcnow() + timedelta(hours=hours)


def as_caller(user: User) -> Caller:
    return Caller(id=user.id, role=user.role, is_active=user.is_active)

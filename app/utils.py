"""
Small helpers shared across services: clock, input parsing, pagination.

Datetimes are stored as naive UTC values so that comparisons behave the
same on SQLite and server databases.
"""

import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from flask import current_app

from app.constants import EMAIL_PATTERN, PHONE_PATTERN
from app.errors import ValidationError

_EMAIL_RE = re.compile(EMAIL_PATTERN)
_PHONE_RE = re.compile(PHONE_PATTERN)


def utcnow() -> datetime:
    """Return the current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_datetime(value: Any, field: str = "date_time") -> datetime:
    """
    Parse an ISO 8601 value into a naive UTC datetime.

    Aware values are converted to UTC; naive values are taken as UTC.

    Raises:
        ValidationError: If the value is missing or not parseable.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        # fromisoformat() before 3.11 does not accept a trailing "Z".
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValidationError.for_field(
                field, f"'{value}' is not a valid ISO 8601 date/time."
            ) from exc
    else:
        raise ValidationError.for_field(field, f"{field} is required.")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_decimal(value: Any, field: str) -> Decimal:
    """Parse a money amount, rejecting non-numeric input."""
    if isinstance(value, bool) or value is None:
        raise ValidationError.for_field(field, f"{field} must be a number.")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError.for_field(field, f"{field} must be a number.") from exc
    if not amount.is_finite():
        raise ValidationError.for_field(field, f"{field} must be a number.")
    return amount


def parse_int(value: Any, field: str) -> int:
    """Parse an integer field, rejecting floats with a fractional part."""
    if isinstance(value, bool) or value is None:
        raise ValidationError.for_field(field, f"{field} must be an integer.")
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError.for_field(field, f"{field} must be an integer.") from exc
    if not number.is_finite() or number != number.to_integral_value():
        raise ValidationError.for_field(field, f"{field} must be an integer.")
    return int(number)


def is_valid_email(value: str | None) -> bool:
    """Loose email shape check (something@something.tld)."""
    return bool(value) and bool(_EMAIL_RE.match(value))


def is_valid_phone(value: str | None) -> bool:
    """Digits, spaces, parentheses, plus and hyphen; 7 to 20 characters."""
    return bool(value) and bool(_PHONE_RE.match(value))


def clamp_page(page: Any) -> int:
    """Coerce a page number to an integer >= 1."""
    try:
        return max(int(page), 1)
    except (TypeError, ValueError):
        return 1


def clamp_per_page(per_page: Any, default: int | None = None) -> int:
    """Coerce a page size into ``[1, MAX_PAGE_SIZE]``."""
    if default is None:
        default = current_app.config.get("DEFAULT_PAGE_SIZE", 20)
    maximum = current_app.config.get("MAX_PAGE_SIZE", 100)
    try:
        size = int(per_page)
    except (TypeError, ValueError):
        size = default
    return min(max(size, 1), maximum)


def pagination_dict(pagination) -> dict[str, Any]:
    """Describe a Flask-SQLAlchemy pagination object for a JSON response."""
    return {
        "page": pagination.page,
        "per_page": pagination.per_page,
        "total": pagination.total,
        "pages": pagination.pages,
    }

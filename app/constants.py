"""
Closed vocabularies shared by models, services and routes.

Values are stored as plain strings in the database; these tuples are the
single list of what is accepted.
"""

# -- Roles -----------------------------------------------------------------
ROLE_OWNER = "owner"
ROLE_CLIENT = "client"
ROLE_ADMIN = "admin"
ROLES = (ROLE_OWNER, ROLE_CLIENT, ROLE_ADMIN)

# Roles a visitor may pick at self-registration. Admins are provisioned
# through the CLI or promoted by another admin.
SELF_REGISTER_ROLES = (ROLE_OWNER, ROLE_CLIENT)

# -- Businesses ------------------------------------------------------------
BUSINESS_CATEGORIES = ("barberia", "salon_belleza", "spa")

BUSINESS_DRAFT = "draft"
BUSINESS_ACTIVE = "active"
BUSINESS_INACTIVE = "inactive"
BUSINESS_SUSPENDED = "suspended"
BUSINESS_DELETED = "deleted"
BUSINESS_STATUSES = (
    BUSINESS_DRAFT,
    BUSINESS_ACTIVE,
    BUSINESS_INACTIVE,
    BUSINESS_SUSPENDED,
    BUSINESS_DELETED,
)

# Statuses that only an admin may move a business into or out of.
ADMIN_ONLY_BUSINESS_STATUSES = (BUSINESS_SUSPENDED, BUSINESS_DELETED)

BUSINESS_NAME_MIN_LENGTH = 2
BUSINESS_NAME_MAX_LENGTH = 100

MEDIA_KINDS = ("logo", "cover", "gallery")

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

DEFAULT_OPERATING_HOURS = {
    "monday": {"open": "09:00", "close": "18:00", "closed": False},
    "tuesday": {"open": "09:00", "close": "18:00", "closed": False},
    "wednesday": {"open": "09:00", "close": "18:00", "closed": False},
    "thursday": {"open": "09:00", "close": "18:00", "closed": False},
    "friday": {"open": "09:00", "close": "18:00", "closed": False},
    "saturday": {"open": "09:00", "close": "16:00", "closed": False},
    "sunday": {"open": None, "close": None, "closed": True},
}

CURRENCIES = ("CRC", "USD")

DEFAULT_BUSINESS_SETTINGS = {
    "allow_online_booking": True,
    "require_booking_approval": False,
    "show_prices": True,
    "currency": "CRC",
    "timezone": "America/Costa_Rica",
}

# -- Services --------------------------------------------------------------
SERVICE_NAME_MIN_LENGTH = 2
SERVICE_NAME_MAX_LENGTH = 80

# -- Templates -------------------------------------------------------------
TEMPLATE_CATEGORIES = ("modern", "classic", "minimal", "creative", "professional")

DEFAULT_TEMPLATE_SECTIONS = [
    {"type": "hero", "enabled": True, "order": 1},
    {"type": "services", "enabled": True, "order": 2},
    {"type": "gallery", "enabled": True, "order": 3},
    {"type": "booking", "enabled": True, "order": 4},
    {"type": "contact", "enabled": True, "order": 5},
]

DEFAULT_TEMPLATE_COLORS = {
    "primary": "#1f2937",
    "secondary": "#6b7280",
    "accent": "#f59e0b",
    "background": "#ffffff",
    "text": "#111827",
}

UNIVERSAL_TEMPLATE_NAME = "Template Universal"

# -- Reservations ----------------------------------------------------------
RES_PENDING = "pending"
RES_CONFIRMED = "confirmed"
RES_CANCELLED = "cancelled"
RES_COMPLETED = "completed"
RES_NO_SHOW = "no_show"
RESERVATION_STATUSES = (
    RES_PENDING,
    RES_CONFIRMED,
    RES_CANCELLED,
    RES_COMPLETED,
    RES_NO_SHOW,
)

# Allowed forward moves. Terminal states map to an empty tuple.
RESERVATION_TRANSITIONS = {
    RES_PENDING: (RES_CONFIRMED, RES_CANCELLED),
    RES_CONFIRMED: (RES_COMPLETED, RES_CANCELLED, RES_NO_SHOW),
    RES_CANCELLED: (),
    RES_COMPLETED: (),
    RES_NO_SHOW: (),
}

# Reservations in these states still block hard-deleting their service.
OPEN_RESERVATION_STATUSES = (RES_PENDING, RES_CONFIRMED)

PAYMENT_METHODS = ("cash", "sinpe")
RESERVATION_SOURCES = ("web", "phone", "walk_in", "admin")

CANCELLATION_REASON_MAX_LENGTH = 200
RESERVATION_NOTES_MAX_LENGTH = 500

# -- Contact validation ----------------------------------------------------
EMAIL_PATTERN = r"^\S+@\S+\.\S+$"
PHONE_PATTERN = r"^[0-9+\-\s()]{7,20}$"

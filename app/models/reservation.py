"""
Reservations and the client variants that can hold them.

A reservation belongs to exactly one client: either a registered user
(``client_user_id``) or a guest identified by name, email and phone.
The two are mutually exclusive, enforced by a check constraint and
exposed as the ``RegisteredClient`` / ``GuestClient`` pair.
"""

from dataclasses import dataclass

from app.constants import (
    OPEN_RESERVATION_STATUSES,
    RES_PENDING,
    RESERVATION_TRANSITIONS,
)
from app.extensions import db


@dataclass(frozen=True)
class RegisteredClient:
    """A reservation held by a registered client account."""

    user_id: int

    def to_dict(self) -> dict:
        return {"type": "registered", "user_id": self.user_id}


@dataclass(frozen=True)
class GuestClient:
    """A reservation held by a walk-in or anonymous guest."""

    name: str
    email: str
    phone: str

    def to_dict(self) -> dict:
        return {
            "type": "guest",
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
        }


class Reservation(db.Model):
    """
    A booking of one service at one point in time.

    ``duration``, ``price`` and ``currency`` are snapshots taken from the
    service at creation time. ``version`` is SQLAlchemy's optimistic
    concurrency counter: a status write against a stale row raises
    ``StaleDataError`` instead of silently overwriting a concurrent one.

    ``status`` values: pending, confirmed, cancelled, completed, no_show.
    """

    __tablename__ = "reservation"
    __table_args__ = (
        db.CheckConstraint(
            "(client_user_id IS NOT NULL AND guest_name IS NULL"
            " AND guest_email IS NULL AND guest_phone IS NULL)"
            " OR (client_user_id IS NULL AND guest_name IS NOT NULL"
            " AND guest_email IS NOT NULL AND guest_phone IS NOT NULL)",
            name="CK_reservation_single_client",
        ),
        db.Index("IX_reservation_business_datetime", "business_id", "date_time"),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    business_id = db.Column(
        db.Integer, db.ForeignKey("business.id"), nullable=False
    )
    # Cleared when the service is hard-deleted; the snapshot columns keep
    # the booking history.
    service_id = db.Column(
        db.Integer,
        db.ForeignKey("service.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # -- Client (registered xor guest) -------------------------------------
    client_user_id = db.Column(
        db.Integer, db.ForeignKey("user.id"), nullable=True, index=True
    )
    guest_name = db.Column(db.String(100), nullable=True)
    guest_email = db.Column(db.String(200), nullable=True)
    guest_phone = db.Column(db.String(20), nullable=True)

    # -- Booking snapshot --------------------------------------------------
    date_time = db.Column(db.DateTime, nullable=False)
    duration = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="CRC")
    payment_method = db.Column(db.String(20), nullable=False, default="cash")
    is_paid = db.Column(db.Boolean, nullable=False, default=False)

    # -- Lifecycle ---------------------------------------------------------
    status = db.Column(db.String(20), nullable=False, default=RES_PENDING)
    notes = db.Column(db.String(500), nullable=True)
    source = db.Column(db.String(20), nullable=False, default="web")
    confirmed_at = db.Column(db.DateTime, nullable=True)
    confirmed_by = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancelled_by = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    cancellation_reason = db.Column(db.String(200), nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)

    version = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version}

    # -- Relationships -----------------------------------------------------
    business = db.relationship("Business")
    service = db.relationship("Service")
    client_user = db.relationship("User", foreign_keys=[client_user_id])

    # ---- Client variant --------------------------------------------------

    @property
    def client(self) -> RegisteredClient | GuestClient:
        """Return the reservation holder as a tagged client value."""
        if self.client_user_id is not None:
            return RegisteredClient(user_id=self.client_user_id)
        return GuestClient(
            name=self.guest_name,
            email=self.guest_email,
            phone=self.guest_phone,
        )

    @client.setter
    def client(self, value: RegisteredClient | GuestClient) -> None:
        if isinstance(value, RegisteredClient):
            self.client_user_id = value.user_id
            self.guest_name = self.guest_email = self.guest_phone = None
        else:
            self.client_user_id = None
            self.guest_name = value.name
            self.guest_email = value.email
            self.guest_phone = value.phone

    # ---- State checks ----------------------------------------------------

    @property
    def is_open(self) -> bool:
        """True while the reservation still occupies its service."""
        return self.status in OPEN_RESERVATION_STATUSES

    def can_transition_to(self, new_status: str) -> bool:
        return new_status in RESERVATION_TRANSITIONS.get(self.status, ())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "service_id": self.service_id,
            "client": self.client.to_dict(),
            "date_time": self.date_time.isoformat(),
            "duration": self.duration,
            "price": str(self.price),
            "currency": self.currency,
            "payment": {"method": self.payment_method, "is_paid": self.is_paid},
            "status": self.status,
            "notes": self.notes,
            "source": self.source,
            "confirmed_at": (
                self.confirmed_at.isoformat() if self.confirmed_at else None
            ),
            "cancelled_at": (
                self.cancelled_at.isoformat() if self.cancelled_at else None
            ),
            "cancellation_reason": self.cancellation_reason,
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
        }

    def __repr__(self) -> str:
        return f"<Reservation {self.id} status={self.status}>"

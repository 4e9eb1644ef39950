"""
Service catalog — the bookable offerings of a business.
"""

from app.extensions import db


class Service(db.Model):
    """
    A bookable service offered by one business.

    Names are unique within a business (DB constraint). ``price`` and
    ``duration`` are copied onto each reservation at booking time, so
    editing a service never rewrites past reservations.

    A service with open reservations is soft-deleted: ``is_active`` is
    cleared and ``deleted_at`` stamped, keeping the row for history.
    """

    __tablename__ = "service"
    __table_args__ = (
        db.UniqueConstraint(
            "business_id", "name", name="UQ_service_business_name"
        ),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    business_id = db.Column(
        db.Integer, db.ForeignKey("business.id"), nullable=False, index=True
    )
    name = db.Column(db.String(80), nullable=False)
    description = db.Column(db.String(500), nullable=True)
    category = db.Column(db.String(50), nullable=True)
    duration = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="CRC")
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    deleted_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # -- Relationships -----------------------------------------------------
    business = db.relationship("Business", back_populates="services")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "duration": self.duration,
            "price": str(self.price),
            "currency": self.currency,
            "is_active": self.is_active,
            "sort_order": self.sort_order,
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
        }

    def __repr__(self) -> str:
        return f"<Service {self.name} business={self.business_id}>"

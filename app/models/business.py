"""
Business sites and their media assets.

A ``Business`` is one tenant's public site: identity, slug, contact data,
operating hours and display settings, rendered with exactly one
``Template``. ``MediaAsset`` rows track the files (logo, cover, gallery)
held by the storage backend on the business's behalf.
"""

from app.constants import BUSINESS_ACTIVE, BUSINESS_DRAFT
from app.extensions import db


class Business(db.Model):
    """
    A tenant's business site.

    ``slug`` is globally unique and enforced by a unique index; the
    service layer retries on collision. ``service_count`` mirrors the
    number of non-hard-deleted services and is only changed through
    conditional UPDATE statements so concurrent creates cannot overshoot
    the quota.

    JSON columns:
      - ``location``: address, city, province, country, postal_code.
      - ``social_links``: facebook, instagram, whatsapp, website, ...
      - ``operating_hours``: weekday -> {open, close, closed}.
      - ``settings``: allow_online_booking, require_booking_approval,
        show_prices, currency, timezone.
    """

    __tablename__ = "business"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    owner_id = db.Column(
        db.Integer, db.ForeignKey("user.id"), nullable=False, index=True
    )
    name = db.Column(db.String(100), nullable=False)
    slug = db.Column(db.String(140), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(30), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=BUSINESS_DRAFT)
    template_id = db.Column(
        db.Integer, db.ForeignKey("template.id"), nullable=False, index=True
    )
    email = db.Column(db.String(200), nullable=True)
    phone = db.Column(db.String(20), nullable=True)
    location = db.Column(db.JSON, nullable=False, default=dict)
    social_links = db.Column(db.JSON, nullable=False, default=dict)
    operating_hours = db.Column(db.JSON, nullable=False, default=dict)
    settings = db.Column(db.JSON, nullable=False, default=dict)
    service_count = db.Column(db.Integer, nullable=False, default=0)
    published_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # -- Relationships -----------------------------------------------------
    owner = db.relationship("User", foreign_keys=[owner_id])
    template = db.relationship("Template")
    services = db.relationship(
        "Service", back_populates="business", lazy="dynamic"
    )
    media = db.relationship(
        "MediaAsset",
        back_populates="business",
        cascade="all, delete-orphan",
        order_by="MediaAsset.id",
    )

    @property
    def is_published(self) -> bool:
        return self.status == BUSINESS_ACTIVE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "category": self.category,
            "status": self.status,
            "template_id": self.template_id,
            "email": self.email,
            "phone": self.phone,
            "location": self.location or {},
            "social_links": self.social_links or {},
            "operating_hours": self.operating_hours or {},
            "settings": self.settings or {},
            "service_count": self.service_count,
            "published_at": (
                self.published_at.isoformat() if self.published_at else None
            ),
            "media": [asset.to_dict() for asset in self.media],
        }

    def __repr__(self) -> str:
        return f"<Business {self.slug} status={self.status}>"


class MediaAsset(db.Model):
    """
    A stored file attached to a business.

    ``kind`` values: logo, cover, gallery. A business holds at most one
    logo and one cover; adding a new one replaces the old row.
    ``storage_key`` is the backend-relative key passed to the storage
    service when the asset is removed.
    """

    __tablename__ = "media_asset"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    business_id = db.Column(
        db.Integer,
        db.ForeignKey("business.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    kind = db.Column(db.String(20), nullable=False)
    storage_key = db.Column(db.String(300), nullable=False)
    url = db.Column(db.String(500), nullable=True)
    caption = db.Column(db.String(200), nullable=True)
    uploaded_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())

    # -- Relationships -----------------------------------------------------
    business = db.relationship("Business", back_populates="media")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "storage_key": self.storage_key,
            "url": self.url,
            "caption": self.caption,
        }

    def __repr__(self) -> str:
        return f"<MediaAsset {self.kind} {self.storage_key}>"

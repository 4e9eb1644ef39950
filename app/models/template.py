"""
Site templates used to render business pages.

System templates have no owner. ``is_default`` marks the preferred
fallback when a business is provisioned without (or with an unusable)
template reference.
"""

from app.extensions import db


class Template(db.Model):
    """
    A reusable visual template.

    Usage counters (``times_used``, ``last_used_at``) are maintained with
    SQL-side increments by the template service; ``rating`` is a running
    average over ``review_count`` ratings.

    A template is never deleted while any business still references it.
    """

    __tablename__ = "template"
    __table_args__ = (
        db.Index("IX_template_fallback", "is_active", "is_public", "is_default"),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    owner_id = db.Column(
        db.Integer, db.ForeignKey("user.id"), nullable=True, index=True
    )
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=True)
    category = db.Column(db.String(30), nullable=False, default="modern")
    business_type = db.Column(db.String(30), nullable=True)
    is_public = db.Column(db.Boolean, nullable=False, default=False)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    is_premium = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    colors = db.Column(db.JSON, nullable=False, default=dict)
    typography = db.Column(db.JSON, nullable=False, default=dict)
    sections = db.Column(db.JSON, nullable=False, default=list)
    times_used = db.Column(db.Integer, nullable=False, default=0)
    rating = db.Column(db.Float, nullable=False, default=0.0)
    review_count = db.Column(db.Integer, nullable=False, default=0)
    last_used_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # -- Relationships -----------------------------------------------------
    owner = db.relationship("User", foreign_keys=[owner_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "business_type": self.business_type,
            "is_public": self.is_public,
            "is_default": self.is_default,
            "is_premium": self.is_premium,
            "is_active": self.is_active,
            "colors": self.colors or {},
            "typography": self.typography or {},
            "sections": self.sections or [],
            "times_used": self.times_used,
            "rating": round(self.rating or 0.0, 2),
            "review_count": self.review_count,
            "last_used_at": (
                self.last_used_at.isoformat() if self.last_used_at else None
            ),
        }

    def __repr__(self) -> str:
        return f"<Template {self.name} default={self.is_default}>"

from sqlalchemy import func, false, text, UniqueConstraint
from optume.extensions import db

# Stripe subscription statuses, grouped the way the admin console filters them
STATUS_ACTIVE = "active"
INACTIVE_STATUSES = ("incomplete", "incomplete_expired")
CANCELED_STATUSES = ("canceled", "past_due", "unpaid")

class Subscription(db.Model):
    __tablename__ = "subscriptions"

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)

    stripe_subscription_id = db.Column(db.String(64), nullable=True, unique=True, index=True)

    product_id = db.Column(db.String(64), nullable=True, index=True)
    price_id = db.Column(db.String(64), nullable=True, index=True)

    status = db.Column(db.String(32), nullable=False, index=True, server_default=text("'incomplete'"), default="incomplete")
    cancel_at_period_end = db.Column(db.Boolean, nullable=False, server_default=false(), default=False)
    current_period_end = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    team = db.relationship("Team", back_populates="subscription")

    __table_args__ = (
        UniqueConstraint("team_id", name="uq_subscriptions_team_id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.stripe_subscription_id,
            "status": self.status,
            "productId": self.product_id,
            "priceId": self.price_id,
            "cancelAtPeriodEnd": bool(self.cancel_at_period_end),
            "currentPeriodEnd": self.current_period_end.isoformat() if self.current_period_end else None,
        }

    def __repr__(self) -> str:
        return f"<Subscription id={self.id} team_id={self.team_id} status={self.status!r} price_id={self.price_id!r}>"

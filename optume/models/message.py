from sqlalchemy import func, text, CheckConstraint
from optume.extensions import db

CATEGORY_DEFAULT = "general"
CATEGORIES = ("general", "support", "feature-request", "bug-report", "feedback", "other")

PRIORITY_DEFAULT = "medium"
PRIORITIES = ("low", "medium", "high")

STATUS_PENDING = "pending"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUS_REJECTED = "rejected"
STATUSES = (STATUS_PENDING, STATUS_IN_PROGRESS, STATUS_COMPLETED, STATUS_REJECTED)

# Statuses eligible for the public feed
FEED_STATUSES = (STATUS_PENDING, STATUS_COMPLETED)

class Message(db.Model):
    __tablename__ = "messages"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Snapshot of the author at submission time
    user_email = db.Column(db.String(255), nullable=False)
    user_name = db.Column(db.String(255), nullable=True)

    title = db.Column(db.String(500), nullable=False)
    content = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(100), nullable=False, server_default=CATEGORY_DEFAULT, default=CATEGORY_DEFAULT)
    priority = db.Column(db.String(10), nullable=False, server_default=PRIORITY_DEFAULT, default=PRIORITY_DEFAULT)
    status = db.Column(db.String(20), nullable=False, index=True, server_default=STATUS_PENDING, default=STATUS_PENDING)

    # Denormalised count of MessageLike rows
    like_count = db.Column(db.Integer, nullable=False, index=True, server_default=text("0"), default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    likes = db.relationship("MessageLike", back_populates="message", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("like_count >= 0", name="ck_messages_like_count_nonneg"),
        CheckConstraint(
            "status IN ('pending','in_progress','completed','rejected')",
            name="ck_messages_status_valid",
        ),
        CheckConstraint("priority IN ('low','medium','high')", name="ck_messages_priority_valid"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "userEmail": self.user_email,
            "userName": self.user_name,
            "title": self.title,
            "content": self.content,
            "category": self.category,
            "priority": self.priority,
            "status": self.status,
            "likeCount": self.like_count,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Message id={self.id} user_id={self.user_id} status={self.status!r} likes={self.like_count}>"

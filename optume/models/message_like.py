from sqlalchemy import func, UniqueConstraint
from optume.extensions import db

class MessageLike(db.Model):
    __tablename__ = "message_likes"

    id = db.Column(db.Integer, primary_key=True)
    message_id = db.Column(db.Integer, db.ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    message = db.relationship("Message", back_populates="likes")

    __table_args__ = (
        UniqueConstraint("user_id", "message_id", name="uq_message_likes_user_message"),
    )

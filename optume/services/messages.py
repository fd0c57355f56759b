"""
Message submission, listing and moderation.

Every operation takes the acting ``Caller`` explicitly. Quota enforcement and
the insert run in one transaction with the author's user row locked, so
concurrent submissions from the same user serialise on backends that honour
``SELECT ... FOR UPDATE``.
"""
from typing import Any, Dict
from flask import current_app
from sqlalchemy import func, select
from optume.extensions import db
from optume.models import Message, User
from optume.models.message import (
    CATEGORIES,
    CATEGORY_DEFAULT,
    PRIORITIES,
    PRIORITY_DEFAULT,
    STATUSES,
    STATUS_PENDING,
)
from optume.billing.plans import plan_for_user, plan_label, quota_for
from optume.utils.validators import parse_id
from .errors import Forbidden, NotFound, QuotaExceeded, ValidationError
from .policy import Caller, is_admin


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _choice(value: Any, allowed, default: str, field: str) -> str:
    if value is None:
        return default
    cleaned = _clean(value)
    if isinstance(value, str) and not cleaned:
        return default
    if cleaned not in allowed:
        raise ValidationError(f"Invalid {field}. Expected one of: {', '.join(allowed)}")
    return cleaned


def count_messages(user_id: int) -> int:
    """All of a user's messages count toward the quota, whatever their status."""
    return db.session.scalar(select(func.count(Message.id)).where(Message.user_id == user_id)) or 0


def submit_message(
    caller: Caller,
    title: Any,
    content: Any,
    category: Any = None,
    priority: Any = None,
) -> Dict[str, int]:
    title_s = _clean(title)
    content_s = _clean(content)
    if not title_s or not content_s:
        raise ValidationError("Title and content are required")

    max_len = int(current_app.config.get("MESSAGE_TITLE_MAX", 500))
    if len(title_s) > max_len:
        raise ValidationError(f"Title must be at most {max_len} characters")

    category_s = _choice(category, CATEGORIES, CATEGORY_DEFAULT, "category")
    priority_s = _choice(priority, PRIORITIES, PRIORITY_DEFAULT, "priority")

    # Serialise count-then-insert per author
    author = db.session.execute(
        select(User).where(User.id == caller.id).with_for_update()
    ).scalar_one_or_none()
    if author is None:
        db.session.rollback()
        raise NotFound("User not found")

    plan = plan_for_user(caller.id)
    limit = quota_for(plan)
    current = count_messages(caller.id)

    if current >= limit:
        db.session.rollback()
        current_app.logger.info(
            "quota_exceeded",
            extra={"event": "quota_exceeded", "user_id": caller.id, "plan": plan, "limit": limit, "current": current},
        )
        noun = "message" if limit == 1 else "messages"
        raise QuotaExceeded(
            f"Message limit reached. {plan_label(plan)} users can submit up to {limit} {noun}.",
            limit=limit,
            current=current,
        )

    msg = Message(
        user_id=caller.id,
        user_email=author.email or caller.email,
        user_name=author.name or caller.name or "Anonymous",
        title=title_s,
        content=content_s,
        category=category_s,
        priority=priority_s,
        status=STATUS_PENDING,
        like_count=0,
    )
    db.session.add(msg)
    db.session.commit()

    current_app.logger.info(
        "message_submitted",
        extra={"event": "message_submitted", "user_id": caller.id, "message_id": msg.id, "plan": plan},
    )
    return {"messageId": msg.id, "remainingSlots": limit - current - 1}


def list_messages(caller: Caller) -> Dict[str, Any]:
    """Admins see every message; everyone else sees their own. Newest first."""
    admin = is_admin(caller)
    stmt = select(Message).order_by(Message.created_at.desc(), Message.id.desc())
    if not admin:
        stmt = stmt.where(Message.user_id == caller.id)
    rows = db.session.scalars(stmt).all()
    return {"messages": [m.to_dict() for m in rows], "isAdmin": admin}


def _load_for_mutation(caller: Caller, message_id: Any) -> Message:
    mid = parse_id(message_id)
    if mid is None:
        raise ValidationError("Invalid message ID")
    msg = db.session.get(Message, mid)
    if msg is None:
        raise NotFound("Message not found")
    if msg.user_id != caller.id and not is_admin(caller):
        raise Forbidden("Forbidden")
    return msg


def set_status(caller: Caller, message_id: Any, new_status: Any) -> None:
    """
    Owner or admin may set any status; transitions are not ordered, so
    e.g. completed -> pending is accepted.
    """
    status_s = _clean(new_status)
    if message_id in (None, "") or not status_s:
        raise ValidationError("Message ID and status are required")
    if status_s not in STATUSES:
        raise ValidationError(f"Invalid status. Expected one of: {', '.join(STATUSES)}")

    msg = _load_for_mutation(caller, message_id)
    previous = msg.status
    msg.status = status_s
    msg.updated_at = func.now()
    db.session.commit()

    current_app.logger.info(
        "message_status_changed",
        extra={
            "event": "message_status_changed",
            "message_id": msg.id,
            "actor_id": caller.id,
            "from": previous,
            "to": status_s,
        },
    )


def delete_message(caller: Caller, message_id: Any) -> None:
    """Hard delete; likes go with the message."""
    if message_id in (None, ""):
        raise ValidationError("Message ID is required")

    msg = _load_for_mutation(caller, message_id)
    mid = msg.id
    db.session.delete(msg)
    db.session.commit()

    current_app.logger.info(
        "message_deleted",
        extra={"event": "message_deleted", "message_id": mid, "actor_id": caller.id},
    )

"""
Like ledger: at most one like per (user, message), with ``messages.like_count``
kept equal to the number of ledger rows.

The ledger row change and the counter update are flushed in the same
transaction; the counter is adjusted with a single UPDATE so concurrent
likes on one message never lose an increment.
"""
from typing import Any, Dict
from flask import current_app
from sqlalchemy import case, delete, exists, select, update
from sqlalchemy.exc import IntegrityError
from optume.extensions import db
from optume.models import Message, MessageLike
from optume.utils.validators import parse_id
from .errors import Conflict, NotFound, ValidationError
from .policy import Caller


def _message_id(raw: Any) -> int:
    mid = parse_id(raw)
    if mid is None:
        raise ValidationError("Invalid message ID")
    return mid


def _require_message(mid: int) -> None:
    if not db.session.scalar(select(exists().where(Message.id == mid))):
        raise NotFound("Message not found")


def _like_count(mid: int) -> int:
    return db.session.scalar(select(Message.like_count).where(Message.id == mid)) or 0


def has_liked(user_id: int, message_id: int) -> bool:
    return bool(db.session.scalar(
        select(exists().where(MessageLike.user_id == user_id, MessageLike.message_id == message_id))
    ))


def like_message(caller: Caller, message_id: Any) -> Dict[str, Any]:
    mid = _message_id(message_id)
    _require_message(mid)

    if has_liked(caller.id, mid):
        raise Conflict("Message already liked")

    try:
        db.session.add(MessageLike(user_id=caller.id, message_id=mid))
        db.session.flush()
    except IntegrityError:
        # Lost a race with a concurrent like from the same user
        db.session.rollback()
        raise Conflict("Message already liked")

    db.session.execute(
        update(Message)
        .where(Message.id == mid)
        .values(like_count=Message.like_count + 1)
        .execution_options(synchronize_session=False)
    )
    count = _like_count(mid)
    db.session.commit()

    current_app.logger.info(
        "message_liked",
        extra={"event": "message_liked", "message_id": mid, "user_id": caller.id, "like_count": count},
    )
    return {"liked": True, "likeCount": count}


def unlike_message(caller: Caller, message_id: Any) -> Dict[str, Any]:
    mid = _message_id(message_id)
    _require_message(mid)

    result = db.session.execute(
        delete(MessageLike)
        .where(MessageLike.user_id == caller.id, MessageLike.message_id == mid)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        db.session.rollback()
        raise NotFound("Like not found")

    db.session.execute(
        update(Message)
        .where(Message.id == mid)
        .values(like_count=decremented_like_count())
        .execution_options(synchronize_session=False)
    )
    count = _like_count(mid)
    db.session.commit()

    current_app.logger.info(
        "message_unliked",
        extra={"event": "message_unliked", "message_id": mid, "user_id": caller.id, "like_count": count},
    )
    return {"liked": False, "likeCount": count}


def decremented_like_count():
    """``like_count - 1`` floored at zero, portable across SQLite and Postgres."""
    return case((Message.like_count > 0, Message.like_count - 1), else_=0)

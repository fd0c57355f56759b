import math
from typing import Any, Dict, Tuple
from flask import current_app
from sqlalchemy import and_, func, select
from optume.extensions import db
from optume.models import Message, MessageLike
from optume.models.message import FEED_STATUSES
from optume.utils.validators import MAX_DB_ID
from .policy import Caller


def _to_int(raw: Any, default: int) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError, OverflowError):
        return default


def normalize_paging(page: Any, limit: Any) -> Tuple[int, int]:
    """Clamp ``page`` to [1, MAX_DB_ID] and ``limit`` to [1, FEED_MAX_LIMIT]."""
    cfg = current_app.config
    default_limit = int(cfg.get("FEED_DEFAULT_LIMIT", 20))
    max_limit = int(cfg.get("FEED_MAX_LIMIT", 100))
    page_i = min(max(_to_int(page, 1), 1), MAX_DB_ID)
    limit_i = min(max(_to_int(limit, default_limit), 1), max_limit)
    return page_i, limit_i


def get_feed(caller: Caller, page: Any = 1, limit: Any = None) -> Dict[str, Any]:
    """
    Public feed: pending and completed messages, most liked first, newest
    first among equals, each flagged with whether the caller liked it.
    """
    page_i, limit_i = normalize_paging(page, limit)
    offset = (page_i - 1) * limit_i

    # Outer join restricted to the caller's own like row
    liked = MessageLike.id.isnot(None).label("is_liked_by_user")
    stmt = (
        select(Message, liked)
        .outerjoin(
            MessageLike,
            and_(MessageLike.message_id == Message.id, MessageLike.user_id == caller.id),
        )
        .where(Message.status.in_(FEED_STATUSES))
        .order_by(Message.like_count.desc(), Message.created_at.desc(), Message.id.desc())
        .limit(limit_i)
        .offset(offset)
    )
    rows = db.session.execute(stmt).all()

    total = db.session.scalar(
        select(func.count(Message.id)).where(Message.status.in_(FEED_STATUSES))
    ) or 0

    messages = []
    for msg, is_liked in rows:
        messages.append({
            "id": msg.id,
            "userId": msg.user_id,
            "userName": msg.user_name,
            "title": msg.title,
            "content": msg.content,
            "category": msg.category,
            "status": msg.status,
            "likeCount": msg.like_count,
            "createdAt": msg.created_at.isoformat() if msg.created_at else None,
            "isLikedByUser": bool(is_liked),
        })

    return {
        "messages": messages,
        "pagination": {
            "page": page_i,
            "limit": limit_i,
            "total": total,
            "totalPages": math.ceil(total / limit_i),
        },
    }

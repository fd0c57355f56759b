"""
Account lifecycle: sign-up, credential checks, self-deactivation and the
admin user console (search, soft/hard delete, restore, update).
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from flask import current_app
from sqlalchemy import delete, func, or_, select, update
from optume.extensions import db
from optume.models import Message, MessageLike, TeamMember, User
from optume.models.user import ROLE_CHOICES
from optume.utils.validators import clean_str, is_valid_email, parse_id
from .errors import Conflict, Forbidden, NotFound, ValidationError
from .likes import decremented_like_count
from .policy import Caller
from .teams import create_team_for_user

MIN_PASSWORD_LEN = 8


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; treat them as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def reactivation_deadline(deleted_at: datetime) -> datetime:
    days = int(current_app.config.get("DEACTIVATION_GRACE_DAYS", 30))
    return _aware(deleted_at) + timedelta(days=days)


def find_by_email(email: str) -> Optional[User]:
    return db.session.execute(
        select(User).where(func.lower(User.email) == (email or "").strip().lower())
    ).scalar_one_or_none()


def register_user(email: Any, password: Any, name: Any = None) -> User:
    email_s = (clean_str(email if isinstance(email, str) else None) or "").lower()
    password_s = password if isinstance(password, str) else ""

    if not email_s or not is_valid_email(email_s):
        raise ValidationError("A valid email is required")
    if len(password_s) < MIN_PASSWORD_LEN:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LEN} characters")
    if find_by_email(email_s):
        raise Conflict("An account with that email already exists. Try signing in.")

    user = User(email=email_s, name=clean_str(name if isinstance(name, str) else None))
    user.set_password(password_s)
    db.session.add(user)
    db.session.flush()  # get user.id

    create_team_for_user(user, f"{user.name or email_s}'s Team")
    db.session.commit()

    current_app.logger.info("user_registered", extra={"event": "user_registered", "user_id": user.id})
    return user


def authenticate(email: Any, password: Any) -> User:
    email_s = (email or "").strip() if isinstance(email, str) else ""
    password_s = password if isinstance(password, str) else ""
    if not email_s or not password_s:
        raise ValidationError("Email and password are required")

    user = find_by_email(email_s)
    if not user or not user.check_password(password_s):
        raise ValidationError("Invalid credentials")

    if user.deleted_at is not None:
        deadline = reactivation_deadline(user.deleted_at)
        if _now() > deadline:
            raise Forbidden(
                "Account deactivated",
                deletedAt=_aware(user.deleted_at).isoformat(),
                reactivationDeadline=deadline.isoformat(),
            )
        # Signing in within the grace window reactivates the account
        user.deleted_at = None
        db.session.commit()
        current_app.logger.info("user_reactivated", extra={"event": "user_reactivated", "user_id": user.id})
    return user


def check_status(email: Any) -> Dict[str, Any]:
    email_s = (email or "").strip() if isinstance(email, str) else ""
    if not email_s:
        raise ValidationError("Email is required")

    user = find_by_email(email_s)
    if not user:
        return {"exists": False, "deleted": False}
    return {
        "exists": True,
        "deleted": user.deleted_at is not None,
        "deletedAt": _aware(user.deleted_at).isoformat() if user.deleted_at else None,
    }


def deactivate(caller: Caller) -> Dict[str, Any]:
    user = db.session.get(User, caller.id)
    if user is None:
        raise NotFound("User not found")

    deactivated_at = _now()
    user.deleted_at = deactivated_at
    db.session.commit()

    current_app.logger.info("user_deactivated", extra={"event": "user_deactivated", "user_id": caller.id})
    return {
        "success": True,
        "message": "Account deactivated successfully",
        "reactivationDeadline": reactivation_deadline(deactivated_at).isoformat(),
    }


# ----- Admin console -----

def list_users(search: str = "", include_deleted: bool = False, limit: Any = None, offset: Any = 0) -> Dict[str, Any]:
    limit_i, offset_i = page_window(limit, offset)

    stmt = select(User)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    if not include_deleted:
        stmt = stmt.where(User.deleted_at.is_(None))
    stmt = stmt.order_by(User.created_at.desc(), User.id.desc()).limit(limit_i).offset(offset_i)
    users = db.session.scalars(stmt).all()

    # One grouped count instead of a query per user
    ids = [u.id for u in users]
    counts = {}
    if ids:
        counts = dict(db.session.execute(
            select(Message.user_id, func.count(Message.id))
            .where(Message.user_id.in_(ids))
            .group_by(Message.user_id)
        ).all())

    items = []
    for u in users:
        data = u.to_dict()
        data["stats"] = {"totalMessages": counts.get(u.id, 0)}
        items.append(data)

    return {"users": items, "total": len(items), "hasMore": len(items) == limit_i}


def page_window(limit: Any, offset: Any):
    default = int(current_app.config.get("ADMIN_PAGE_LIMIT", 50))
    try:
        limit_i = int(limit) if limit not in (None, "") else default
    except (TypeError, ValueError):
        limit_i = default
    try:
        offset_i = int(offset or 0)
    except (TypeError, ValueError):
        offset_i = 0
    return max(1, min(limit_i, 500)), max(0, offset_i)


def _get_user(user_id: Any) -> User:
    uid = parse_id(user_id)
    if uid is None:
        raise ValidationError("Invalid user ID")
    user = db.session.get(User, uid)
    if user is None:
        raise NotFound("User not found")
    return user


def delete_user(caller: Caller, user_id: Any, hard: bool = False) -> Dict[str, Any]:
    if user_id in (None, ""):
        raise ValidationError("User ID is required")
    user = _get_user(user_id)
    if user.id == caller.id:
        raise ValidationError("Cannot delete your own account")

    if not hard:
        user.deleted_at = _now()
        db.session.commit()
        current_app.logger.info(
            "admin_user_soft_deleted",
            extra={"event": "admin_user_soft_deleted", "user_id": user.id, "actor_id": caller.id},
        )
        return {"success": True, "message": "User soft deleted", "type": "soft_delete"}

    uid = user.id
    purge_user(user)
    db.session.commit()
    current_app.logger.info(
        "admin_user_hard_deleted",
        extra={"event": "admin_user_hard_deleted", "user_id": uid, "actor_id": caller.id},
    )
    return {"success": True, "message": "User permanently deleted", "type": "hard_delete"}


def purge_user(user: User) -> None:
    """
    Remove a user and everything they own, inside the caller's transaction.
    Likes the user left on other people's messages are removed with their
    counters decremented, so like_count stays equal to the ledger.
    """
    own_ids = select(Message.id).where(Message.user_id == user.id)

    # Likes on the user's own messages vanish with the messages
    db.session.execute(
        delete(MessageLike).where(MessageLike.message_id.in_(own_ids)).execution_options(synchronize_session=False)
    )
    liked_ids = db.session.scalars(select(MessageLike.message_id).where(MessageLike.user_id == user.id)).all()
    if liked_ids:
        db.session.execute(
            update(Message)
            .where(Message.id.in_(liked_ids))
            .values(like_count=decremented_like_count())
            .execution_options(synchronize_session=False)
        )
        db.session.execute(
            delete(MessageLike).where(MessageLike.user_id == user.id).execution_options(synchronize_session=False)
        )
    db.session.execute(
        delete(Message).where(Message.user_id == user.id).execution_options(synchronize_session=False)
    )
    db.session.execute(
        delete(TeamMember).where(TeamMember.user_id == user.id).execution_options(synchronize_session=False)
    )
    db.session.delete(user)


def restore_user(user_id: Any) -> Dict[str, Any]:
    user = _get_user(user_id)
    user.deleted_at = None
    db.session.commit()
    return {"success": True, "message": "User restored successfully"}


_UPDATABLE = {"name", "email", "role", "emailVerified"}


def update_user(user_id: Any, changes: Dict[str, Any]) -> Dict[str, Any]:
    user = _get_user(user_id)
    fields = {k: v for k, v in (changes or {}).items() if k in _UPDATABLE}

    if "email" in fields:
        email = (clean_str(fields["email"] if isinstance(fields["email"], str) else None) or "").lower()
        if not email or not is_valid_email(email):
            raise ValidationError("A valid email is required")
        other = find_by_email(email)
        if other and other.id != user.id:
            raise Conflict("Email already in use")
        user.email = email
    if "name" in fields:
        user.name = clean_str(fields["name"] if isinstance(fields["name"], str) else None)
    if "role" in fields:
        if fields["role"] not in ROLE_CHOICES:
            raise ValidationError(f"Invalid role. Expected one of: {', '.join(ROLE_CHOICES)}")
        user.role = fields["role"]
    if "emailVerified" in fields:
        user.email_verified = bool(fields["emailVerified"])

    db.session.commit()
    return {"success": True, "message": "User updated successfully"}

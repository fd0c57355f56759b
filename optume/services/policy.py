from dataclasses import dataclass
from functools import wraps
from typing import Optional
from flask import current_app, jsonify
from flask_login import current_user
from optume.models.user import ROLE_ADMIN


@dataclass(frozen=True)
class Caller:
    """Identity of the user behind a request, passed explicitly into services."""
    id: int
    email: str
    role: str
    name: Optional[str] = None


def caller_from_user(user) -> Caller:
    return Caller(
        id=user.id,
        email=(user.email or "").lower(),
        role=user.role or "",
        name=getattr(user, "name", None),
    )


def current_caller() -> Optional[Caller]:
    if not getattr(current_user, "is_authenticated", False):
        return None
    return caller_from_user(current_user)


def _admin_emails() -> set:
    raw = current_app.config.get("ADMIN_EMAILS") or ""
    if isinstance(raw, (list, tuple, set)):
        items = raw
    else:
        items = raw.split(",")
    return {e.strip().lower() for e in items if e and e.strip()}


def is_admin(caller: Optional[Caller]) -> bool:
    """Admins: site role "admin", or an e-mail on the ADMIN_EMAILS allow-list."""
    if caller is None:
        return False
    if caller.role == ROLE_ADMIN:
        return True
    return (caller.email or "").lower() in _admin_emails()


def login_required_json(fn):
    @wraps(fn)
    def _wrap(*args, **kwargs):
        if not getattr(current_user, "is_authenticated", False):
            return _json_error(401)
        return fn(*args, **kwargs)
    return _wrap


def admin_required(fn):
    @wraps(fn)
    def _wrap(*args, **kwargs):
        caller = current_caller()
        if caller is None:
            return _json_error(401)
        if not is_admin(caller):
            return _json_error(403, "Admin access required")
        return fn(*args, **kwargs)
    return _wrap


def _json_error(code: int, message: Optional[str] = None):
    default = {401: "Unauthorized", 403: "Forbidden", 404: "Not found"}[code]
    return jsonify({"error": message or default}), code

from typing import Optional
from flask import current_app, has_app_context
from optume.extensions import db

PLAN_FREE = "free"
PLAN_PRO = "pro"

# Only a fully paid subscription unlocks Pro; trialing/past_due/etc. count as Free
_PRO_STATUSES = {"active"}

_DEFAULT_LIMITS = {PLAN_FREE: 1, PLAN_PRO: 3}


def plan_for_status(status: Optional[str]) -> str:
    return PLAN_PRO if status in _PRO_STATUSES else PLAN_FREE


def quota_for(plan: Optional[str]) -> int:
    """Maximum number of messages a user on ``plan`` may hold. Unknown plans get the Free limit."""
    limits = dict(_DEFAULT_LIMITS)
    if has_app_context():
        cfg = current_app.config
        limits[PLAN_FREE] = int(cfg.get("FREE_MESSAGE_LIMIT", limits[PLAN_FREE]))
        limits[PLAN_PRO] = int(cfg.get("PRO_MESSAGE_LIMIT", limits[PLAN_PRO]))
    return limits.get(plan, limits[PLAN_FREE])


def plan_for_user(user_id: int) -> str:
    """Resolve a user's plan from their team's subscription (no team or no subscription: Free)."""
    from optume.models import User, Subscription

    team_id = db.session.query(User.team_id).filter(User.id == user_id).scalar()
    if not team_id:
        return PLAN_FREE
    status = db.session.query(Subscription.status).filter(Subscription.team_id == team_id).scalar()
    return plan_for_status(status)


def plan_label(plan: str) -> str:
    return "Pro" if plan == PLAN_PRO else "Free"

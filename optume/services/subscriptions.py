"""Admin view over team subscriptions."""
from typing import Any, Dict
from flask import current_app
from sqlalchemy import exists, or_, select
from optume.extensions import db
from optume.models import Subscription, Team, TeamMember, User
from optume.models.subscription import CANCELED_STATUSES, INACTIVE_STATUSES, STATUS_ACTIVE
from optume.utils.validators import parse_id
from .accounts import page_window
from .errors import NotFound, ValidationError

STATUS_FILTERS = ("all", "active", "inactive", "canceled")


def list_team_subscriptions(search: str = "", status: str = "all", limit: Any = None, offset: Any = 0) -> Dict[str, Any]:
    if status not in STATUS_FILTERS:
        raise ValidationError(f"Invalid status filter. Expected one of: {', '.join(STATUS_FILTERS)}")
    limit_i, offset_i = page_window(limit, offset)

    stmt = select(Team, Subscription).outerjoin(Subscription, Subscription.team_id == Team.id)
    if search:
        pattern = f"%{search.strip()}%"
        member_match = exists().where(
            TeamMember.team_id == Team.id,
            TeamMember.user_id == User.id,
            or_(User.email.ilike(pattern), User.name.ilike(pattern)),
        )
        stmt = stmt.where(or_(Team.name.ilike(pattern), member_match))

    if status == "active":
        stmt = stmt.where(Subscription.status == STATUS_ACTIVE)
    elif status == "inactive":
        stmt = stmt.where(or_(Subscription.id.is_(None), Subscription.status.in_(INACTIVE_STATUSES)))
    elif status == "canceled":
        stmt = stmt.where(Subscription.status.in_(CANCELED_STATUSES))

    stmt = stmt.order_by(Team.created_at.desc(), Team.id.desc()).limit(limit_i).offset(offset_i)
    rows = db.session.execute(stmt).all()

    teams = []
    for team, sub in rows:
        teams.append({
            "id": team.id,
            "name": team.name,
            "memberCount": len(team.members),
            "subscriptionStatus": sub.status if sub else None,
            "subscription": sub.to_dict() if sub else None,
        })

    statuses = [t["subscriptionStatus"] for t in teams]
    stats = {
        "total": len(teams),
        "activeSubscriptions": sum(1 for s in statuses if s == STATUS_ACTIVE),
        "canceledSubscriptions": sum(1 for s in statuses if s in CANCELED_STATUSES),
    }
    return {"teams": teams, "stats": stats, "hasMore": len(teams) == limit_i}


def resolve_team(team_id: Any = None, user_id: Any = None) -> Team:
    """Admin actions address a team directly or through one of its members."""
    if team_id in (None, "") and user_id in (None, ""):
        raise ValidationError("Team ID or User ID is required")
    raw, model = (team_id, Team) if team_id not in (None, "") else (user_id, User)
    ident = parse_id(raw)
    if ident is None:
        raise ValidationError("Invalid identifier")
    if model is Team:
        team = db.session.get(Team, ident)
    else:
        user = db.session.get(User, ident)
        team = db.session.get(Team, user.team_id) if user and user.team_id else None
    if team is None:
        raise NotFound("Team not found")
    return team



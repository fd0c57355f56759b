from typing import Any, Dict, Optional
from sqlalchemy import select
from optume.extensions import db
from optume.models import Team, TeamMember, User
from optume.models.team_member import ROLE_OWNER
from .policy import Caller


def create_team_for_user(user: User, name: str) -> Team:
    """New team owned by ``user``; flushes but leaves the commit to the caller."""
    team = Team(name=(name or "My Team")[:100])
    db.session.add(team)
    db.session.flush()

    user.team_id = team.id
    db.session.add(TeamMember(team_id=team.id, user_id=user.id, role=ROLE_OWNER))
    db.session.flush()
    return team


def team_for_user(user_id: int) -> Optional[Team]:
    membership = db.session.execute(
        select(TeamMember).where(TeamMember.user_id == user_id).order_by(TeamMember.id)
    ).scalars().first()
    return membership.team if membership else None


def get_or_create_team(caller: Caller) -> Dict[str, Any]:
    team = team_for_user(caller.id)
    if team is None:
        user = db.session.get(User, caller.id)
        team = create_team_for_user(user, "My Team")
        db.session.commit()
    return serialize_team(team)


def serialize_team(team: Team) -> Dict[str, Any]:
    sub = team.subscription
    return {
        "id": team.id,
        "name": team.name,
        "subscription": sub.to_dict() if sub else None,
        "members": [
            {
                "id": m.id,
                "role": m.role,
                "joinedAt": m.joined_at.isoformat() if m.joined_at else None,
                "user": {"id": m.user.id, "name": m.user.name, "email": m.user.email},
            }
            for m in sorted(team.members, key=lambda m: m.id)
        ],
    }

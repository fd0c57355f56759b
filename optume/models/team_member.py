from sqlalchemy import func, CheckConstraint, UniqueConstraint
from optume.extensions import db

# Keep simple text+CHECK for evolvable roles (no DB enum migration pain)
ROLE_MEMBER = "member"
ROLE_OWNER = "owner"
ROLE_CHOICES = (ROLE_OWNER, ROLE_MEMBER)

class TeamMember(db.Model):
    __tablename__ = "team_members"

    id = db.Column(db.Integer, primary_key=True)

    team_id = db.Column(
        db.Integer,
        db.ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # default is member; owner must be explicit
    role = db.Column(db.String(20), nullable=False, server_default=ROLE_MEMBER, default=ROLE_MEMBER)

    joined_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    team = db.relationship("Team", back_populates="members")
    user = db.relationship("User")

    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_team_members_team_user"),
        CheckConstraint("role IN ('owner','member')", name="ck_team_members_role_valid"),
    )

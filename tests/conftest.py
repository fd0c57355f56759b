import os
# Ensure the app factory picks the Testing config & SQLite memory DB
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite:///:memory:")

import pytest
from optume import create_app
from optume.extensions import db
from optume.models import Message, Subscription, Team, TeamMember, User
from optume.models.team_member import ROLE_OWNER


@pytest.fixture(scope="session")
def app():
    app = create_app()
    app.config.update(
        TESTING=True,
        APP_BASE_URL="http://example.test",
        WTF_CSRF_ENABLED=False,
        RATELIMIT_ENABLED=False,
        ADMIN_EMAILS="admin@example.com",
    )
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def _db_clean(app):
    yield
    # Keeps state hermetic even if a test fails mid-transaction
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()


def make_user(email, *, role="user", name=None, status=None, password="password123"):
    """
    Create a user with a personal team. ``status`` adds a subscription with
    that Stripe status to the team. Returns the user id.
    """
    team = Team(name=f"{email} team")
    db.session.add(team)
    db.session.flush()
    user = User(email=email, name=name or email.split("@")[0], role=role, team_id=team.id)
    user.set_password(password)
    db.session.add(user)
    db.session.flush()
    db.session.add(TeamMember(team_id=team.id, user_id=user.id, role=ROLE_OWNER))
    if status is not None:
        db.session.add(Subscription(team_id=team.id, status=status))
    db.session.commit()
    return user.id


def make_message(user_id, *, title="Hello", status="pending", like_count=0):
    user = db.session.get(User, user_id)
    msg = Message(
        user_id=user_id,
        user_email=user.email,
        user_name=user.name,
        title=title,
        content=f"{title} body",
        status=status,
        like_count=like_count,
    )
    db.session.add(msg)
    db.session.commit()
    return msg.id


def login(client, user_id):
    with client.session_transaction() as sess:
        sess["_user_id"] = str(user_id)
        sess["_fresh"] = True


@pytest.fixture()
def users(app):
    """Three users: a free author, a pro author and an admin (by role)."""
    with app.app_context():
        return {
            "free": make_user("free@example.test"),
            "pro": make_user("pro@example.test", status="active"),
            "admin": make_user("boss@example.test", role="admin"),
        }

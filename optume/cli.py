import click
from flask.cli import with_appcontext
from optume.extensions import db
from optume.models import Subscription, Team, User
from optume.models.user import ROLE_ADMIN, ROLE_USER
from optume.services.teams import create_team_for_user


def _find_user(email: str):
    return db.session.query(User).filter(User.email == email.strip().lower()).one_or_none()


def _create_user(email: str, password: str, name, role: str):
    if _find_user(email):
        raise click.ClickException("User already exists")
    user = User(email=email.strip().lower(), name=name, role=role)
    user.set_password(password)
    db.session.add(user)
    db.session.flush()
    team = create_team_for_user(user, f"{name or user.email}'s Team")
    db.session.commit()
    return user, team


@click.group()
def bootstrap():
    """Bootstrap helpers."""


@bootstrap.command("admin")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--name", default=None)
@with_appcontext
def bootstrap_admin(email, password, name):
    user, team = _create_user(email, password, name, ROLE_ADMIN)
    click.echo(f"Bootstrap complete: admin_user_id={user.id} team_id={team.id} email={user.email}")


@click.group()
def users():
    """User management."""


@users.command("create")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--name", default=None)
@click.option("--role", type=click.Choice([ROLE_USER, ROLE_ADMIN]), default=ROLE_USER)
@with_appcontext
def users_create(email, password, name, role):
    user, team = _create_user(email, password, name, role)
    click.echo(f"User created id={user.id} email={user.email} team_id={team.id} role={role}")


@users.command("promote")
@click.option("--email", required=True)
@with_appcontext
def users_promote(email):
    user = _find_user(email)
    if not user:
        raise click.ClickException("User not found")
    user.role = ROLE_ADMIN
    db.session.commit()
    click.echo(f"Promoted {user.email} to {ROLE_ADMIN}")


@users.command("demote")
@click.option("--email", required=True)
@with_appcontext
def users_demote(email):
    user = _find_user(email)
    if not user:
        raise click.ClickException("User not found")

    # Refuse to leave the site without a role-based admin
    admins = db.session.query(User).filter_by(role=ROLE_ADMIN, deleted_at=None).count()
    if user.role == ROLE_ADMIN and admins <= 1:
        raise click.ClickException("Refused: cannot demote the last admin")

    user.role = ROLE_USER
    db.session.commit()
    click.echo(f"Demoted {user.email} to {ROLE_USER}")


@click.group()
def subscriptions():
    """Local subscription overrides for test plans."""


@subscriptions.command("set-status")
@click.option("--team-id", type=int, default=None)
@click.option("--email", default=None, help="Resolve the team through this member")
@click.option("--status", required=True, help="Stripe status, e.g. active, canceled")
@with_appcontext
def subscriptions_set_status(team_id, email, status):
    if team_id is None and not email:
        raise click.ClickException("Pass --team-id or --email")
    if team_id is None:
        user = _find_user(email)
        if not user or not user.team_id:
            raise click.ClickException("User or team not found")
        team_id = user.team_id

    if not db.session.get(Team, team_id):
        raise click.ClickException(f"Team id {team_id} not found")

    sub = db.session.query(Subscription).filter_by(team_id=team_id).one_or_none()
    if not sub:
        sub = Subscription(team_id=team_id)
        db.session.add(sub)
    sub.status = status
    db.session.commit()
    click.echo(f"Team {team_id} subscription status set to {status}")


def register_cli(app):
    app.cli.add_command(bootstrap)
    app.cli.add_command(users)
    app.cli.add_command(subscriptions)

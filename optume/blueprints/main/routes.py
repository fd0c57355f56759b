from flask import jsonify
from optume.extensions import limiter
from optume.services.policy import current_caller, login_required_json
from optume.services.teams import get_or_create_team
from . import bp


@bp.get("/healthz")
@limiter.exempt
def healthz():
    return {"status": "ok"}, 200


@bp.get("/team")
@login_required_json
def team():
    """Caller's team with members; users without one get a fresh "My Team"."""
    return jsonify(get_or_create_team(current_caller())), 200

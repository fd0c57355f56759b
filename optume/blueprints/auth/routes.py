from flask import jsonify, request, session
from flask_login import login_user, logout_user, current_user
from flask_wtf.csrf import generate_csrf
from optume.extensions import csrf, limiter
from optume.services import accounts
from optume.services.policy import current_caller, is_admin, login_required_json
from . import bp


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict() if request.form else {}


def _login_email_scope():
    email = (_json_body().get("email") or "").strip().lower()
    # Keep a stable scope even if email is blank
    return f"login-email:{email or 'missing'}"


def _user_payload(user):
    data = user.to_dict()
    data["isAdmin"] = is_admin(current_caller()) if current_user.is_authenticated else False
    return data


@bp.post("/register")
@limiter.limit("5 per minute; 20 per hour")
def register():
    data = _json_body()
    user = accounts.register_user(data.get("email"), data.get("password"), data.get("name"))
    session["current_team_id"] = user.team_id
    login_user(user)
    return jsonify({"success": True, "user": _user_payload(user)}), 200


@bp.post("/login")
@limiter.limit("10 per minute; 100 per hour")              # per caller (IP when anonymous)
@limiter.limit("5 per minute; 20 per hour", key_func=_login_email_scope)  # per-account
def login():
    data = _json_body()
    user = accounts.authenticate(data.get("email"), data.get("password"))
    session["current_team_id"] = user.team_id
    login_user(user, remember=bool(data.get("remember")))
    return jsonify({"success": True, "user": _user_payload(user)}), 200


@bp.post("/logout")
def logout():
    if current_user.is_authenticated:
        logout_user()
    session.pop("current_team_id", None)
    return jsonify({"success": True}), 200


@bp.get("/me")
def me():
    if not current_user.is_authenticated:
        return jsonify(None), 200
    return jsonify(_user_payload(current_user)), 200


@bp.post("/check-status")
@limiter.limit("30 per minute")
def check_status():
    return jsonify(accounts.check_status(_json_body().get("email"))), 200


@bp.post("/deactivate")
@login_required_json
def deactivate():
    result = accounts.deactivate(current_caller())
    logout_user()
    session.pop("current_team_id", None)
    return jsonify(result), 200


@csrf.exempt
@bp.get("/csrf-token")
def csrf_token():
    token = generate_csrf()
    resp = jsonify({"csrf_token": token})
    # keep tokens fresh; avoid caches holding stale tokens
    resp.headers["Cache-Control"] = "no-store"
    return resp

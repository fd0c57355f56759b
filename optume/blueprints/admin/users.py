from flask import jsonify, request
from optume.services import accounts
from optume.services.policy import current_caller
from optume.utils.validators import parse_bool
from . import bp


@bp.get("/users")
def list_users():
    args = request.args
    payload = accounts.list_users(
        search=(args.get("search") or "").strip(),
        include_deleted=parse_bool(args.get("includeDeleted")),
        limit=args.get("limit"),
        offset=args.get("offset"),
    )
    return jsonify(payload), 200


@bp.delete("/users")
def delete_user():
    result = accounts.delete_user(
        current_caller(),
        request.args.get("userId"),
        hard=parse_bool(request.args.get("hardDelete")),
    )
    return jsonify(result), 200


@bp.patch("/users")
def patch_user():
    data = request.get_json(silent=True)
    data = data if isinstance(data, dict) else {}
    user_id = data.pop("userId", None)
    action = data.pop("action", None)
    if user_id in (None, ""):
        return jsonify({"error": "User ID is required"}), 400

    if action == "restore":
        return jsonify(accounts.restore_user(user_id)), 200
    if action == "update":
        return jsonify(accounts.update_user(user_id, data)), 200
    return jsonify({"error": "Invalid action"}), 400

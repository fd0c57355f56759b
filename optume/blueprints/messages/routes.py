from flask import jsonify, request
from optume.extensions import limiter
from optume.services import messages as message_service
from optume.services.policy import current_caller, login_required_json
from . import bp


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@bp.get("/messages")
@login_required_json
def list_messages():
    return jsonify(message_service.list_messages(current_caller())), 200


@bp.post("/messages")
@limiter.limit("20 per minute")
@login_required_json
def submit_message():
    data = _json_body()
    result = message_service.submit_message(
        current_caller(),
        title=data.get("title"),
        content=data.get("content"),
        category=data.get("category"),
        priority=data.get("priority"),
    )
    return jsonify({"success": True, **result}), 200


@bp.put("/messages")
@login_required_json
def update_status():
    data = _json_body()
    message_service.set_status(current_caller(), data.get("messageId"), data.get("status"))
    return jsonify({"success": True}), 200


@bp.delete("/messages")
@login_required_json
def delete_message():
    message_service.delete_message(current_caller(), request.args.get("id"))
    return jsonify({"success": True}), 200

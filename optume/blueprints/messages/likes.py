from flask import jsonify
from optume.extensions import limiter
from optume.services import likes as like_service
from optume.services.policy import current_caller, login_required_json
from . import bp


@bp.post("/messages/<message_id>/like")
@limiter.limit("60 per minute")
@login_required_json
def like(message_id):
    result = like_service.like_message(current_caller(), message_id)
    return jsonify({"success": True, **result}), 200


@bp.delete("/messages/<message_id>/like")
@limiter.limit("60 per minute")
@login_required_json
def unlike(message_id):
    result = like_service.unlike_message(current_caller(), message_id)
    return jsonify({"success": True, **result}), 200

from flask import jsonify, request
from optume.services.feed import get_feed
from optume.services.policy import current_caller, login_required_json
from . import bp


@bp.get("/feed")
@login_required_json
def feed():
    """Public feed, paginated by ?page=&limit=."""
    payload = get_feed(
        current_caller(),
        page=request.args.get("page", 1),
        limit=request.args.get("limit"),
    )
    return jsonify(payload), 200

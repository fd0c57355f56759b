from flask import Blueprint, jsonify
from optume.services.policy import current_caller, is_admin

bp = Blueprint("admin", __name__)

@bp.before_request
def _require_admin():
    caller = current_caller()
    if caller is None:
        return jsonify({"error": "Unauthorized"}), 401
    if not is_admin(caller):
        return jsonify({"error": "Admin access required"}), 403
    return None


# Import submodules so their routes register on the same bp
from . import users  # noqa: E402,F401
from . import subscriptions  # noqa: E402,F401

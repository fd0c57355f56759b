from flask import Blueprint
bp = Blueprint("messages", __name__)
# Import view modules so their @bp.route decorators run
from . import routes  # noqa: E402,F401  /messages
from . import likes   # noqa: E402,F401  /messages/<id>/like
from . import feed    # noqa: E402,F401  /feed

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_wtf import CSRFProtect
from flask_login import LoginManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

db = SQLAlchemy()
migrate = Migrate()
csrf = CSRFProtect()
login_manager = LoginManager()


def _caller_key():
    """Rate-limit bucket: the signed-in user, else the client address."""
    from flask_login import current_user  # avoids an import cycle at init
    uid = getattr(current_user, "id", None) if getattr(current_user, "is_authenticated", False) else None
    return f"user:{uid}" if uid else get_remote_address()


# Storage URI comes from app config (memory:// locally, Redis in staging/prod)
limiter = Limiter(key_func=_caller_key)

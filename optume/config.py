import os

class BaseConfig:
    # Secrets (env in prod; dev/test may use defaults)
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-not-secure")
    WTF_CSRF_TIME_LIMIT = None

    # Database (env in prod; dev/test may use default)
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL") or "sqlite:///optume.db"
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Logging / misc
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    APP_ENV = os.environ.get("APP_ENV", "development")

    # Cookies: secure-by-default
    SESSION_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    # Used for absolute links handed to Stripe (must be https in prod)
    APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:5000")

    # --- Admins ---
    # Comma-separated allow-list; users with role "admin" are admins regardless.
    ADMIN_EMAILS = os.getenv("ADMIN_EMAILS", "admin@example.com")

    # --- Message quotas per plan ---
    FREE_MESSAGE_LIMIT = int(os.getenv("FREE_MESSAGE_LIMIT", "1"))
    PRO_MESSAGE_LIMIT = int(os.getenv("PRO_MESSAGE_LIMIT", "3"))
    MESSAGE_TITLE_MAX = 500

    # --- Paging ---
    FEED_DEFAULT_LIMIT = 20
    FEED_MAX_LIMIT = 100
    ADMIN_PAGE_LIMIT = 50

    # Soft-deleted accounts can be restored within this window
    DEACTIVATION_GRACE_DAYS = int(os.getenv("DEACTIVATION_GRACE_DAYS", "30"))

    # --- Stripe (Billing) ---
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_PUBLISHABLE_KEY = os.getenv("STRIPE_PUBLISHABLE_KEY")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")

    # Price IDs (per environment via env vars)
    STRIPE_PRICE_PRO_MONTHLY = os.getenv("STRIPE_PRICE_PRO_MONTHLY")
    STRIPE_PRICE_PRO_ANNUAL = os.getenv("STRIPE_PRICE_PRO_ANNUAL")

    STRIPE_TRIAL_DAYS = int(os.getenv("STRIPE_TRIAL_DAYS", "0"))

class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False

class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "WARNING")
    SESSION_COOKIE_SECURE = True
    REMEMBER_COOKIE_SECURE = True
    SESSION_COOKIE_SAMESITE = os.environ.get("SESSION_COOKIE_SAMESITE", "Lax")

    # REQUIRE env vars in production (fail fast if missing); read lazily so
    # importing this module never fails in other environments.
    @property
    def SECRET_KEY(self):
        return os.environ["SECRET_KEY"]

    @property
    def SQLALCHEMY_DATABASE_URI(self):
        return os.environ["DATABASE_URL"]

class TestingConfig(BaseConfig):
    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get("TEST_DATABASE_URL", "sqlite:///:memory:")
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False

_ENV_MAP = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}

def get_config():
    env = os.environ.get("APP_ENV", "development").lower()
    cls = _ENV_MAP.get(env, DevelopmentConfig)
    # ProductionConfig resolves its required secrets through properties
    return cls() if cls is ProductionConfig else cls

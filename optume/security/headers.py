from flask_talisman import Talisman

# JSON-only API: nothing is rendered, so nothing needs to load or frame it
API_CSP = {
    "default-src": ["'none'"],
    "frame-ancestors": ["'none'"],
    "base-uri": ["'none'"],
    "form-action": ["'none'"],
}


def init_security(app):
    """HTTPS redirect, HSTS and a locked-down CSP for staging/production."""
    Talisman(
        app,
        content_security_policy=API_CSP,
        force_https=True,
        strict_transport_security=True,
        strict_transport_security_max_age=app.config.get("HSTS_MAX_AGE", 31536000),
        session_cookie_secure=True,
        frame_options="DENY",
        referrer_policy="no-referrer",
    )

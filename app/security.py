from flask_talisman import Talisman

def init_security(app):
    """
    Production/staging security headers for a JSON API.
    No inline scripts are served, so the CSP stays strict.
    """
    csp = {
        "default-src": ["'self'"],
        "script-src":  ["'self'"],
        "style-src":   ["'self'"],
        "img-src":     ["'self'", "data:", "blob:"],
        "connect-src": ["'self'"],
        "frame-ancestors": ["'none'"],
        "base-uri":    ["'self'"],
        "form-action": ["'self'"],
    }

    Talisman(
        app,
        content_security_policy=csp,
        force_https=True,
        strict_transport_security=True,
        session_cookie_secure=True,
        frame_options="DENY",
        referrer_policy="strict-origin-when-cross-origin",
    )

def init_csrf(app):
    """
    CSRF guards cookie-session writes only. Bearer-token clients and anonymous
    posts (login, register, public feedback) carry no ambient authority.
    Flask-WTF's own default check is switched off in favour of this one.
    """
    from flask import request, session
    from app.extensions import csrf

    app.config["WTF_CSRF_CHECK_DEFAULT"] = False

    @app.before_request
    def _csrf_for_cookie_sessions():
        if not app.config.get("WTF_CSRF_ENABLED", True):
            return None
        if request.method in app.config.get("WTF_CSRF_METHODS", ("POST", "PUT", "PATCH", "DELETE")):
            auth = (request.headers.get("Authorization") or "").lower()
            if auth.startswith("bearer ") or "_user_id" not in session:
                return None
            csrf.protect()
        return None

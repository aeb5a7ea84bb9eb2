import os
from flask import Flask

# Load .env only for local/dev. In prod, env vars come from the platform.
if os.getenv("APP_ENV", "development") != "production":
    from dotenv import load_dotenv
    # Load .env if present without clobbering envs already set (tests set APP_ENV)
    load_dotenv(".env", override=False)


from .config import get_config
from .extensions import db, migrate, csrf, login_manager, limiter
from .security import init_security, init_csrf
from .observability import init_logging, init_request_logging, init_sentry
from .errors import register_error_handlers

def create_app(config_overrides=None):
    app = Flask(__name__)
    # "/api/projects" and "/api/projects/" are the same resource
    app.url_map.strict_slashes = False

    # ---- Rate Limiting storage configuration ----
    app_env = (os.getenv("APP_ENV", "development") or "development").lower()
    use_redis = app_env in ("staging", "production")
    storage_uri = os.environ.get("REDIS_URL") if use_redis else "memory://"
    if use_redis and not storage_uri:
        # Hard fail in stage/prod so we never silently run without RL storage
        raise RuntimeError("REDIS_URL is required in staging/production for rate limiting")
    # -------------------------------------------------------

    app.config["RATELIMIT_STORAGE_URI"] = storage_uri
    app.config.setdefault("RATELIMIT_HEADERS_ENABLED", True)

    # Config: clean, explicit, class-based
    app.config.from_object(get_config())
    if config_overrides:
        app.config.update(config_overrides)

    # --- Required env validation for prod-like envs (staging/production) ---
    def _require(name: str):
        val = os.getenv(name) or app.config.get(name)
        if not val:
            raise RuntimeError(f"Missing required environment variable: {name}")
        return val

    if app_env in ("staging", "production"):
        # Enforce hard requirements at startup (not at import time)
        _require("SECRET_KEY")
        _require("DATABASE_URL")
        if app.config.get("AI_PROVIDER") == "openai":
            _require("OPENAI_API_KEY")

    # --- Observability & Security ---
    init_logging(app)
    init_request_logging(app)
    init_sentry(app)

    # Apply HTTPS, HSTS & CSP only in staging/production
    if app_env in ("staging", "production"):
        init_security(app)

    # Init extensions
    db.init_app(app)
    migrate.init_app(app, db, directory="migrations")
    csrf.init_app(app)
    init_csrf(app)
    login_manager.init_app(app)
    limiter.init_app(app)

    # Bearer-token loader registers itself on login_manager at import
    from .services import tokens  # noqa: F401

    # Blueprints (explicit, consistent prefixes)
    from .blueprints.auth import bp as auth_bp
    from .blueprints.projects import bp as projects_bp
    from .blueprints.feedback import bp as feedback_bp
    from .blueprints.users import bp as users_bp
    from .blueprints.admin import bp as admin_bp

    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(projects_bp, url_prefix="/api/projects")
    app.register_blueprint(feedback_bp, url_prefix="/api/feedback")
    app.register_blueprint(users_bp, url_prefix="/api/users")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")

    # Health
    @app.get("/healthz")
    @limiter.exempt
    def healthz():
        return {"status": "ok"}, 200

    # JSON error handlers (AppError, HTTP errors, CSRF, 429, uncaught)
    register_error_handlers(app)

    # CLI commands (ops-grade utilities)
    from .cli import register_cli
    register_cli(app)

    return app

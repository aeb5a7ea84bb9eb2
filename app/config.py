import os

def _as_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return float(default)

class BaseConfig:
    # Secrets (env in prod; dev/test may use defaults)
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-not-secure")
    WTF_CSRF_SECRET_KEY = SECRET_KEY
    WTF_CSRF_TIME_LIMIT = None
    # API clients send the token from GET /api/auth/csrf in this header
    WTF_CSRF_HEADERS = ["X-CSRFToken", "X-CSRF-Token"]

    # Database (env in prod; dev/test may use default)
    try:
        from dotenv import dotenv_values
        _ENV_FALLBACK = dotenv_values(".env")
    except Exception:
        _ENV_FALLBACK = {}
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL") or _ENV_FALLBACK.get("DATABASE_URL") or "sqlite:///feedback_hub.db"
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Logging / misc
    APP_ENV = (os.getenv("APP_ENV", "development") or "development").lower()
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    JSON_SORT_KEYS = False

    # Cookies: secure-by-default
    SESSION_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    # Bearer access tokens (Authorization: Bearer <token>)
    ACCESS_TOKEN_TTL_SECONDS = int(os.getenv("ACCESS_TOKEN_TTL_SECONDS", str(15 * 60)))
    ACCESS_TOKEN_SALT = os.getenv("ACCESS_TOKEN_SALT", "access-token-v1")

    # Flask-Limiter: global fallback, tighter per-route limits on auth/create
    RATELIMIT_DEFAULT = os.getenv("RATELIMIT_DEFAULT", "100 per minute")
    RATELIMIT_AUTH = os.getenv("RATELIMIT_AUTH", "10 per 5 minutes")
    RATELIMIT_CREATE = os.getenv("RATELIMIT_CREATE", "20 per minute")

    # --- Uploads (feedback attachments) ---
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "instance/uploads")
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", str(10 * 1024 * 1024)))
    ATTACHMENT_MAX_BYTES = int(os.getenv("ATTACHMENT_MAX_BYTES", str(5 * 1024 * 1024)))
    ATTACHMENT_MIME_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")

    # --- Feedback analysis ---
    # "mock" = keyword classifier only; "openai" = try OpenAI first, fall back to mock
    AI_PROVIDER = os.getenv("AI_PROVIDER", "mock").lower()
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
    OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL")
    OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_TIMEOUT = _as_float("OPENAI_TIMEOUT", 20.0)
    OPENAI_MAX_RETRIES = int(os.getenv("OPENAI_MAX_RETRIES", "2"))
    OPENAI_BACKOFF_BASE_MS = int(os.getenv("OPENAI_BACKOFF_BASE_MS", "200"))
    # Simulated analysis latency (seconds)
    AI_MOCK_DELAY_MIN = _as_float("AI_MOCK_DELAY_MIN", 1.0)
    AI_MOCK_DELAY_MAX = _as_float("AI_MOCK_DELAY_MAX", 3.0)

    APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:5000")
    SITE_NAME = os.getenv("SITE_NAME", "Client Feedback Hub")

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
    # allow override if you need "Strict" for purely internal apps
    SESSION_COOKIE_SAMESITE = os.environ.get("SESSION_COOKIE_SAMESITE", "Lax")

class TestingConfig(BaseConfig):
    APP_ENV = "testing"
    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get("TEST_DATABASE_URL", "sqlite:///:memory:")
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    AI_PROVIDER = "mock"
    AI_MOCK_DELAY_MIN = 0.0
    AI_MOCK_DELAY_MAX = 0.0

_ENV_MAP = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "staging": ProductionConfig,
    "testing": TestingConfig,
}

def get_config():
    env = os.environ.get("APP_ENV", "development").lower()
    return _ENV_MAP.get(env, DevelopmentConfig)

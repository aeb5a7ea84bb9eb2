import json

from flask import jsonify, current_app
from flask_login import current_user
from sqlalchemy import func

from app.extensions import db, limiter
from app.models.feedback import Feedback, STATUS_CHOICES
from app.models.project import Project
from app.models.user import User, ROLE_CHOICES
from . import bp

# Runtime settings safe to show to admins (no secrets)
_PUBLIC_SETTINGS = (
    "SITE_NAME",
    "APP_BASE_URL",
    "AI_PROVIDER",
    "OPENAI_MODEL",
    "AI_MOCK_DELAY_MIN",
    "AI_MOCK_DELAY_MAX",
    "RATELIMIT_DEFAULT",
    "RATELIMIT_AUTH",
    "RATELIMIT_CREATE",
    "ATTACHMENT_MAX_BYTES",
    "ATTACHMENT_MIME_TYPES",
    "ACCESS_TOKEN_TTL_SECONDS",
)


def _grouped(column, where):
    return dict(db.session.execute(db.select(column, func.count()).where(where).group_by(column)).all())


@bp.get("/dashboard")
def dashboard():
    by_role = _grouped(User.role, User.is_deleted.is_(False))
    by_status = _grouped(Feedback.status, Feedback.is_deleted.is_(False))
    active_users = db.session.execute(
        db.select(func.count(User.id)).where(User.is_deleted.is_(False), User.is_active.is_(True))
    ).scalar_one()
    projects = db.session.execute(
        db.select(func.count(Project.id)).where(Project.is_deleted.is_(False))
    ).scalar_one()
    pending = db.session.execute(
        db.select(func.count(Feedback.id)).where(
            Feedback.is_deleted.is_(False), Feedback.needs_ai_regeneration.is_(True)
        )
    ).scalar_one()

    return jsonify(ok=True, data={
        "users": {
            "total": sum(by_role.values()),
            "active": active_users,
            "by_role": {r: by_role.get(r, 0) for r in ROLE_CHOICES},
        },
        "projects": {"total": projects},
        "feedback": {
            "total": sum(by_status.values()),
            "by_status": {s: by_status.get(s, 0) for s in STATUS_CHOICES},
            "pending_regeneration": pending,
        },
    })


@bp.post("/clear-rate-limits")
def clear_rate_limits():
    if current_app.config.get("RATELIMIT_ENABLED", True):
        limiter.reset()
    current_app.logger.warning(json.dumps({"event": "rate_limits_cleared", "by": current_user.id}))
    return jsonify(ok=True, message="Rate limits cleared")


@bp.get("/settings")
def settings():
    cfg = current_app.config
    data = {}
    for key in _PUBLIC_SETTINGS:
        val = cfg.get(key)
        data[key.lower()] = list(val) if isinstance(val, tuple) else val
    data["app_env"] = cfg.get("APP_ENV")
    data["openai_configured"] = bool(cfg.get("OPENAI_API_KEY"))
    return jsonify(ok=True, data=data)

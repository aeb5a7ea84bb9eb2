import json

from flask import request, jsonify, current_app
from flask_limiter.util import get_remote_address
from flask_login import login_user, logout_user, current_user
from flask_wtf.csrf import generate_csrf
from sqlalchemy import func

from app.extensions import db, limiter
from app.models.user import User
from app.services import tokens
from app.services.policy import login_required_json
from app.utils.validators import clean_str, clean_email, is_valid_email, is_strong_password, json_object
from app.errors import ValidationError, AuthenticationError, ConflictError
from . import bp


def _auth_limit():
    return current_app.config.get("RATELIMIT_AUTH", "10 per 5 minutes")


def _login_email_scope():
    data_json = request.get_json(silent=True)
    email = clean_email(data_json.get("email")) if isinstance(data_json, dict) else None
    # Keep a stable scope even if email is blank
    return f"login-email:{email or 'missing'}"


def _find_user_by_email(email: str):
    return db.session.execute(
        db.select(User).where(func.lower(User.email) == func.lower(email))
    ).scalar_one_or_none()


def _session_payload(user: User) -> dict:
    return {"user": user.to_dict(), **tokens.token_payload(user)}


@bp.post("/register")
@limiter.limit(_auth_limit, key_func=get_remote_address)
def register():
    data = json_object()
    email = clean_email(data.get("email"))
    password = data.get("password")
    first_name = clean_str(data.get("first_name"), max_len=50)
    last_name = clean_str(data.get("last_name"), max_len=50)

    errors = {}
    if not isinstance(data.get("email"), (str, type(None))):
        errors["email"] = "Email is invalid."
    elif not email:
        errors["email"] = "Email is required."
    elif not is_valid_email(email):
        errors["email"] = "Email is invalid."
    if not is_strong_password(password):
        errors["password"] = "Password must be at least 8 characters."
    if not first_name:
        errors["first_name"] = "First name is required."
    if not last_name:
        errors["last_name"] = "Last name is required."
    if errors:
        raise ValidationError(errors)

    # case-insensitive uniqueness check
    if _find_user_by_email(email):
        raise ConflictError("An account with that email already exists.")

    user = User(email=email, first_name=first_name, last_name=last_name)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    login_user(user)
    current_app.logger.info(json.dumps({"event": "user_registered", "user_id": user.id}))
    return jsonify(ok=True, data=_session_payload(user), message="Registered"), 201


@bp.post("/login")
@limiter.limit(_auth_limit, key_func=get_remote_address)            # per-IP
@limiter.limit("5 per minute; 20 per hour", key_func=_login_email_scope)  # per-account
def login():
    data = json_object()
    email = clean_email(data.get("email"))
    password = data.get("password")

    if not email or not isinstance(password, str) or not password:
        raise ValidationError({"__all__": "Email and password are required."})

    user = _find_user_by_email(email)
    if not user or user.is_deleted or not user.is_active or not user.check_password(password):
        current_app.logger.info(json.dumps({"event": "login_failed", "ip": request.remote_addr}))
        raise AuthenticationError("Invalid credentials")

    login_user(user)
    current_app.logger.info(json.dumps({"event": "login", "user_id": user.id}))
    return jsonify(ok=True, data=_session_payload(user))


@bp.post("/logout")
def logout():
    if current_user.is_authenticated:
        logout_user()
    return jsonify(ok=True, message="Logged out")


@bp.get("/me")
@login_required_json
def me():
    return jsonify(ok=True, data=current_user.to_dict())


@bp.post("/refresh")
@login_required_json
def refresh():
    return jsonify(ok=True, data=tokens.token_payload(current_user))


@bp.get("/csrf")
def csrf_token():
    token = generate_csrf()
    resp = jsonify(ok=True, data={"csrf_token": token})
    # keep tokens fresh; avoid caches holding stale tokens
    resp.headers["Cache-Control"] = "no-store"
    return resp

from typing import Optional
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired
from flask import current_app

from app.extensions import db, login_manager
from app.models.user import User

def _serializer() -> URLSafeTimedSerializer:
    secret = current_app.config["SECRET_KEY"]
    salt = current_app.config.get("ACCESS_TOKEN_SALT", "access-token-v1")
    return URLSafeTimedSerializer(secret_key=secret, salt=salt)

def generate(user: User) -> str:
    """
    Signed access token for `Authorization: Bearer <token>`.
    Carries the user id and role; role is informational only (the DB row wins).
    """
    return _serializer().dumps({"k": "access", "i": user.id, "r": user.role})

def verify(token: str, max_age_seconds: Optional[int] = None) -> Optional[int]:
    """User id from a valid, unexpired access token; None otherwise."""
    if max_age_seconds is None:
        max_age_seconds = int(current_app.config.get("ACCESS_TOKEN_TTL_SECONDS", 900))
    try:
        data = _serializer().loads(token, max_age=max_age_seconds)
    except (BadSignature, SignatureExpired):
        return None
    if not isinstance(data, dict) or data.get("k") != "access":
        return None
    try:
        return int(data.get("i"))
    except (TypeError, ValueError):
        return None

def token_payload(user: User) -> dict:
    return {
        "access_token": generate(user),
        "token_type": "Bearer",
        "expires_in": int(current_app.config.get("ACCESS_TOKEN_TTL_SECONDS", 900)),
    }

@login_manager.request_loader
def load_user_from_request(request):
    auth = request.headers.get("Authorization") or ""
    scheme, _, token = auth.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    user_id = verify(token.strip())
    if user_id is None:
        return None
    user = db.session.get(User, user_id)
    if user is None or not user.is_active or user.is_deleted:
        return None
    return user

"""
Application errors and the JSON error handlers that render them.

Views raise an ``AppError`` subclass; ``register_error_handlers`` turns it (and
the usual werkzeug HTTP errors) into ``{"ok": false, "error": <slug>, ...}``.
"""
from typing import Optional

from flask import current_app, jsonify
from flask_wtf.csrf import CSRFError
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from app.extensions import db

_SLUGS = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    413: "payload_too_large",
    415: "unsupported_media_type",
    429: "rate_limited",
    500: "server_error",
}


class AppError(Exception):
    status_code = 500
    code = "server_error"

    def __init__(self, message: str = "", status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        payload = {"ok": False, "error": self.code, "code": self.status_code}
        if self.message:
            payload["message"] = self.message
        return payload


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"

    def __init__(self, errors: dict, message: str = "Validation failed"):
        super().__init__(message)
        self.errors = errors

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["errors"] = self.errors
        return payload


class AuthenticationError(AppError):
    status_code = 401
    code = "unauthorized"


class AuthorizationError(AppError):
    status_code = 403
    code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class ConflictError(AppError):
    status_code = 409
    code = "conflict"


def error_response(status_code: int, message: Optional[str] = None, headers: Optional[dict] = None):
    payload = {"ok": False, "error": _SLUGS.get(status_code, "error"), "code": status_code}
    if message:
        payload["message"] = message
    return jsonify(payload), status_code, (headers or {})


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(e: AppError):
        if e.status_code >= 500:
            current_app.logger.exception("app_error")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(e):
        db.session.rollback()
        current_app.logger.warning("integrity_error: %s", getattr(e, "orig", e))
        return error_response(409, "A record with these values already exists")

    # CSRF error handler (clean 400 instead of generic 500)
    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        return error_response(400, f"CSRF validation failed: {e.description}")

    # 429 Too Many Requests with Retry-After
    @app.errorhandler(429)
    def too_many_requests(e):
        retry_after = getattr(e, "retry_after", None)
        headers = {}
        if retry_after is not None:
            headers["Retry-After"] = str(int(retry_after))
        return error_response(429, "Too many requests, try again later", headers)

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return error_response(e.code or 500, e.description)

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        db.session.rollback()
        current_app.logger.exception("unhandled_error")
        return error_response(500, "Internal Server Error")

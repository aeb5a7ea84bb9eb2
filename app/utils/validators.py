import re
from urllib.parse import urlparse

from flask import request

from app.errors import ValidationError

# Simple, pragmatic patterns
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

def clean_str(val, max_len: int = 255) -> str | None:
    """
    Collapse whitespace, trim, enforce max length. Returns None if empty after cleaning.
    """
    if val is None or not isinstance(val, str):
        return None
    s = re.sub(r"\s+", " ", val).strip()
    if not s:
        return None
    return s[:max_len]

def clean_text(val, max_len: int = 2000) -> str | None:
    """Like clean_str but keeps line breaks (feedback descriptions, comments)."""
    if val is None or not isinstance(val, str):
        return None
    s = val.strip()
    if not s:
        return None
    return s[:max_len]

def clean_email(val) -> str | None:
    """Trimmed, lower-cased email; None for blanks and non-strings."""
    if not isinstance(val, str):
        return None
    return val.strip().lower() or None

def too_long(val, max_len: int) -> bool:
    return isinstance(val, str) and len(val.strip()) > max_len

def is_valid_email(val: str | None) -> bool:
    if not val:
        return True
    return len(val) <= 255 and bool(_EMAIL_RE.match(val))

def is_valid_url(val: str | None) -> bool:
    """http(s) URL with a host; empty is valid (optional field)."""
    if not val:
        return True
    try:
        parts = urlparse(val)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)

def parse_choice(val, choices, default=None):
    """
    Case-insensitive membership check. Returns the canonical choice, `default`
    when empty, or raises ValueError when the value is not allowed.
    """
    if val is None or (isinstance(val, str) and not val.strip()):
        return default
    if not isinstance(val, str):
        raise ValueError("must be a string")
    v = val.strip().lower()
    if v not in choices:
        raise ValueError(f"must be one of: {', '.join(choices)}")
    return v

def parse_coordinates(val) -> dict | None:
    """
    {"x", "y", "viewport_width", "viewport_height"} with non-negative numbers.
    camelCase viewport keys are accepted. None/empty -> None; anything else -> ValueError.
    """
    if val is None or val == {}:
        return None
    if not isinstance(val, dict):
        raise ValueError("must be an object")
    aliases = {"viewport_width": "viewportWidth", "viewport_height": "viewportHeight"}
    out = {}
    for key in ("x", "y", "viewport_width", "viewport_height"):
        raw = val.get(key, val.get(aliases.get(key, key)))
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise ValueError(f"{key} must be a number")
        if raw < 0:
            raise ValueError(f"{key} must not be negative")
        out[key] = raw
    if out["viewport_width"] == 0 or out["viewport_height"] == 0:
        raise ValueError("viewport must be non-empty")
    return out

def parse_pagination(args) -> tuple[int, int]:
    """(page, limit) from query args; page >= 1, 1 <= limit <= MAX_PAGE_SIZE."""
    def _int(name, default):
        try:
            return int(args.get(name, default))
        except (TypeError, ValueError):
            return default
    page = max(_int("page", 1), 1)
    limit = min(max(_int("limit", DEFAULT_PAGE_SIZE), 1), MAX_PAGE_SIZE)
    return page, limit

def pagination_meta(page: int, limit: int, total: int) -> dict:
    pages = (total + limit - 1) // limit if total else 0
    return {"page": page, "limit": limit, "total": total, "pages": pages}

def is_strong_password(val: str | None) -> bool:
    return isinstance(val, str) and len(val) >= 8

def json_object() -> dict:
    """
    Request body as a dict. A missing or unparsable body reads as {};
    any other JSON value (list, string, number) is a validation error.
    """
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError({"__all__": "Payload must be a JSON object."})
    return data

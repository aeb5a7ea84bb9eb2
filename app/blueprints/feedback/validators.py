from typing import Any, Dict, Tuple

from app.models.feedback import SEVERITY_CHOICES, STATUS_CHOICES, DEFAULT_CATEGORY
from app.utils.validators import (
    clean_str,
    clean_text,
    clean_email,
    too_long,
    is_valid_email,
    parse_choice,
    parse_coordinates,
)

TITLE_MAX = 200
DESCRIPTION_MAX = 2000
CATEGORY_MAX = 50
SELECTOR_MAX = 500
AUTHOR_NAME_MAX = 100
COMMENT_MAX = 2000


def validate_feedback_payload(payload: Any, partial: bool = False) -> Tuple[Dict[str, Any], Dict[str, str]]:
    """
    Returns (values, errors). On create (partial=False) title and description
    are required; on update only the keys present are validated and returned.
    `status` is accepted on update only; author fields on create only.
    """
    if not isinstance(payload, dict):
        return {}, {"__all__": "Payload must be a JSON object."}

    values: Dict[str, Any] = {}
    errors: Dict[str, str] = {}

    def present(key: str) -> bool:
        return not partial or key in payload

    if present("title"):
        if too_long(payload.get("title"), TITLE_MAX):
            errors["title"] = f"Title must be at most {TITLE_MAX} characters."
        else:
            title = clean_str(payload.get("title"), max_len=TITLE_MAX)
            if not title:
                errors["title"] = "Title is required."
            values["title"] = title

    if present("description"):
        if too_long(payload.get("description"), DESCRIPTION_MAX):
            errors["description"] = f"Description must be at most {DESCRIPTION_MAX} characters."
        else:
            description = clean_text(payload.get("description"), max_len=DESCRIPTION_MAX)
            if not description:
                errors["description"] = "Description is required."
            values["description"] = description

    if "category" in payload:
        values["category"] = clean_str(payload.get("category"), max_len=CATEGORY_MAX) or DEFAULT_CATEGORY

    if "severity" in payload:
        try:
            severity = parse_choice(payload.get("severity"), SEVERITY_CHOICES)
        except ValueError as e:
            errors["severity"] = f"Severity {e}."
        else:
            if severity is not None:
                values["severity"] = severity

    if partial and "status" in payload:
        try:
            status = parse_choice(payload.get("status"), STATUS_CHOICES)
        except ValueError as e:
            errors["status"] = f"Status {e}."
        else:
            if status is not None:
                values["status"] = status

    if "coordinates" in payload:
        try:
            values["coordinates"] = parse_coordinates(payload.get("coordinates"))
        except ValueError as e:
            errors["coordinates"] = f"Coordinates: {e}."

    if "selector" in payload:
        if too_long(payload.get("selector"), SELECTOR_MAX):
            errors["selector"] = f"Selector must be at most {SELECTOR_MAX} characters."
        else:
            values["selector"] = clean_str(payload.get("selector"), max_len=SELECTOR_MAX)

    if not partial:
        raw_email = payload.get("author_email")
        author_email = clean_email(raw_email)
        if not isinstance(raw_email, (str, type(None))) or (author_email and not is_valid_email(author_email)):
            errors["author_email"] = "Email is invalid."
        values["author_email"] = author_email
        values["author_name"] = clean_str(payload.get("author_name"), max_len=AUTHOR_NAME_MAX)

    return values, errors


def validate_comment_payload(payload: Any) -> Tuple[Dict[str, Any], Dict[str, str]]:
    if not isinstance(payload, dict):
        return {}, {"__all__": "Payload must be a JSON object."}
    if too_long(payload.get("content"), COMMENT_MAX):
        return {}, {"content": f"Comment must be at most {COMMENT_MAX} characters."}
    content = clean_text(payload.get("content"), max_len=COMMENT_MAX)
    if not content:
        return {}, {"content": "Comment is required."}
    return {"content": content}, {}

from pathlib import Path
from typing import Optional, Tuple
from uuid import uuid4

from flask import current_app
from werkzeug.utils import secure_filename

# Leading bytes of the image formats accepted as attachments
_SIGNATURES = (
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


class UploadRejected(ValueError):
    pass


def upload_root() -> Path:
    # Fallback to <instance>/uploads if UPLOAD_FOLDER not configured
    base = current_app.config.get("UPLOAD_FOLDER")
    base = Path(base) if base else Path(current_app.instance_path) / "uploads"
    if not base.is_absolute():
        base = Path(current_app.root_path).parent / base
    base.mkdir(parents=True, exist_ok=True)
    return base


def sniff_mime(head: bytes) -> Optional[str]:
    for magic, mime in _SIGNATURES:
        if head.startswith(magic):
            return mime
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    return None


def save_attachment(file_storage, feedback_id: int) -> Tuple[str, str, str, int]:
    """
    Validate and store an uploaded image under UPLOAD_FOLDER/feedback/<id>/.
    Returns (relative_path, original_name, mime_type, size).
    The type comes from the file's bytes, not the client's Content-Type.
    """
    original = (file_storage.filename or "").strip()
    if not original:
        raise UploadRejected("No file selected")

    data = file_storage.stream.read()
    size = len(data)
    if size == 0:
        raise UploadRejected("File is empty")
    max_bytes = int(current_app.config.get("ATTACHMENT_MAX_BYTES", 5 * 1024 * 1024))
    if size > max_bytes:
        raise UploadRejected(f"File exceeds {max_bytes // (1024 * 1024)} MB")

    mime = sniff_mime(data[:16])
    allowed = current_app.config.get("ATTACHMENT_MIME_TYPES") or tuple(_EXTENSIONS)
    if mime is None or mime not in allowed:
        raise UploadRejected("Only JPEG, PNG, GIF and WebP images are allowed")

    stem = Path(secure_filename(original) or "upload").stem[:80] or "upload"
    name = f"{uuid4().hex}_{stem}{_EXTENSIONS[mime]}"
    rel = Path("feedback") / str(feedback_id) / name
    dest = upload_root() / rel
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(data)
    return rel.as_posix(), original[:255], mime, size


def resolve(rel_path: str) -> Path:
    """Absolute path of a stored attachment; refuses paths escaping the upload root."""
    root = upload_root().resolve()
    path = (root / rel_path).resolve()
    if root not in path.parents:
        raise UploadRejected("Invalid attachment path")
    return path

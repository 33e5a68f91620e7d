"""
File storage for trip cover images and avatars.

Files live under UPLOAD_DIR/<bucket>/<path> and are served back by the
/files router, so the public URL is PUBLIC_BASE_URL/files/<bucket>/<path>.
"""
from pathlib import Path
from typing import Optional

from config import UPLOAD_DIR, PUBLIC_BASE_URL, MAX_UPLOAD_BYTES
from services.exceptions import ValidationError
from utils.logger import get_logger

logger = get_logger(__name__)

BUCKETS = {"trips", "avatars"}
ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}
EXTENSION_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}


def upload_root() -> Path:
    return Path(UPLOAD_DIR)


def guess_content_type(filename: Optional[str]) -> Optional[str]:
    if not filename or "." not in filename:
        return None
    return EXTENSION_TYPES.get(filename.lower().rsplit(".", 1)[-1])


def file_extension(filename: Optional[str], content_type: Optional[str]) -> str:
    """Extension to store a file under, from its name or else its type."""
    if filename and "." in filename:
        ext = filename.lower().rsplit(".", 1)[-1]
        if ext in EXTENSION_TYPES:
            return ext
    for ext, ctype in EXTENSION_TYPES.items():
        if ctype == content_type:
            return ext
    return "bin"


def resolve_path(bucket: str, path: str) -> Path:
    """Absolute location of bucket/path on disk; rejects paths escaping the bucket."""
    if bucket not in BUCKETS:
        raise ValidationError(f"Unknown bucket: {bucket}")
    bucket_dir = (upload_root() / bucket).resolve()
    target = (bucket_dir / path).resolve()
    if bucket_dir != target and bucket_dir not in target.parents:
        raise ValidationError("Invalid file path")
    return target


def public_url(bucket: str, path: str) -> str:
    return f"{PUBLIC_BASE_URL}/files/{bucket}/{path}"


def upload_file(bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> str:
    """
    Store `data` at bucket/path, replacing any previous file, and return its public URL.

    Only images up to MAX_UPLOAD_BYTES are accepted.
    """
    content_type = content_type or guess_content_type(path)
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationError(
            f"File type not allowed. Allowed: jpg, png, gif, webp. Got: {content_type or 'unknown'}"
        )
    if not data:
        raise ValidationError("File is empty")
    if len(data) > MAX_UPLOAD_BYTES:
        raise ValidationError(f"File too large. Maximum size: {MAX_UPLOAD_BYTES / (1024 * 1024):.1f} MB")

    target = resolve_path(bucket, path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "wb") as buffer:
        buffer.write(data)

    logger.info("Stored %s/%s (%d bytes)", bucket, path, len(data))
    return public_url(bucket, path)

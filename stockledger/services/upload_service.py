import base64
import binascii
import logging
import pathlib
import re
import time

from stockledger.config import settings
from stockledger.errors import UploadFailureError

logger = logging.getLogger(__name__)

_DATA_URL = re.compile(r"^data:(?P<type>[\w.+/-]+)?(;[\w=-]+)*;base64,", re.IGNORECASE)
_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def _safe_name(file_name: str) -> str:
    name = _UNSAFE.sub("_", pathlib.Path(file_name or "upload").name).strip("._")
    return name or "upload"


def store_image(payload: str | None, file_name: str = "", content_type: str = "") -> str:
    """Persist a base64 (or ``data:`` URL) payload under UPLOAD_DIR and return its public URL.

    An empty payload is not an error: the placeholder image URL is returned.
    """
    if not payload:
        return settings.PLACEHOLDER_IMAGE_URL

    match = _DATA_URL.match(payload)
    if match:
        content_type = content_type or (match.group("type") or "")
        payload = payload[match.end():]

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise UploadFailureError(f"Could not decode image payload: {e}") from e

    stored_name = f"{int(time.time() * 1000)}_{_safe_name(file_name)}"
    upload_dir = pathlib.Path(settings.UPLOAD_DIR)
    try:
        upload_dir.mkdir(parents=True, exist_ok=True)
        (upload_dir / stored_name).write_bytes(data)
    except OSError as e:
        logger.error("Image upload failed for %s: %s", file_name, e)
        raise UploadFailureError(f"Could not store image: {e}") from e

    logger.info("Stored image %s (%s, %d bytes)", stored_name, content_type or "unknown type", len(data))
    return f"{settings.BASE_URL.rstrip('/')}/uploads/{stored_name}"

# app/services/photo_service.py
"""
Stores the visitor photo captured at the front desk.
Saves to: <UPLOAD_DIR>/{epoch_ms}-{original_name}
Only image/* uploads are accepted, up to MAX_PHOTO_BYTES.
"""

import os
import re
import time
from typing import Optional

from app.exceptions import ValidationError
from app.utils.logger import get_logger

logger = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(filename: Optional[str]) -> str:
    name = os.path.basename(filename or "") or "photo"
    return _UNSAFE_CHARS.sub("_", name)


def store_photo(data: bytes, filename: Optional[str], content_type: Optional[str],
                upload_dir: str, max_bytes: int) -> str:
    """Validate and save an uploaded photo. Returns the stored path."""
    if not (content_type or "").startswith("image/"):
        raise ValidationError("Only image files are allowed!", fields={"photo": "must be an image"})
    if len(data) > max_bytes:
        raise ValidationError("Photo is too large", fields={"photo": f"must be at most {max_bytes} bytes"})

    os.makedirs(upload_dir, exist_ok=True)
    path = os.path.join(upload_dir, f"{int(time.time() * 1000)}-{safe_filename(filename)}")
    with open(path, "wb") as f:
        f.write(data)
    logger.info(f"[PHOTO] Saved {path} ({len(data)} bytes)")
    return path


def discard_photo(path: Optional[str]):
    """Remove a stored photo whose visitor record was never written."""
    if not path:
        return
    try:
        os.remove(path)
        logger.info(f"[PHOTO] Discarded {path}")
    except OSError as e:
        logger.warning(f"[PHOTO] Could not discard {path}: {e}")

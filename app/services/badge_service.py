# app/services/badge_service.py
"""
Badge code generator — renders the visitor's approval URL as a QR code PNG.
Saves to: <UPLOAD_DIR>/qr-{visitor_id}.png
"""

import os
from typing import Callable

import qrcode

from app.exceptions import BadgeGenerationError
from app.utils.logger import get_logger

logger = get_logger(__name__)


class BadgeGenerator:
    def __init__(self, output_dir: str, url_for: Callable[[int], str]):
        self.output_dir = output_dir
        self.url_for = url_for

    def generate(self, visitor_id: int) -> str:
        """Write the QR image and return its path. Raises BadgeGenerationError."""
        url = self.url_for(visitor_id)
        path = os.path.join(self.output_dir, f"qr-{visitor_id}.png")
        try:
            qr = qrcode.QRCode(version=1, error_correction=qrcode.constants.ERROR_CORRECT_L,
                               box_size=10, border=4)
            qr.add_data(url)
            qr.make(fit=True)
            img = qr.make_image(fill_color="black", back_color="white")
            os.makedirs(self.output_dir, exist_ok=True)
            img.save(path)
        except (OSError, ValueError) as e:
            raise BadgeGenerationError(f"QR code generation failed for visitor {visitor_id}: {e}") from e
        logger.info(f"[BADGE] Saved {path} → {url}")
        return path

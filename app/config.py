# app/config.py
"""
Application configuration using Pydantic-Settings.
All settings can be overridden via environment variables or .env file.
"""

import os
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # ── Database ──────────────────────────────────────────────────────────
    DATABASE_URL: str = "sqlite:///./data/visitors.db"

    # ── Network ───────────────────────────────────────────────────────────
    BACKEND_HOST: str = "0.0.0.0"
    BACKEND_PORT: int = 3000
    API_PREFIX: str = "/api"
    BASE_URL: str = "http://localhost:3000"   # Externally visible, used in emails + QR codes

    # ── Uploads ───────────────────────────────────────────────────────────
    UPLOAD_DIR: str = "uploads"
    MAX_PHOTO_BYTES: int = 5 * 1024 * 1024

    # ── Email (SMTP) ──────────────────────────────────────────────────────
    EMAIL_HOST: str = "smtp.gmail.com"
    EMAIL_PORT: int = 587
    EMAIL_SECURE: bool = False           # True = implicit TLS, False = STARTTLS when offered
    EMAIL_USER: Optional[str] = None
    EMAIL_PASS: Optional[str] = None
    EMAIL_FROM: str = "visitor-system@example.com"
    EMAIL_TIMEOUT: int = 30
    EMAIL_TLS_VERIFY: bool = True        # Set False for self-signed SMTP certificates
    HR_EMAIL: Optional[str] = None
    HOST_EMAIL_DOMAIN: str = "example.com"

    # ── Background work + dashboard push ──────────────────────────────────
    SIDE_EFFECT_WORKERS: int = 4
    SUBSCRIBER_QUEUE_SIZE: int = 16
    SSE_KEEPALIVE_SECONDS: float = 15.0

    # ── Approval expiry (0 = disabled) ────────────────────────────────────
    APPROVAL_EXPIRY_HOURS: int = 0
    EXPIRY_SWEEP_INTERVAL_SECONDS: int = 300

    # ── Logging ───────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    def approval_url(self, visitor_id: int) -> str:
        return f"{self.BASE_URL.rstrip('/')}{self.API_PREFIX}/visitors/{visitor_id}/approve"

    def public_upload_url(self, path: Optional[str]) -> Optional[str]:
        if not path:
            return None
        return f"{self.BASE_URL.rstrip('/')}/uploads/{os.path.basename(path)}"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()

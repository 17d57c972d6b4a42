# app/routers/notifications.py
"""GET /test-email — sends a test message to HR_EMAIL to check SMTP settings."""

from html import escape

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

from app.config import settings
from app.exceptions import NotificationError
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.get("/test-email", response_class=HTMLResponse, summary="Send an SMTP test email")
def test_email(request: Request):
    to = settings.HR_EMAIL or "test@example.com"
    try:
        request.app.state.notifier.send_test(to)
    except NotificationError as e:
        logger.error(f"Email test failed: {e.message}")
        return HTMLResponse(
            "<h1>Email Test Failed</h1>"
            "<p>Check the EMAIL_* settings in your .env file and the server log.</p>",
            status_code=500,
        )
    return HTMLResponse(f"<h1>Email Test Successful</h1><p>Message sent to: {escape(to)}</p>")

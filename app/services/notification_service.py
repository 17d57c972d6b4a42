# app/services/notification_service.py
"""
Approval email notifier (SMTP).

Sends one approval request to HR and one to the visitor's host. Each
recipient is attempted independently and reported separately; a failure is
logged here and never raised to the caller.
Host mailbox: "John Smith" → john.smith@<HOST_EMAIL_DOMAIN>.
"""

import re
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from html import escape
from typing import Dict, Optional

from app.config import Settings
from app.exceptions import NotificationError
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ApprovalRequest:
    visitor_id: int
    full_name: str
    contact_number: str
    department_visiting: str
    person_to_visit: str
    approval_url: str
    photo_url: Optional[str] = None
    expiry_hours: int = 0


def host_email_address(person_to_visit: str, domain: str) -> str:
    local = re.sub(r"\s+", ".", person_to_visit.strip().lower())
    return f"{local}@{domain}"


def build_approval_message(req: ApprovalRequest, sender: str) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = f"APPROVAL REQUIRED: {req.full_name} visiting {req.person_to_visit}"
    msg["From"] = f'"Visitor System" <{sender}>'

    expiry_note = ""
    if req.expiry_hours:
        expiry_note = (f"This approval expires in {req.expiry_hours} hours. "
                       f"The visitor will be checked out automatically if not approved.")

    msg.set_content(
        f"Visitor approval required\n\n"
        f"Visitor:  {req.full_name}\n"
        f"Contact:  {req.contact_number}\n"
        f"Visiting: {req.department_visiting} ({req.person_to_visit})\n\n"
        f"Approve: {req.approval_url}\n"
        + (f"\n{expiry_note}\n" if expiry_note else "")
    )

    photo_html = ""
    if req.photo_url:
        photo_html = (f'<img src="{escape(req.photo_url)}" alt="Visitor photo" '
                      f'style="max-width: 200px; margin: 10px 0;">')
    expiry_html = ""
    if expiry_note:
        expiry_html = f'<p style="font-size: 12px; color: #7f8c8d;">{escape(expiry_note)}</p>'

    msg.add_alternative(f"""
      <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2 style="color: #2c3e50;">Visitor Approval Required</h2>
        <div style="background: #f8f9fa; padding: 20px; border-radius: 8px;">
          <p><strong>Visitor:</strong> {escape(req.full_name)}</p>
          <p><strong>Contact:</strong> {escape(req.contact_number)}</p>
          <p><strong>Visiting:</strong> {escape(req.department_visiting)} ({escape(req.person_to_visit)})</p>
          {photo_html}
        </div>
        <div style="margin: 25px 0; text-align: center;">
          <a href="{escape(req.approval_url)}"
             style="background-color: #2ecc71; color: white; padding: 12px 24px;
                    text-decoration: none; border-radius: 4px; font-weight: bold;">
            APPROVE VISITOR
          </a>
        </div>
        {expiry_html}
      </div>
    """, subtype="html")
    return msg


class SmtpNotifier:
    def __init__(self, settings: Settings):
        self.settings = settings

    def _connect(self) -> smtplib.SMTP:
        s = self.settings
        context = ssl.create_default_context()
        if not s.EMAIL_TLS_VERIFY:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        if s.EMAIL_SECURE:
            smtp = smtplib.SMTP_SSL(s.EMAIL_HOST, s.EMAIL_PORT, timeout=s.EMAIL_TIMEOUT, context=context)
        else:
            smtp = smtplib.SMTP(s.EMAIL_HOST, s.EMAIL_PORT, timeout=s.EMAIL_TIMEOUT)
        try:
            if not s.EMAIL_SECURE:
                smtp.ehlo()
                if smtp.has_extn("starttls"):
                    smtp.starttls(context=context)
                    smtp.ehlo()
            if s.EMAIL_USER and s.EMAIL_PASS:
                smtp.login(s.EMAIL_USER, s.EMAIL_PASS)
        except Exception:
            smtp.close()
            raise
        return smtp

    def _deliver(self, msg: EmailMessage, to: str):
        """Send one message. Raises NotificationError on any transport failure."""
        del msg["To"]
        msg["To"] = to
        try:
            with self._connect() as smtp:
                smtp.send_message(msg)
        except smtplib.SMTPAuthenticationError as e:
            raise NotificationError(f"SMTP authentication failed for {to}: {e}") from e
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(f"SMTP delivery to {to} failed: {e}") from e

    def recipients_for(self, person_to_visit: str) -> Dict[str, Optional[str]]:
        return {
            "hr": self.settings.HR_EMAIL,
            "host": host_email_address(person_to_visit, self.settings.HOST_EMAIL_DOMAIN),
        }

    def send_approval_request(self, req: ApprovalRequest) -> Dict[str, bool]:
        """Email HR and the host. Returns {"hr": ok, "host": ok}."""
        msg = build_approval_message(req, self.settings.EMAIL_FROM)
        results = {}
        for role, address in self.recipients_for(req.person_to_visit).items():
            if not address:
                logger.warning(f"[EMAIL] No {role} address configured — visitor {req.visitor_id} not sent to {role}")
                results[role] = False
                continue
            try:
                self._deliver(msg, address)
                logger.info(f"[EMAIL] Approval request for visitor {req.visitor_id} sent to {role} <{address}>")
                results[role] = True
            except NotificationError as e:
                logger.error(f"[EMAIL] {e.message}")
                results[role] = False
        return results

    def send_test(self, to: str):
        msg = EmailMessage()
        msg["Subject"] = "Visitor System Email Test"
        msg["From"] = f'"Visitor System Test" <{self.settings.EMAIL_FROM}>'
        msg.set_content("This is a test email from your visitor management system")
        msg.add_alternative("<b>Success!</b> Your email system is working correctly.", subtype="html")
        self._deliver(msg, to)
        logger.info(f"[EMAIL] Test message sent to {to}")

    def verify(self) -> bool:
        """Open and close a connection. Logs the outcome; used once at startup."""
        try:
            with self._connect() as smtp:
                smtp.noop()
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"[EMAIL] Email server connection failed: {e}")
            return False
        logger.info("[EMAIL] Email server is ready to send messages")
        return True

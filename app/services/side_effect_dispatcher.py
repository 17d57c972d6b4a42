# app/services/side_effect_dispatcher.py
"""
Fire-and-forget work that follows a registration: QR badge and approval email.

Both jobs are submitted to an executor as independent work items and run
after the registering request has already returned. Each job uses its own
DB session. Failures end that attempt, are logged, and are never joined back
into the caller's result. No retry.
"""

from concurrent.futures import Executor
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import Settings
from app.exceptions import BadgeGenerationError
from app.models.visitor import Visitor
from app.services.badge_service import BadgeGenerator
from app.services.notification_service import ApprovalRequest, SmtpNotifier
from app.utils.logger import get_logger

logger = get_logger(__name__)


class SideEffectDispatcher:
    def __init__(self, executor: Executor, session_factory: Callable[[], Session],
                 notifier: SmtpNotifier, badge_generator: BadgeGenerator, settings: Settings):
        self.executor = executor
        self.session_factory = session_factory
        self.notifier = notifier
        self.badge_generator = badge_generator
        self.settings = settings

    def dispatch_registration(self, visitor_id: int):
        self.submit(self.issue_badge, visitor_id)
        self.submit(self.send_approval_emails, visitor_id)

    def submit(self, job, *args):
        self.executor.submit(self._run_logged, job, *args)

    @staticmethod
    def _run_logged(job, *args):
        try:
            job(*args)
        except Exception as e:
            logger.error(f"Background job {job.__name__}{args} failed: {e}", exc_info=True)

    def issue_badge(self, visitor_id: int) -> Optional[str]:
        try:
            path = self.badge_generator.generate(visitor_id)
        except BadgeGenerationError as e:
            logger.error(f"[BADGE] {e.message}")
            return None

        db = self.session_factory()
        try:
            visitor = db.get(Visitor, visitor_id)
            if visitor is None:
                logger.warning(f"[BADGE] Visitor {visitor_id} vanished before QR path was stored")
                return path
            visitor.qr_code_path = path
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[BADGE] Could not store QR path for visitor {visitor_id}: {e}")
        finally:
            db.close()
        return path

    def send_approval_emails(self, visitor_id: int) -> dict:
        db = self.session_factory()
        try:
            visitor = db.get(Visitor, visitor_id)
            if visitor is None:
                logger.warning(f"[EMAIL] Visitor {visitor_id} not found — nothing to send")
                return {}
            req = ApprovalRequest(
                visitor_id=visitor.id,
                full_name=visitor.full_name,
                contact_number=visitor.contact_number,
                department_visiting=visitor.department_visiting,
                person_to_visit=visitor.person_to_visit,
                approval_url=self.settings.approval_url(visitor.id),
                photo_url=self.settings.public_upload_url(visitor.photo_path),
                expiry_hours=self.settings.APPROVAL_EXPIRY_HOURS,
            )
            results = self.notifier.send_approval_request(req)
            if results and all(results.values()):
                visitor.email_sent = True
                db.commit()
            else:
                logger.warning(f"[EMAIL] Visitor {visitor_id} notification incomplete: {results}")
            return results
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[EMAIL] Could not update visitor {visitor_id}: {e}")
            return {}
        finally:
            db.close()

    def verify_transport(self):
        self.submit(self.notifier.verify)

    def shutdown(self):
        self.executor.shutdown(wait=False)

# app/services/visitor_service.py
"""
Visitor lifecycle: register → (approve) → release → security checkout.

Per record:  Active(unapproved|approved) → Released(unsecured) → Released(secured)
  - approve is a side flag, settable in any state, and does not gate release
  - release sets out_time once; repeating it is a no-op
  - security checkout requires a released visitor; repeating it is a no-op
No transition removes a record and none is reversible.

Every mutation commits one row. Release and security checkout are conditional
UPDATEs, so overlapping requests cannot overwrite a timestamp already set.
Both wake the dashboard broadcaster; registration hands badge + email to the dispatcher.
"""

from datetime import datetime
from typing import List, Optional, Union

from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.exceptions import InvalidTransitionError, NotFoundError, StorageError
from app.models.visitor import Visitor, VisitorStatus
from app.schemas.visitor import VisitorRegistration, VisitorStats
from app.services.broadcaster import UpdateBroadcaster
from app.utils.logger import get_logger

logger = get_logger(__name__)


class VisitorLifecycle:
    def __init__(self, db: Session, broadcaster: UpdateBroadcaster, dispatcher=None):
        self.db = db
        self.broadcaster = broadcaster
        self.dispatcher = dispatcher

    def _commit(self, action: str):
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"{action} failed: {e}", exc_info=True)
            raise StorageError(f"{action} failed") from e

    def get(self, visitor_id: int) -> Visitor:
        try:
            visitor = self.db.get(Visitor, visitor_id)
        except SQLAlchemyError as e:
            logger.error(f"Lookup of visitor {visitor_id} failed: {e}", exc_info=True)
            raise StorageError("Visitor lookup failed") from e
        if visitor is None:
            raise NotFoundError(visitor_id)
        return visitor

    def register(self, registration: Union[VisitorRegistration, dict],
                 photo_path: Optional[str] = None) -> int:
        """Persist a new visitor and kick off badge + email. Returns the new id."""
        if not isinstance(registration, VisitorRegistration):
            registration = VisitorRegistration.parse(registration)

        visitor = Visitor(
            full_name=registration.full_name,
            contact_number=registration.contact_number,
            department_visiting=registration.department_visiting,
            person_to_visit=registration.person_to_visit,
            in_time=datetime.now(),
            photo_path=photo_path,
        )
        self.db.add(visitor)
        self._commit("Visitor registration")
        logger.info(f"[REGISTER] Visitor {visitor.id} {visitor.full_name} → "
                    f"{visitor.person_to_visit} ({visitor.department_visiting})")

        if self.dispatcher is not None:
            self.dispatcher.dispatch_registration(visitor.id)
        return visitor.id

    def approve(self, visitor_id: int) -> Visitor:
        visitor = self.get(visitor_id)
        if visitor.approved:
            return visitor
        visitor.approved = True
        self._commit(f"Approval of visitor {visitor_id}")
        logger.info(f"[APPROVE] Visitor {visitor_id} approved")
        return visitor

    def _update_where(self, visitor_id: int, condition, values: dict, action: str) -> bool:
        """Single conditional UPDATE. True when this call changed the row."""
        try:
            changed = (self.db.query(Visitor)
                       .filter(Visitor.id == visitor_id, condition)
                       .update(values, synchronize_session=False))
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"{action} failed: {e}", exc_info=True)
            raise StorageError(f"{action} failed") from e
        self._commit(action)
        return changed == 1

    def release(self, visitor_id: int) -> Visitor:
        changed = self._update_where(
            visitor_id, Visitor.out_time == None, {Visitor.out_time: datetime.now()},
            f"Release of visitor {visitor_id}",
        )
        visitor = self.get(visitor_id)
        if not changed:
            logger.info(f"[RELEASE] Visitor {visitor_id} already released at {visitor.out_time}")
            return visitor
        logger.info(f"[RELEASE] Visitor {visitor_id} released (approved={visitor.approved})")
        self.broadcaster.publish()
        return visitor

    def confirm_security(self, visitor_id: int) -> Visitor:
        changed = self._update_where(
            visitor_id,
            (Visitor.out_time != None) & (Visitor.security_confirmed == False),
            {Visitor.security_confirmed: True, Visitor.security_out_time: datetime.now()},
            f"Security checkout of visitor {visitor_id}",
        )
        visitor = self.get(visitor_id)
        if not changed:
            if visitor.out_time is None:
                raise InvalidTransitionError(f"Visitor {visitor_id} has not been released yet")
            return visitor
        logger.info(f"[SECURITY] Visitor {visitor_id} checkout confirmed")
        self.broadcaster.publish()
        return visitor

    def list(self, status: Optional[VisitorStatus] = None,
             since: Optional[datetime] = None) -> List[Visitor]:
        """Visitors matching `status` (and in_time >= since), newest first."""
        q = self.db.query(Visitor)
        if status == VisitorStatus.ACTIVE:
            q = q.filter(Visitor.out_time == None)
        elif status == VisitorStatus.RELEASED:
            q = q.filter(Visitor.out_time != None, Visitor.security_confirmed == True)
        elif status == VisitorStatus.SECURITY_PENDING:
            q = q.filter(Visitor.out_time != None, Visitor.security_confirmed == False)
        if since is not None:
            q = q.filter(Visitor.in_time >= since)
        try:
            return q.order_by(Visitor.in_time.desc(), Visitor.id.desc()).all()
        except SQLAlchemyError as e:
            logger.error(f"Visitor listing failed: {e}", exc_info=True)
            raise StorageError("Visitor listing failed") from e

    def stats(self) -> VisitorStats:
        released = Visitor.out_time != None
        try:
            total, active, secured, pending = self.db.query(
                func.count(Visitor.id),
                func.sum(case((Visitor.out_time == None, 1), else_=0)),
                func.sum(case((released & (Visitor.security_confirmed == True), 1), else_=0)),
                func.sum(case((released & (Visitor.security_confirmed == False), 1), else_=0)),
            ).one()
        except SQLAlchemyError as e:
            logger.error(f"Visitor stats failed: {e}", exc_info=True)
            raise StorageError("Visitor stats failed") from e
        return VisitorStats(total=total or 0, active=active or 0,
                            secured=secured or 0, security_pending=pending or 0)

# app/services/expiry_service.py
"""
Approval expiry sweep (opt-in via APPROVAL_EXPIRY_HOURS > 0).

Visitors still on premises and never approved are checked out automatically
once their in_time is older than the limit. Release goes through the
lifecycle, so dashboards are woken the same way as a manual release.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from app.exceptions import VisitorSystemError
from app.models.visitor import Visitor
from app.services.broadcaster import UpdateBroadcaster
from app.services.visitor_service import VisitorLifecycle
from app.utils.logger import get_logger

logger = get_logger(__name__)


def expire_unapproved(db: Session, broadcaster: UpdateBroadcaster, max_age: timedelta,
                      now: Optional[datetime] = None) -> List[int]:
    """Release every expired, unapproved, active visitor. Returns the released ids."""
    cutoff = (now or datetime.now()) - max_age
    expired_ids = [
        row.id for row in db.query(Visitor.id).filter(
            Visitor.out_time == None,
            Visitor.approved == False,
            Visitor.in_time < cutoff,
        ).all()
    ]
    lifecycle = VisitorLifecycle(db, broadcaster)
    released = []
    for visitor_id in expired_ids:
        try:
            lifecycle.release(visitor_id)
            released.append(visitor_id)
        except VisitorSystemError as e:
            logger.error(f"[EXPIRY] Could not auto-checkout visitor {visitor_id}: {e.message}")
    if released:
        logger.info(f"[EXPIRY] Auto-checked-out {len(released)} unapproved visitor(s): {released}")
    return released


def _sweep_once(session_factory: Callable[[], Session], broadcaster: UpdateBroadcaster,
                max_age: timedelta) -> List[int]:
    db = session_factory()
    try:
        return expire_unapproved(db, broadcaster, max_age)
    finally:
        db.close()


async def run_expiry_sweep(session_factory: Callable[[], Session], broadcaster: UpdateBroadcaster,
                           expiry_hours: int, interval_seconds: int):
    """Loops forever; started once at startup and cancelled at shutdown."""
    max_age = timedelta(hours=expiry_hours)
    logger.info(f"⏱  Approval expiry sweep every {interval_seconds}s (limit {expiry_hours}h)")
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(_sweep_once, session_factory, broadcaster, max_age)
        except Exception as e:
            logger.error(f"[EXPIRY] Sweep failed: {e}", exc_info=True)

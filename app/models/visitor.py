# app/models/visitor.py
"""
Visitors table — one row per visit, from front-desk registration through
approval, release and security confirmation.
Status (active / security-pending / released) is derived, never stored.
"""

import enum
from datetime import datetime
from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String
from app.database import Base


class VisitorStatus(str, enum.Enum):
    ACTIVE = "active"
    SECURITY_PENDING = "security-pending"
    RELEASED = "released"

    @property
    def label(self) -> str:
        return {"active": "Active", "security-pending": "Security Pending", "released": "Released"}[self.value]


class Visitor(Base):
    __tablename__ = "visitors"
    __table_args__ = (
        # SQLite GLOB; other backends rely on the service-level check
        CheckConstraint(
            "contact_number <> '' AND contact_number NOT GLOB '*[^0-9]*'",
            name="chk_contact_digits",
        ).ddl_if(dialect="sqlite"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(200), nullable=False)
    contact_number = Column(String(30), nullable=False)
    department_visiting = Column(String(100), nullable=False)
    person_to_visit = Column(String(200), nullable=False)
    in_time = Column(DateTime, nullable=False, default=datetime.now, index=True)
    out_time = Column(DateTime)                      # null = still on premises
    approved = Column(Boolean, default=False, nullable=False)
    security_confirmed = Column(Boolean, default=False, nullable=False)
    security_out_time = Column(DateTime)
    photo_path = Column(String(500))
    qr_code_path = Column(String(500))
    email_sent = Column(Boolean, default=False, nullable=False)

    @property
    def status(self) -> VisitorStatus:
        if self.out_time is None:
            return VisitorStatus.ACTIVE
        if self.security_confirmed:
            return VisitorStatus.RELEASED
        return VisitorStatus.SECURITY_PENDING

    def __repr__(self):
        return f"<Visitor {self.id} name={self.full_name} out={self.out_time}>"

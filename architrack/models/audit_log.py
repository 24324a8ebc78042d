"""
Audit Log model for tracking itemized statement lifecycle events.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, Enum as SQLEnum
from datetime import datetime, timezone
import enum

from architrack.database import Base


class AuditAction(enum.Enum):
    """Enumeration of auditable actions."""
    ITEMIZED_STATEMENT_CREATED = "ITEMIZED_STATEMENT_CREATED"
    ITEMIZED_STATEMENT_DELETED = "ITEMIZED_STATEMENT_DELETED"


def _utc_now():
    return datetime.now(timezone.utc)


class AuditLog(Base):
    """
    Audit log for tracking user actions.
    ``before``/``after`` hold JSON snapshots of the affected resource.
    """
    __tablename__ = 'audit_log'

    id = Column(Integer, primary_key=True)
    actor_id = Column(String(64), nullable=True, index=True)
    action = Column(SQLEnum(AuditAction), nullable=False, index=True)
    target_type = Column(String(50), nullable=False)
    target_id = Column(Integer, nullable=False)
    before = Column(Text)
    after = Column(Text)
    ip_address = Column(String(45))  # IPv4 or IPv6
    user_agent = Column(String(255))
    created_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog {self.action.value} by {self.actor_id} on {self.target_type} {self.target_id}>"

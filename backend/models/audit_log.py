# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""AuditLog ORM model – tracks sign-ins, recovery events and user administration."""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func

from database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Who performed the action (NULL for anonymous recovery requests and API-key calls)
    actor_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    target_user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    action = Column(String(64), nullable=False, index=True)   # e.g. "password_reset"
    detail = Column(Text, nullable=True)
    request_ip = Column(String(45), nullable=True)            # IPv6-sized
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""User ORM model."""

import uuid

from sqlalchemy import Column, String, Text, Enum, DateTime, Index, text
from sqlalchemy.sql import func

from database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    # passlib pbkdf2_sha256 string; the salt is embedded in it
    password = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    celular = Column(String(32), nullable=True)
    # Identifier in the messaging platform (WhatsApp contact id etc.)
    external_id = Column(String(255), nullable=True)
    role = Column(Enum("admin", "client", name="user_role"), nullable=False, default="client")
    avatar = Column(Text, nullable=True)
    status = Column(Enum("active", "inactive", name="user_status"), nullable=False, default="active")
    last_active = Column(DateTime(timezone=True), server_default=func.now(), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    # Both set by forgot-password, both cleared on reset or expiry detection.
    reset_token = Column(String(64), nullable=True, index=True)
    reset_token_expiry = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        # Unique only when present; blank strings are normalised to NULL on write.
        Index(
            "unique_external_id",
            "external_id",
            unique=True,
            postgresql_where=text("external_id IS NOT NULL"),
            sqlite_where=text("external_id IS NOT NULL"),
        ),
    )

    def set_reset_token(self, token: str, expiry) -> None:
        self.reset_token = token
        self.reset_token_expiry = expiry

    def clear_reset_token(self) -> None:
        self.reset_token = None
        self.reset_token_expiry = None

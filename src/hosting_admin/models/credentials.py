"""SQLAlchemy models for login credentials: one-time codes and sessions."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from hosting_admin.models.base import Base, utcnow


class OneTimeCode(Base):
    """A hashed 6-digit login code awaiting verification.

    Only the SHA-256 hex digest of the code is stored.  At most one row
    exists per ``subject_email``; issuing a new code deletes older ones.
    """

    __tablename__ = "one_time_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subject_email: Mapped[str] = mapped_column(String(256), nullable=False)
    code_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_one_time_codes_subject_email", "subject_email"),
        Index("ix_one_time_codes_code_hash", "code_hash"),
    )

    def __repr__(self) -> str:
        return f"<OneTimeCode id={self.id} email={self.subject_email!r}>"


class AdminSession(Base):
    """A server-side login session, keyed by the hash of an opaque token."""

    __tablename__ = "admin_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subject_email: Mapped[str] = mapped_column(String(256), nullable=False)
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    remember_me: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_admin_sessions_subject_email", "subject_email"),)

    def __repr__(self) -> str:
        return (
            f"<AdminSession id={self.id} email={self.subject_email!r} "
            f"remember_me={self.remember_me}>"
        )

"""Session manager — issues, resolves and revokes admin login sessions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from hosting_admin.database.repository import CredentialRepository
from hosting_admin.models.base import as_utc, utcnow
from hosting_admin.models.credentials import AdminSession
from hosting_admin.security import generate_session_token, hash_token

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

SESSION_COOKIE = "admin_session"
SESSION_TTL = timedelta(days=1)
REMEMBER_TTL = timedelta(days=7)


@dataclass
class IssuedSession:
    """A freshly minted session; ``token`` is the only plaintext copy."""

    token: str
    email: str
    remember_me: bool
    created_at: datetime
    expires_at: datetime

    @property
    def max_age(self) -> int:
        return int((self.expires_at - self.created_at).total_seconds())


@dataclass
class SessionInfo:
    """Identity resolved from a live session row."""

    email: str
    remember_me: bool
    expires_at: datetime


class SessionManager:
    """Database-backed session store keyed by the hash of an opaque token.

    The caller holds the plaintext token (as a cookie in the web
    deployment); identity is only ever derived from the stored row.
    """

    async def create_session(
        self, db: AsyncSession, email: str, remember_me: bool = False
    ) -> IssuedSession:
        """Mint a session for *email* and return its plaintext token."""
        token = generate_session_token()
        now = utcnow()
        expires_at = now + (REMEMBER_TTL if remember_me else SESSION_TTL)

        await CredentialRepository(db).add_session(
            AdminSession(
                subject_email=email,
                token_hash=hash_token(token),
                remember_me=remember_me,
                created_at=now,
                expires_at=expires_at,
            )
        )
        logger.info("Session created for %s (remember_me=%s)", email, remember_me)
        return IssuedSession(
            token=token,
            email=email,
            remember_me=remember_me,
            created_at=now,
            expires_at=expires_at,
        )

    async def get_session(
        self, db: AsyncSession, token: str | None
    ) -> SessionInfo | None:
        """Resolve *token* to a live session, or ``None`` when absent or expired."""
        if not token:
            return None
        row = await CredentialRepository(db).find_live_session(hash_token(token))
        if row is None:
            return None
        return SessionInfo(
            email=row.subject_email,
            remember_me=row.remember_me,
            expires_at=as_utc(row.expires_at),
        )

    async def destroy_session(self, db: AsyncSession, token: str | None) -> None:
        """Delete the session behind *token*; a no-op when there is none."""
        if not token:
            return
        await CredentialRepository(db).delete_session(hash_token(token))
        logger.info("Session destroyed")

    async def purge_expired(self, db: AsyncSession) -> int:
        """Remove expired codes and sessions."""
        removed = await CredentialRepository(db).purge_expired()
        if removed:
            logger.info("Purged %d expired credential rows", removed)
        return removed

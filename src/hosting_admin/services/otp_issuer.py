"""OTP issuer — allow-listed email login codes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from email_validator import EmailNotValidError, validate_email

from hosting_admin.config import Settings
from hosting_admin.database.repository import AdminRepository, CredentialRepository
from hosting_admin.exceptions import Unauthorized, ValidationError
from hosting_admin.models.base import utcnow
from hosting_admin.security import generate_otp, hash_token, is_well_formed_otp
from hosting_admin.services.email_service import EmailService
from hosting_admin.services.session_manager import SessionManager

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

OTP_TTL = timedelta(minutes=10)


@dataclass
class IssueResult:
    """Outcome of a login-code request."""

    issued: bool = False
    skip_otp: bool = False


def normalize_email(raw: str) -> str:
    """Validate the address format and return it lower-cased.

    Raises ``ValidationError`` for anything that is not an email address.
    """
    candidate = (raw or "").strip()
    try:
        validate_email(candidate, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValidationError("Please enter a valid email address") from exc
    return candidate.lower()


class OTPIssuer:
    """Issues and verifies one-time login codes.

    Flow
    ----
    1. The email is validated and checked against the allow-list.
    2. A caller already holding a remembered session for the same email
       skips the code entirely.
    3. Otherwise the admin account is provisioned if needed, older codes
       for the email are dropped, and the new code's hash is committed.
    4. Only then is the plaintext code emailed, so a delivery failure
       never leaves an unverifiable code behind.
    """

    def __init__(
        self,
        settings: Settings,
        email_service: EmailService,
        session_manager: SessionManager,
    ) -> None:
        self._allowed = settings.admin_email_list
        self._email = email_service
        self._sessions = session_manager

    async def request_code(
        self, db: AsyncSession, email: str, current_token: str | None = None
    ) -> IssueResult:
        email = normalize_email(email)

        if email not in self._allowed:
            logger.warning("Login code requested for non allow-listed email")
            raise Unauthorized()

        session = await self._sessions.get_session(db, current_token)
        if session is not None and session.email == email and session.remember_me:
            logger.info("Remembered session found for %s, skipping OTP", email)
            return IssueResult(skip_otp=True)

        await AdminRepository(db).get_or_create(email)

        code = generate_otp()
        now = utcnow()
        await CredentialRepository(db).replace_code(
            email, hash_token(code), created_at=now, expires_at=now + OTP_TTL
        )
        await db.commit()
        logger.info("Login code stored for %s", email)

        # DeliveryError propagates; the committed code stays verifiable.
        await self._email.send_login_code(email, code)
        logger.info("Login code sent to %s", email)
        return IssueResult(issued=True)

    async def verify_code(self, db: AsyncSession, code: str) -> bool:
        """Consume *code* if it matches an unexpired stored hash.

        Matching is by hash alone; every row sharing the hash is deleted
        so a code can never be replayed.
        """
        code = (code or "").strip()
        if not is_well_formed_otp(code):
            return False

        code_hash = hash_token(code)
        repo = CredentialRepository(db)
        record = await repo.find_live_code(code_hash)
        if record is None:
            logger.info("Login code verification failed")
            return False

        await repo.delete_codes_by_hash(code_hash)
        logger.info("Login code verified for %s", record.subject_email)
        return True

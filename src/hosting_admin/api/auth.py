"""Admin login endpoints.

Endpoints
---------
POST /api/auth/send-otp     → issue a login code (or skip for remembered sessions)
POST /api/auth/verify-otp   → consume a code and set the session cookie
GET  /api/auth/session      → probe the current session
POST /api/auth/logout       → revoke the current session
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from hosting_admin.api.deps import Services, get_db, get_services
from hosting_admin.database.repository import AdminRepository
from hosting_admin.exceptions import InvalidOrExpiredCode, ValidationError
from hosting_admin.services.otp_issuer import normalize_email
from hosting_admin.services.session_manager import SESSION_COOKIE, IssuedSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


# ── Request models ───────────────────────────────────────

class SendOTPRequest(BaseModel):
    email: str


class VerifyOTPRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    otp: str = Field(min_length=6, max_length=6)
    remember_me: bool = Field(default=False, alias="rememberMe")
    email: str | None = None


# ── Endpoints ────────────────────────────────────────────

@router.post("/send-otp")
async def send_otp(
    body: SendOTPRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    result = await services.otp.request_code(
        db, body.email, current_token=request.cookies.get(SESSION_COOKIE)
    )
    if result.skip_otp:
        return {"skipOtp": True}
    return {"success": True, "message": "OTP sent to your email"}


@router.post("/verify-otp")
async def verify_otp(
    body: VerifyOTPRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    if not body.email:
        raise ValidationError("Email missing")
    email = normalize_email(body.email)

    if not await services.otp.verify_code(db, body.otp):
        raise InvalidOrExpiredCode()
    # The code lookup is not scoped to an email; at least the identity
    # being logged into must be an allow-listed admin.
    if email not in services.settings.admin_email_list:
        logger.warning("Verified code submitted for non allow-listed email")
        raise InvalidOrExpiredCode()

    issued = await services.sessions.create_session(db, email, body.remember_me)
    # The cookie must never outlive a session row that failed to persist.
    await db.commit()
    _set_session_cookie(response, issued, secure=services.settings.cookie_secure)
    return {"success": True}


@router.get("/session")
async def session_probe(
    request: Request,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    session = await services.sessions.get_session(db, request.cookies.get(SESSION_COOKIE))
    if session is None:
        return JSONResponse({"authenticated": False}, status_code=401)

    admin = await AdminRepository(db).get_or_create(session.email)
    await db.commit()
    return {
        "authenticated": True,
        "user": {
            "email": session.email,
            "name": admin.display_name,
            "role": admin.role,
        },
    }


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    await services.sessions.destroy_session(db, request.cookies.get(SESSION_COOKIE))
    await db.commit()
    response.delete_cookie(SESSION_COOKIE, path="/")
    return {"success": True}


# ── Cookie helper ────────────────────────────────────────

def _set_session_cookie(response: Response, issued: IssuedSession, *, secure: bool) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        issued.token,
        max_age=issued.max_age,
        path="/",
        httponly=True,
        secure=secure,
        samesite="lax",
    )

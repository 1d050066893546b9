"""FastAPI dependencies — per-request database sessions and shared services."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hosting_admin.config import Settings
from hosting_admin.database.engine import Database
from hosting_admin.services.billing_gateway import BillingGateway
from hosting_admin.services.billing_reconciler import BillingEventReconciler
from hosting_admin.services.email_service import EmailService
from hosting_admin.services.otp_issuer import OTPIssuer
from hosting_admin.services.session_manager import (
    SESSION_COOKIE,
    SessionInfo,
    SessionManager,
)


@dataclass
class Services:
    """Everything a request handler needs, built once per application."""

    settings: Settings
    database: Database
    email: EmailService
    sessions: SessionManager
    otp: OTPIssuer
    gateway: BillingGateway
    reconciler: BillingEventReconciler

    @classmethod
    def build(cls, settings: Settings, database: Database) -> Services:
        email = EmailService(settings)
        sessions = SessionManager()
        gateway = BillingGateway(settings)
        return cls(
            settings=settings,
            database=database,
            email=email,
            sessions=sessions,
            otp=OTPIssuer(settings, email, sessions),
            gateway=gateway,
            reconciler=BillingEventReconciler(gateway, email),
        )


def get_services(request: Request) -> Services:
    return request.app.state.services


async def get_db(
    services: Services = Depends(get_services),
) -> AsyncGenerator[AsyncSession, None]:
    """Per-request session.

    The exit code of a yield dependency runs after the response has been
    sent, so endpoints that write commit explicitly before returning.
    """
    async with services.database.session() as session:
        yield session


async def require_admin(
    request: Request,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
) -> SessionInfo:
    """Resolve the session cookie or fail with 401."""
    session = await services.sessions.get_session(db, request.cookies.get(SESSION_COOKIE))
    if session is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return session

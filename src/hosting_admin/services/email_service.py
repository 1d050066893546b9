"""Email service — sends transactional emails via async SMTP."""

from __future__ import annotations

import logging
from datetime import date
from email.message import EmailMessage
from typing import TYPE_CHECKING

import aiosmtplib

from hosting_admin.config import Settings
from hosting_admin.exceptions import DeliveryError

if TYPE_CHECKING:
    from hosting_admin.models.hosting import HostingCustomer

logger = logging.getLogger(__name__)

PAYMENT_FAILED_MESSAGE = "Payment failed - please update your payment method"


class EmailService:
    """Sends transactional emails using the configured SMTP server.

    When no SMTP host is configured, messages are logged instead of sent
    so local development works without a mail server.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    async def send_login_code(self, to_email: str, code: str) -> None:
        """Send an admin login code."""
        app_name = self._settings.app_name
        text = (
            f"{app_name} - Admin Login Verification\n\n"
            f"Your verification code: {code}\n\n"
            "This code expires in 10 minutes. If you did not request this, "
            "ignore this email."
        )
        html = (
            f"<h2>{app_name}</h2>"
            "<p>Admin Login Verification</p>"
            "<p>Your verification code</p>"
            f'<p style="font-size:32px;letter-spacing:8px;font-family:monospace">{code}</p>'
            "<p>This code expires in 10 minutes. If you did not request this, "
            "ignore this email.</p>"
        )
        await self._send(
            to_email, f"Your Admin Login Code - {app_name}", text, html, log_body=False
        )

    async def send_renewal_reminder(self, customer: HostingCustomer) -> None:
        """Remind a hosting customer that their plan renews soon."""
        renewal = _format_date(customer.renewal_date) if customer.renewal_date else "-"
        await self._send_renewal_template(
            customer, f"Hosting Renewal Reminder - {customer.domain}", renewal
        )

    async def send_payment_failed(self, customer: HostingCustomer) -> None:
        """Tell a hosting customer their latest payment failed.

        Reuses the renewal-reminder template with the failure message in
        place of the renewal date.
        """
        await self._send_renewal_template(
            customer, f"Payment Failed - {customer.domain}", PAYMENT_FAILED_MESSAGE
        )

    # ── Private helpers ──────────────────────────────────

    async def _send_renewal_template(
        self, customer: HostingCustomer, subject: str, renewal_text: str
    ) -> None:
        app_name = self._settings.app_name
        plan = customer.plan.value if customer.plan else ""
        text = (
            f"Hi {customer.customer_name},\n\n"
            "Your hosting plan is due for renewal soon.\n\n"
            f"Domain: {customer.domain}\n"
            f"Plan: {plan}\n"
            f"Renewal Date: {renewal_text}\n\n"
            f"Thank you for choosing {app_name}."
        )
        html = (
            f"<h2>{app_name}</h2>"
            "<p>Hosting Renewal Reminder</p>"
            f"<p>Hi {customer.customer_name},</p>"
            "<p>Your hosting plan is due for renewal soon.</p>"
            "<table>"
            f"<tr><td>Domain</td><td>{customer.domain}</td></tr>"
            f"<tr><td>Plan</td><td>{plan}</td></tr>"
            f"<tr><td>Renewal Date</td><td><strong>{renewal_text}</strong></td></tr>"
            "</table>"
            f"<p>Thank you for choosing {app_name}.</p>"
        )
        await self._send(customer.customer_email, subject, text, html)

    async def _send(
        self,
        to_email: str,
        subject: str,
        text: str,
        html: str,
        *,
        log_body: bool = True,
    ) -> None:
        s = self._settings
        if not s.smtp_host:
            logger.warning(
                "SMTP_HOST not set, email to %s logged only: %s%s",
                to_email,
                subject,
                f" | {text[:100]}" if log_body else "",
            )
            return

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = s.email_from
        msg["To"] = to_email
        msg.set_content(text)
        msg.add_alternative(html, subtype="html")

        logger.info("Sending email %r to %s", subject, to_email)
        try:
            await aiosmtplib.send(
                msg,
                hostname=s.smtp_host,
                port=s.smtp_port,
                username=s.smtp_username or None,
                password=s.smtp_password or None,
                start_tls=s.smtp_start_tls,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send email to %s: %s", to_email, exc)
            raise DeliveryError(f"SMTP delivery to {to_email} failed") from exc

        logger.info("Email sent to %s", to_email)


def _format_date(value: date) -> str:
    """Format as ``12 March 2026``."""
    return f"{value.day} {value.strftime('%B %Y')}"

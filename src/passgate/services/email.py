"""Email service for sending account emails."""

import logging
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol
from urllib.parse import urlencode

import aiosmtplib
import httpx

from passgate.config import settings

logger = logging.getLogger(__name__)


class Mailer(Protocol):
    """Delivery of account emails. Both methods are best effort and never raise."""

    async def send_verification(self, email: str, token: str) -> bool: ...

    async def send_password_reset(self, email: str, token: str) -> bool: ...


class EmailBackend(ABC):
    """Abstract base class for email backends."""

    @abstractmethod
    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> bool:
        """Send an email.

        Args:
            to: Recipient email address
            subject: Email subject
            html: HTML content
            text: Plain text content (optional)

        Returns:
            True if sent successfully
        """
        pass


class ConsoleEmailBackend(EmailBackend):
    """Email backend that logs to console (for development)."""

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> bool:
        """Log email to console instead of sending."""
        logger.info(
            f"\n{'='*60}\n"
            f"EMAIL (console backend - not sent)\n"
            f"{'='*60}\n"
            f"To: {to}\n"
            f"Subject: {subject}\n"
            f"{'='*60}\n"
            f"{text or html}\n"
            f"{'='*60}\n"
        )
        return True


class SMTPEmailBackend(EmailBackend):
    """Email backend using SMTP."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        use_tls: bool = True,
        from_address: str = "",
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_address = from_address

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> bool:
        """Send email via SMTP."""
        message = MIMEMultipart("alternative")
        message["From"] = self.from_address
        message["To"] = to
        message["Subject"] = subject

        if text:
            message.attach(MIMEText(text, "plain"))
        message.attach(MIMEText(html, "html"))

        try:
            await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.use_tls,
            )
            logger.info(f"Email sent via SMTP to {to}")
            return True
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email via SMTP to {to}: {e}")
            return False


class ResendEmailBackend(EmailBackend):
    """Email backend using the Resend API."""

    def __init__(self, api_key: str, from_address: str):
        self.api_key = api_key
        self.from_address = from_address

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> bool:
        """Send email via Resend API."""
        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    "https://api.resend.com/emails",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "from": self.from_address,
                        "to": [to],
                        "subject": subject,
                        "html": html,
                        "text": text,
                    },
                    timeout=30.0,
                )
                response.raise_for_status()
                logger.info(f"Email sent via Resend to {to}")
                return True
            except httpx.HTTPStatusError as e:
                logger.error(f"Resend API error: {e.response.status_code} - {e.response.text}")
                return False
            except httpx.HTTPError as e:
                logger.error(f"Failed to send email via Resend to {to}: {e}")
                return False


def get_email_backend() -> EmailBackend:
    """Get the configured email backend."""
    if settings.email_backend == "console":
        return ConsoleEmailBackend()
    elif settings.email_backend == "smtp":
        return SMTPEmailBackend(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            from_address=settings.email_from,
        )
    elif settings.email_backend == "resend":
        return ResendEmailBackend(
            api_key=settings.resend_api_key,
            from_address=settings.email_from,
        )
    else:
        raise ValueError(f"Unknown email backend: {settings.email_backend}")


def build_link(path: str, token: str) -> str:
    """Build a frontend URL carrying ``token`` as a query parameter."""
    return f"{settings.app_url.rstrip('/')}/{path.lstrip('/')}?{urlencode({'token': token})}"


def _render(title: str, intro: str, action: str, link: str, expiry: str) -> tuple[str, str]:
    html = f"""
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <h2 style="color: #1a1a1a;">{title}</h2>
    <p>{intro}</p>
    <p style="text-align: center; margin: 30px 0;">
        <a href="{link}"
           style="background: #2563eb; color: white; padding: 12px 30px; border-radius: 6px; text-decoration: none; display: inline-block;">
            {action}
        </a>
    </p>
    <p>This link will expire in {expiry}.</p>
    <p style="color: #666; font-size: 14px;">If you didn't request this email, you can safely ignore it.</p>
    <p style="color: #666; font-size: 12px;">
        If the button doesn't work, copy and paste this link into your browser:<br>
        <a href="{link}" style="color: #2563eb; word-break: break-all;">{link}</a>
    </p>
</body>
</html>
"""

    text = f"""
{title}

{intro}

{link}

This link will expire in {expiry}.

If you didn't request this email, you can safely ignore it.
"""
    return html, text


class EmailService:
    """High-level email service for sending account emails."""

    def __init__(self, backend: EmailBackend | None = None):
        self._backend = backend

    @property
    def backend(self) -> EmailBackend:
        """Lazy-load the backend."""
        if self._backend is None:
            self._backend = get_email_backend()
        return self._backend

    async def send_verification(self, email: str, token: str) -> bool:
        """Send the email-verification link for a new account."""
        link = build_link("verify-email", token)
        hours = settings.email_verification_expiration_hours
        html, text = _render(
            title="Verify your email",
            intro="Welcome! Please confirm your email address to activate your account.",
            action="Verify email",
            link=link,
            expiry=f"{hours} hours",
        )
        return await self._deliver(email, "Verify your email", html, text)

    async def send_password_reset(self, email: str, token: str) -> bool:
        """Send the password-reset link."""
        link = build_link("reset-password", token)
        minutes = settings.password_reset_expiration_minutes
        html, text = _render(
            title="Reset your password",
            intro="We received a request to reset your password.",
            action="Reset password",
            link=link,
            expiry=f"{minutes} minutes",
        )
        return await self._deliver(email, "Reset your password", html, text)

    async def _deliver(self, to: str, subject: str, html: str, text: str) -> bool:
        try:
            return await self.backend.send(to=to, subject=subject, html=html, text=text)
        except Exception:
            logger.exception(f"Email backend raised while sending {subject!r} to {to}")
            return False


# Global email service instance
email_service = EmailService()

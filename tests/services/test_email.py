"""Email service tests."""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import aiosmtplib
import httpx
import pytest

from passgate.config import settings
from passgate.services.email import (
    ConsoleEmailBackend,
    EmailService,
    ResendEmailBackend,
    SMTPEmailBackend,
    build_link,
    get_email_backend,
)


class TestConsoleEmailBackend:
    """Tests for console email backend."""

    async def test_send_logs_email(self, caplog):
        """Test that console backend logs the email."""
        backend = ConsoleEmailBackend()

        with caplog.at_level(logging.INFO):
            result = await backend.send(
                to="test@example.com",
                subject="Test Subject",
                html="<p>Hello</p>",
                text="Hello",
            )

        assert result is True
        assert "test@example.com" in caplog.text
        assert "Test Subject" in caplog.text

    async def test_send_without_text(self):
        backend = ConsoleEmailBackend()

        result = await backend.send(
            to="test@example.com",
            subject="Test",
            html="<p>HTML content</p>",
        )

        assert result is True


class TestSMTPEmailBackend:
    """Tests for SMTP email backend."""

    @pytest.fixture
    def backend(self) -> SMTPEmailBackend:
        return SMTPEmailBackend(
            host="smtp.example.com",
            port=587,
            username="user",
            password="pass",
            from_address="noreply@example.com",
        )

    async def test_send_success(self, backend: SMTPEmailBackend):
        with patch("passgate.services.email.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            result = await backend.send(
                to="test@example.com",
                subject="Test",
                html="<p>Hello</p>",
                text="Hello",
            )

        assert result is True
        mock_send.assert_called_once()
        message = mock_send.call_args[0][0]
        assert message["To"] == "test@example.com"
        assert message["From"] == "noreply@example.com"
        assert mock_send.call_args[1]["hostname"] == "smtp.example.com"

    @pytest.mark.parametrize(
        "error",
        [ConnectionError("Connection failed"), aiosmtplib.SMTPException("Rejected")],
    )
    async def test_send_failure(self, backend: SMTPEmailBackend, error: Exception):
        with patch(
            "passgate.services.email.aiosmtplib.send",
            new_callable=AsyncMock,
            side_effect=error,
        ):
            result = await backend.send(
                to="test@example.com",
                subject="Test",
                html="<p>Hello</p>",
            )

        assert result is False


class TestResendEmailBackend:
    """Tests for Resend email backend."""

    @pytest.fixture
    def backend(self) -> ResendEmailBackend:
        return ResendEmailBackend(api_key="re_test_key", from_address="noreply@example.com")

    async def test_send_success(self, backend: ResendEmailBackend):
        mock_response = MagicMock()
        mock_response.raise_for_status = MagicMock()

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = mock_response

            result = await backend.send(
                to="test@example.com",
                subject="Test",
                html="<p>Hello</p>",
                text="Hello",
            )

        assert result is True
        mock_post.assert_called_once()
        call_kwargs = mock_post.call_args[1]
        assert call_kwargs["json"]["to"] == ["test@example.com"]
        assert call_kwargs["json"]["subject"] == "Test"
        assert call_kwargs["headers"]["Authorization"] == "Bearer re_test_key"

    async def test_send_http_error(self, backend: ResendEmailBackend):
        mock_response = MagicMock()
        mock_response.status_code = 401
        mock_response.text = "Unauthorized"
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "Unauthorized",
            request=MagicMock(),
            response=mock_response,
        )

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = mock_response

            result = await backend.send(
                to="test@example.com",
                subject="Test",
                html="<p>Hello</p>",
            )

        assert result is False

    async def test_send_network_error(self, backend: ResendEmailBackend):
        with patch(
            "httpx.AsyncClient.post",
            new_callable=AsyncMock,
            side_effect=httpx.ConnectError("Network error"),
        ):
            result = await backend.send(
                to="test@example.com",
                subject="Test",
                html="<p>Hello</p>",
            )

        assert result is False


class TestGetEmailBackend:
    """Tests for get_email_backend factory."""

    def test_console_backend(self):
        with patch("passgate.services.email.settings") as mock_settings:
            mock_settings.email_backend = "console"

            backend = get_email_backend()

        assert isinstance(backend, ConsoleEmailBackend)

    def test_smtp_backend(self):
        with patch("passgate.services.email.settings") as mock_settings:
            mock_settings.email_backend = "smtp"
            mock_settings.smtp_host = "smtp.example.com"
            mock_settings.smtp_port = 587
            mock_settings.smtp_username = "user"
            mock_settings.smtp_password = "pass"
            mock_settings.smtp_use_tls = True
            mock_settings.email_from = "noreply@example.com"

            backend = get_email_backend()

        assert isinstance(backend, SMTPEmailBackend)
        assert backend.host == "smtp.example.com"

    def test_resend_backend(self):
        with patch("passgate.services.email.settings") as mock_settings:
            mock_settings.email_backend = "resend"
            mock_settings.resend_api_key = "re_test_key"
            mock_settings.email_from = "noreply@example.com"

            backend = get_email_backend()

        assert isinstance(backend, ResendEmailBackend)
        assert backend.api_key == "re_test_key"

    def test_invalid_backend(self):
        with patch("passgate.services.email.settings") as mock_settings:
            mock_settings.email_backend = "invalid"

            with pytest.raises(ValueError, match="Unknown email backend"):
                get_email_backend()


def test_build_link():
    link = build_link("verify-email", "abc123")

    assert link == f"{settings.app_url.rstrip('/')}/verify-email?token=abc123"


class TestEmailService:
    """Tests for EmailService."""

    async def test_send_verification(self):
        mock_backend = AsyncMock()
        mock_backend.send.return_value = True
        service = EmailService(backend=mock_backend)

        result = await service.send_verification("test@example.com", "abc123")

        assert result is True
        call_kwargs = mock_backend.send.call_args[1]
        assert call_kwargs["to"] == "test@example.com"
        assert call_kwargs["subject"] == "Verify your email"
        assert build_link("verify-email", "abc123") in call_kwargs["html"]
        assert build_link("verify-email", "abc123") in call_kwargs["text"]
        assert "24 hours" in call_kwargs["text"]

    async def test_send_password_reset(self):
        mock_backend = AsyncMock()
        mock_backend.send.return_value = True
        service = EmailService(backend=mock_backend)

        result = await service.send_password_reset("test@example.com", "def456")

        assert result is True
        call_kwargs = mock_backend.send.call_args[1]
        assert call_kwargs["subject"] == "Reset your password"
        assert build_link("reset-password", "def456") in call_kwargs["text"]
        assert "60 minutes" in call_kwargs["text"]

    async def test_backend_failure_is_reported(self):
        mock_backend = AsyncMock()
        mock_backend.send.return_value = False
        service = EmailService(backend=mock_backend)

        assert await service.send_verification("test@example.com", "abc123") is False

    async def test_backend_exception_is_contained(self, caplog):
        mock_backend = AsyncMock()
        mock_backend.send.side_effect = RuntimeError("boom")
        service = EmailService(backend=mock_backend)

        assert await service.send_password_reset("test@example.com", "abc123") is False
        assert "Email backend raised" in caplog.text

    def test_lazy_backend_loading(self):
        service = EmailService()

        with patch("passgate.services.email.get_email_backend") as mock_get_backend:
            mock_get_backend.return_value = ConsoleEmailBackend()

            backend = service.backend
            backend2 = service.backend

        assert isinstance(backend, ConsoleEmailBackend)
        assert backend is backend2
        mock_get_backend.assert_called_once()

"""Unit tests for notification channels."""
from __future__ import annotations

import smtplib
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from loopvault.config import EmailConfig, TelegramConfig
from loopvault.notifications.email import DEFAULT_SUBJECT, EmailNotifier
from loopvault.notifications.telegram import TelegramNotifier, render_html


def _mock_session(status: int) -> AsyncMock:
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)

    mock_session = AsyncMock()
    mock_session.post = MagicMock(return_value=mock_response)
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=None)
    return mock_session


# ---------------------------------------------------------------------------
# TelegramNotifier
# ---------------------------------------------------------------------------


@pytest.fixture()
def telegram_notifier() -> TelegramNotifier:
    return TelegramNotifier(
        TelegramConfig(
            enabled=True,
            alert_bot_token="alert-tok",
            log_bot_token="log-tok",
            chat_id="12345",
        )
    )


class TestRenderHtml:
    def test_escapes_markup(self) -> None:
        assert render_html("HF < 1.2 & falling") == "HF &lt; 1.2 &amp; falling"

    def test_subject_is_bold_header(self) -> None:
        assert render_html("body", "Alert") == "<b>Alert</b>\n\nbody"


class TestTelegramNotifier:
    @pytest.mark.asyncio
    async def test_send_alert_uses_alert_bot(
        self, telegram_notifier: TelegramNotifier
    ) -> None:
        mock_session = _mock_session(200)

        with patch("loopvault.notifications.telegram.aiohttp.ClientSession", return_value=mock_session):
            with patch("loopvault.notifications.telegram.aiohttp.TCPConnector"):
                result = await telegram_notifier.send_alert("vault at risk", subject="CRITICAL")

        assert result is True
        url = mock_session.post.call_args[0][0]
        payload = mock_session.post.call_args.kwargs["json"]
        assert "botalert-tok" in url
        assert payload["chat_id"] == "12345"
        assert payload["disable_notification"] is False
        assert payload["text"].startswith("<b>CRITICAL</b>")

    @pytest.mark.asyncio
    async def test_send_alert_failure(self, telegram_notifier: TelegramNotifier) -> None:
        mock_session = _mock_session(403)

        with patch("loopvault.notifications.telegram.aiohttp.ClientSession", return_value=mock_session):
            with patch("loopvault.notifications.telegram.aiohttp.TCPConnector"):
                result = await telegram_notifier.send_alert("test alert")

        assert result is False

    @pytest.mark.asyncio
    async def test_send_log_uses_log_bot_silently(
        self, telegram_notifier: TelegramNotifier
    ) -> None:
        mock_session = _mock_session(200)

        with patch("loopvault.notifications.telegram.aiohttp.ClientSession", return_value=mock_session):
            with patch("loopvault.notifications.telegram.aiohttp.TCPConnector"):
                result = await telegram_notifier.send_log("hourly check")

        assert result is True
        assert "botlog-tok" in mock_session.post.call_args[0][0]
        assert mock_session.post.call_args.kwargs["json"]["disable_notification"] is True

    @pytest.mark.asyncio
    async def test_unconfigured_returns_false(self) -> None:
        notifier = TelegramNotifier(TelegramConfig(enabled=True))
        assert await notifier.send_alert("test") is False
        assert await notifier.send_log("test") is False


# ---------------------------------------------------------------------------
# EmailNotifier
# ---------------------------------------------------------------------------


@pytest.fixture()
def email_notifier() -> EmailNotifier:
    return EmailNotifier(
        EmailConfig(
            enabled=True,
            alert_email="ops@example.com",
            smtp_server="smtp.example.com",
            smtp_port=587,
            sender_email="keeper@example.com",
            sender_password="password123",
        )
    )


class TestEmailNotifier:
    def test_build_message_default_subject(self, email_notifier: EmailNotifier) -> None:
        msg = email_notifier.build_message("body")
        assert msg["Subject"] == DEFAULT_SUBJECT
        assert msg["To"] == "ops@example.com"
        assert msg.get_content().strip() == "body"

    @pytest.mark.asyncio
    async def test_send_alert_success(self, email_notifier: EmailNotifier) -> None:
        mock_smtp = MagicMock()
        mock_smtp.__enter__.return_value = mock_smtp
        with patch("loopvault.notifications.email.smtplib.SMTP", return_value=mock_smtp):
            result = await email_notifier.send_alert("test body", subject="Test")

        assert result is True
        mock_smtp.starttls.assert_called_once()
        mock_smtp.login.assert_called_once_with("keeper@example.com", "password123")
        sent = mock_smtp.send_message.call_args[0][0]
        assert sent["Subject"] == "Test"

    @pytest.mark.asyncio
    async def test_send_alert_smtp_error(self, email_notifier: EmailNotifier) -> None:
        with patch(
            "loopvault.notifications.email.smtplib.SMTP",
            side_effect=smtplib.SMTPConnectError(421, "SMTP down"),
        ):
            result = await email_notifier.send_alert("test body", subject="Test")
        assert result is False

    @pytest.mark.asyncio
    async def test_connection_refused(self, email_notifier: EmailNotifier) -> None:
        with patch(
            "loopvault.notifications.email.smtplib.SMTP",
            side_effect=ConnectionRefusedError("refused"),
        ):
            assert await email_notifier.send_alert("test body") is False

    @pytest.mark.asyncio
    async def test_no_recipient_returns_false(self) -> None:
        assert await EmailNotifier(EmailConfig(enabled=True)).send_alert("test") is False

    @pytest.mark.asyncio
    async def test_no_credentials_returns_false(self) -> None:
        notifier = EmailNotifier(EmailConfig(enabled=True, alert_email="ops@example.com"))
        assert await notifier.send_alert("test") is False

    @pytest.mark.asyncio
    async def test_send_log_is_noop(self, email_notifier: EmailNotifier) -> None:
        assert await email_notifier.send_log("test") is False

"""Tests for email templates and notifiers."""

import smtplib
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from iyzico_subscriptions.models.settings import LinkSettings, NotifierSettings, SmtpSettings
from iyzico_subscriptions.services.email_templates import EMAIL_TEMPLATES, format_date, render_template
from iyzico_subscriptions.services.notifier import (
    LoggingNotifier,
    NotificationError,
    NotificationService,
    SmtpNotifier,
    build_notifier,
)
from iyzico_subscriptions.services.state_machine import NotificationIntent

END_DATE = datetime(2026, 11, 8, tzinfo=timezone.utc)
BASE_CONTEXT = {
    "sender_name": "FindCo",
    "site_url": "https://findco.ai",
    "profile_url": "https://findco.ai/profile",
}


@pytest.fixture
def smtp_settings():
    return NotifierSettings(
        backend="smtp",
        sender_address="noreply@findco.ai",
        sender_name="FindCo",
        timeout_seconds=5,
        smtp=SmtpSettings(host="smtp.example.com", port=587, username="mailer", use_tls=True),
    )


class TestTemplates:
    """Test template rendering."""

    def test_all_templates_render(self):
        for name in EMAIL_TEMPLATES:
            subject, html, text = render_template(
                name, user_name="Ayse", package_name="Pro", end_date=END_DATE, **BASE_CONTEXT
            )
            assert subject
            assert html.startswith("<!DOCTYPE html>")
            assert "Ayse" in text

    def test_payment_success(self):
        subject, html, text = render_template(
            "payment_success", user_name="Ayse", package_name="Pro", end_date=END_DATE, **BASE_CONTEXT
        )

        assert subject == "Your Pro subscription is active!"
        assert "8 November 2026" in html
        assert "8 November 2026" in text

    def test_subscription_ended_links_profile(self):
        _, html, text = render_template(
            "subscription_ended", user_name="Ayse", package_name="Pro", **BASE_CONTEXT
        )

        assert 'href="https://findco.ai/profile"' in html
        assert "Free plan" in text

    def test_unknown_template(self):
        with pytest.raises(KeyError):
            render_template("nope", **BASE_CONTEXT)

    def test_missing_variable(self):
        with pytest.raises(KeyError):
            render_template("payment_success", **BASE_CONTEXT)

    def test_format_date(self):
        assert format_date(END_DATE) == "8 November 2026"
        assert format_date("tomorrow") == "tomorrow"


class TestNotificationService:
    """Test best-effort sending."""

    def test_send_template(self):
        notifier = LoggingNotifier()
        service = NotificationService(notifier, links=LinkSettings(profile_url="https://example.com/me"))

        assert service.send_template("subscription_ended", "a@x.com", user_name="Ayse", package_name="Pro")
        assert notifier.sent[0]["to"] == "a@x.com"
        assert "https://example.com/me" in notifier.sent[0]["html"]

    def test_notify_intent(self):
        notifier = LoggingNotifier()
        service = NotificationService(notifier)
        intent = NotificationIntent(
            template="payment_success",
            recipient="a@x.com",
            context={"user_name": "Ayse", "package_name": "Pro", "end_date": END_DATE},
        )

        assert service.notify(intent) is True
        assert notifier.sent[0]["subject"] == "Your Pro subscription is active!"

    def test_notifier_exception_swallowed(self):
        notifier = MagicMock()
        notifier.send.side_effect = NotificationError("relay refused")

        assert NotificationService(notifier).send_template("welcome", "a@x.com", user_name="Ayse") is False

    def test_render_failure_swallowed(self):
        notifier = MagicMock()

        assert NotificationService(notifier).send_template("payment_success", "a@x.com") is False
        notifier.send.assert_not_called()

    def test_notifier_returning_false(self):
        notifier = MagicMock()
        notifier.send.return_value = False

        assert NotificationService(notifier).send_template("welcome", "a@x.com", user_name="Ayse") is False


class TestSmtpNotifier:
    """Test SMTP delivery with a patched smtplib."""

    def test_send(self, smtp_settings):
        with patch("iyzico_subscriptions.services.notifier.smtplib.SMTP") as smtp_cls:
            client = smtp_cls.return_value.__enter__.return_value

            sent = SmtpNotifier(smtp_settings, password="secret").send(
                "a@x.com", "Hello", "<p>Hi</p>", "Hi"
            )

        assert sent is True
        smtp_cls.assert_called_once_with("smtp.example.com", 587, timeout=5)
        client.starttls.assert_called_once()
        client.login.assert_called_once_with("mailer", "secret")
        message = client.send_message.call_args[0][0]
        assert message["To"] == "a@x.com"
        assert message["Subject"] == "Hello"
        assert "FindCo" in message["From"]

    def test_no_login_without_password(self, smtp_settings):
        with patch("iyzico_subscriptions.services.notifier.smtplib.SMTP") as smtp_cls:
            client = smtp_cls.return_value.__enter__.return_value
            SmtpNotifier(smtp_settings).send("a@x.com", "Hello", "<p>Hi</p>")

        client.login.assert_not_called()

    def test_smtp_failure_raises_notification_error(self, smtp_settings):
        with patch("iyzico_subscriptions.services.notifier.smtplib.SMTP") as smtp_cls:
            smtp_cls.side_effect = smtplib.SMTPConnectError(421, "busy")

            with pytest.raises(NotificationError):
                SmtpNotifier(smtp_settings).send("a@x.com", "Hello", "<p>Hi</p>")

    def test_timeout_raises_notification_error(self, smtp_settings):
        with patch("iyzico_subscriptions.services.notifier.smtplib.SMTP") as smtp_cls:
            smtp_cls.side_effect = TimeoutError("timed out")

            with pytest.raises(NotificationError):
                SmtpNotifier(smtp_settings).send("a@x.com", "Hello", "<p>Hi</p>")


class TestBuildNotifier:
    """Test notifier selection from settings."""

    def test_log_backend(self):
        config = MagicMock()
        config.notifier_settings = NotifierSettings(backend="log")

        assert isinstance(build_notifier(config), LoggingNotifier)

    def test_smtp_backend(self, smtp_settings):
        config = MagicMock()
        config.notifier_settings = smtp_settings
        config.smtp_password = "secret"

        assert isinstance(build_notifier(config), SmtpNotifier)

"""Outbound email notifications.

Responsibilities:
- Define the notifier contract (send(to, subject, html, text) -> bool)
- Deliver mail over SMTP with a bounded timeout
- Render lifecycle templates and send them best-effort
"""

import smtplib
import threading
from abc import ABC, abstractmethod
from email.message import EmailMessage
from email.utils import formataddr
from typing import TYPE_CHECKING, Optional

from iyzico_subscriptions.logging_config import get_logger, mask_email
from iyzico_subscriptions.models.settings import LinkSettings, NotifierSettings
from iyzico_subscriptions.services.email_templates import render_template

if TYPE_CHECKING:
    from iyzico_subscriptions.config import Config
    from iyzico_subscriptions.services.state_machine import NotificationIntent

logger = get_logger(__name__)


class NotificationError(Exception):
    """Raised when an email cannot be delivered."""

    pass


class Notifier(ABC):
    """Email delivery contract. Best-effort, no delivery guarantee."""

    @abstractmethod
    def send(self, to: str, subject: str, html: str, text: Optional[str] = None) -> bool:
        """Send an email.

        Returns:
            True if the message was handed off, False otherwise

        Raises:
            NotificationError: If delivery failed
        """


class LoggingNotifier(Notifier):
    """Notifier that only logs messages. Used in development and tests."""

    def __init__(self):
        self._lock = threading.Lock()
        self.sent: list[dict] = []

    def send(self, to: str, subject: str, html: str, text: Optional[str] = None) -> bool:
        with self._lock:
            self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        logger.info("email_logged", to=mask_email(to), subject=subject)
        return True


class SmtpNotifier(Notifier):
    """Sends email through an SMTP relay."""

    def __init__(self, settings: NotifierSettings, password: Optional[str] = None):
        """Initialize SMTP notifier.

        Args:
            settings: Notifier settings (sender, SMTP host, timeout)
            password: SMTP password, if the relay requires login
        """
        self._settings = settings
        self._password = password

    def _build_message(self, to: str, subject: str, html: str, text: Optional[str]) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((self._settings.sender_name, self._settings.sender_address))
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text or "")
        message.add_alternative(html, subtype="html")
        return message

    def send(self, to: str, subject: str, html: str, text: Optional[str] = None) -> bool:
        smtp_settings = self._settings.smtp
        message = self._build_message(to, subject, html, text)

        try:
            with smtplib.SMTP(
                smtp_settings.host,
                smtp_settings.port,
                timeout=self._settings.timeout_seconds,
            ) as client:
                if smtp_settings.use_tls:
                    client.starttls()
                if smtp_settings.username and self._password:
                    client.login(smtp_settings.username, self._password)
                client.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(f"Failed to send email to {mask_email(to)}: {e}") from e

        logger.info("email_sent", to=mask_email(to), subject=subject)
        return True


class NotificationService:
    """Renders lifecycle templates and sends them without ever raising.

    A failed notification is logged and reported as False; it never undoes
    a state change that has already been committed.
    """

    def __init__(
            self,
            notifier: Notifier,
            notifier_settings: Optional[NotifierSettings] = None,
            links: Optional[LinkSettings] = None,
    ):
        self.notifier = notifier
        self._settings = notifier_settings or NotifierSettings()
        self._links = links or LinkSettings()

    def send_template(self, template_name: str, recipient: str, **context) -> bool:
        """Render and send a template. Returns False on any failure."""
        values = {
            "sender_name": self._settings.sender_name,
            "site_url": self._links.site_url,
            "profile_url": self._links.profile_url,
            **context,
        }
        try:
            subject, html, text = render_template(template_name, **values)
            sent = self.notifier.send(recipient, subject, html, text)
        except Exception as e:
            logger.error(
                "notification_failed",
                template=template_name,
                to=mask_email(recipient),
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return False

        if not sent:
            logger.warning("notification_not_sent", template=template_name, to=mask_email(recipient))
            return False
        return True

    def notify(self, intent: "NotificationIntent") -> bool:
        """Send the notification described by a transition result."""
        return self.send_template(intent.template, intent.recipient, **intent.context)


def build_notifier(config: "Config") -> Notifier:
    """Create the notifier selected by settings (``smtp`` or ``log``)."""
    settings = config.notifier_settings
    if settings.backend == "smtp":
        logger.info(
            "smtp_notifier_configured",
            host=settings.smtp.host,
            port=settings.smtp.port,
            timeout_seconds=settings.timeout_seconds,
        )
        return SmtpNotifier(settings, password=config.smtp_password)

    logger.info("logging_notifier_configured")
    return LoggingNotifier()

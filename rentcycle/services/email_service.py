"""Outbound email over SMTP. Best-effort: callers catch EmailDispatchError."""

import logging
import smtplib
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional, Sequence

from rentcycle.exceptions import EmailDispatchError

logger = logging.getLogger(__name__)


class EmailService:
    """
    Thin SMTP sender configured from app config.
    When disabled (or no host is configured) messages are logged and dropped.
    """

    def __init__(self, host: Optional[str] = None, port: int = 587, user: Optional[str] = None,
                 password: Optional[str] = None, use_tls: bool = True,
                 from_email: Optional[str] = None, enabled: bool = True, timeout: int = 15):
        self.host = host
        self.port = int(port or 587)
        self.user = user
        self.password = password
        self.use_tls = use_tls
        self.from_email = from_email or user
        self.enabled = enabled and bool(host)
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> "EmailService":
        return cls(
            host=config.get("SMTP_HOST"),
            port=config.get("SMTP_PORT", 587),
            user=config.get("SMTP_USER"),
            password=config.get("SMTP_PASS"),
            use_tls=config.get("SMTP_USE_TLS", True),
            from_email=config.get("FROM_EMAIL"),
            enabled=config.get("EMAIL_ENABLED", True),
        )

    def build_message(self, recipients: Sequence[str], subject: str, html: str,
                      text: Optional[str] = None) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.from_email or "no-reply@localhost"
        msg["To"] = ", ".join(recipients)
        msg["Subject"] = subject
        msg["Message-ID"] = make_msgid()
        msg.set_content(text or subject)
        msg.add_alternative(html, subtype="html")
        return msg

    def send_email(self, recipients: Sequence[str], subject: str, html: str,
                   text: Optional[str] = None) -> Optional[str]:
        """
        Send one message and return its Message-ID.
        Returns None when sending is disabled; raises EmailDispatchError on failure.
        """
        recipients = [r for r in (recipients or []) if r]
        if not recipients:
            raise EmailDispatchError("No recipients for email")

        msg = self.build_message(recipients, subject, html, text)
        if not self.enabled:
            logger.info("Email disabled; not sending %r to %s", subject, ", ".join(recipients))
            return None

        try:
            port = self.port
            if port == 465:
                client = smtplib.SMTP_SSL(self.host, port, timeout=self.timeout)
            else:
                client = smtplib.SMTP(self.host, port, timeout=self.timeout)
            with client as smtp:
                if self.use_tls and port != 465:
                    smtp.starttls()
                if self.user:
                    smtp.login(self.user, self.password or "")
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise EmailDispatchError(f"Email to {', '.join(recipients)} failed: {e}") from e

        logger.info("Email sent to %s", ", ".join(recipients))
        return msg["Message-ID"]

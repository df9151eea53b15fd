"""Email delivery backends for alert notifications."""
from __future__ import annotations
import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Sequence
from tenacity import Retrying, stop_after_attempt, wait_exponential, retry_if_exception_type
from error_alerting.config import Settings

logger = logging.getLogger(__name__)


def send_email(subject: str, html_body: str, recipients: Sequence[str], sender: str, smtp_host: str, smtp_port: int = 587, username: str | None = None, password: str | None = None, timeout: int = 15) -> dict:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = ", ".join(recipients)
    msg.set_content("This email requires an HTML capable client.")
    msg.add_alternative(html_body, subtype="html")
    try:
        context = ssl.create_default_context()
        with smtplib.SMTP(smtp_host, smtp_port, timeout=timeout) as server:
            server.starttls(context=context)
            if username and password:
                server.login(username, password)
            server.send_message(msg)
        return {"status": "sent"}
    except (smtplib.SMTPException, OSError) as e:  # socket timeouts are OSError
        return {"status": "error", "error": str(e)}


class EmailSendError(Exception):
    pass


class SmtpEmailDelivery:
    """SMTP backend. Retries (when max_attempts > 1) live here, never in the dispatcher."""

    def __init__(self, smtp_host: str, sender: str, smtp_port: int = 587, username: str | None = None, password: str | None = None, timeout: int = 15, max_attempts: int = 1, wait=None):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.sender = sender
        self.username = username
        self.password = password
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.wait = wait or wait_exponential(multiplier=1, min=1, max=30)

    def send(self, to: Sequence[str], subject: str, html_body: str) -> dict:
        try:
            for attempt in Retrying(stop=stop_after_attempt(self.max_attempts), wait=self.wait, retry=retry_if_exception_type(EmailSendError), reraise=True):
                with attempt:
                    out = send_email(subject, html_body, to, self.sender, self.smtp_host, self.smtp_port, self.username, self.password, timeout=self.timeout)
                    if out.get("status") != "sent":
                        raise EmailSendError(out.get("error", "unknown smtp failure"))
        except EmailSendError as e:
            logger.warning(f"SMTP delivery to {', '.join(to)} failed after {self.max_attempts} attempt(s): {e}")
            return {"status": "error", "error": str(e)}
        return out


class LoggingEmailDelivery:
    """Used when SMTP is not configured: records what would have been sent."""

    def send(self, to: Sequence[str], subject: str, html_body: str) -> dict:
        logger.info(f"Email notification would be sent to {', '.join(to)}: {subject}")
        return {"status": "skipped"}


def build_email_delivery(settings: Settings):
    if settings.smtp_host and settings.email_from:
        return SmtpEmailDelivery(
            smtp_host=settings.smtp_host,
            sender=settings.email_from,
            smtp_port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            timeout=settings.smtp_timeout_seconds,
            max_attempts=settings.email_max_attempts,
        )
    return LoggingEmailDelivery()

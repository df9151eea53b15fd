import smtplib

from tenacity import wait_none

from error_alerting.config import get_settings, reset_settings
from error_alerting.utils import emailing
from error_alerting.utils.emailing import LoggingEmailDelivery, SmtpEmailDelivery, build_email_delivery, send_email


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host, self.port, self.timeout = host, port, timeout
        self.logged_in = None
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self, context=None):
        pass

    def login(self, user, password):
        self.logged_in = (user, password)

    def send_message(self, msg):
        self.messages.append(msg)


def test_send_email_builds_html_message(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)

    out = send_email("Subject", "<p>hi</p>", ["a@example.com", "b@example.com"], "alerts@example.com", "smtp.local", 2525, "user", "pw", timeout=3)

    assert out == {"status": "sent"}
    server = FakeSMTP.instances[0]
    assert (server.host, server.port, server.timeout) == ("smtp.local", 2525, 3)
    assert server.logged_in == ("user", "pw")
    msg = server.messages[0]
    assert msg["To"] == "a@example.com, b@example.com"
    assert msg["Subject"] == "Subject"


def test_send_email_reports_socket_errors(monkeypatch):
    def refuse(*args, **kwargs):
        raise TimeoutError("timed out")

    monkeypatch.setattr(smtplib, "SMTP", refuse)
    out = send_email("s", "b", ["a@example.com"], "from@example.com", "smtp.local")
    assert out["status"] == "error"
    assert "timed out" in out["error"]


def test_smtp_delivery_retries_until_sent(monkeypatch):
    responses = [{"status": "error", "error": "421 try later"}, {"status": "sent"}]
    calls = []

    def fake_send(*args, **kwargs):
        calls.append(args)
        return responses.pop(0)

    monkeypatch.setattr(emailing, "send_email", fake_send)
    delivery = SmtpEmailDelivery("smtp.local", "alerts@example.com", max_attempts=3, wait=wait_none())

    assert delivery.send(["a@example.com"], "s", "<p>b</p>") == {"status": "sent"}
    assert len(calls) == 2


def test_smtp_delivery_gives_up_after_max_attempts(monkeypatch):
    calls = []

    def fake_send(*args, **kwargs):
        calls.append(args)
        return {"status": "error", "error": "550 rejected"}

    monkeypatch.setattr(emailing, "send_email", fake_send)
    delivery = SmtpEmailDelivery("smtp.local", "alerts@example.com", max_attempts=2, wait=wait_none())

    assert delivery.send(["a@example.com"], "s", "b") == {"status": "error", "error": "550 rejected"}
    assert len(calls) == 2


def test_logging_delivery_skips():
    assert LoggingEmailDelivery().send(["a@example.com"], "s", "b") == {"status": "skipped"}


def test_build_email_delivery_from_settings(monkeypatch):
    assert isinstance(build_email_delivery(get_settings()), LoggingEmailDelivery)

    monkeypatch.setenv("SMTP_HOST", "smtp.local")
    monkeypatch.setenv("EMAIL_FROM", "alerts@example.com")
    monkeypatch.setenv("EMAIL_MAX_ATTEMPTS", "3")
    reset_settings()

    delivery = build_email_delivery(get_settings())
    assert isinstance(delivery, SmtpEmailDelivery)
    assert delivery.smtp_host == "smtp.local"
    assert delivery.max_attempts == 3

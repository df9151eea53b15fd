"""Constants and fakes shared by the test modules."""

from datetime import datetime

from error_alerting.alerting.types import ErrorEvent, ErrorType

NOW = datetime(2026, 10, 17, 12, 0, 0)
OWNER = "owner-1"


def api_error_event(event_id, at=NOW, owner_id=OWNER, error_type=ErrorType.API_ERROR):
    return ErrorEvent(id=event_id, error_type=error_type, occurred_at=at, owner_id=owner_id)


class FakeEmailDelivery:
    def __init__(self, status="sent", exc=None):
        self.status = status
        self.exc = exc
        self.sent = []

    def send(self, to, subject, html_body):
        self.sent.append({"to": list(to), "subject": subject, "html_body": html_body})
        if self.exc is not None:
            raise self.exc
        if self.status == "error":
            return {"status": "error", "error": "smtp down"}
        return {"status": self.status}

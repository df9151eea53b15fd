from __future__ import annotations
import logging
from typing import Protocol, Sequence, runtime_checkable
from jinja2 import Template
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from error_alerting.infrastructure import db
from error_alerting.models.tables import ErrorAlertRule, ErrorNotification
from error_alerting.alerting.types import Channel, TriggerDecision, DispatchResult
from error_alerting.alerting.errors import NotificationWriteFailed, EmailDeliveryFailed
from error_alerting.infrastructure.metrics import NOTIFICATIONS_WRITTEN, DISPATCH_FAILURES

logger = logging.getLogger(__name__)


@runtime_checkable
class EmailDelivery(Protocol):
    """send() returns a dict whose "status" is sent|skipped|error."""

    def send(self, to: Sequence[str], subject: str, html_body: str) -> dict: ...


EMAIL_TEMPLATE = Template("""
<html>
  <body style="font-family: Arial, sans-serif;">
    <h2>{{ rule_name }}</h2>
    <p><strong>{{ matched_count }}</strong> <code>{{ error_type }}</code> errors detected in the last {{ window_minutes }} minutes
       (threshold {{ threshold_count }}).</p>
    <table>
      <tr><td>Severity</td><td>{{ severity | upper }}</td></tr>
      <tr><td>Window</td><td>{{ window_start }} &ndash; {{ window_end }} UTC</td></tr>
      <tr><td>Triggered at</td><td>{{ fired_at }} UTC</td></tr>
    </table>
  </body>
</html>
""", autoescape=True)


def notification_title(rule: ErrorAlertRule) -> str:
    return f"⚠️ {rule.name}"


def notification_message(rule: ErrorAlertRule, decision: TriggerDecision) -> str:
    return f"{decision.matched_count} {decision.error_type.value} errors detected in the last {rule.window_minutes} minutes"


def render_alert_email(rule: ErrorAlertRule, decision: TriggerDecision, subject_prefix: str = "") -> tuple[str, str]:
    subject = f"{subject_prefix} [{rule.severity.upper()}] {rule.name}: {decision.matched_count} {decision.error_type.value} errors in {rule.window_minutes}m".strip()
    body = EMAIL_TEMPLATE.render(
        rule_name=rule.name,
        matched_count=decision.matched_count,
        error_type=decision.error_type.value,
        window_minutes=rule.window_minutes,
        threshold_count=rule.threshold_count,
        severity=rule.severity,
        window_start=decision.window_start.isoformat(timespec="seconds"),
        window_end=decision.window_end.isoformat(timespec="seconds"),
        fired_at=decision.fired_at.isoformat(timespec="seconds"),
    )
    return subject, body


class NotificationDispatcher:
    """Delivers one firing decision to the rule's channels.

    Best effort: an in-app write failure does not stop the email, an email failure
    does not undo the notification or the cooldown, and nothing is retried here.
    """

    def __init__(self, email_delivery: EmailDelivery, session_factory=None, default_recipients: Sequence[str] = (), subject_prefix: str = ""):
        self.email_delivery = email_delivery
        self._session_factory = session_factory or db.new_session
        self.default_recipients = list(default_recipients)
        self.subject_prefix = subject_prefix

    def dispatch(self, rule: ErrorAlertRule, decision: TriggerDecision) -> DispatchResult:
        result = DispatchResult(rule_id=rule.id)
        if rule.has_channel(Channel.IN_APP):
            try:
                self._write_notification(rule, decision, result)
            except NotificationWriteFailed as e:
                logger.error(f"Failed to create notification for rule {rule.id}: {e}")
                DISPATCH_FAILURES.labels(channel=Channel.IN_APP.value).inc()
                result.failures.append(f"in_app: {e}")
        if rule.has_channel(Channel.EMAIL):
            try:
                self._send_email(rule, decision, result)
            except EmailDeliveryFailed as e:
                logger.error(f"Failed to email alert for rule {rule.id}: {e}")
                DISPATCH_FAILURES.labels(channel=Channel.EMAIL.value).inc()
                result.failures.append(f"email: {e}")
        return result

    def _write_notification(self, rule: ErrorAlertRule, decision: TriggerDecision, result: DispatchResult) -> None:
        key = dict(rule_id=decision.rule_id, source_event_id=decision.source_event_id)
        try:
            with self._session_factory() as session:
                existing = session.query(ErrorNotification.id).filter_by(**key).first()
                if existing:
                    result.notification_id = existing.id
                    result.notification_duplicate = True
                    return
                row = ErrorNotification(
                    owner_id=decision.owner_id,
                    title=notification_title(rule),
                    message=notification_message(rule, decision),
                    severity=rule.severity,
                    created_at=decision.fired_at,
                    **key,
                )
                session.add(row)
                try:
                    session.commit()
                except IntegrityError:
                    # a concurrent delivery of the same event wrote it first
                    session.rollback()
                    existing = session.query(ErrorNotification.id).filter_by(**key).first()
                    result.notification_id = existing.id if existing else None
                    result.notification_duplicate = True
                    return
                result.notification_id = row.id
        except SQLAlchemyError as e:
            raise NotificationWriteFailed(str(e)) from e
        NOTIFICATIONS_WRITTEN.inc()
        logger.info(f'Created notification {result.notification_id} for rule "{rule.name}"')

    def _send_email(self, rule: ErrorAlertRule, decision: TriggerDecision, result: DispatchResult) -> None:
        recipients = [rule.recipient_email] if rule.recipient_email else list(self.default_recipients)
        if not recipients:
            result.email_status = "error"
            raise EmailDeliveryFailed("no recipient configured")
        subject, body = render_alert_email(rule, decision, self.subject_prefix)
        try:
            response = self.email_delivery.send(recipients, subject, body)
        except Exception as e:  # collaborator boundary: any failure is a delivery failure
            result.email_status = "error"
            raise EmailDeliveryFailed(str(e)) from e
        result.email_status = (response or {}).get("status", "error")
        if result.email_status == "error":
            raise EmailDeliveryFailed((response or {}).get("error", "unknown error"))
        logger.info(f'Email for rule "{rule.name}" {result.email_status} to {", ".join(recipients)}')

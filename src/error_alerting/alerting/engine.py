from __future__ import annotations
import logging
import time
from datetime import datetime, timezone
from typing import Callable
from error_alerting.config import Settings, get_settings, parse_email_recipients
from error_alerting.models.tables import ErrorLog
from error_alerting.alerting.types import ErrorEvent, ErrorType, EvaluationSummary, RuleState
from error_alerting.alerting.errors import StoreUnavailable
from error_alerting.alerting.matcher import RuleMatcher
from error_alerting.alerting.window import WindowCounter
from error_alerting.alerting.cooldown import CooldownGate
from error_alerting.alerting.evaluator import TriggerEvaluator
from error_alerting.alerting.dispatcher import NotificationDispatcher
from error_alerting.infrastructure.metrics import ALERT_EVALUATIONS, ALERTS_FIRED, EVALUATION_LATENCY
from error_alerting.utils.emailing import build_email_delivery

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(ts: datetime) -> datetime:
    """Stores hold naive UTC timestamps."""
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(timezone.utc).replace(tzinfo=None)


def event_from_log(row: ErrorLog) -> ErrorEvent:
    return ErrorEvent(id=row.id, error_type=ErrorType(row.error_type), occurred_at=row.occurred_at, owner_id=row.owner_id)


class AlertEngine:
    """Runs one evaluation per recorded error event and dispatches what fires.

    process() never raises: every failure ends up in the returned summary, whose
    ``retryable`` flag tells the caller whether replaying the event is worthwhile.
    """

    def __init__(self, evaluator: TriggerEvaluator, dispatcher: NotificationDispatcher, clock: Callable[[], datetime] = utcnow):
        self.evaluator = evaluator
        self.dispatcher = dispatcher
        self.clock = clock

    def process(self, event: ErrorEvent, now: datetime | None = None) -> EvaluationSummary:
        now = as_naive_utc(now or self.clock())
        ALERT_EVALUATIONS.inc()
        start = time.time()
        try:
            summary, fired_rules = self.evaluator.evaluate(event, now)
        except StoreUnavailable as e:
            logger.error(f"Rule store unavailable for event {event.id}: {e}")
            return EvaluationSummary(event_id=event.id, error_type=ErrorType(event.error_type).value, errors=[str(e)], retryable=True)
        except Exception as e:  # invocation boundary
            logger.exception(f"Unexpected failure evaluating event {event.id}")
            return EvaluationSummary(event_id=event.id, error_type=str(event.error_type), errors=[f"{e.__class__.__name__}: {e}"], retryable=True)

        for outcome in summary.outcomes:
            if outcome.state is not RuleState.FIRING or outcome.decision is None:
                continue
            rule = fired_rules[outcome.rule_id]
            ALERTS_FIRED.labels(severity=rule.severity).inc()
            try:
                outcome.dispatch = self.dispatcher.dispatch(rule, outcome.decision)
            except Exception as e:  # invocation boundary; the fire itself is already committed
                logger.exception(f"Dispatch crashed for rule {rule.id} event {event.id}")
                summary.errors.append(f"dispatch rule {rule.id}: {e.__class__.__name__}: {e}")
        EVALUATION_LATENCY.observe(time.time() - start)
        logger.info(
            f"Processed event {event.id}: evaluated={summary.evaluated} fired={summary.fired} "
            f"suppressed={summary.suppressed} dispatch_failures={summary.dispatch_failures}"
        )
        return summary


def build_engine(settings: Settings | None = None, email_delivery=None, session_factory=None, clock: Callable[[], datetime] = utcnow) -> AlertEngine:
    settings = settings or get_settings()
    evaluator = TriggerEvaluator(
        matcher=RuleMatcher(session_factory),
        counter=WindowCounter(session_factory),
        gate=CooldownGate(session_factory),
    )
    dispatcher = NotificationDispatcher(
        email_delivery=email_delivery or build_email_delivery(settings),
        session_factory=session_factory,
        default_recipients=parse_email_recipients(settings.email_recipients),
        subject_prefix=settings.alert_email_subject_prefix,
    )
    return AlertEngine(evaluator, dispatcher, clock=clock)


def process_error_event(event: ErrorEvent, now: datetime | None = None, engine: AlertEngine | None = None) -> EvaluationSummary:
    return (engine or build_engine()).process(event, now=now)

"""Per-event trigger evaluation.

For every candidate rule of the event owner the evaluator walks
idle -> counting -> idle | firing | suppressed. A rule only reaches ``firing``
when its conditional cooldown claim succeeds; the claim is the commit point of
the firing decision.
"""
from __future__ import annotations
import logging
from datetime import datetime
from error_alerting.models.tables import ErrorAlertRule
from error_alerting.alerting.types import ErrorEvent, ErrorType, Severity, Channel, RuleState, RuleOutcome, TriggerDecision, EvaluationSummary
from error_alerting.alerting.errors import StoreUnavailable, InvalidRule
from error_alerting.alerting.matcher import RuleMatcher
from error_alerting.alerting.window import WindowCounter, window_bounds
from error_alerting.alerting.cooldown import CooldownGate
from error_alerting.infrastructure.metrics import ALERT_RULES_EVALUATED, ALERTS_SUPPRESSED, ALERT_RULE_ERRORS

logger = logging.getLogger(__name__)

_KNOWN_TYPES = {t.value for t in ErrorType}
_KNOWN_CHANNELS = {c.value for c in Channel}
_KNOWN_SEVERITIES = {s.value for s in Severity}


def validate_rule(rule: ErrorAlertRule) -> None:
    if not isinstance(rule.threshold_count, int) or rule.threshold_count < 1:
        raise InvalidRule(f"threshold_count must be >= 1, got {rule.threshold_count!r}")
    if not isinstance(rule.window_minutes, int) or rule.window_minutes < 1:
        raise InvalidRule(f"window_minutes must be >= 1, got {rule.window_minutes!r}")
    if rule.cooldown_minutes is not None and (not isinstance(rule.cooldown_minutes, int) or rule.cooldown_minutes < 1):
        raise InvalidRule(f"cooldown_minutes must be >= 1 when set, got {rule.cooldown_minutes!r}")
    types = rule.monitored_types
    if not isinstance(types, list) or not types:
        raise InvalidRule("monitored_types must be a non-empty list")
    unknown = [t for t in types if t not in _KNOWN_TYPES]
    if unknown:
        raise InvalidRule(f"unknown error types {unknown}")
    if not isinstance(rule.channels, dict) or any(k not in _KNOWN_CHANNELS for k in rule.channels):
        raise InvalidRule(f"channels must be a mapping over {sorted(_KNOWN_CHANNELS)}, got {rule.channels!r}")
    if rule.severity not in _KNOWN_SEVERITIES:
        raise InvalidRule(f"unknown severity {rule.severity!r}")


class TriggerEvaluator:
    def __init__(self, matcher: RuleMatcher | None = None, counter: WindowCounter | None = None, gate: CooldownGate | None = None):
        self.matcher = matcher or RuleMatcher()
        self.counter = counter or WindowCounter()
        self.gate = gate or CooldownGate()

    def evaluate(self, event: ErrorEvent, now: datetime) -> tuple[EvaluationSummary, dict[int, ErrorAlertRule]]:
        """Evaluate all candidate rules for ``event`` at instant ``now``.

        Returns the summary and the fired rules keyed by id, for dispatch. A failed
        rule lookup raises StoreUnavailable; per-rule failures are recorded in the
        summary instead.
        """
        summary = EvaluationSummary(event_id=event.id, error_type=ErrorType(event.error_type).value)
        fired: dict[int, ErrorAlertRule] = {}
        rules = self.matcher.match(event.error_type, owner_id=event.owner_id)
        logger.info(f"Found {len(rules)} matching alert rules for {summary.error_type} owner={event.owner_id} event={event.id}")
        for rule in rules:
            try:
                outcome = self._evaluate_rule(rule, event, now, summary)
            except Exception as e:  # one rule's failure must not block the others
                logger.exception(f"Unexpected failure evaluating rule {rule.id} for event {event.id}")
                ALERT_RULE_ERRORS.labels(reason="unexpected").inc()
                outcome = RuleOutcome(rule_id=rule.id, rule_name=rule.name, state=RuleState.ERROR, detail=f"{e.__class__.__name__}: {e}")
                summary.errors.append(f"rule {rule.id}: {outcome.detail}")
                summary.retryable = True
            summary.outcomes.append(outcome)
            if outcome.state is RuleState.FIRING:
                fired[rule.id] = rule
        ALERT_RULES_EVALUATED.inc(len(rules))
        return summary, fired

    def _evaluate_rule(self, rule: ErrorAlertRule, event: ErrorEvent, now: datetime, summary: EvaluationSummary) -> RuleOutcome:
        outcome = RuleOutcome(rule_id=rule.id, rule_name=rule.name)
        try:
            validate_rule(rule)
        except InvalidRule as e:
            logger.warning(f"Skipping invalid rule {rule.id} ({rule.name}): {e}")
            ALERT_RULE_ERRORS.labels(reason="invalid_rule").inc()
            outcome.state = RuleState.INVALID
            outcome.detail = str(e)
            return outcome

        outcome.state = RuleState.COUNTING
        window_start, window_end = window_bounds(now, rule.window_minutes)
        try:
            count = self.counter.count(event.owner_id, event.error_type, window_start, window_end)
        except StoreUnavailable as e:
            return self._store_failure(outcome, summary, e)
        outcome.matched_count = count
        logger.info(f'Rule "{rule.name}": {count} errors in last {rule.window_minutes} minutes (threshold: {rule.threshold_count})')

        if count < rule.threshold_count:
            outcome.state = RuleState.IDLE
            return outcome
        if self.gate.is_suppressed(rule, now):
            logger.info(f'Rule "{rule.name}" is in cooldown period (last triggered {rule.last_triggered_at.isoformat()})')
            ALERTS_SUPPRESSED.labels(reason="cooldown").inc()
            outcome.state = RuleState.SUPPRESSED
            outcome.detail = "cooldown"
            return outcome
        try:
            claimed = self.gate.try_claim(rule, now)
        except StoreUnavailable as e:
            return self._store_failure(outcome, summary, e)
        if not claimed:
            ALERTS_SUPPRESSED.labels(reason="concurrent_claim").inc()
            outcome.state = RuleState.SUPPRESSED
            outcome.detail = "concurrent_claim"
            return outcome

        outcome.state = RuleState.FIRING
        outcome.decision = TriggerDecision(
            rule_id=rule.id,
            owner_id=event.owner_id,
            source_event_id=event.id,
            error_type=ErrorType(event.error_type),
            matched_count=count,
            window_start=window_start,
            window_end=window_end,
            fired_at=now,
        )
        return outcome

    def _store_failure(self, outcome: RuleOutcome, summary: EvaluationSummary, exc: StoreUnavailable) -> RuleOutcome:
        logger.error(f"Store unavailable while evaluating rule {outcome.rule_id}: {exc}")
        ALERT_RULE_ERRORS.labels(reason="store_unavailable").inc()
        outcome.state = RuleState.ERROR
        outcome.detail = str(exc)
        summary.errors.append(f"rule {outcome.rule_id}: {exc}")
        summary.retryable = True
        return outcome

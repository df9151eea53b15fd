"""Value types shared by the alert evaluation pipeline."""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ErrorType(str, Enum):
    NOT_FOUND = "404"
    AUTH_FAILURE = "auth_error"
    API_ERROR = "api_error"
    UNHANDLED = "unhandled_error"
    NETWORK_ERROR = "network_error"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class Channel(str, Enum):
    IN_APP = "in_app"
    EMAIL = "email"


class RuleState(str, Enum):
    """Per-rule evaluation states for a single incoming event."""
    IDLE = "idle"
    COUNTING = "counting"
    FIRING = "firing"
    SUPPRESSED = "suppressed"
    INVALID = "invalid"
    ERROR = "error"


@dataclass(frozen=True)
class ErrorEvent:
    """An error occurrence as handed to the engine by the ingest adapter."""
    id: int
    error_type: ErrorType
    occurred_at: datetime
    owner_id: str


@dataclass(frozen=True)
class TriggerDecision:
    rule_id: int
    owner_id: str
    source_event_id: int
    error_type: ErrorType
    matched_count: int
    window_start: datetime
    window_end: datetime
    fired_at: datetime


@dataclass
class DispatchResult:
    rule_id: int
    notification_id: int | None = None
    notification_duplicate: bool = False
    email_status: str | None = None  # sent|skipped|error, None when the channel is off
    failures: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass
class RuleOutcome:
    rule_id: int
    rule_name: str
    state: RuleState = RuleState.IDLE
    matched_count: int | None = None
    detail: str | None = None
    decision: TriggerDecision | None = None
    dispatch: DispatchResult | None = None


@dataclass
class EvaluationSummary:
    """Structured outcome of one engine invocation, returned to the caller."""
    event_id: int
    error_type: str
    outcomes: list[RuleOutcome] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    retryable: bool = False

    @property
    def evaluated(self) -> int:
        return len(self.outcomes)

    @property
    def fired(self) -> int:
        return sum(1 for o in self.outcomes if o.state is RuleState.FIRING)

    @property
    def suppressed(self) -> int:
        return sum(1 for o in self.outcomes if o.state is RuleState.SUPPRESSED)

    @property
    def dispatch_failures(self) -> int:
        return sum(len(o.dispatch.failures) for o in self.outcomes if o.dispatch)

    @property
    def decisions(self) -> list[TriggerDecision]:
        return [o.decision for o in self.outcomes if o.decision is not None]

    def as_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "error_type": self.error_type,
            "evaluated": self.evaluated,
            "fired": self.fired,
            "suppressed": self.suppressed,
            "dispatch_failures": self.dispatch_failures,
            "retryable": self.retryable,
            "errors": list(self.errors),
            "rules": [
                {
                    "rule_id": o.rule_id,
                    "name": o.rule_name,
                    "state": o.state.value,
                    "matched_count": o.matched_count,
                    "detail": o.detail,
                    "notification_id": o.dispatch.notification_id if o.dispatch else None,
                    "email_status": o.dispatch.email_status if o.dispatch else None,
                    "dispatch_failures": list(o.dispatch.failures) if o.dispatch else [],
                }
                for o in self.outcomes
            ],
        }

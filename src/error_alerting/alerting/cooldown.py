from __future__ import annotations
import logging
from datetime import datetime, timedelta
from sqlalchemy import update, or_
from sqlalchemy.exc import SQLAlchemyError
from error_alerting.infrastructure import db
from error_alerting.models.tables import ErrorAlertRule
from error_alerting.alerting.errors import StoreUnavailable

logger = logging.getLogger(__name__)


def cooldown_for(rule: ErrorAlertRule) -> timedelta:
    """Explicit cooldown_minutes when set, otherwise the rule's own window length."""
    minutes = rule.cooldown_minutes if rule.cooldown_minutes else rule.window_minutes
    return timedelta(minutes=minutes)


class CooldownGate:
    """Suppression check plus the conditional last_triggered_at update.

    try_claim is the only writer of last_triggered_at. It updates the row only when
    the cooldown has elapsed in the store, so of several concurrent evaluators that
    all saw the old value exactly one wins.
    """

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or db.new_session

    def is_suppressed(self, rule: ErrorAlertRule, now: datetime) -> bool:
        if rule.last_triggered_at is None:
            return False
        return now < rule.last_triggered_at + cooldown_for(rule)

    def try_claim(self, rule: ErrorAlertRule, now: datetime) -> bool:
        cutoff = now - cooldown_for(rule)
        stmt = (
            update(ErrorAlertRule)
            .where(
                ErrorAlertRule.id == rule.id,
                ErrorAlertRule.enabled.is_(True),
                or_(ErrorAlertRule.last_triggered_at.is_(None), ErrorAlertRule.last_triggered_at <= cutoff),
            )
            .values(last_triggered_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        try:
            with self._session_factory() as session:
                result = session.execute(stmt)
                session.commit()
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"cooldown update failed for rule {rule.id}: {e}") from e
        if result.rowcount != 1:
            logger.info(f"Rule {rule.id} cooldown claim lost (already triggered by a concurrent evaluation)")
            return False
        rule.last_triggered_at = now
        return True

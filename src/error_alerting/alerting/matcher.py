from __future__ import annotations
import logging
from sqlalchemy.exc import SQLAlchemyError
from error_alerting.infrastructure import db
from error_alerting.models.tables import ErrorAlertRule
from error_alerting.alerting.types import ErrorType
from error_alerting.alerting.errors import StoreUnavailable

logger = logging.getLogger(__name__)


class RuleMatcher:
    """Resolves the enabled rules that monitor a given error type."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or db.new_session

    def match(self, error_type: ErrorType | str, owner_id: str | None = None) -> list[ErrorAlertRule]:
        value = ErrorType(error_type).value
        try:
            with self._session_factory() as session:
                q = session.query(ErrorAlertRule).filter(ErrorAlertRule.enabled.is_(True))
                if owner_id is not None:
                    q = q.filter(ErrorAlertRule.owner_id == owner_id)
                rules = q.order_by(ErrorAlertRule.id).all()
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"rule lookup failed for error_type={value}: {e}") from e
        # monitored_types is a JSON list; containment is checked here to stay portable across dialects
        matched = [r for r in rules if isinstance(r.monitored_types, list) and value in r.monitored_types]
        logger.debug(f"Matched {len(matched)} of {len(rules)} enabled rules for {value} owner={owner_id}")
        return matched

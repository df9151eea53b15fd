from __future__ import annotations
from datetime import datetime, timedelta
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from error_alerting.infrastructure import db
from error_alerting.models.tables import ErrorLog
from error_alerting.alerting.types import ErrorType
from error_alerting.alerting.errors import StoreUnavailable


def window_bounds(now: datetime, window_minutes: int) -> tuple[datetime, datetime]:
    return now - timedelta(minutes=window_minutes), now


class WindowCounter:
    """Counts an owner's errors of one type inside [window_start, window_end].

    Always reads the live store; the result only answers "has the rate crossed the
    threshold now", duplicate firing is prevented by the cooldown claim.
    """

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or db.new_session

    def count(self, owner_id: str, error_type: ErrorType | str, window_start: datetime, window_end: datetime) -> int:
        q = select(func.count(ErrorLog.id)).where(
            ErrorLog.owner_id == owner_id,
            ErrorLog.error_type == ErrorType(error_type).value,
            ErrorLog.occurred_at >= window_start,
            ErrorLog.occurred_at <= window_end,
        )
        try:
            with self._session_factory() as session:
                return int(session.execute(q).scalar() or 0)
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"window count failed for owner={owner_id}: {e}") from e

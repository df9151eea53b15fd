"""Ingest adapter: persists error occurrences and hands them to the engine."""
from __future__ import annotations
import logging
from datetime import datetime
from sqlalchemy.exc import SQLAlchemyError
from error_alerting.config import Settings, get_settings
from error_alerting.infrastructure import db
from error_alerting.infrastructure.metrics import ERRORS_RECORDED
from error_alerting.models.tables import ErrorLog
from error_alerting.alerting.types import ErrorEvent, ErrorType
from error_alerting.alerting.errors import StoreUnavailable
from error_alerting.alerting.engine import event_from_log, as_naive_utc, utcnow

logger = logging.getLogger(__name__)


def record_error(
    owner_id: str,
    error_type: ErrorType | str,
    path: str = "",
    error_code: str | None = None,
    message: str | None = None,
    stack_trace: str | None = None,
    user_agent: str | None = None,
    ip_address: str | None = None,
    metadata: dict | None = None,
    occurred_at: datetime | None = None,
    settings: Settings | None = None,
    session_factory=None,
) -> ErrorEvent:
    settings = settings or get_settings()
    session_factory = session_factory or db.new_session
    etype = ErrorType(error_type)
    row = ErrorLog(
        owner_id=owner_id,
        error_type=etype.value,
        path=path,
        error_code=error_code,
        message=message,
        # stack traces stay out of production logs
        stack_trace=None if settings.is_production else stack_trace,
        user_agent=user_agent,
        ip_address=ip_address,
        meta=metadata or {},
        occurred_at=as_naive_utc(occurred_at) if occurred_at else utcnow(),
    )
    try:
        with session_factory() as session:
            session.add(row)
            session.commit()
    except SQLAlchemyError as e:
        raise StoreUnavailable(f"failed to record {etype.value} error: {e}") from e
    ERRORS_RECORDED.labels(error_type=etype.value).inc()
    logger.info(f"Logged {etype.value} error {row.id} for owner {owner_id} at {path or '-'}")
    return event_from_log(row)


def load_event(error_log_id: int, session_factory=None) -> ErrorEvent | None:
    session_factory = session_factory or db.new_session
    try:
        with session_factory() as session:
            row = session.get(ErrorLog, error_log_id)
    except SQLAlchemyError as e:
        raise StoreUnavailable(f"failed to load error log {error_log_id}: {e}") from e
    return event_from_log(row) if row else None

from __future__ import annotations
import logging
from celery import shared_task
from error_alerting.config import get_settings
from error_alerting.alerting.engine import process_error_event
from error_alerting.alerting.errors import StoreUnavailable
from error_alerting.alerting.ingest import load_event

logger = logging.getLogger(__name__)


@shared_task
def process_error_alerts(error_log_id: int):
    """Evaluate alert rules for one recorded error.

    The result dict carries ``retryable``; re-running the task for the same error is
    safe because firing is gated by the cooldown claim and notifications are keyed
    by (rule, error).
    """
    try:
        event = load_event(error_log_id)
    except StoreUnavailable as e:
        logger.error(f"Could not load error log {error_log_id}: {e}")
        return {"status": "error", "event_id": error_log_id, "retryable": True, "errors": [str(e)]}
    if event is None:
        logger.warning(f"Error log {error_log_id} not found; nothing to evaluate")
        return {"status": "not_found", "event_id": error_log_id, "retryable": False}
    summary = process_error_event(event)
    return {"status": "error" if summary.errors else "ok", **summary.as_dict()}


def schedule_evaluation(error_log_id: int) -> dict:
    """Run inline in tests / when configured, else hand off to the worker."""
    settings = get_settings()
    if settings.evaluate_inline:
        return {"task_id": None, "result": process_error_alerts(error_log_id)}
    result = process_error_alerts.delay(error_log_id)
    return {"task_id": result.id, "result": None}

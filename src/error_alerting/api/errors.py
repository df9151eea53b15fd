from __future__ import annotations
from fastapi import APIRouter, Header, HTTPException, Request
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from error_alerting.alerting.types import ErrorType
from error_alerting.alerting.errors import StoreUnavailable
from error_alerting.alerting.ingest import record_error
from error_alerting.infrastructure.celery_app import celery_app  # noqa: F401  binds shared tasks to the configured broker
from error_alerting.tasks.alerts import process_error_alerts, schedule_evaluation

router = APIRouter(tags=["errors"])


class ErrorLogIn(BaseModel):
    owner_id: str
    error_type: ErrorType
    error_code: str | None = None
    path: str = ""
    message: str | None = None
    stack_trace: str | None = None
    metadata: dict = Field(default_factory=dict)
    occurred_at: datetime | None = None


class ProcessAlertIn(BaseModel):
    error_log_id: int


def _client_ip(request: Request, forwarded_for: str | None, real_ip: str | None) -> str:
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


@router.post("/errors")
def log_error(
    body: ErrorLogIn,
    request: Request,
    user_agent: Optional[str] = Header(None, alias="User-Agent"),
    x_forwarded_for: Optional[str] = Header(None, alias="X-Forwarded-For"),
    x_real_ip: Optional[str] = Header(None, alias="X-Real-IP"),
):
    try:
        event = record_error(
            owner_id=body.owner_id,
            error_type=body.error_type,
            path=body.path,
            error_code=body.error_code,
            message=body.message,
            stack_trace=body.stack_trace,
            user_agent=user_agent,
            ip_address=_client_ip(request, x_forwarded_for, x_real_ip),
            metadata=body.metadata,
            occurred_at=body.occurred_at,
        )
    except StoreUnavailable:
        raise HTTPException(status_code=503, detail="store_unavailable")
    scheduled = schedule_evaluation(event.id)
    return {"success": True, "log_id": event.id, "task_id": scheduled["task_id"], "alerts": scheduled["result"]}


@router.post("/alerts/process")
def process_alerts(body: ProcessAlertIn):
    """Re-run evaluation for a stored error (safe to repeat)."""
    result = process_error_alerts(body.error_log_id)
    if result["status"] == "not_found":
        raise HTTPException(status_code=404, detail="not_found")
    return {"success": result["status"] == "ok", "processed_configs": result.get("evaluated", 0), **result}

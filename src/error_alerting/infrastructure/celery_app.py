from celery import Celery
from celery import signals
import time
from error_alerting.config import get_settings
from error_alerting.infrastructure.metrics import TASK_SUCCESS, TASK_FAILURE, TASK_DURATION

settings = get_settings()

celery_app = Celery(
    "error_alerting",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "error_alerting.tasks.alerts",
    ],
)

celery_app.conf.update(task_serializer="json", result_serializer="json", accept_content=["json"], timezone="UTC", enable_utc=True)
celery_app.conf.update(task_default_queue="error-alerts")

_task_start_times = {}

@signals.task_prerun.connect
def _task_prerun(sender=None, task_id=None, **kwargs):  # noqa
    _task_start_times[task_id] = time.time()

@signals.task_postrun.connect
def _task_postrun(sender=None, task_id=None, state=None, **kwargs):  # noqa
    task_name = sender.name if sender else 'unknown'
    start = _task_start_times.pop(task_id, None)
    if start is not None:
        TASK_DURATION.labels(task=task_name).observe(time.time() - start)
    if state == 'SUCCESS':
        TASK_SUCCESS.labels(task=task_name).inc()
    elif state is not None:
        TASK_FAILURE.labels(task=task_name).inc()

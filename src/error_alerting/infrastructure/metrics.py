"""Prometheus registry shared by the API process, the engine and Celery workers."""
from prometheus_client import CollectorRegistry, Counter, Histogram

registry = CollectorRegistry()

ERRORS_RECORDED = Counter('error_events_recorded_total', 'Error events persisted by the ingest adapter', ['error_type'], registry=registry)
ALERT_EVALUATIONS = Counter('alert_evaluations_total', 'Alert engine invocations', registry=registry)
ALERT_RULES_EVALUATED = Counter('alert_rules_evaluated_total', 'Candidate rules evaluated', registry=registry)
ALERTS_FIRED = Counter('alerts_fired_total', 'Alerts fired', ['severity'], registry=registry)
ALERTS_SUPPRESSED = Counter('alerts_suppressed_total', 'Qualifying alerts suppressed by cooldown', ['reason'], registry=registry)
ALERT_RULE_ERRORS = Counter('alert_rule_errors_total', 'Rules skipped during evaluation', ['reason'], registry=registry)
NOTIFICATIONS_WRITTEN = Counter('alert_notifications_written_total', 'In-app notifications written', registry=registry)
DISPATCH_FAILURES = Counter('alert_dispatch_failures_total', 'Notification dispatch failures', ['channel'], registry=registry)
EVALUATION_LATENCY = Histogram('alert_evaluation_latency_seconds', 'Latency of one engine invocation', registry=registry, buckets=(0.005,0.01,0.05,0.1,0.25,0.5,1,2,5))

TASK_SUCCESS = Counter('celery_task_success_total', 'Celery task successes', ['task'], registry=registry)
TASK_FAILURE = Counter('celery_task_failure_total', 'Celery task failures', ['task'], registry=registry)
TASK_DURATION = Histogram('celery_task_duration_seconds', 'Celery task runtime', ['task'], registry=registry, buckets=(0.05,0.1,0.25,0.5,1,2,5,10,30,60))

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path", "status"],
)
REQUEST_ERRORS = Counter(
    "http_request_errors_total",
    "Total HTTP 5xx responses",
    ["method", "path", "status"],
)

SIGNING_REJECTIONS = Counter(
    "signing_session_rejections_total",
    "Signing link validations that were rejected",
    ["reason"],
)
DOCUMENTS_COMPLETED = Counter(
    "documents_completed_total",
    "Documents transitioned to completed",
)
EMAILS_SENT = Counter(
    "workflow_emails_total",
    "Workflow emails by kind and outcome",
    ["kind", "outcome"],
)
AUDIT_WRITE_FAILURES = Counter(
    "audit_write_failures_total",
    "Audit events that could not be written",
    ["event_type"],
)

JOB_DURATION = Histogram(
    "job_duration_seconds",
    "Background job duration",
    ["task", "status"],
)


def observe_job(task_name: str, status: str, duration: float) -> None:
    JOB_DURATION.labels(task=task_name, status=status).observe(duration)

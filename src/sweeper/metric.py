import logging

from prometheus_client import CollectorRegistry, Counter, push_to_gateway

logger = logging.getLogger("sweeper")

push_registry = CollectorRegistry()

api_call_count = Counter(
    "sweeper_num_api_calls",
    "Total number of GitHub API operations, paginated listings count once",
    labelnames=["endpoint"],
    registry=push_registry,
)

cancel_request_count = Counter(
    "sweeper_num_cancel_requests",
    "Number of workflow run cancellation requests",
    labelnames=["kind", "dry_run"],
    registry=push_registry,
)

skipped_count = Counter(
    "sweeper_num_skipped",
    "Number of check suites and workflow runs left alone",
    labelnames=["reason"],
    registry=push_registry,
)

cancel_error_count = Counter(
    "sweeper_num_cancel_errors",
    "Number of failed workflow run cancellation calls",
    labelnames=["kind"],
    registry=push_registry,
)


def record_api_call(endpoint: str) -> None:
    api_call_count.labels(endpoint=endpoint).inc()


def record_cancel_request(kind: str, dry_run: bool) -> None:
    cancel_request_count.labels(kind=kind, dry_run=str(dry_run).lower()).inc()


def record_skip(reason: str) -> None:
    skipped_count.labels(reason=reason).inc()


def record_cancel_error(kind: str) -> None:
    cancel_error_count.labels(kind=kind).inc()


def push_metrics(gateway: str, job: str = "sweeper") -> bool:
    try:
        push_to_gateway(gateway, job=job, registry=push_registry)
    except OSError:
        logger.error("Unable to push metrics to %s", gateway, exc_info=True)
        return False
    return True

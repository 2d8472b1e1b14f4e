from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "portal_api_requests_total",
    "Total API requests",
    ["method", "path", "status"],
)

REQUEST_LATENCY = Histogram(
    "portal_api_request_latency_seconds",
    "API request latency",
    ["method", "path"],
)

TASK_COUNT = Counter(
    "portal_task_total",
    "Total task executions",
    ["task", "status"],
)

TRANSITION_COUNT = Counter(
    "portal_content_transitions_total",
    "Committed content status transitions",
    ["from_status", "to_status", "role"],
)

TRANSITION_REJECTED = Counter(
    "portal_content_transition_rejections_total",
    "Rejected content status transitions",
    ["code"],
)

REVIEW_ROUND_DRIFT = Counter(
    "portal_review_round_drift_total",
    "Items whose stored review round disagrees with their status history",
)

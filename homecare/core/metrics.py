from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_code"],
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "path"],
)

BOOKING_TRANSITIONS = Counter(
    "booking_transitions_total",
    "Booking status transitions",
    ["from_status", "to_status"],
)

DOMAIN_ERRORS = Counter(
    "domain_errors_total",
    "Domain errors returned to callers",
    ["error_kind"],
)

DOMAIN_EVENTS = Counter(
    "domain_events_total",
    "Domain events published",
    ["event_type"],
)


def render_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST

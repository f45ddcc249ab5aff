from prometheus_client import Counter, Gauge, Histogram

api_call_count = Counter(
    "prstatus_num_api_calls",
    "Total number of GitHub API calls",
    labelnames=["endpoint"],
)

refresh_counter = Counter(
    "prstatus_refresh_total",
    "Number of refresh cycles by outcome",
    labelnames=["result"],
)

fetch_error_counter = Counter(
    "prstatus_fetch_errors",
    "Number of failed fetches",
    labelnames=["source", "kind"],
)

refresh_seconds = Histogram(
    "prstatus_refresh_seconds",
    "Duration of a refresh cycle",
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

notification_count = Gauge(
    "prstatus_notification_count", "Unread notifications matching the filter"
)

open_pull_requests = Gauge(
    "prstatus_open_pull_requests",
    "Open pull requests per category",
    labelnames=["category"],
)


def record_api_call(endpoint: str) -> None:
    api_call_count.labels(endpoint=endpoint).inc()


def record_fetch_error(source: str, kind: str) -> None:
    fetch_error_counter.labels(source=source, kind=kind).inc()


def observe_view(view) -> None:
    notification_count.set(view.badge_count)
    if view.buckets is None:
        return
    for category, count in view.buckets.counts().items():
        open_pull_requests.labels(category=category.value).set(count)

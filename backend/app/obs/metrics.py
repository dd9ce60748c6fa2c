"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Summary


REQUEST_COUNTER = Counter(
	"groupmatch_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"groupmatch_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

MATCH_FEED_REQUESTS = Counter(
	"groupmatch_match_feed_requests_total",
	"Match feed requests by outcome",
	["result"],
)

MATCH_FEED_LATENCY = Histogram(
	"groupmatch_match_feed_duration_seconds",
	"End-to-end match feed assembly latency",
	buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 4.0, 8.0),
)

MATCH_FEED_REFETCHES = Counter(
	"groupmatch_match_feed_refetch_total",
	"Ranker re-fetches caused by exclusions starving a page",
)

RANKER_LATENCY = Histogram(
	"groupmatch_ranker_duration_seconds",
	"Similarity ranker query latency",
	buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

RANKER_FAILURES = Counter(
	"groupmatch_ranker_failures_total",
	"Similarity ranker failures",
	["reason"],
)

EMBEDDINGS = Counter(
	"groupmatch_embeddings_total",
	"Profile embedding attempts by result",
	["result"],
)

MATCH_REASONS = Counter(
	"groupmatch_match_reasons_total",
	"Generated match reasons by result",
	["result"],
)

MATCH_REQUESTS_SENT = Counter(
	"groupmatch_match_requests_sent_total",
	"Match requests created",
	["result"],
)

MATCH_REQUEST_REJECTS = Counter(
	"groupmatch_match_request_rejects_total",
	"Match requests rejected before creation",
	["reason"],
)

CONNECTIONS_CREATED = Counter(
	"groupmatch_connections_created_total",
	"Connections materialised from mutual interest",
	["via"],
)

SUPPRESSIONS = Counter(
	"groupmatch_suppressions_total",
	"Hide/unhide actions",
	["action"],
)

MEMBERSHIP_EXITS = Counter(
	"groupmatch_membership_exits_total",
	"Members leaving a group by outcome",
	["result"],
)

BACKGROUND_RUNS = Counter(
	"groupmatch_background_runs_total",
	"Administrative batch runs",
	["name", "result"],
)

BACKGROUND_DURATION = Histogram(
	"groupmatch_background_duration_seconds",
	"Administrative batch duration",
	["name"],
	buckets=(0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0),
)

REDIS_UP = Gauge("groupmatch_redis_up", "Redis availability (1=up,0=down)")
REDIS_LATENCY = Summary("groupmatch_redis_latency_seconds", "Redis ping latency (seconds)")

POSTGRES_UP = Gauge("groupmatch_postgres_up", "Postgres availability (1=up,0=down)")
POSTGRES_LATENCY = Summary("groupmatch_postgres_latency_seconds", "Postgres ping latency (seconds)")


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def observe_feed(result: str, elapsed_seconds: float | None = None) -> None:
	MATCH_FEED_REQUESTS.labels(result=result).inc()
	if elapsed_seconds is not None:
		MATCH_FEED_LATENCY.observe(elapsed_seconds)


def inc_feed_refetch() -> None:
	MATCH_FEED_REFETCHES.inc()


def observe_ranker(elapsed_seconds: float) -> None:
	RANKER_LATENCY.observe(elapsed_seconds)


def inc_ranker_failure(reason: str) -> None:
	RANKER_FAILURES.labels(reason=reason).inc()


def inc_embedding(result: str) -> None:
	EMBEDDINGS.labels(result=result).inc()


def inc_match_reason(result: str) -> None:
	MATCH_REASONS.labels(result=result).inc()


def inc_match_request_sent(result: str) -> None:
	MATCH_REQUESTS_SENT.labels(result=result).inc()


def inc_match_request_reject(reason: str) -> None:
	MATCH_REQUEST_REJECTS.labels(reason=reason).inc()


def inc_connection_created(via: str) -> None:
	CONNECTIONS_CREATED.labels(via=via).inc()


def inc_suppression(action: str) -> None:
	SUPPRESSIONS.labels(action=action).inc()


def inc_membership_exit(result: str) -> None:
	MEMBERSHIP_EXITS.labels(result=result).inc()


def mark_redis(ok: bool, *, latency_seconds: float | None = None) -> None:
	REDIS_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		REDIS_LATENCY.observe(latency_seconds)


def mark_postgres(ok: bool, *, latency_seconds: float | None = None) -> None:
	POSTGRES_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		POSTGRES_LATENCY.observe(latency_seconds)


def record_job_run(name: str, *, result: str, duration_seconds: float | None = None) -> None:
	BACKGROUND_RUNS.labels(name=name, result=result).inc()
	if duration_seconds is not None:
		BACKGROUND_DURATION.labels(name=name).observe(duration_seconds)

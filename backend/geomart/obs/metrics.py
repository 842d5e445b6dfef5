"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Summary


REQUEST_COUNTER = Counter(
	"geomart_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"geomart_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

REDIS_UP = Gauge("geomart_redis_up", "Redis availability (1=up,0=down)")
REDIS_LATENCY = Summary("geomart_redis_latency_seconds", "Redis ping latency (seconds)")

POSTGRES_UP = Gauge("geomart_postgres_up", "Postgres availability (1=up,0=down)")
POSTGRES_LATENCY = Summary("geomart_postgres_latency_seconds", "Postgres ping latency (seconds)")

MARKETPLACE_QUERIES = Counter(
	"geomart_marketplace_queries_total",
	"Marketplace search queries executed",
	["sort_by", "item_type"],
)

MARKETPLACE_LATENCY = Histogram(
	"geomart_marketplace_latency_seconds",
	"Marketplace search latency in seconds",
	["store"],
	buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0),
)

MARKETPLACE_RESULTS = Gauge(
	"geomart_marketplace_results",
	"Items returned by the most recent marketplace page",
	["item_type"],
)

MARKETPLACE_ERRORS = Counter(
	"geomart_marketplace_errors_total",
	"Marketplace searches rejected or failed",
	["reason"],
)

VERIFICATION_CACHE = Counter(
	"geomart_verification_cache_total",
	"Verification lookups served from or missing the cache",
	["result"],
)


def observe_request(route: str, method: str, status: int, latency_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(latency_seconds)


def mark_redis(ok: bool, *, latency_seconds: float | None = None) -> None:
	REDIS_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		REDIS_LATENCY.observe(latency_seconds)


def mark_postgres(ok: bool, *, latency_seconds: float | None = None) -> None:
	POSTGRES_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		POSTGRES_LATENCY.observe(latency_seconds)


def inc_marketplace_query(sort_by: str, item_type: str | None) -> None:
	MARKETPLACE_QUERIES.labels(sort_by=sort_by, item_type=item_type or "all").inc()


def observe_marketplace_latency(store: str, latency_seconds: float) -> None:
	MARKETPLACE_LATENCY.labels(store=store).observe(latency_seconds)


def set_marketplace_results(item_type: str | None, count: int) -> None:
	MARKETPLACE_RESULTS.labels(item_type=item_type or "all").set(count)


def inc_marketplace_error(reason: str) -> None:
	MARKETPLACE_ERRORS.labels(reason=reason).inc()


def inc_verification_cache(result: str) -> None:
	VERIFICATION_CACHE.labels(result=result).inc()

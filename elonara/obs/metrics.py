"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

CIRCLE_CACHE_EVENTS = Counter(
	"elonara_circle_cache_events_total",
	"Circle cache lookups and writes",
	["backend", "event"],
)

CIRCLE_BFS_DURATION = Histogram(
	"elonara_circle_bfs_duration_seconds",
	"Time spent computing hop distances for a user",
	buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)

CIRCLE_BFS_REACHED = Histogram(
	"elonara_circle_bfs_reached_users",
	"Number of users reached by a hop traversal",
	buckets=(0, 1, 5, 10, 50, 100, 500, 1000, 5000),
)

PEER_LINK_MUTATIONS = Counter(
	"elonara_peer_link_mutations_total",
	"Peer link create/remove attempts",
	["action", "result"],
)

FEED_REQUESTS = Counter(
	"elonara_feed_requests_total",
	"Feed requests served",
	["kind", "result"],
)

BACKGROUND_RUNS = Counter(
	"elonara_jobs_runs_total",
	"Background job executions",
	["name", "result"],
)

BACKGROUND_DURATION = Histogram(
	"elonara_jobs_duration_seconds",
	"Background job duration",
	["name"],
	buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 15.0, 30.0, 60.0),
)


def inc_circle_cache(backend: str, event: str) -> None:
	CIRCLE_CACHE_EVENTS.labels(backend=backend, event=event).inc()


def observe_bfs(duration_seconds: float, reached: int) -> None:
	CIRCLE_BFS_DURATION.observe(duration_seconds)
	CIRCLE_BFS_REACHED.observe(reached)


def inc_link_mutation(action: str, result: str) -> None:
	PEER_LINK_MUTATIONS.labels(action=action, result=result).inc()


def inc_feed_request(kind: str, result: str) -> None:
	FEED_REQUESTS.labels(kind=kind, result=result).inc()


def record_job_run(name: str, *, result: str) -> None:
	BACKGROUND_RUNS.labels(name=name, result=result).inc()


def observe_job_duration(name: str, duration_seconds: float) -> None:
	BACKGROUND_DURATION.labels(name=name).observe(duration_seconds)

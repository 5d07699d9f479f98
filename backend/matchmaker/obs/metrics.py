"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNTER = Counter(
	"matchmaker_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"matchmaker_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

MATCH_FETCHES = Counter(
	"matchmaker_match_fetches_total",
	"Scored candidate fetches by outcome",
	["outcome"],
)

MATCH_STALE_DISCARDS = Counter(
	"matchmaker_match_stale_discards_total",
	"Scored candidate responses dropped because a newer fetch superseded them",
)

MATCH_CANDIDATE_FAILURES = Counter(
	"matchmaker_match_candidate_failures_total",
	"Candidates dropped from a result list because scoring them failed",
)

MATCH_SCORING_LATENCY = Histogram(
	"matchmaker_match_scoring_seconds",
	"Time spent scoring a full candidate list",
	buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)

STATUS_WRITES = Counter(
	"matchmaker_status_writes_total",
	"Manual status persistence calls",
	["op", "outcome"],
)

STATUS_FEED_EVENTS = Counter(
	"matchmaker_status_feed_events_total",
	"Manual status change-feed rows processed",
	["outcome"],
)

STATUS_RESYNCS = Counter(
	"matchmaker_status_resyncs_total",
	"Optimistic statuses re-synced after the confirmation window expired",
)

PRESENCE_EVENTS = Counter(
	"matchmaker_presence_events_total",
	"Presence channel events applied",
	["kind"],
)

PRESENCE_MEMBERS = Gauge(
	"matchmaker_presence_members",
	"Members currently in the presence set",
)

PRESENCE_SWEEPER_TRIMS = Counter(
	"matchmaker_presence_sweeper_trims_total",
	"Presence members removed because their heartbeat expired",
)

PRESENCE_KEEPALIVE_FAILURES = Counter(
	"matchmaker_presence_keepalive_failures_total",
	"Presence heartbeat refreshes that failed",
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)

"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


REQUEST_COUNTER = Counter(
	"synchro_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"synchro_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SOCKET_CLIENTS = Gauge(
	"synchro_socketio_clients",
	"Active Socket.IO clients per namespace",
	["namespace"],
)

SOCKET_EVENTS = Counter(
	"synchro_socketio_events_total",
	"Socket.IO events emitted per namespace",
	["namespace", "event"],
)

PRESENCE_SAMPLES = Counter(
	"synchro_presence_samples_total",
	"Device samples written to presence",
	["result"],
)

TRACKERS_ACTIVE = Gauge(
	"synchro_location_trackers_active",
	"Users with an active location tracker",
)

ACTIVITY_DETECTIONS = Counter(
	"synchro_activity_detections_total",
	"Activity detections by type and whether they were persisted",
	["activity", "persisted"],
)

SYNCHRONICITIES = Counter(
	"synchro_synchronicities_total",
	"Synchronicity scan outcomes",
	["result"],
)

SCANNERS_ACTIVE = Gauge(
	"synchro_scanners_active",
	"Users with an active synchronicity scanner",
)

AUTO_LOBBIES = Counter(
	"synchro_auto_lobbies_total",
	"Auto lobby lifecycle transitions",
	["event"],
)

PINGS = Counter(
	"synchro_pings_total",
	"Ping lifecycle events",
	["event"],
)

PING_REJECTS = Counter(
	"synchro_ping_rejects_total",
	"Ping operations rejected by a domain guard",
	["reason"],
)

MATCH_MESSAGES = Counter(
	"synchro_match_messages_total",
	"Match chat sends",
	["result"],
)

KARMA_TRANSACTIONS = Counter(
	"synchro_karma_transactions_total",
	"Karma ledger inserts",
	["type"],
)

RHYTHM_ANALYSES = Counter(
	"synchro_rhythm_analyses_total",
	"Rhythm analysis runs",
	["result"],
)

MAINTENANCE_RUNS = Counter(
	"synchro_maintenance_runs_total",
	"Maintenance sweep runs",
	["job", "result"],
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def socket_connected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).inc()


def socket_disconnected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).dec()


def socket_event(namespace: str, event: str) -> None:
	SOCKET_EVENTS.labels(namespace=namespace, event=event).inc()


def inc_presence_sample(result: str) -> None:
	PRESENCE_SAMPLES.labels(result=result).inc()


def set_trackers_active(count: int) -> None:
	TRACKERS_ACTIVE.set(count)


def inc_activity_detection(activity: str, persisted: bool) -> None:
	ACTIVITY_DETECTIONS.labels(activity=activity, persisted="true" if persisted else "false").inc()


def inc_synchronicity(result: str) -> None:
	SYNCHRONICITIES.labels(result=result).inc()


def set_scanners_active(count: int) -> None:
	SCANNERS_ACTIVE.set(count)


def inc_auto_lobby(event: str, count: int = 1) -> None:
	if count > 0:
		AUTO_LOBBIES.labels(event=event).inc(count)


def inc_ping(event: str, count: int = 1) -> None:
	if count > 0:
		PINGS.labels(event=event).inc(count)


def inc_ping_reject(reason: str) -> None:
	PING_REJECTS.labels(reason=reason).inc()


def inc_match_message(result: str) -> None:
	MATCH_MESSAGES.labels(result=result).inc()


def inc_karma_transaction(transaction_type: str) -> None:
	KARMA_TRANSACTIONS.labels(type=transaction_type).inc()


def inc_rhythm_analysis(result: str) -> None:
	RHYTHM_ANALYSES.labels(result=result).inc()


def inc_maintenance_run(job: str, result: str) -> None:
	MAINTENANCE_RUNS.labels(job=job, result=result).inc()

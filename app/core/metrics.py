from __future__ import annotations

"""Prometheus metrics for the ingestion pipeline, content server and broadcaster.

Exposed on `/metrics` via `app.api.v1.routers.ops`.
"""

from prometheus_client import Counter, Gauge, Histogram

pipeline_runs_total = Counter(
    "pipeline_runs_total",
    "Ingestion runs by terminal outcome",
    labelnames=("outcome",),
)
pipeline_stage_seconds = Histogram(
    "pipeline_stage_seconds",
    "Latency of individual ingestion stages",
    labelnames=("stage",),
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)
pipeline_in_flight = Gauge(
    "pipeline_in_flight",
    "Ingestion runs currently executing in this process",
)
stream_responses_total = Counter(
    "stream_responses_total",
    "Content server responses by HTTP status",
    labelnames=("status",),
)
stream_bytes_total = Counter(
    "stream_bytes_total",
    "Bytes written to media response bodies",
)
broadcast_events_total = Counter(
    "broadcast_events_total",
    "Progress events per observer by delivery result",
    labelnames=("result",),
)
broadcast_observers = Gauge(
    "broadcast_observers",
    "Connected progress observers",
)
redis_errors_total = Counter(
    "redis_errors_total",
    "Redis errors encountered",
    labelnames=("component",),
)


def inc_pipeline_run(outcome: str) -> None:
    pipeline_runs_total.labels(outcome=outcome).inc()


def observe_stage_seconds(stage: str, seconds: float) -> None:
    pipeline_stage_seconds.labels(stage=stage).observe(seconds)


def inc_stream_response(status: int) -> None:
    stream_responses_total.labels(status=str(status)).inc()


def add_stream_bytes(n: int) -> None:
    stream_bytes_total.inc(n)


def inc_broadcast(result: str, n: int = 1) -> None:
    broadcast_events_total.labels(result=result).inc(n)


def inc_redis_error(component: str) -> None:
    redis_errors_total.labels(component=component).inc()


__all__ = [
    "pipeline_in_flight",
    "broadcast_observers",
    "inc_pipeline_run",
    "observe_stage_seconds",
    "inc_stream_response",
    "add_stream_bytes",
    "inc_broadcast",
    "inc_redis_error",
]

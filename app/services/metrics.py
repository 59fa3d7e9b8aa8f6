"""
Lightweight Prometheus-compatible metrics collector.

Tracks: request counts, response times, error rates, cache hit ratio.
"""

import time
from collections import defaultdict
from typing import Any

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

METRIC_PREFIX = "taxonomy"


class MetricsCollector:
    """
    In-process metrics collector.

    Collects request counts, response times, error rates and
    read-through cache lookups, and exposes them in Prometheus text format.
    """

    def __init__(self) -> None:
        self._request_count: dict[str, int] = defaultdict(int)
        self._error_count: dict[str, int] = defaultdict(int)
        self._response_time_sum: dict[str, float] = defaultdict(float)
        self._response_time_count: dict[str, int] = defaultdict(int)
        self._status_counts: dict[int, int] = defaultdict(int)
        self._cache_lookups: dict[str, int] = defaultdict(int)
        self._start_time: float = time.time()

    def record_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration: float,
    ) -> None:
        """Record a completed request."""
        key = f"{method} {path}"
        self._request_count[key] += 1
        self._response_time_sum[key] += duration
        self._response_time_count[key] += 1
        self._status_counts[status_code] += 1

        if status_code >= 400:
            self._error_count[key] += 1

    def record_cache_lookup(self, result: str) -> None:
        """Record a cache lookup outcome: "hit", "miss" or "error"."""
        self._cache_lookups[result] += 1

    def cache_hit_ratio(self) -> float:
        hits = self._cache_lookups["hit"]
        total = hits + self._cache_lookups["miss"]
        return round(hits / total, 4) if total > 0 else 0

    def get_metrics(self) -> dict[str, Any]:
        """Get metrics as a structured dictionary."""
        total_requests = sum(self._request_count.values())
        total_errors = sum(self._error_count.values())
        uptime = time.time() - self._start_time

        return {
            "uptime_seconds": round(uptime, 2),
            "total_requests": total_requests,
            "total_errors": total_errors,
            "error_rate": round(total_errors / total_requests, 4) if total_requests > 0 else 0,
            "requests_by_endpoint": dict(self._request_count),
            "errors_by_endpoint": dict(self._error_count),
            "status_code_counts": {str(k): v for k, v in sorted(self._status_counts.items())},
            "avg_response_time_ms": {
                k: round((self._response_time_sum[k] / self._response_time_count[k]) * 1000, 2)
                for k in self._response_time_count
            },
            "cache": {
                "lookups": dict(self._cache_lookups),
                "hit_ratio": self.cache_hit_ratio(),
            },
        }

    def to_prometheus(self) -> str:
        """
        Export metrics in Prometheus text exposition format.
        See: https://prometheus.io/docs/instrumenting/exposition_formats/
        """
        p = METRIC_PREFIX
        lines: list[str] = []
        uptime = time.time() - self._start_time

        lines.append(f"# HELP {p}_uptime_seconds Time since service start in seconds")
        lines.append(f"# TYPE {p}_uptime_seconds gauge")
        lines.append(f"{p}_uptime_seconds {uptime:.2f}")
        lines.append("")

        lines.append(f"# HELP {p}_http_requests_total Total HTTP requests")
        lines.append(f"# TYPE {p}_http_requests_total counter")
        for key, count in sorted(self._request_count.items()):
            method, path = key.split(" ", 1)
            lines.append(f'{p}_http_requests_total{{method="{method}",path="{path}"}} {count}')
        lines.append("")

        lines.append(f"# HELP {p}_http_errors_total Total HTTP errors (4xx/5xx)")
        lines.append(f"# TYPE {p}_http_errors_total counter")
        for key, count in sorted(self._error_count.items()):
            method, path = key.split(" ", 1)
            lines.append(f'{p}_http_errors_total{{method="{method}",path="{path}"}} {count}')
        lines.append("")

        lines.append(f"# HELP {p}_http_status_total HTTP responses by status code")
        lines.append(f"# TYPE {p}_http_status_total counter")
        for code, count in sorted(self._status_counts.items()):
            lines.append(f'{p}_http_status_total{{code="{code}"}} {count}')
        lines.append("")

        lines.append(f"# HELP {p}_http_response_time_seconds Average response time in seconds")
        lines.append(f"# TYPE {p}_http_response_time_seconds gauge")
        for key in sorted(self._response_time_count.keys()):
            method, path = key.split(" ", 1)
            avg = self._response_time_sum[key] / self._response_time_count[key]
            lines.append(f'{p}_http_response_time_seconds{{method="{method}",path="{path}"}} {avg:.6f}')
        lines.append("")

        lines.append(f"# HELP {p}_cache_lookups_total Read-through cache lookups by result")
        lines.append(f"# TYPE {p}_cache_lookups_total counter")
        for result, count in sorted(self._cache_lookups.items()):
            lines.append(f'{p}_cache_lookups_total{{result="{result}"}} {count}')
        lines.append("")

        return "\n".join(lines) + "\n"


def format_gauge(name: str, help_text: str, values: dict[str, int]) -> str:
    """Render a gauge keyed by a single `scope` label."""
    metric = f"{METRIC_PREFIX}_{name}"
    lines = [f"# HELP {metric} {help_text}", f"# TYPE {metric} gauge"]
    for label, value in sorted(values.items()):
        lines.append(f'{metric}{{scope="{label}"}} {value}')
    return "\n".join(lines) + "\n\n"


# Global singleton
_metrics_collector: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Get or create the global metrics collector."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector


def normalize_path(path: str) -> str:
    """Collapse UUIDs and numeric IDs so per-route metrics aggregate."""
    normalized = []
    for part in path.split("/"):
        if len(part) == 36 and part.count("-") == 4:
            normalized.append("{id}")
        elif part.isdigit():
            normalized.append("{n}")
        else:
            normalized.append(part)
    return "/".join(normalized)


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    ASGI middleware that records request metrics.

    Measures request duration and records status codes
    for all API requests.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # Skip metrics endpoints themselves
        if "/metrics" in request.url.path:
            return await call_next(request)

        start = time.time()
        response = await call_next(request)
        duration = time.time() - start

        get_metrics_collector().record_request(
            method=request.method,
            path=normalize_path(request.url.path),
            status_code=response.status_code,
            duration=duration,
        )

        return response

# core/metrics.py — in-process metrics for visibility, RBAC, and API calls

import logging
import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

audit_logger = logging.getLogger("rbac.audit")

DEFAULT_BUCKETS = [1.0, 5.0, 10.0, 25.0, 50.0, 100.0, 250.0, 500.0, 1000.0]


@dataclass
class MetricHistogram:
    """Bucketed distribution of observed values."""
    name: str
    labels: Dict[str, str] = field(default_factory=dict)
    buckets: List[float] = field(default_factory=lambda: list(DEFAULT_BUCKETS))
    counts: List[int] = field(default_factory=lambda: [0] * (len(DEFAULT_BUCKETS) + 1))
    sum: float = 0.0
    count: int = 0

    def observe(self, value: float):
        self.sum += value
        self.count += 1
        for i, bucket in enumerate(self.buckets):
            if value <= bucket:
                self.counts[i] += 1
                return
        # overflow bucket
        self.counts[-1] += 1

    def stats(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "sum": self.sum,
            "avg": self.sum / self.count if self.count else 0.0,
            "buckets": dict(zip([*self.buckets, "inf"], self.counts)),
        }


class MetricsCollector:
    """Thread-safe counters and histograms keyed by name + labels."""

    def __init__(self):
        self._lock = threading.RLock()
        self._counters: Dict[str, int] = defaultdict(int)
        self._counter_meta: Dict[str, Dict[str, Any]] = {}
        self._histograms: Dict[str, MetricHistogram] = {}
        self._gauges: Dict[str, float] = {}
        self._start_time = time.time()

    @staticmethod
    def _key(name: str, labels: Optional[Dict[str, str]] = None) -> str:
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"

    def increment_counter(self, name: str, value: int = 1, labels: Optional[Dict[str, str]] = None):
        with self._lock:
            key = self._key(name, labels)
            self._counters[key] += value
            self._counter_meta[key] = {"name": name, "labels": dict(labels or {})}

    def observe_histogram(self, name: str, value: float, labels: Optional[Dict[str, str]] = None):
        with self._lock:
            key = self._key(name, labels)
            if key not in self._histograms:
                self._histograms[key] = MetricHistogram(name=name, labels=dict(labels or {}))
            self._histograms[key].observe(value)

    def set_gauge(self, name: str, value: float):
        with self._lock:
            self._gauges[name] = value

    def get_gauge(self, name: str) -> Optional[float]:
        with self._lock:
            return self._gauges.get(name)

    def get_counter(self, name: str, labels: Optional[Dict[str, str]] = None) -> int:
        with self._lock:
            return self._counters.get(self._key(name, labels), 0)

    def get_histogram_stats(self, name: str, labels: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        with self._lock:
            histogram = self._histograms.get(self._key(name, labels))
            if histogram is None:
                return MetricHistogram(name=name).stats()
            return histogram.stats()

    def get_all_metrics(self) -> Dict[str, Any]:
        """Snapshot grouped by metric name."""
        with self._lock:
            counters: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
            for key, value in self._counters.items():
                meta = self._counter_meta[key]
                counters[meta["name"]].append({"value": value, "labels": meta["labels"]})

            histograms: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
            for histogram in self._histograms.values():
                histograms[histogram.name].append({
                    "stats": histogram.stats(),
                    "labels": histogram.labels,
                })

            return {
                "counters": dict(counters),
                "histograms": dict(histograms),
                "gauges": dict(self._gauges),
                "uptime_seconds": time.time() - self._start_time,
                "timestamp": time.time(),
            }

    def reset_metrics(self):
        with self._lock:
            self._counters.clear()
            self._counter_meta.clear()
            self._histograms.clear()
            self._gauges.clear()
            self._start_time = time.time()


# Global metrics collector instance
_metrics = MetricsCollector()


def increment_counter(name: str, value: int = 1, labels: Dict[str, str] = None):
    """Increment a counter metric."""
    _metrics.increment_counter(name, value, labels)


def observe_histogram(name: str, value: float, labels: Dict[str, str] = None):
    """Observe a value in a histogram metric."""
    _metrics.observe_histogram(name, value, labels)


def set_gauge(name: str, value: float):
    """Set a gauge to its current value."""
    _metrics.set_gauge(name, value)


def get_gauge(name: str) -> Optional[float]:
    return _metrics.get_gauge(name)


def get_counter(name: str, labels: Dict[str, str] = None) -> int:
    """Get the current value of a counter."""
    return _metrics.get_counter(name, labels)


def get_histogram_stats(name: str, labels: Dict[str, str] = None) -> Dict[str, Any]:
    """Get histogram statistics."""
    return _metrics.get_histogram_stats(name, labels)


def get_all_metrics() -> Dict[str, Any]:
    """Get all metrics in a structured format."""
    return _metrics.get_all_metrics()


def reset_metrics():
    """Reset all metrics to zero."""
    _metrics.reset_metrics()


@contextmanager
def time_operation(operation_name: str, labels: Dict[str, str] = None):
    """Context manager to time an operation and record it as a histogram."""
    start_time = time.time()
    try:
        yield
    finally:
        duration_ms = (time.time() - start_time) * 1000
        observe_histogram(f"{operation_name}_latency_ms", duration_ms, labels)


def record_api_call(endpoint: str, method: str, status_code: int, latency_ms: float):
    """Record an API call with timing and status."""
    increment_counter("api_calls_total", labels={"endpoint": endpoint, "method": method, "status": str(status_code)})
    observe_histogram("api_call_latency_ms", latency_ms, labels={"endpoint": endpoint, "method": method})


def record_feature_flag_usage(flag_name: str, enabled: bool):
    """Record feature flag usage."""
    increment_counter("feature_flag_usage_total", labels={"flag": flag_name, "enabled": str(enabled)})


# ============================================================================
# Visibility
# ============================================================================

class VisibilityMetrics:
    """Scope resolution outcomes."""

    @staticmethod
    def record_scope(load_all: bool, reason: str):
        increment_counter("visibility.scope_resolved", labels={"load_all": str(load_all), "reason": reason})

    @staticmethod
    def record_fail_open(reason: str, fail_open: bool = True):
        """A lookup miss or error widened (or, in closed mode, emptied) the scope."""
        name = "visibility.fail_open" if fail_open else "visibility.fail_closed"
        increment_counter(name, labels={"reason": reason})

    @staticmethod
    def record_interaction_denied(user_type: Any):
        increment_counter("visibility.interaction_denied", labels={"user_type": str(user_type)})


# ============================================================================
# Analytics events
# ============================================================================

def record_analytics_event(event: str, delivered: bool):
    """Count analytics events by delivery outcome."""
    increment_counter("analytics.events", labels={"event": event, "delivered": str(delivered)})


# ============================================================================
# RBAC
# ============================================================================

def record_rbac_check(allowed: bool, capability: str, roles: List[str], route: str = ""):
    """
    Record an RBAC authorization check.

    Args:
        allowed: Whether access was granted
        capability: Capability being checked
        roles: User's roles
        route: Route being accessed
    """
    if allowed:
        increment_counter("rbac.allowed")
        increment_counter("rbac.allowed.by_capability", labels={"capability": capability})
    else:
        increment_counter("rbac.denied")
        increment_counter("rbac.denied.by_capability", labels={"capability": capability})
        if route:
            increment_counter("rbac.denied.by_route", labels={"route": route})


def audit_rbac_denial(
    capability: str,
    user_id: Optional[str],
    roles: List[str],
    route: str,
    method: str = "unknown",
    metadata: Optional[Dict[str, Any]] = None
):
    """
    Emit a structured audit log entry for an RBAC denial.

    Args:
        capability: Capability that was denied
        user_id: User ID who was denied (None for anonymous)
        roles: User's roles
        route: Route/endpoint being accessed
        method: HTTP method
        metadata: Additional context
    """
    audit_entry = {
        "event": "rbac_denial",
        "capability": capability,
        "user_id": user_id or "anonymous",
        "roles": roles,
        "route": route,
        "method": method,
        "timestamp": time.time(),
    }
    if metadata:
        audit_entry["metadata"] = metadata

    audit_logger.warning(
        f"RBAC_DENIAL capability={capability} user={user_id or 'anonymous'} "
        f"roles={','.join(roles)} route={method} {route}",
        extra={"audit": audit_entry}
    )

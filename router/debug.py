from typing import Any, Dict

from fastapi import APIRouter, Query, Request

from api.guards import require
from config import current_config, get_debug_config, validate_deploy_config
from core.limits import get_limiter
from core.metrics import get_all_metrics, reset_metrics
from core.rbac import CAP_VIEW_DEBUG
from core.subscriptions import get_registry
from feature_flags import get_all_flags

router = APIRouter(prefix="/debug", tags=["debug"])


def _total(counters: Dict[str, Any], name: str) -> int:
    return sum(c["value"] for c in counters.get(name, []))


@router.get("/config")
@require(CAP_VIEW_DEBUG)
def debug_config(request: Request):
    """Sanitized configuration plus deployment warnings."""
    return {
        "config": get_debug_config(),
        "warnings": validate_deploy_config(current_config()),
        "status": "ok",
    }


@router.get("/flags")
@require(CAP_VIEW_DEBUG)
def debug_flags(request: Request):
    return {"feature_flags": get_all_flags(), "status": "ok"}


@router.get("/metrics")
@require(CAP_VIEW_DEBUG)
def debug_metrics(
    request: Request,
    reset: bool = Query(False, description="Reset metrics after returning them"),
):
    """Get current metrics for debugging and monitoring."""
    metrics = get_all_metrics()
    counters = metrics["counters"]

    summary = {
        "total_counters": sum(len(series) for series in counters.values()),
        "total_gauges": len(metrics["gauges"]),
        "total_histograms": sum(len(series) for series in metrics["histograms"].values()),
        "uptime_seconds": metrics["uptime_seconds"],
        "timestamp": metrics["timestamp"],
    }

    key_metrics = {
        "rbac_allowed_total": _total(counters, "rbac.allowed"),
        "rbac_denied_total": _total(counters, "rbac.denied"),
        "fail_open_total": _total(counters, "visibility.fail_open"),
        "fail_closed_total": _total(counters, "visibility.fail_closed"),
        "interaction_denied_total": _total(counters, "visibility.interaction_denied"),
        "limiter_rejected_total": _total(counters, "limiter.requests.rejected"),
    }

    feature_flag_usage = counters.get("feature_flag_usage_total", [])
    if feature_flag_usage:
        key_metrics["feature_flag_usage"] = {
            c["labels"].get("flag", "unknown"): c["value"] for c in feature_flag_usage
        }

    response = {
        "summary": summary,
        "key_metrics": key_metrics,
        "limiter": get_limiter().get_stats(),
        "subscriptions": get_registry().keys(),
        "detailed_metrics": metrics,
        "status": "ok",
    }

    if reset:
        reset_metrics()
        response["reset"] = True

    return response

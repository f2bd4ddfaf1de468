"""
Monitoring and metrics API endpoints.

This blueprint provides:
- /metrics: Prometheus-compatible metrics endpoint
- /metrics/json: JSON format metrics
- /health: Basic health check
- /health/live: Liveness probe
- /health/ready: Readiness probe
"""

import time

from flask import Blueprint, Response, jsonify

from monitoring import metrics

from .utils import managers

monitoring_bp = Blueprint("monitoring", __name__)

# Track startup time
_startup_time = time.time()


@monitoring_bp.route("/metrics", methods=["GET"])
def prometheus_metrics():
    """Metrics in Prometheus text exposition format."""
    _update_dynamic_metrics()
    return Response(metrics.to_prometheus(), mimetype="text/plain; charset=utf-8")


@monitoring_bp.route("/metrics/json", methods=["GET"])
def json_metrics():
    _update_dynamic_metrics()
    return jsonify(metrics.get_all())


@monitoring_bp.route("/health", methods=["GET"])
def health():
    """Service status and key statistics."""
    platform = managers.platform
    checks = {"platform": {"status": "ok" if platform else "unavailable"}}
    if platform is not None:
        checks["platform"].update({
            "works": platform.registry.work_count,
            "proposals": len(platform.governance.proposals),
            "block": platform.clock.now(),
        })
        checks["locks"] = {"backend": platform.lock_manager.__class__.__name__}
        checks["settlement"] = {"backend": platform.transfers.__class__.__name__}

    return jsonify({
        "status": "healthy" if platform else "degraded",
        "service": "Collab Royalty API",
        "version": _get_version(),
        "uptime_seconds": time.time() - _startup_time,
        "checks": checks,
    })


@monitoring_bp.route("/health/live", methods=["GET"])
def liveness():
    """Returns 200 while the process is running."""
    return jsonify({"status": "alive"})


@monitoring_bp.route("/health/ready", methods=["GET"])
def readiness():
    if not managers.is_ready():
        return jsonify({"status": "not_ready", "issues": ["platform: not initialized"]}), 503
    return jsonify({"status": "ready"})


def _get_version() -> str:
    try:
        from importlib.metadata import version
        return version("collab-royalty")
    except Exception:
        return "0.1.0"


def _update_dynamic_metrics() -> None:
    platform = managers.platform
    if platform is None:
        return
    metrics.set_gauge("works", platform.registry.work_count)
    metrics.set_gauge("block_height", platform.clock.now())
    metrics.set_gauge(
        "pending_distribution",
        sum(ledger.pending_distribution for ledger in platform.registry.ledgers.values()),
    )
    metrics.set_gauge("proposals", len(platform.governance.proposals))

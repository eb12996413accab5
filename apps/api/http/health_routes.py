"""Health endpoints."""

from __future__ import annotations

import time

from flask import Blueprint, current_app, jsonify

from logging_lib import get_logger as get_structured_logger


health_bp = Blueprint("health", __name__)

logger = get_structured_logger("api.http.health")


@health_bp.route("/healthz")
def healthz():
    """Report identity provider and record store health."""

    runtime = current_app.config["API_RUNTIME"]

    provider = runtime.provider.healthcheck()
    store = runtime.store.healthcheck()
    healthy = provider.get("status") == "ok" and store.get("status") == "ok"

    if not healthy:
        logger.warning("Health degraded", provider=provider.get("status"), store=store.get("status"))

    body = {
        "status": "ok" if healthy else "degraded",
        "timestamp": time.time(),
        "provider": provider,
        "store": store,
    }
    return jsonify(body), 200 if healthy else 503

"""Order lifecycle and tracking endpoints."""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from domains.orders.models import Order
from logging_lib import get_logger as get_structured_logger

from .middleware.auth import require_tenant


orders_bp = Blueprint("orders", __name__, url_prefix="/api/v1")

logger = get_structured_logger("api.http.orders")


def _engine():
    return current_app.config["API_RUNTIME"].engine


def _order_body(order: Order) -> dict:
    body = order.to_dict()
    body["timeline"] = [event.to_dict() for event in _engine().timeline_view(order)]
    return body


@orders_bp.route("/orders", methods=["POST"])
@require_tenant
def create_order():
    fields = request.get_json(silent=True) or {}
    if not isinstance(fields, dict):
        raise ValueError("Request body must be a JSON object")

    order = _engine().create_order(g.tenant_id, fields, g.verified_token.identity_id)
    return jsonify(_order_body(order)), 201


@orders_bp.route("/orders/summary", methods=["GET"])
@require_tenant
def orders_summary():
    return jsonify(_engine().summarize(g.tenant_id)), 200


@orders_bp.route("/orders/<order_id>", methods=["GET"])
@require_tenant
def get_order(order_id: str):
    order = _engine().get_order(order_id, g.tenant_id)
    return jsonify(_order_body(order)), 200


@orders_bp.route("/orders/<order_id>/transition", methods=["POST"])
@require_tenant
def transition_order(order_id: str):
    body = request.get_json(silent=True) or {}
    target = body.get("status") if isinstance(body, dict) else None
    if not target:
        raise ValueError("Field 'status' is required")

    order = _engine().transition(order_id, target, g.tenant_id, g.verified_token.identity_id)
    return jsonify(_order_body(order)), 200


@orders_bp.route("/tracking/<code>", methods=["GET"])
def track(code: str):
    """Public tracking lookup."""

    return jsonify(_engine().track(code)), 200

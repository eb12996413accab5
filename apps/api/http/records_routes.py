"""Generic tenant-scoped record endpoints."""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from adapters.db.paths import TenantScope
from domains.tenancy.exceptions import NotFound

from .middleware.auth import require_tenant


records_bp = Blueprint("records", __name__, url_prefix="/api/v1/records")


def _repo():
    return current_app.config["API_RUNTIME"].records_repo


@records_bp.route("/<collection>", methods=["GET"])
@require_tenant
def list_records(collection: str):
    limit = request.args.get("limit", type=int)
    items = _repo().list(TenantScope(g.tenant_id), collection, limit=limit)
    return jsonify({"items": [dict(data, id=record_id) for record_id, data in items]}), 200


@records_bp.route("/<collection>/<record_id>", methods=["GET"])
@require_tenant
def get_record(collection: str, record_id: str):
    data = _repo().get(TenantScope(g.tenant_id), collection, record_id)
    if data is None:
        raise NotFound(f"{collection}/{record_id} not found")
    return jsonify(dict(data, id=record_id)), 200


@records_bp.route("/<collection>/<record_id>", methods=["PUT"])
@require_tenant
def put_record(collection: str, record_id: str):
    body = request.get_json(silent=True)
    data = _repo().put(TenantScope(g.tenant_id), collection, record_id, body)
    return jsonify(dict(data, id=record_id)), 200

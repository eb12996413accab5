"""Provisioning, claims and tenant listing endpoints."""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from application.tenancy.claims_admin import parse_claims_body
from logging_lib import get_logger as get_structured_logger

from .middleware.auth import authenticate_request, require_identity, require_tenant


tenancy_bp = Blueprint("tenancy", __name__)

logger = get_structured_logger("api.http.tenancy")


def _claims_payload(claims) -> dict:
    return {"companyId": claims.tenant_id, "tenantId": claims.tenant_id, "role": claims.role}


@tenancy_bp.route("/provision", methods=["POST"])
@require_identity
def provision():
    """Assign a tenant and role to the caller on first login."""

    runtime = current_app.config["API_RUNTIME"]
    claims = runtime.provisioning.provision(g.verified_token)

    body = {"message": "Usuário provisionado com sucesso"}
    body.update(_claims_payload(claims))
    return jsonify(body), 200


@tenancy_bp.route("/set-claims", methods=["POST"])
def set_claims():
    """Rewrite the caller's own claims."""

    token = authenticate_request()
    requested = parse_claims_body(request.get_json(silent=True))

    runtime = current_app.config["API_RUNTIME"]
    claims = runtime.claims_admin.set_claims(token, requested)

    return jsonify({"message": "Claims atualizados com sucesso", "companyId": claims.tenant_id, "role": claims.role}), 200


@tenancy_bp.route("/api/v1/tenants", methods=["GET"])
@require_tenant
def list_tenants():
    """Tenants the caller may scope requests to."""

    runtime = current_app.config["API_RUNTIME"]
    context = g.tenant_context
    tenants = runtime.tenant_repo.get_many(context.entitled)

    return jsonify(
        {
            "active": context.tenant_id,
            "tenants": [
                {"id": tenant.id, "name": tenant.name, "settings": tenant.settings.to_dict()}
                for tenant in tenants
            ],
        }
    ), 200

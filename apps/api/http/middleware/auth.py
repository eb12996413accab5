"""Bearer-token authentication and tenant resolution for HTTP routes."""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Optional

from flask import current_app, g, request

from domains.tenancy.exceptions import Forbidden, Unauthorized
from domains.tenancy.models import TenantContext, VerifiedToken
from logging_lib import get_logger as get_structured_logger
from logging_lib import push_context, scrub_identifier


logger = get_structured_logger("api.http.middleware.auth")

TENANT_HEADER = "X-Tenant-ID"


def parse_authorization_header(header_value: Optional[str]) -> Optional[str]:
    """Return Bearer token extracted from an Authorization header string."""

    if not header_value or not isinstance(header_value, str):
        return None
    parts = header_value.strip().split()
    if len(parts) != 2:
        return None
    if parts[0].lower() != "bearer":
        return None
    token = parts[1].strip()
    return token or None


def _runtime():
    return current_app.config["API_RUNTIME"]


def authenticate_request() -> VerifiedToken:
    """Verify the request's bearer token once and cache it on ``g``."""

    cached = g.get("verified_token")
    if cached is not None:
        return cached

    raw = parse_authorization_header(request.headers.get("Authorization"))
    if raw is None:
        raise Unauthorized("Missing bearer token")

    token = _runtime().verifier.verify(raw)

    g.verified_token = token
    g.identity_hash = scrub_identifier(token.identity_id)
    push_context(identity_hash=g.identity_hash)
    return token


def resolve_tenant(token: VerifiedToken) -> TenantContext:
    """Pick the request tenant: claims tenant unless the header names another entitled one."""

    if token.claims is None:
        raise Forbidden("Identity has no tenant assignment")

    requested = (request.headers.get(TENANT_HEADER) or "").strip()
    tenant_id = token.claims.tenant_id

    runtime = _runtime()
    entitled = tuple(runtime.claims_repo.entitled_tenant_ids(token.identity_id, token.claims))

    if requested and requested != tenant_id:
        if requested not in entitled or not runtime.tenant_repo.exists(requested):
            logger.warning(
                "Tenant header refused",
                identity_hash=g.get("identity_hash"),
                tenant_id=requested,
            )
            raise Forbidden("Identity is not entitled to the requested tenant")
        tenant_id = requested

    context = TenantContext(
        identity_id=token.identity_id,
        tenant_id=tenant_id,
        role=token.claims.role,
        entitled=entitled,
    )
    g.tenant_context = context
    g.tenant_id = tenant_id
    push_context(tenant_id=tenant_id)
    return context


def require_identity(func: Callable[..., Any]) -> Callable[..., Any]:
    """Reject requests without a valid bearer token."""

    @wraps(func)
    def _wrapped(*args: Any, **kwargs: Any) -> Any:
        authenticate_request()
        return func(*args, **kwargs)

    return _wrapped


def require_tenant(func: Callable[..., Any]) -> Callable[..., Any]:
    """Reject requests that cannot be scoped to an entitled tenant."""

    @wraps(func)
    def _wrapped(*args: Any, **kwargs: Any) -> Any:
        resolve_tenant(authenticate_request())
        return func(*args, **kwargs)

    return _wrapped

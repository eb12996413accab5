"""HTTP middleware helpers."""

from .auth import (  # noqa: F401
    TENANT_HEADER,
    authenticate_request,
    parse_authorization_header,
    require_identity,
    require_tenant,
    resolve_tenant,
)

"""Record paths.

Every tenant-owned record lives under ``tenants/{tenantId}/...``. Code that
touches owned collections gets its paths from a ``TenantScope`` so a record of
one tenant cannot be addressed while scoped to another.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from .base import StoreValidationError

TENANTS = "tenants"
USERS = "users"
ORDER_INDEX = "orderIndex"
TRACKING_CODES = "trackingCodes"

TENANT_COLLECTIONS = frozenset(
    {
        "clients",
        "drivers",
        "vehicles",
        "orders",
        "addresses",
        "origins",
        "destinations",
        "pixKeys",
    }
)


def validate_segment(segment: str) -> str:
    if not isinstance(segment, str) or not segment or "/" in segment or segment in {".", ".."}:
        raise StoreValidationError(f"Invalid path segment: {segment!r}")
    return segment


def join(*segments: str) -> str:
    return "/".join(validate_segment(s) for s in segments)


def split(path: str) -> List[str]:
    parts = path.split("/")
    for part in parts:
        validate_segment(part)
    return parts


def is_document_path(path: str) -> bool:
    return len(split(path)) % 2 == 0


def user_path(identity_id: str) -> str:
    return join(USERS, identity_id)


def tenant_path(tenant_id: str) -> str:
    return join(TENANTS, tenant_id)


def order_index_path(order_id: str) -> str:
    return join(ORDER_INDEX, order_id)


def tracking_path(code: str) -> str:
    return join(TRACKING_CODES, code.upper())


@dataclass(frozen=True)
class TenantScope:
    """Path builder bound to a single tenant."""

    tenant_id: str

    def __post_init__(self) -> None:
        validate_segment(self.tenant_id)

    @property
    def root(self) -> str:
        return tenant_path(self.tenant_id)

    def collection(self, name: str) -> str:
        if name not in TENANT_COLLECTIONS:
            raise StoreValidationError(f"Unknown tenant collection: {name}")
        return join(TENANTS, self.tenant_id, name)

    def record(self, collection: str, record_id: str) -> str:
        return f"{self.collection(collection)}/{validate_segment(record_id)}"

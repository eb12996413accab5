"""Order lifecycle engine.

Orders change status only through ``transition``: the owning tenant is
checked first, then existence, then the legal edge set, and the new timeline
event and status are written together in one atomic append.
"""

from __future__ import annotations

import secrets
import string
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from adapters.db.base import RecordExistsError, RecordNotFoundError, StoreError
from adapters.db.order_store import OrderRepository
from adapters.db.paths import TenantScope
from adapters.db.tenant_store import TenantRepository
from app_platform.config.auth import AuthConfig
from domains.orders import lifecycle as rules
from domains.orders.models import Order, OrderStatus, TimelineEvent
from domains.tenancy.exceptions import Forbidden, IllegalTransition, NotFound
from logging_lib import get_logger, scrub_identifier


logger = get_logger("orders.lifecycle")

_CODE_ALPHABET = string.ascii_uppercase + string.digits
_CODE_LENGTH = 8
_CREATE_ATTEMPTS = 3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderLifecycleEngine:
    def __init__(
        self,
        orders: OrderRepository,
        tenants: TenantRepository,
        config: AuthConfig,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._orders = orders
        self._tenants = tenants
        self._config = config
        self._clock = clock

    # Creation --------------------------------------------------------------

    def _tracking_prefix(self, tenant_id: str) -> str:
        tenant = self._tenants.get(tenant_id)
        if tenant is not None and tenant.settings.tracking_prefix:
            return tenant.settings.tracking_prefix
        return self._config.tracking_prefix

    def create_order(self, tenant_id: str, fields: Optional[Mapping[str, Any]], actor_id: Optional[str]) -> Order:
        """Create a ``PENDENTE`` order with its first timeline event."""

        scope = TenantScope(tenant_id)
        prefix = self._tracking_prefix(tenant_id)
        extra = dict(fields or {})

        for _attempt in range(_CREATE_ATTEMPTS):
            code = prefix + "".join(secrets.choice(_CODE_ALPHABET) for _ in range(_CODE_LENGTH))
            order = Order(
                id=uuid.uuid4().hex[:20],
                tenant_id=tenant_id,
                status=OrderStatus.PENDENTE,
                timeline=[TimelineEvent(status=OrderStatus.PENDENTE, at=self._clock(), user_id=actor_id)],
                tracking_code=code,
                fields=extra,
            )
            try:
                self._orders.create(scope, order)
            except RecordExistsError:
                logger.warning("Order id or tracking code collided; retrying", tenant_id=tenant_id)
                continue

            logger.info("Order created", tenant_id=tenant_id, order_id=order.id)
            return order

        raise StoreError("Could not allocate a unique order id or tracking code", "ID_EXHAUSTED")

    # Reads -----------------------------------------------------------------

    def _check_owner(self, order_id: str, requesting_tenant: str) -> TenantScope:
        owner = self._orders.owner_of(order_id)
        if owner is not None and owner != requesting_tenant:
            logger.warning(
                "Cross-tenant order access refused",
                tenant_id=requesting_tenant,
                order_id=order_id,
            )
            raise Forbidden("Order belongs to another tenant")
        if owner is None:
            raise NotFound(f"Order {order_id} not found")
        return TenantScope(requesting_tenant)

    def get_order(self, order_id: str, requesting_tenant: str) -> Order:
        scope = self._check_owner(order_id, requesting_tenant)
        order = self._orders.get(scope, order_id)
        if order is None:
            raise NotFound(f"Order {order_id} not found")
        return order

    def list_orders(self, tenant_id: str, status: Optional[OrderStatus] = None) -> List[Order]:
        return self._orders.list(TenantScope(tenant_id), status.value if status else None)

    # Transitions -----------------------------------------------------------

    def transition(
        self,
        order_id: str,
        target_status: Any,
        requesting_tenant: str,
        actor_id: Optional[str] = None,
    ) -> Order:
        """Move ``order_id`` to ``target_status`` on behalf of ``requesting_tenant``."""

        scope = self._check_owner(order_id, requesting_tenant)
        try:
            target = OrderStatus.parse(target_status)
        except ValueError as exc:
            raise IllegalTransition(f"Unknown target status: {target_status!r}") from exc
        now = self._clock()

        def _event(current: Mapping[str, Any]) -> Dict[str, Any]:
            rules.ensure_legal(OrderStatus.parse(current["status"]), target)
            # keep event times non-decreasing so the newest event is also the last
            at = now
            timeline = current.get("timeline") or []
            if timeline:
                last = TimelineEvent.from_dict(timeline[-1]).at
                if last.tzinfo is None:
                    last = last.replace(tzinfo=timezone.utc)
                if last > at:
                    at = last
            return TimelineEvent(status=target, at=at, user_id=actor_id).to_dict()

        try:
            order = self._orders.append_event(scope, order_id, _event, target)
        except RecordNotFoundError as exc:
            raise NotFound(f"Order {order_id} not found") from exc

        logger.info(
            "Order transitioned",
            tenant_id=requesting_tenant,
            order_id=order_id,
            status=target.value,
            actor_hash=scrub_identifier(actor_id),
        )
        return order

    # Views -----------------------------------------------------------------

    @staticmethod
    def reconstruct_status(timeline: List[TimelineEvent]) -> Optional[OrderStatus]:
        return rules.reconstruct_status(timeline)

    @staticmethod
    def timeline_view(order: Order) -> List[TimelineEvent]:
        """Most-recent-first copy of the timeline for display."""

        return rules.most_recent_first(order.timeline)

    @staticmethod
    def check_consistency(order: Order) -> bool:
        return bool(order.timeline) and rules.reconstruct_status(order.timeline) == order.status

    def summarize(self, tenant_id: str) -> Dict[str, int]:
        """Dashboard counts per status."""

        summary = {"total": 0}
        summary.update({status.value: 0 for status in OrderStatus})
        for order in self.list_orders(tenant_id):
            summary["total"] += 1
            summary[order.status.value] += 1
        return summary

    def track(self, code: str) -> Dict[str, Any]:
        """Public lookup by tracking code with actor ids left out."""

        normalized = (code or "").strip().upper()
        if not normalized:
            raise NotFound("Tracking code not found")

        located = self._orders.resolve_tracking(normalized)
        if located is None:
            raise NotFound("Tracking code not found")

        tenant_id, order_id = located
        order = self._orders.get(TenantScope(tenant_id), order_id)
        if order is None:
            raise NotFound("Tracking code not found")

        return {
            "trackingCode": order.tracking_code,
            "status": order.status.value,
            "timeline": [
                {"status": event.status.value, "at": event.at.isoformat()}
                for event in self.timeline_view(order)
            ],
        }

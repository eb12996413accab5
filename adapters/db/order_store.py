"""Order persistence inside tenant namespaces."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from domains.orders.models import Order, OrderStatus

from . import paths
from .paths import TenantScope
from .record_store import BaseRecordStore, Record

ORDERS = "orders"


class OrderRepository:
    """Orders live at ``tenants/{tid}/orders/{id}``.

    Two global indexes are kept beside them: ``orderIndex/{id}`` names the
    owning tenant and ``trackingCodes/{code}`` resolves public tracking codes.
    """

    def __init__(self, store: BaseRecordStore) -> None:
        self._store = store

    def owner_of(self, order_id: str) -> Optional[str]:
        entry = self._store.get(paths.order_index_path(order_id))
        return entry.get("tenantId") if entry else None

    def get(self, scope: TenantScope, order_id: str) -> Optional[Order]:
        data = self._store.get(scope.record(ORDERS, order_id))
        if data is None:
            return None
        return Order.from_dict(order_id, scope.tenant_id, data)

    def list(self, scope: TenantScope, status: Optional[str] = None) -> List[Order]:
        filters = {"status": status} if status else None
        return [
            Order.from_dict(order_id, scope.tenant_id, data)
            for order_id, data in self._store.list(scope.collection(ORDERS), filters=filters)
        ]

    def create(self, scope: TenantScope, order: Order) -> None:
        """Write the order and both indexes in one create-only batch."""

        records: Dict[str, Mapping[str, Any]] = {
            scope.record(ORDERS, order.id): order.to_dict(),
            paths.order_index_path(order.id): {"tenantId": scope.tenant_id},
        }
        if order.tracking_code:
            records[paths.tracking_path(order.tracking_code)] = {
                "tenantId": scope.tenant_id,
                "orderId": order.id,
            }
        self._store.create_all(records)

    def append_event(
        self,
        scope: TenantScope,
        order_id: str,
        make_event: Callable[[Record], Mapping[str, Any]],
        status: OrderStatus,
    ) -> Order:
        """Append the built event and set ``status`` in one atomic write.

        ``make_event`` sees the current record and raises to reject the change.
        """

        updated = self._store.append(
            scope.record(ORDERS, order_id),
            "timeline",
            make_event,
            updates={"status": status.value},
        )
        return Order.from_dict(order_id, scope.tenant_id, updated)

    def resolve_tracking(self, code: str) -> Optional[Tuple[str, str]]:
        entry = self._store.get(paths.tracking_path(code))
        if not entry:
            return None
        return entry["tenantId"], entry["orderId"]

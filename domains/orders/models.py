"""Order domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


class OrderStatus(str, Enum):
    PENDENTE = "PENDENTE"
    EM_ROTA = "EM_ROTA"
    ENTREGUE = "ENTREGUE"
    CANCELADA = "CANCELADA"

    @classmethod
    def parse(cls, value: Any) -> "OrderStatus":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown order status: {value!r}") from None


def _to_ms(at: datetime) -> int:
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    return int(at.timestamp() * 1000)


@dataclass(frozen=True)
class TimelineEvent:
    """One status change recorded on an order."""

    status: OrderStatus
    at: datetime
    user_id: Optional[str] = None

    @property
    def at_ms(self) -> int:
        return _to_ms(self.at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "at": self.at.isoformat(),
            "atMs": self.at_ms,
            "userId": self.user_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TimelineEvent":
        at = data.get("at")
        if isinstance(at, str):
            at = datetime.fromisoformat(at)
        elif not isinstance(at, datetime):
            at = datetime.fromtimestamp(int(data.get("atMs", 0)) / 1000, tz=timezone.utc)
        return cls(status=OrderStatus.parse(data["status"]), at=at, user_id=data.get("userId"))


@dataclass
class Order:
    """Order record; ``status`` caches the latest timeline event."""

    id: str
    tenant_id: str
    status: OrderStatus
    timeline: List[TimelineEvent] = field(default_factory=list)
    tracking_code: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.fields)
        data.update(
            {
                "id": self.id,
                "tenantId": self.tenant_id,
                "status": self.status.value,
                "timeline": [event.to_dict() for event in self.timeline],
                "codigoRastreio": self.tracking_code,
            }
        )
        return data

    @classmethod
    def from_dict(cls, order_id: str, tenant_id: str, data: Mapping[str, Any]) -> "Order":
        reserved = {"id", "tenantId", "status", "timeline", "codigoRastreio"}
        return cls(
            id=order_id,
            tenant_id=tenant_id,
            status=OrderStatus.parse(data["status"]),
            timeline=[TimelineEvent.from_dict(e) for e in data.get("timeline") or []],
            tracking_code=data.get("codigoRastreio"),
            fields={k: v for k, v in data.items() if k not in reserved},
        )


def event_sort_key(indexed: Tuple[int, TimelineEvent]) -> Tuple[int, int]:
    index, event = indexed
    return (event.at_ms, index)

"""Order status state machine."""

from __future__ import annotations

from typing import FrozenSet, Iterable, List, Mapping, Optional, Tuple

from domains.tenancy.exceptions import IllegalTransition

from .models import OrderStatus, TimelineEvent, event_sort_key

LEGAL_TRANSITIONS: Mapping[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDENTE: frozenset({OrderStatus.EM_ROTA, OrderStatus.CANCELADA}),
    OrderStatus.EM_ROTA: frozenset({OrderStatus.ENTREGUE, OrderStatus.CANCELADA}),
    OrderStatus.ENTREGUE: frozenset(),
    OrderStatus.CANCELADA: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in LEGAL_TRANSITIONS.items() if not targets)


def legal_edges() -> List[Tuple[OrderStatus, OrderStatus]]:
    return [(src, dst) for src, targets in LEGAL_TRANSITIONS.items() for dst in targets]


def is_legal(current: OrderStatus, target: OrderStatus) -> bool:
    return target in LEGAL_TRANSITIONS.get(current, frozenset())


def ensure_legal(current: OrderStatus, target: OrderStatus) -> None:
    if not is_legal(current, target):
        raise IllegalTransition(f"Transition {current.value} -> {target.value} is not allowed")


def reconstruct_status(timeline: Iterable[TimelineEvent]) -> Optional[OrderStatus]:
    """Return the status of the most recent event; ties keep append order."""

    events = list(enumerate(timeline))
    if not events:
        return None
    _, latest = max(events, key=event_sort_key)
    return latest.status


def most_recent_first(timeline: Iterable[TimelineEvent]) -> List[TimelineEvent]:
    ordered = sorted(enumerate(timeline), key=event_sort_key, reverse=True)
    return [event for _, event in ordered]

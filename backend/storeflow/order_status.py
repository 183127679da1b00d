"""Forward-only order status state machine."""

from storeflow.models.enums import FulfillmentMethod, OrderStatus

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REJECTED})
NON_TERMINAL_STATUSES = frozenset(s for s in OrderStatus if s not in TERMINAL_STATUSES)

_COMMON = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED, OrderStatus.REJECTED},
    OrderStatus.CONFIRMED: {OrderStatus.PREPARING},
    OrderStatus.PREPARING: {OrderStatus.READY},
}

TRANSITIONS: dict[FulfillmentMethod, dict[OrderStatus, frozenset[OrderStatus]]] = {
    FulfillmentMethod.DELIVERY: {
        **{k: frozenset(v) for k, v in _COMMON.items()},
        OrderStatus.READY: frozenset({OrderStatus.OUT_FOR_DELIVERY}),
        OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED}),
    },
    FulfillmentMethod.PICKUP: {
        **{k: frozenset(v) for k, v in _COMMON.items()},
        OrderStatus.READY: frozenset({OrderStatus.DELIVERED}),
    },
}


def is_terminal(status: str) -> bool:
    return OrderStatus(status) in TERMINAL_STATUSES


def allowed_transitions(fulfillment_method: str, current: str) -> frozenset[OrderStatus]:
    table = TRANSITIONS[FulfillmentMethod(fulfillment_method)]
    return table.get(OrderStatus(current), frozenset())


def can_transition(fulfillment_method: str, current: str, target: str) -> bool:
    return OrderStatus(target) in allowed_transitions(fulfillment_method, current)


def non_terminal_values() -> list[str]:
    return sorted(s.value for s in NON_TERMINAL_STATUSES)

"""
Canteen Portal — Order status state machine

    pending    -> confirmed | cancelled
    confirmed  -> preparing | cancelled
    preparing  -> ready     | cancelled
    ready      -> served
    served, cancelled: terminal

The staff pickup path serves through the same check, but with its own edge set:
by default any non-terminal order may be served. Setting
STAFF_SERVE_REQUIRES_READY narrows this to ready -> served.
"""
from canteen_portal.core.config import get_settings
from canteen_portal.core.errors import InvalidTransition
from canteen_portal.models.order import OrderStatus

settings = get_settings()

TransitionGraph = dict[OrderStatus, frozenset[OrderStatus]]

ORDER_TRANSITIONS: TransitionGraph = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.SERVED}),
    OrderStatus.SERVED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in ORDER_TRANSITIONS.items() if not targets)


def staff_serve_transitions(requires_ready: bool | None = None) -> TransitionGraph:
    if requires_ready is None:
        requires_ready = settings.STAFF_SERVE_REQUIRES_READY
    graph = dict(ORDER_TRANSITIONS)
    if not requires_ready:
        for status in OrderStatus:
            if status not in TERMINAL_STATUSES:
                graph[status] = graph[status] | {OrderStatus.SERVED}
    return graph


def check_transition(
    current: OrderStatus | str,
    requested: OrderStatus | str,
    graph: TransitionGraph = ORDER_TRANSITIONS,
) -> OrderStatus:
    """Return the requested status if `current -> requested` is an edge of `graph`."""
    current = OrderStatus(current)
    try:
        requested = OrderStatus(requested)
    except ValueError:
        raise InvalidTransition(current.value, str(requested))
    if requested not in graph.get(current, frozenset()):
        raise InvalidTransition(current.value, requested.value)
    return requested

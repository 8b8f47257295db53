"""
Canteen Portal — Role → capability table

Routes declare the capability they need; roles never appear in route code.
"""
from enum import Enum as PyEnum

from canteen_portal.models.user import Role


class Capability(str, PyEnum):
    PLACE_ORDER = "place_order"
    MANAGE_MENU = "manage_menu"
    DELETE_MENU = "delete_menu"
    VIEW_ALL_ORDERS = "view_all_orders"
    UPDATE_ORDER_STATUS = "update_order_status"
    VERIFY_PICKUP = "verify_pickup"
    VIEW_ALL_PAYMENTS = "view_all_payments"
    REFUND_PAYMENT = "refund_payment"
    MANAGE_USERS = "manage_users"


_CUSTOMER = frozenset({Capability.PLACE_ORDER})

_STAFF = frozenset({
    Capability.PLACE_ORDER,
    Capability.MANAGE_MENU,
    Capability.VIEW_ALL_ORDERS,
    Capability.UPDATE_ORDER_STATUS,
    Capability.VERIFY_PICKUP,
    Capability.VIEW_ALL_PAYMENTS,
})

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.STUDENT: _CUSTOMER,
    Role.TEACHER: _CUSTOMER,
    Role.PROFESSOR: _CUSTOMER,
    Role.STAFF: _STAFF,
    Role.ADMIN: frozenset(Capability),
}


def has_capability(role: Role | str, *required: Capability) -> bool:
    """True when the role holds every capability in `required`."""
    try:
        granted = ROLE_CAPABILITIES[Role(role)]
    except ValueError:
        return False
    return all(cap in granted for cap in required)

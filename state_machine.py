from typing import Dict, FrozenSet

from booking_schemas import Requester
from errors import Forbidden, InvalidTransition

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "PENDING": frozenset({"PAID", "CANCELLED"}),
    "PAID": frozenset({"CONFIRMED"}),
    "CONFIRMED": frozenset({"COMPLETED", "CANCELLED"}),
    "CANCELLED": frozenset(),
    "COMPLETED": frozenset(),
}

# PAID is only ever reached through payment reconciliation.
RECONCILIATION_ONLY = frozenset({("PENDING", "PAID")})
ADMIN_ONLY = frozenset({("PAID", "CONFIRMED"), ("CONFIRMED", "COMPLETED")})

CANCELLABLE = frozenset({"PENDING", "CONFIRMED"})
FROZEN = frozenset({"CANCELLED", "COMPLETED"})


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def validate_transition(current: str, target: str) -> None:
    """
    Raise InvalidTransition unless current -> target is an edge of the graph.
    """
    if not can_transition(current, target):
        raise InvalidTransition(current, target)


def authorize_transition(current: str, target: str, requester: Requester) -> None:
    """
    Check a transition requested through the public API.
    Graph first, then who may drive it.
    """
    validate_transition(current, target)
    if (current, target) in RECONCILIATION_ONLY:
        raise InvalidTransition(
            current, target, "Bookings become PAID only through a successful payment"
        )
    if (current, target) in ADMIN_ONLY and not requester.is_admin:
        raise Forbidden(f"Only administrators may move a booking from {current} to {target}")

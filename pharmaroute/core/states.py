from typing import Optional

from pharmaroute.core.errors import InvalidStatus, InvalidTransition

ORDER_STATES = ["pending", "assigned", "in_transit", "delivered", "cancelled"]

# statuses that put an order on a courier's active route
ACTIVE_STATES = ("assigned", "in_transit")
TERMINAL_STATES = ("delivered", "cancelled")


def ensure_known_status(status: str) -> str:
    if status not in ORDER_STATES:
        raise InvalidStatus(f"Unknown order status {status!r}", status=status, allowed=ORDER_STATES)
    return status


def check_transition(
    src: str,
    dst: str,
    courier_after: Optional[str],
    lock_terminal: bool = True,
) -> None:
    """
    Raise InvalidTransition when ``src -> dst`` is not allowed.

    ``courier_after`` is the courier the order would hold once the change is
    applied; an active status without one is never accepted.
    """
    ensure_known_status(dst)
    if lock_terminal and src in TERMINAL_STATES:
        raise InvalidTransition(
            f"Order is {src} and can no longer change status",
            from_status=src, to_status=dst,
        )
    if dst in ACTIVE_STATES and not courier_after:
        raise InvalidTransition(
            f"Status {dst} requires a courier",
            from_status=src, to_status=dst,
        )

"""
Order lifecycle state machine. Valid transitions enforce business rules.

Every edge of the lifecycle lives in VALID_TRANSITIONS together with the roles
allowed to take it and the workflow step that owns it. The approval gate, the
cancellation policy and fulfillment updates each accept only their own edges.
"""
from datetime import datetime
from enum import Enum
from typing import NamedTuple

from app import timeline
from app.errors import AlreadyTerminal, Forbidden, InvalidStatus, InvalidTransition, ReasonRequired
from app.models import Actor, ApprovalStatus, Order, OrderStatus, Role, TimelineEvent, utcnow


class TransitionKind(str, Enum):
    APPROVAL = "approval"
    REJECTION = "rejection"
    CANCELLATION = "cancellation"
    FULFILLMENT = "fulfillment"


class Edge(NamedTuple):
    kind: TransitionKind
    roles: frozenset[Role]


_ADMIN = frozenset({Role.ADMIN})
_OWNER_OR_ADMIN = frozenset({Role.CUSTOMER, Role.ADMIN})

# (current status, requested status) -> edge. Anything absent is not a transition.
VALID_TRANSITIONS: dict[tuple[OrderStatus, OrderStatus], Edge] = {
    (OrderStatus.AWAITING_APPROVAL, OrderStatus.CONFIRMED): Edge(TransitionKind.APPROVAL, _ADMIN),
    (OrderStatus.AWAITING_APPROVAL, OrderStatus.REJECTED): Edge(TransitionKind.REJECTION, _ADMIN),
    (OrderStatus.AWAITING_APPROVAL, OrderStatus.CANCELLED): Edge(TransitionKind.CANCELLATION, _OWNER_OR_ADMIN),
    (OrderStatus.CONFIRMED, OrderStatus.CANCELLED): Edge(TransitionKind.CANCELLATION, _OWNER_OR_ADMIN),
    (OrderStatus.CONFIRMED, OrderStatus.PROCESSING): Edge(TransitionKind.FULFILLMENT, _ADMIN),
    (OrderStatus.PROCESSING, OrderStatus.SHIPPED): Edge(TransitionKind.FULFILLMENT, _ADMIN),
    (OrderStatus.SHIPPED, OrderStatus.DELIVERED): Edge(TransitionKind.FULFILLMENT, _ADMIN),
}

DEFAULT_NOTES: dict[OrderStatus, str] = {
    OrderStatus.AWAITING_APPROVAL: "Order placed, awaiting admin approval",
    OrderStatus.CONFIRMED: "Order approved by admin",
    OrderStatus.PROCESSING: "Order is being processed",
    OrderStatus.SHIPPED: "Order has been shipped",
    OrderStatus.DELIVERED: "Order delivered",
    OrderStatus.CANCELLED: "Order cancelled",
    OrderStatus.REJECTED: "Order rejected by admin",
}


def find_edge(current: OrderStatus, requested: OrderStatus, kind: TransitionKind) -> Edge | None:
    edge = VALID_TRANSITIONS.get((current, requested))
    if edge is None or edge.kind is not kind:
        return None
    return edge


def is_valid_transition(current: OrderStatus, requested: OrderStatus, kind: TransitionKind) -> bool:
    """True if requested is reachable from current through a step of the given kind."""
    return find_edge(current, requested, kind) is not None


def sources_of(kind: TransitionKind) -> frozenset[OrderStatus]:
    return frozenset(src for (src, _), edge in VALID_TRANSITIONS.items() if edge.kind is kind)


def roles_for(kind: TransitionKind) -> frozenset[Role]:
    roles: set[Role] = set()
    for edge in VALID_TRANSITIONS.values():
        if edge.kind is kind:
            roles |= edge.roles
    return frozenset(roles)


def parse_status(value: OrderStatus | str) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise InvalidStatus(f"Unknown order status {value!r}", value=value) from None


def require_reason(text: str | None, what: str = "reason") -> str:
    """Trimmed text, or ReasonRequired if nothing is left."""
    cleaned = (text or "").strip()
    if not cleaned:
        raise ReasonRequired(f"A non-empty {what} is required")
    return cleaned


def apply_transition(
    order: Order,
    new_status: OrderStatus,
    actor: Actor,
    note: str | None = None,
    now: datetime | None = None,
    **changes,
) -> Order:
    """Move order to new_status and append the matching timeline event. No rule checks here."""
    now = now or utcnow()
    event = TimelineEvent(
        status=new_status,
        note=note or DEFAULT_NOTES[new_status],
        timestamp=now,
        updated_by=actor,
    )
    return order.evolve(
        status=new_status,
        timeline=timeline.append(order.timeline, event),
        updated_at=now,
        **changes,
    )


def validate(
    order: Order,
    actor: Actor,
    requested_status: OrderStatus | str,
    note: str | None = None,
    now: datetime | None = None,
) -> Order:
    """
    Advance an approved order one fulfillment stage (confirmed -> processing -> shipped -> delivered).
    Returns the updated order or raises Forbidden / AlreadyTerminal / InvalidTransition.
    """
    requested = parse_status(requested_status)
    if actor.role not in roles_for(TransitionKind.FULFILLMENT):
        raise Forbidden("Only admins can update fulfillment status", order_id=order.id)
    if order.is_terminal:
        raise AlreadyTerminal(
            f"Order {order.order_number} is already {order.status.value}",
            order_id=order.id,
            status=order.status.value,
        )
    if order.approval_status is not ApprovalStatus.APPROVED:
        raise Forbidden(f"Order {order.order_number} has not been approved", order_id=order.id)
    if not is_valid_transition(order.status, requested, TransitionKind.FULFILLMENT):
        raise InvalidTransition(
            f"Cannot move order {order.order_number} from {order.status.value} to {requested.value}",
            order_id=order.id,
            current=order.status.value,
            requested=requested.value,
        )
    return apply_transition(order, requested, actor, note=note, now=now)


def allowed_next_statuses(order: Order, actor: Actor) -> list[OrderStatus]:
    """Statuses actor could request next. Advisory only, for enabling UI actions."""
    if actor.role is Role.CUSTOMER and actor.id != order.customer_id:
        return []
    allowed = []
    for (src, dst), edge in VALID_TRANSITIONS.items():
        if src is not order.status or actor.role not in edge.roles:
            continue
        if edge.kind is TransitionKind.FULFILLMENT and order.approval_status is not ApprovalStatus.APPROVED:
            continue
        allowed.append(dst)
    return allowed

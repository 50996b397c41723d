"""
Cancellation policy: an order's owner (or an admin on their behalf) may cancel
while the order is still awaiting approval or just confirmed.
"""
from datetime import datetime

from app.errors import Forbidden, NotCancellable
from app.models import Actor, Order, OrderStatus, Role
from app.order_state import TransitionKind, apply_transition, require_reason, roles_for, sources_of

CANCELLABLE_STATUSES = sources_of(TransitionKind.CANCELLATION)


def is_cancellable(order: Order) -> bool:
    return order.status in CANCELLABLE_STATUSES


def can_cancel(order: Order, actor: Actor) -> bool:
    """Advisory check for showing a cancel button; cancel() re-checks on fresh data."""
    return _may_act_for(order, actor) and is_cancellable(order)


def _may_act_for(order: Order, actor: Actor) -> bool:
    if actor.role not in roles_for(TransitionKind.CANCELLATION):
        return False
    return actor.role is Role.ADMIN or actor.id == order.customer_id


def cancel(order: Order, actor: Actor, reason: str | None, now: datetime | None = None) -> Order:
    if not _may_act_for(order, actor):
        raise Forbidden(f"Order {order.order_number} belongs to another customer", order_id=order.id)
    reason = require_reason(reason, what="cancellation reason")
    if not is_cancellable(order):
        raise NotCancellable(
            f"Order {order.order_number} can no longer be cancelled (status {order.status.value})",
            order_id=order.id,
            status=order.status.value,
        )
    return apply_transition(order, OrderStatus.CANCELLED, actor, note=reason, now=now)

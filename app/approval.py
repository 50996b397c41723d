"""
Admin approval gate: the single decision point that turns an order awaiting
approval into either confirmed or rejected.

A decision is taken once. Deciding again fails with NotPending, so two admins
racing on the same order can't both win.
"""
from datetime import datetime

from app.errors import Forbidden, NotPending
from app.models import Actor, ApprovalDecision, ApprovalStatus, Order, OrderStatus, utcnow
from app.order_state import TransitionKind, apply_transition, find_edge, require_reason, roles_for


def _check_decidable(order: Order, admin: Actor, target: OrderStatus, kind: TransitionKind) -> None:
    if admin.role not in roles_for(kind):
        raise Forbidden("Only admins can decide on orders", order_id=order.id)
    if order.approval_status is not ApprovalStatus.PENDING or find_edge(order.status, target, kind) is None:
        raise NotPending(
            f"Order {order.order_number} is not awaiting approval (status {order.status.value})",
            order_id=order.id,
            status=order.status.value,
        )


def approve(order: Order, admin: Actor, remarks: str | None = None, now: datetime | None = None) -> Order:
    _check_decidable(order, admin, OrderStatus.CONFIRMED, TransitionKind.APPROVAL)
    now = now or utcnow()
    remarks = (remarks or "").strip() or None
    decision = ApprovalDecision(approved=True, remarks=remarks, decided_by=admin, decided_at=now)
    return apply_transition(order, OrderStatus.CONFIRMED, admin, note=remarks, now=now, decision=decision)


def reject(order: Order, admin: Actor, remarks: str | None, now: datetime | None = None) -> Order:
    """Remarks are mandatory; they are shown to the customer as the rejection reason."""
    if admin.role not in roles_for(TransitionKind.REJECTION):
        raise Forbidden("Only admins can decide on orders", order_id=order.id)
    remarks = require_reason(remarks, what="rejection reason")
    _check_decidable(order, admin, OrderStatus.REJECTED, TransitionKind.REJECTION)
    now = now or utcnow()
    decision = ApprovalDecision(approved=False, remarks=remarks, decided_by=admin, decided_at=now)
    return apply_transition(order, OrderStatus.REJECTED, admin, note=remarks, now=now, decision=decision)

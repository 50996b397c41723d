"""
Order workflow service. Each mutating call refetches the order, runs the pure
workflow step on that fresh copy, and saves it conditionally on the status it
read. Nothing is cached between calls.
"""
import logging
import uuid
from typing import Callable, Literal

from app import approval, cancellation, dashboard, order_state, timeline
from app.errors import Forbidden, InvalidRequest, OrderWorkflowError
from app.metrics import (
    order_transitions_rejected_total,
    order_transitions_total,
    orders_created_total,
    orders_pending_approval,
)
from app.models import Actor, NewOrder, Order, OrderStatus, Role, TimelineEvent, utcnow
from app.repository import OrderFilter, OrderRepository

logger = logging.getLogger(__name__)

TimelineView = Literal["display", "full"]


def _require_admin(actor: Actor, action: str) -> None:
    if not actor.is_admin:
        raise Forbidden(f"Only admins can {action}")


def _check_access(order: Order, actor: Actor) -> None:
    if actor.role is Role.CUSTOMER and order.customer_id != actor.id:
        raise Forbidden(f"Order {order.order_number} belongs to another customer", order_id=order.id)


class OrderService:
    def __init__(self, repository: OrderRepository) -> None:
        self._repo = repository

    async def list_orders(self, actor: Actor, order_filter: OrderFilter | None = None) -> list[Order]:
        """Admins see every order; customers only their own whatever the filter says."""
        order_filter = order_filter or OrderFilter()
        if actor.role is Role.CUSTOMER:
            order_filter = OrderFilter(
                status=order_filter.status,
                category=order_filter.category,
                search=order_filter.search,
                customer_id=actor.id,
            )
        return await self._repo.find(order_filter)

    async def get_order(self, order_id: str, actor: Actor) -> Order:
        order = await self._repo.get(order_id)
        _check_access(order, actor)
        return order

    async def get_timeline(self, order_id: str, actor: Actor, view: TimelineView = "full") -> list[TimelineEvent]:
        order = await self.get_order(order_id, actor)
        if view == "display":
            return timeline.display_view(order.timeline)
        return timeline.full_view(order.timeline)

    async def create_order(self, actor: Actor, draft: NewOrder) -> Order:
        if actor.role is Role.CUSTOMER:
            if draft.customer_id not in (None, actor.id):
                raise Forbidden("Customers can only place orders for themselves")
            customer_id = actor.id
        elif not (draft.customer_id or "").strip():
            raise InvalidRequest("customerId is required when an admin places an order")
        else:
            customer_id = draft.customer_id.strip()

        now = utcnow()
        placed = TimelineEvent(
            status=OrderStatus.AWAITING_APPROVAL,
            note=order_state.DEFAULT_NOTES[OrderStatus.AWAITING_APPROVAL],
            timestamp=now,
            updated_by=actor,
        )
        order = Order(
            id=uuid.uuid4().hex,
            order_number=draft.order_number or f"ORD-{now:%Y%m%d}-{uuid.uuid4().hex[:6].upper()}",
            customer_id=customer_id,
            customer_name=draft.customer_name,
            customer_email=draft.customer_email,
            payment_method=draft.payment_method,
            payment_status=draft.payment_status,
            total_amount=draft.total_amount,
            timeline=(placed,),
            created_at=now,
            updated_at=now,
        )
        saved = await self._repo.add(order)
        orders_created_total.inc()
        logger.info("Created order %s (id=%s) for customer %s", saved.order_number, saved.id, customer_id)
        return saved

    async def approve_order(self, order_id: str, actor: Actor, remarks: str | None = None) -> Order:
        return await self._transition(
            "approve", order_id, actor, lambda order: approval.approve(order, actor, remarks)
        )

    async def reject_order(self, order_id: str, actor: Actor, remarks: str | None) -> Order:
        def precheck() -> None:
            _require_admin(actor, "reject orders")
            order_state.require_reason(remarks, what="rejection reason")

        return await self._transition(
            "reject", order_id, actor, lambda order: approval.reject(order, actor, remarks), precheck
        )

    async def update_order_status(
        self,
        order_id: str,
        actor: Actor,
        new_status: OrderStatus | str,
        note: str | None = None,
    ) -> Order:
        return await self._transition(
            "update_status",
            order_id,
            actor,
            lambda order: order_state.validate(order, actor, new_status, note),
            lambda: order_state.parse_status(new_status),
        )

    async def cancel_order(self, order_id: str, actor: Actor, reason: str | None) -> Order:
        return await self._transition(
            "cancel",
            order_id,
            actor,
            lambda order: cancellation.cancel(order, actor, reason),
            lambda: order_state.require_reason(reason, what="cancellation reason"),
        )

    async def dashboard_stats(self, actor: Actor) -> dashboard.DashboardStats:
        _require_admin(actor, "view dashboard statistics")
        stats = dashboard.aggregate(await self._repo.find())
        orders_pending_approval.set(stats.pending_approvals)
        return stats

    async def _transition(
        self,
        operation: str,
        order_id: str,
        actor: Actor,
        step: Callable[[Order], Order],
        precheck: Callable[[], object] | None = None,
    ) -> Order:
        try:
            # Input problems are reported before touching storage.
            if precheck is not None:
                precheck()
            order = await self._repo.get(order_id)
            updated = step(order)
            saved = await self._repo.compare_and_save(updated, expected_status=order.status)
        except OrderWorkflowError as e:
            order_transitions_rejected_total.labels(operation=operation, code=e.code).inc()
            logger.warning(
                "Refused %s on order %s by %s %s: %s %s",
                operation, order_id, actor.role.value, actor.id, e.code, e.message,
            )
            raise
        order_transitions_total.labels(operation=operation, to_status=saved.status.value).inc()
        logger.info(
            "Order %s: %s -> %s (%s by %s %s)",
            saved.order_number, order.status.value, saved.status.value, operation, actor.role.value, actor.id,
        )
        return saved

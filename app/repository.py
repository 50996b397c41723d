"""
Order storage contract and the in-memory store used for tests and local runs.
The Postgres store lives in app.db.
"""
import asyncio
from dataclasses import dataclass
from typing import Protocol

from app.errors import Conflict, OrderNotFound
from app.models import CATEGORY_BY_STATUS, Order, OrderCategory, OrderStatus


@dataclass(frozen=True)
class OrderFilter:
    status: OrderStatus | None = None
    category: OrderCategory | None = None
    search: str | None = None
    customer_id: str | None = None

    def statuses(self) -> set[OrderStatus] | None:
        """Statuses admitted by status/category together, or None if unrestricted."""
        allowed = None
        if self.category is not None:
            allowed = {s for s, c in CATEGORY_BY_STATUS.items() if c is self.category}
        if self.status is not None:
            allowed = {self.status} if allowed is None else allowed & {self.status}
        return allowed

    def matches(self, order: Order) -> bool:
        statuses = self.statuses()
        if statuses is not None and order.status not in statuses:
            return False
        if self.customer_id is not None and order.customer_id != self.customer_id:
            return False
        term = (self.search or "").strip().lower()
        if term:
            haystack = (order.order_number, order.customer_name or "", order.customer_email or "")
            return any(term in value.lower() for value in haystack)
        return True


class OrderRepository(Protocol):
    async def get(self, order_id: str) -> Order:
        """Raise OrderNotFound if missing."""

    async def find(self, order_filter: OrderFilter | None = None) -> list[Order]:
        """Newest first."""

    async def add(self, order: Order) -> Order:
        """Raise Conflict if id or order number already exist."""

    async def compare_and_save(self, order: Order, expected_status: OrderStatus) -> Order:
        """Persist order only if the stored status still equals expected_status, else raise Conflict."""


class InMemoryOrderRepository:
    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}
        self._lock = asyncio.Lock()

    async def get(self, order_id: str) -> Order:
        try:
            return self._orders[order_id]
        except KeyError:
            raise OrderNotFound(f"Order {order_id} not found", order_id=order_id) from None

    async def find(self, order_filter: OrderFilter | None = None) -> list[Order]:
        order_filter = order_filter or OrderFilter()
        found = [o for o in self._orders.values() if order_filter.matches(o)]
        return sorted(found, key=lambda o: o.created_at, reverse=True)

    async def add(self, order: Order) -> Order:
        async with self._lock:
            if order.id in self._orders:
                raise Conflict(f"Order {order.id} already exists", order_id=order.id)
            if any(o.order_number == order.order_number for o in self._orders.values()):
                raise Conflict(f"Order number {order.order_number} already exists", order_id=order.id)
            self._orders[order.id] = order
        return order

    async def compare_and_save(self, order: Order, expected_status: OrderStatus) -> Order:
        async with self._lock:
            stored = await self.get(order.id)
            if stored.status is not expected_status:
                raise Conflict(
                    f"Order {order.order_number} is now {stored.status.value}, expected {expected_status.value}",
                    order_id=order.id,
                    current=stored.status.value,
                )
            if order.timeline[: len(stored.timeline)] != stored.timeline:
                raise Conflict(f"Timeline of order {order.order_number} was rewritten", order_id=order.id)
            self._orders[order.id] = order
        return order

"""
Admin dashboard statistics, folded from the current order set on every call.
"""
from collections import Counter
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from app.models import ApprovalStatus, CamelModel, Money, Order, OrderCategory, OrderStatus

CENTS = Decimal("0.01")


class RevenueStats(CamelModel):
    total_revenue: Money = Decimal("0")
    average_order_value: Money = Decimal("0")
    delivered_orders: int = 0


class DashboardStats(CamelModel):
    total_orders: int = 0
    pending_approvals: int = 0
    orders_by_status: dict[OrderStatus, int] = {}
    orders_by_category: dict[OrderCategory, int] = {}
    revenue: RevenueStats = RevenueStats()


def aggregate(orders: Iterable[Order]) -> DashboardStats:
    by_status: Counter[OrderStatus] = Counter()
    by_category: Counter[OrderCategory] = Counter()
    pending = 0
    delivered = 0
    total_revenue = Decimal("0")

    for order in orders:
        by_status[order.status] += 1
        by_category[order.category] += 1
        if order.approval_status is ApprovalStatus.PENDING:
            pending += 1
        if order.status is OrderStatus.DELIVERED:
            delivered += 1
            total_revenue += order.total_amount

    average = (total_revenue / delivered).quantize(CENTS, rounding=ROUND_HALF_UP) if delivered else Decimal("0")
    return DashboardStats(
        total_orders=sum(by_status.values()),
        pending_approvals=pending,
        orders_by_status=dict(by_status),
        orders_by_category=dict(by_category),
        revenue=RevenueStats(
            total_revenue=total_revenue,
            average_order_value=average,
            delivered_orders=delivered,
        ),
    )

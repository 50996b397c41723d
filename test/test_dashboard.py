from decimal import Decimal

from app.dashboard import aggregate
from app.models import OrderCategory, OrderStatus

from _helper import order_in


def test_empty_order_set_gives_zeroed_stats():
    stats = aggregate([])
    assert stats.total_orders == 0
    assert stats.pending_approvals == 0
    assert stats.orders_by_status == {}
    assert stats.revenue.total_revenue == 0
    assert stats.revenue.average_order_value == 0
    assert stats.model_dump(mode="json", by_alias=True) == {
        "totalOrders": 0,
        "pendingApprovals": 0,
        "ordersByStatus": {},
        "ordersByCategory": {},
        "revenue": {"totalRevenue": 0.0, "averageOrderValue": 0.0, "deliveredOrders": 0},
    }


def test_counts_and_revenue_over_mixed_orders():
    orders = [
        order_in(OrderStatus.AWAITING_APPROVAL, id="a", total_amount=Decimal("20")),
        order_in(OrderStatus.AWAITING_APPROVAL, id="b", total_amount=Decimal("30")),
        order_in(OrderStatus.SHIPPED, id="c", total_amount=Decimal("999")),
        order_in(OrderStatus.DELIVERED, id="d", total_amount=Decimal("100")),
        order_in(OrderStatus.DELIVERED, id="e", total_amount=Decimal("50.50")),
        order_in(OrderStatus.REJECTED, id="f", total_amount=Decimal("70")),
        order_in(OrderStatus.CANCELLED, id="g", total_amount=Decimal("80")),
    ]
    stats = aggregate(orders)
    assert stats.total_orders == 7
    assert stats.pending_approvals == 2
    assert stats.orders_by_status == {
        OrderStatus.AWAITING_APPROVAL: 2,
        OrderStatus.SHIPPED: 1,
        OrderStatus.DELIVERED: 2,
        OrderStatus.REJECTED: 1,
        OrderStatus.CANCELLED: 1,
    }
    assert stats.orders_by_category == {
        OrderCategory.ONGOING: 3,
        OrderCategory.COMPLETED: 2,
        OrderCategory.CANCELLED: 2,
    }
    assert stats.revenue.total_revenue == Decimal("150.50")
    assert stats.revenue.average_order_value == Decimal("75.25")
    assert stats.revenue.delivered_orders == 2


def test_average_is_rounded_to_cents():
    orders = [
        order_in(OrderStatus.DELIVERED, id=str(i), total_amount=Decimal(amount))
        for i, amount in enumerate(["10.00", "10.00", "10.01"])
    ]
    assert aggregate(orders).revenue.average_order_value == Decimal("10.00")


def test_no_deliveries_means_zero_average():
    stats = aggregate([order_in(OrderStatus.PROCESSING, total_amount=Decimal("40"))])
    assert stats.revenue.total_revenue == 0
    assert stats.revenue.average_order_value == 0

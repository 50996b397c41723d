from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from app.models import Actor, CamelModel, NewOrder, Order, OrderCategory, OrderStatus, TimelineEvent
from app.repository import OrderFilter
from app.routes.deps import get_actor, get_service
from app.service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


class OrderList(CamelModel):
    orders: list[Order]
    total: int


class CancelOrderBody(CamelModel):
    # Blank or missing reasons are reported as ReasonRequired by the workflow, not as a schema error.
    reason: str | None = Field(default=None, description="Why the customer cancels")


def order_filter(
    status: OrderStatus | None = Query(default=None),
    category: OrderCategory | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200),
) -> OrderFilter:
    return OrderFilter(status=status, category=category, search=search)


@router.get("", response_model=OrderList)
async def list_orders(
    filters: OrderFilter = Depends(order_filter),
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_service),
) -> OrderList:
    """Customer view: only the caller's own orders."""
    orders = await service.list_orders(actor, filters)
    return OrderList(orders=orders, total=len(orders))


@router.post("", response_model=Order, status_code=201)
async def create_order(
    body: NewOrder,
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_service),
) -> Order:
    """Register an order handed over by checkout. It starts awaiting admin approval."""
    return await service.create_order(actor, body)


@router.get("/{order_id}", response_model=Order)
async def get_order(
    order_id: str,
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_service),
) -> Order:
    return await service.get_order(order_id, actor)


@router.get("/{order_id}/timeline", response_model=list[TimelineEvent])
async def get_timeline(
    order_id: str,
    view: Literal["display", "full"] = Query(default="full"),
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_service),
) -> list[TimelineEvent]:
    """
    Timeline newest first. view=display keeps only the latest event per status,
    as the storefront renders it; view=full returns every event.
    """
    return await service.get_timeline(order_id, actor, view)


@router.post("/{order_id}/cancel", response_model=Order)
async def cancel_order(
    order_id: str,
    body: CancelOrderBody | None = None,
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_service),
) -> Order:
    return await service.cancel_order(order_id, actor, body.reason if body else None)

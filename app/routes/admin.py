from fastapi import APIRouter, Depends
from pydantic import Field

from app.dashboard import DashboardStats
from app.errors import Forbidden
from app.models import Actor, CamelModel, Order
from app.repository import OrderFilter
from app.routes.deps import get_actor, get_service
from app.routes.orders import OrderList, order_filter
from app.service import OrderService

router = APIRouter(prefix="/admin", tags=["admin"])


class ApproveBody(CamelModel):
    remarks: str | None = None


class RejectBody(CamelModel):
    remarks: str | None = Field(default=None, description="Required; shown to the customer")


class StatusUpdateBody(CamelModel):
    # Plain string so an unknown value surfaces as InvalidStatus from the workflow.
    status: str = Field(..., description="confirmed | processing | shipped | delivered")
    note: str | None = None


@router.get("/orders", response_model=OrderList)
async def list_all_orders(
    filters: OrderFilter = Depends(order_filter),
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_service),
) -> OrderList:
    """All orders, filterable by status, category and a search over number, customer name and email."""
    if not actor.is_admin:
        raise Forbidden("Only admins can list all orders")
    orders = await service.list_orders(actor, filters)
    return OrderList(orders=orders, total=len(orders))


@router.post("/orders/{order_id}/approve", response_model=Order)
async def approve_order(
    order_id: str,
    body: ApproveBody | None = None,
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_service),
) -> Order:
    remarks = body.remarks if body else None
    return await service.approve_order(order_id, actor, remarks)


@router.post("/orders/{order_id}/reject", response_model=Order)
async def reject_order(
    order_id: str,
    body: RejectBody | None = None,
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_service),
) -> Order:
    return await service.reject_order(order_id, actor, body.remarks if body else None)


@router.patch("/orders/{order_id}/status", response_model=Order)
async def update_order_status(
    order_id: str,
    body: StatusUpdateBody,
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_service),
) -> Order:
    return await service.update_order_status(order_id, actor, body.status, body.note)


@router.get("/dashboard/stats", response_model=DashboardStats)
async def dashboard_stats(
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_service),
) -> DashboardStats:
    return await service.dashboard_stats(actor)

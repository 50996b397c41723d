from fastapi import Header, Request

from app.models import Actor, Role
from app.service import OrderService


async def get_actor(
    x_actor_id: str = Header(..., min_length=1, description="Authenticated user id, set by the auth gateway"),
    x_actor_role: Role = Header(..., description="customer | admin"),
) -> Actor:
    return Actor(id=x_actor_id, role=x_actor_role)


def get_service(request: Request) -> OrderService:
    return request.app.state.order_service

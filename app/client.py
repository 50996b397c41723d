"""
Async client for the order API (httpx).

Each call is one attempt: failures come back as the same exceptions the service
raises (validation, authorization, state conflict, not found) or as
TransportFailure for network errors and 5xx responses. Nothing is retried
automatically, since approve/reject must not be applied twice.
"""
import logging
from typing import Any

import httpx

from app.config import settings
from app.dashboard import DashboardStats
from app.errors import ERRORS_BY_CODE, InvalidRequest, OrderWorkflowError, TransportFailure
from app.models import Actor, NewOrder, Order, OrderCategory, OrderStatus, TimelineEvent
from app.order_state import parse_status, require_reason

logger = logging.getLogger(__name__)


def error_from_response(resp: httpx.Response) -> OrderWorkflowError:
    if resp.status_code >= 500:
        return TransportFailure(f"Order service returned {resp.status_code}", status_code=resp.status_code)
    try:
        body = resp.json()
    except ValueError:
        body = {}
    code = body.get("error") if isinstance(body, dict) else None
    cls = ERRORS_BY_CODE.get(code)
    if cls is None:
        return InvalidRequest(f"Unexpected {resp.status_code} response: {resp.text[:200]}", status_code=resp.status_code)
    return cls(body.get("detail"), status_code=resp.status_code)


class OrderApiClient:
    def __init__(
        self,
        actor: Actor,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.actor = actor
        self._http = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=timeout or settings.client_timeout_seconds,
            transport=transport,
            headers={"X-Actor-Id": actor.id, "X-Actor-Role": actor.role.value},
        )

    async def __aenter__(self) -> "OrderApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            resp = await self._http.request(method, url, **kwargs)
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise TransportFailure(f"Could not reach order service: {e}") from e
        if resp.is_success:
            return resp.json()
        error = error_from_response(resp)
        logger.info("%s %s -> %d %s", method, url, resp.status_code, error.code)
        raise error

    async def list_orders(
        self,
        status: OrderStatus | None = None,
        category: OrderCategory | None = None,
        search: str | None = None,
        all_orders: bool = False,
    ) -> list[Order]:
        """Own orders, or every order when all_orders is set (admins only)."""
        params = {
            "status": status.value if status else None,
            "category": category.value if category else None,
            "search": search,
        }
        params = {k: v for k, v in params.items() if v}
        data = await self._request("GET", "/admin/orders" if all_orders else "/orders", params=params)
        return [Order.model_validate(o) for o in data["orders"]]

    async def get_order(self, order_id: str) -> Order:
        return Order.model_validate(await self._request("GET", f"/orders/{order_id}"))

    async def get_timeline(self, order_id: str, view: str = "full") -> list[TimelineEvent]:
        data = await self._request("GET", f"/orders/{order_id}/timeline", params={"view": view})
        return [TimelineEvent.model_validate(e) for e in data]

    async def create_order(self, draft: NewOrder) -> Order:
        body = draft.model_dump(mode="json", by_alias=True, exclude_none=True)
        return Order.model_validate(await self._request("POST", "/orders", json=body))

    async def approve_order(self, order_id: str, remarks: str | None = None) -> Order:
        data = await self._request("POST", f"/admin/orders/{order_id}/approve", json={"remarks": remarks})
        return Order.model_validate(data)

    async def reject_order(self, order_id: str, remarks: str) -> Order:
        remarks = require_reason(remarks, what="rejection reason")
        data = await self._request("POST", f"/admin/orders/{order_id}/reject", json={"remarks": remarks})
        return Order.model_validate(data)

    async def update_order_status(self, order_id: str, new_status: OrderStatus | str, note: str | None = None) -> Order:
        status = parse_status(new_status)
        data = await self._request(
            "PATCH",
            f"/admin/orders/{order_id}/status",
            json={"status": status.value, "note": note},
        )
        return Order.model_validate(data)

    async def cancel_order(self, order_id: str, reason: str) -> Order:
        reason = require_reason(reason, what="cancellation reason")
        data = await self._request("POST", f"/orders/{order_id}/cancel", json={"reason": reason})
        return Order.model_validate(data)

    async def get_dashboard_stats(self) -> DashboardStats:
        return DashboardStats.model_validate(await self._request("GET", "/admin/dashboard/stats"))

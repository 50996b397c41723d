import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from app.config import settings
from app.db import PostgresOrderRepository, close_pool, get_pool, init_schema
from app.errors import InvalidRequest, OrderWorkflowError
from app.metrics import get_metrics_bytes, get_metrics_content_type
from app.repository import InMemoryOrderRepository, OrderRepository
from app.routes import admin, orders
from app.service import OrderService

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


def create_app(repository: OrderRepository | None = None) -> FastAPI:
    """Build the API. Pass a repository to skip storage setup from settings (tests do this)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        uses_pool = False
        if getattr(app.state, "order_service", None) is None:
            if settings.storage_backend == "memory":
                app.state.order_service = OrderService(InMemoryOrderRepository())
            else:
                pool = await get_pool()
                await init_schema(pool)
                app.state.order_service = OrderService(PostgresOrderRepository(pool))
                uses_pool = True
            logger.info("Order storage ready (backend=%s)", settings.storage_backend)
        yield
        if uses_pool:
            await close_pool()

    app = FastAPI(title="Order Approval Service", lifespan=lifespan)
    if repository is not None:
        app.state.order_service = OrderService(repository)
    app.include_router(orders.router)
    app.include_router(admin.router)

    @app.exception_handler(OrderWorkflowError)
    async def workflow_error(request: Request, exc: OrderWorkflowError) -> JSONResponse:
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_invalid(request: Request, exc: RequestValidationError) -> JSONResponse:
        detail = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        error = InvalidRequest(detail)
        return JSONResponse(status_code=error.http_status, content=error.to_dict())

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.get("/metrics")
    async def metrics() -> Response:
        """Prometheus scrape endpoint: transitions applied/refused, pending approvals."""
        return Response(
            content=get_metrics_bytes(),
            media_type=get_metrics_content_type(),
        )

    return app


app = create_app()

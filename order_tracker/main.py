import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from order_tracker.config import Settings, settings
from order_tracker.db import PostgresOrderRepository, get_pool, init_schema
from order_tracker.dispatcher import EventDispatcher
from order_tracker.errors import (
    AmountMismatchError,
    InvalidTransitionError,
    OrderNotFoundError,
    OrderValidationError,
    PersistenceError,
)
from order_tracker.handlers import OrderEventHandlers, build_handler_table
from order_tracker.metrics import get_metrics_bytes, get_metrics_content_type
from order_tracker.redis_client import close_redis, get_redis
from order_tracker.repository import InMemoryOrderRepository, OrderRepository
from order_tracker.routes import orders, webhooks
from order_tracker.service import OrderService

logger = logging.getLogger(__name__)

_ERROR_STATUS: list[tuple[type[Exception], int]] = [
    (OrderValidationError, 400),
    (OrderNotFoundError, 404),
    (InvalidTransitionError, 409),
    (AmountMismatchError, 422),
    (PersistenceError, 503),
]


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stdout,
    )


async def build_repository(config: Settings) -> OrderRepository:
    if config.database_url:
        pool = await get_pool(config.database_url)
        await init_schema(pool)
        logger.info("Order store: Postgres")
        return PostgresOrderRepository(pool)
    logger.info("Order store: in-memory (DATABASE_URL not set)")
    return InMemoryOrderRepository()


def create_app(config: Settings = settings, repository: OrderRepository | None = None) -> FastAPI:
    """
    Wire repository -> service -> handler table -> dispatcher once per app.
    Routes read config from app.state; pass repository to skip building one from config (tests).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        repo = repository if repository is not None else await build_repository(config)
        service = OrderService(
            repo,
            amount_mismatch_threshold=config.payment_amount_mismatch_threshold,
            max_retries=config.store_max_retries,
        )
        app.state.order_service = service
        app.state.dispatcher = EventDispatcher(build_handler_table(OrderEventHandlers(service)))
        app.state.redis = await get_redis(config.redis_url)
        logger.info("Event handlers registered: %s", ", ".join(e.value for e in app.state.dispatcher.handlers))
        try:
            yield
        finally:
            await app.state.dispatcher.drain(timeout=config.dispatcher_drain_timeout_sec)
            await close_redis()
            await repo.close()
            logger.info("Order tracker stopped.")

    app = FastAPI(title="Order Tracker", lifespan=lifespan)
    app.state.config = config
    app.include_router(orders.router)
    app.include_router(webhooks.router)

    for exc_class, status_code in _ERROR_STATUS:
        app.add_exception_handler(exc_class, _error_handler(status_code))

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.get("/metrics")
    async def metrics() -> Response:
        """Prometheus scrape endpoint."""
        return Response(
            content=get_metrics_bytes(),
            media_type=get_metrics_content_type(),
        )

    return app


def _error_handler(status_code: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )
    return handler


configure_logging(settings.log_level)
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

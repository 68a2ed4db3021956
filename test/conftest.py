"""
Pytest fixtures: in-memory order store, service, and a dispatcher wired the way the app wires it.
"""
import pytest
from fastapi.testclient import TestClient

from order_tracker.config import Settings
from order_tracker.dispatcher import EventDispatcher
from order_tracker.handlers import OrderEventHandlers, build_handler_table
from order_tracker.main import create_app
from order_tracker.repository import InMemoryOrderRepository
from order_tracker.service import OrderService


@pytest.fixture
def repository() -> InMemoryOrderRepository:
    return InMemoryOrderRepository()


@pytest.fixture
def service(repository: InMemoryOrderRepository) -> OrderService:
    return OrderService(repository)


@pytest.fixture
def dispatcher(service: OrderService) -> EventDispatcher:
    return EventDispatcher(build_handler_table(OrderEventHandlers(service)))


@pytest.fixture
def client(repository: InMemoryOrderRepository):
    app = create_app(config=Settings(database_url=None, redis_url=None), repository=repository)
    with TestClient(app) as test_client:
        yield test_client

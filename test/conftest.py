import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from app.repository import InMemoryOrderRepository
from app.service import OrderService


@pytest.fixture
def repo() -> InMemoryOrderRepository:
    return InMemoryOrderRepository()


@pytest.fixture
def service(repo) -> OrderService:
    return OrderService(repo)


@pytest.fixture
def app(repo):
    return create_app(repo)


@pytest.fixture
def api(app):
    with TestClient(app) as client:
        yield client

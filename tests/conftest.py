import pytest
from fastapi.testclient import TestClient

from task_api.config import Settings
from task_api.crud import TaskStore
from task_api.database import Database
from task_api.main import create_app
from task_api.migrations import run_migrations
from task_api.services import build_task_operations

from .fakes import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def database(tmp_path):
    db = Database.from_url(f"sqlite:///{tmp_path / 'test_tasks.db'}")
    run_migrations(db)
    yield db
    db.dispose()


@pytest.fixture
def store(database, clock):
    return TaskStore(database, clock=clock)


@pytest.fixture
def operations(database, clock):
    return build_task_operations(database, clock=clock)


@pytest.fixture
def settings(tmp_path):
    return Settings(env="test", database_url=f"sqlite:///{tmp_path / 'test_tasks.db'}")


@pytest.fixture
def app(settings, database, operations):
    return create_app(settings=settings, database=database, operations=operations)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def task_payload(clock):
    def build(**overrides):
        payload = {
            "title": "Test Task",
            "description": "Test Description",
            "due_date": clock.days_ahead(1).isoformat(),
            "status": "pending",
        }
        payload.update(overrides)
        return payload

    return build

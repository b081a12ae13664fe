import pytest
import os
from datetime import date, datetime, timedelta

import requests

# Set env before importing app components
os.environ["APP_ENV"] = "testing"

from fastapi.testclient import TestClient

from nexushr.core.config import AISettings, Config, SyncSettings
from nexushr.database import init_db, make_engine, make_session_factory
from nexushr.schemas.employee import Employee, Gender
from nexushr.server.main import create_app
from nexushr.services.employee_service import EmployeeService
from nexushr.services.leave_service import LeaveService
from nexushr.services.local_store import LocalStore
from nexushr.services.outbox import Outbox
from nexushr.services.payroll_service import PayrollService
from nexushr.services.remote_client import RemoteApiClient
from nexushr.services.sync_coordinator import SyncCoordinator

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
BASE_URL = "http://testserver"


class FlakySession:
    """Forwards requests to the test backend, or fails like a dropped network when offline."""

    def __init__(self, client: TestClient):
        self.client = client
        self.online = True
        self.calls = 0

    def request(self, method, url, **kwargs):
        self.calls += 1
        if not self.online:
            raise requests.exceptions.ConnectionError("network unreachable")
        return self.client.request(method, url, **kwargs)


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


@pytest.fixture(scope="function")
def settings():
    return Config(
        environment="testing",
        local_database_url=SQLALCHEMY_DATABASE_URL,
        server_database_url=SQLALCHEMY_DATABASE_URL,
        admin_user="admin",
        admin_password="8278",
        auto_approve_hours=6.0,
        sync=SyncSettings(
            api_url=None,
            request_timeout=1.0,
            push_attempts=1,
            push_wait_seconds=0,
            retry_base_seconds=30,
            retry_max_seconds=3600,
            max_attempts=3,
        ),
        ai=AISettings(openrouter_api_key=None, kill_switch=True),
    )


@pytest.fixture(scope="function")
def session_factory():
    """A fresh local store database for each test function."""
    engine = make_engine(SQLALCHEMY_DATABASE_URL)
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def store(session_factory):
    return LocalStore(session_factory)


@pytest.fixture(scope="function")
def outbox(session_factory):
    return Outbox(session_factory)


@pytest.fixture(scope="function")
def server_app(settings):
    return create_app(settings, database_url=SQLALCHEMY_DATABASE_URL)


@pytest.fixture(scope="function")
def server_client(server_app):
    with TestClient(server_app) as c:
        yield c


@pytest.fixture(scope="function")
def network(server_client):
    return FlakySession(server_client)


@pytest.fixture(scope="function")
def remote(network):
    return RemoteApiClient(BASE_URL, timeout=1.0, session=network)


@pytest.fixture(scope="function")
def clock():
    return FakeClock(datetime(2024, 7, 1, 9, 0, 0))


@pytest.fixture(scope="function")
def sync(store, outbox, remote, settings, clock):
    """Coordinator wired to the in-process backend."""
    return SyncCoordinator(store, outbox, remote, settings.sync, clock=clock)


@pytest.fixture(scope="function")
def local_sync(store, outbox, settings, clock):
    """Coordinator with no backend configured (local-only mode)."""
    return SyncCoordinator(store, outbox, None, settings.sync, clock=clock)


@pytest.fixture(scope="function")
def employees(local_sync, settings):
    return EmployeeService(local_sync, settings, initials=lambda name: "lr")


@pytest.fixture(scope="function")
def leave_clock():
    """Epoch-millisecond clock the leave tests can move by hand."""
    state = {"now": 1_720_000_000_000}

    def _now():
        return state["now"]
    _now.state = state
    return _now


@pytest.fixture(scope="function")
def leaves(local_sync, settings, leave_clock):
    return LeaveService(local_sync, settings, clock=leave_clock)


@pytest.fixture(scope="function")
def payroll(local_sync, settings):
    return PayrollService(local_sync, settings, clock=lambda: 1_720_000_000_000)


@pytest.fixture(scope="function")
def make_employee():
    """Build an employee record; the defaults are the probation scenario used across the tests."""
    def _make(**overrides):
        fields = dict(
            id="lr0615",
            name="Li Ru",
            job_title="Sales",
            gender=Gender.FEMALE,
            join_date=date(2024, 6, 15),
            probation_salary=4000,
            full_salary=6000,
            probation_months=3,
            password="1234",
            is_first_login=True,
        )
        fields.update(overrides)
        return Employee(**fields)
    return _make

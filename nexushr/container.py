"""
Service wiring.

Builds every component once from a Config and hands them out together;
nothing in the package reads settings or opens databases at import time.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional
import logging

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from nexushr.core.config import Config
from nexushr.database import init_db, make_engine, make_session_factory
from nexushr.services.auth_service import AuthService
from nexushr.services.employee_service import EmployeeService
from nexushr.services.leave_service import LeaveService
from nexushr.services.local_store import LocalStore
from nexushr.services.outbox import Outbox
from nexushr.services.payroll_service import PayrollService
from nexushr.services.remote_client import RemoteApiClient
from nexushr.services.scheduler import BackgroundScheduler
from nexushr.services.sync_coordinator import SyncCoordinator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceContainer:
    settings: Config
    engine: Engine
    session_factory: sessionmaker

    store: LocalStore
    outbox: Outbox
    remote: Optional[RemoteApiClient]
    sync: SyncCoordinator

    auth: AuthService
    employees: EmployeeService
    leaves: LeaveService
    payroll: PayrollService
    scheduler: BackgroundScheduler

    def close(self):
        self.scheduler.stop()
        self.engine.dispose()


def create_container(
    settings: Config,
    http_session: Optional[Any] = None,
    initials: Optional[Callable[[str], str]] = None,
) -> ServiceContainer:
    """
    Args:
        settings: Loaded configuration (see ``load_settings``)
        http_session: Optional requests-style session for the backend client
        initials: Optional replacement for the name-initials lookup
    """
    engine = make_engine(settings.local_database_url)
    init_db(engine)
    session_factory = make_session_factory(engine)

    store = LocalStore(session_factory)
    outbox = Outbox(session_factory)

    remote = None
    if settings.sync.api_url:
        remote = RemoteApiClient(settings.sync.api_url, timeout=settings.sync.request_timeout, session=http_session)
    else:
        logger.warning("NEXUS_API_URL is not set; running in local-only mode")

    sync = SyncCoordinator(store, outbox, remote, settings.sync)
    employees = EmployeeService(sync, settings, initials=initials)
    leaves = LeaveService(sync, settings)

    return ServiceContainer(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        store=store,
        outbox=outbox,
        remote=remote,
        sync=sync,
        auth=AuthService(sync, settings),
        employees=employees,
        leaves=leaves,
        payroll=PayrollService(sync, settings),
        scheduler=BackgroundScheduler(sync, leaves, settings.scheduler),
    )

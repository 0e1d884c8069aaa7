# tests/conftest.py
import copy

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from iis_manager.core.exceptions import ResourceNotFoundError
from iis_manager.db.base import Base
from iis_manager.db.session import get_db
from iis_manager.gateways import get_gateway
from iis_manager.gateways.base import (
    AppPool,
    Application,
    ManagementGateway,
    Site,
    STATE_STARTED,
    STATE_STOPPED,
)
from iis_manager.main import app
import iis_manager.models  # noqa: F401


def default_sites():
    return [
        Site(1, "Default Web Site", STATE_STARTED, [Application("/", "DefaultAppPool")]),
        Site(2, "Intranet", STATE_STARTED, [
            Application("/", "IntranetPool"),
            Application("/api", "INTRANETPOOL"),
            Application("/Reports", "ReportsPool"),
        ]),
        Site(3, "Shop", STATE_STOPPED, [
            Application("/", "ShopPool"),
            Application("/checkout", "DefaultAppPool"),
        ]),
    ]


def default_pools():
    return [
        AppPool("DefaultAppPool", STATE_STARTED, "v4.0", "Integrated", "ApplicationPoolIdentity"),
        AppPool("IntranetPool", STATE_STARTED, "v4.0", "Integrated", "SpecificUser", "CORP\\svc-intranet"),
        AppPool("ReportsPool", STATE_STOPPED, "", "Classic", "NetworkService"),
        AppPool("ShopPool", STATE_STARTED, "v4.0", "Integrated", "LocalSystem"),
        AppPool("UnusedPool", STATE_STARTED, "v2.0", "Integrated", "ApplicationPoolIdentity"),
    ]


class FakeGateway(ManagementGateway):
    """In-memory gateway that records every call.

    ``fail_on`` maps an operation name to the exception it should raise.
    """

    backend = "fake"

    def __init__(self, sites=None, pools=None):
        self.sites = sites if sites is not None else default_sites()
        self.pools = pools if pools is not None else default_pools()
        self.calls = []
        self.fail_on = {}
        self.closed = False

    def _enter(self, op, *args):
        self.calls.append((op, *args))
        exc = self.fail_on.get(op)
        if exc is not None:
            raise exc

    def _site(self, name):
        for s in self.sites:
            if s.name.lower() == name.lower():
                return s
        raise ResourceNotFoundError(f"Site '{name}' not found.")

    def action_calls(self):
        return [c for c in self.calls if not c[0].startswith("list_")]

    def list_sites(self):
        self._enter("list_sites")
        return copy.deepcopy(self.sites)

    def list_pools(self):
        self._enter("list_pools")
        return copy.deepcopy(self.pools)

    def stop_site(self, name):
        self._enter("stop_site", name)
        self._site(name).state = STATE_STOPPED

    def start_site(self, name):
        self._enter("start_site", name)
        self._site(name).state = STATE_STARTED

    def recycle_pool(self, name):
        self._enter("recycle_pool", name)
        if not any(p.name.lower() == name.lower() for p in self.pools):
            raise ResourceNotFoundError(f"Application Pool '{name}' not found.")

    def close(self):
        self.closed = True


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(session_factory, gateway):
    """TestClient wired to the in-memory audit DB and the fake gateway."""
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def _get_gateway():
        try:
            yield gateway
        finally:
            gateway.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_gateway] = _get_gateway
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

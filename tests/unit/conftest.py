"""Shared fixtures for device flow unit tests."""

import pytest

from device_flow.core.config import DeviceFlowConfig
from device_flow.service.device_authorization_service import (
    DeviceAuthorizationService,
)
from device_flow.storage.database import (
    create_db_engine,
    create_session_maker,
    init_db,
)
from device_flow.storage.sql_device_authorization_store import (
    SQLDeviceAuthorizationStore,
)


class FakeClock:
    """Manually advanced clock returning seconds since the epoch."""

    def __init__(self, now: float = 1_700_000_000):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return DeviceFlowConfig(enable_statistics_logging=False)


@pytest.fixture
def engine():
    engine = create_db_engine('sqlite:///:memory:')
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest.fixture
def store(session_maker):
    return SQLDeviceAuthorizationStore(session_maker)


@pytest.fixture
def service(store, config, clock):
    return DeviceAuthorizationService(store, config, clock=clock)

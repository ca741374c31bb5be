# tests/conftest.py
import os
from datetime import datetime, timedelta, timezone

import pytest

# Keep a developer's local .env out of the test run.
os.environ.setdefault("GUILDCORE_LOAD_DOTENV", "false")

from guildcore.capabilities import CapabilityCatalog, CapabilityRuntime  # noqa: E402
from guildcore.commands import CommandCatalog, CommandDispatcher  # noqa: E402
from guildcore.connectors import (  # noqa: E402
    InMemoryPersistenceConnector,
    RecordingTransportConnector,
    StaticLicenseConnector,
)
from guildcore.entitlements import EntitlementGate  # noqa: E402


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def persistence():
    return InMemoryPersistenceConnector()


@pytest.fixture
def transport():
    return RecordingTransportConnector()


@pytest.fixture
def licenses():
    return StaticLicenseConnector()


@pytest.fixture
def gate(licenses, clock):
    return EntitlementGate(licenses, clock=clock)


@pytest.fixture
def capability_catalog():
    return CapabilityCatalog()


@pytest.fixture
def runtime(capability_catalog, gate, persistence, transport, clock):
    return CapabilityRuntime(capability_catalog, gate, persistence, transport, clock=clock)


@pytest.fixture
def command_catalog(clock):
    return CommandCatalog(clock=clock)


@pytest.fixture
def dispatcher(command_catalog, gate, transport):
    return CommandDispatcher(command_catalog, gate, transport, owner_ids=["owner-1"])

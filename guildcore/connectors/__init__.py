# guildcore/connectors/__init__.py
"""
Collaborator interfaces (persistence, license service, transport) and their
in-memory implementations.
"""

from guildcore.connectors.base import (
    ConnectorBundle,
    LicenseConnector,
    PersistenceConnector,
    TransportConnector,
)
from guildcore.connectors.memory import (
    InMemoryPersistenceConnector,
    RecordingTransportConnector,
    StaticLicenseConnector,
    load_memory_connectors,
)

__all__ = [
    "ConnectorBundle",
    "LicenseConnector",
    "PersistenceConnector",
    "TransportConnector",
    "InMemoryPersistenceConnector",
    "RecordingTransportConnector",
    "StaticLicenseConnector",
    "load_memory_connectors",
]

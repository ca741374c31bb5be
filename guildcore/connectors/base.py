# guildcore/connectors/base.py
"""
Collaborator interfaces for the runtime core.

BOUNDARY CONTRACT:
- The core never stores tenant data itself: configuration, audit entries and
  usage counters go through PersistenceConnector
- Plans, entitled feature keys and limits come from LicenseConnector (pull model)
- Replies, autocomplete results and channel messages go out through
  TransportConnector; the core never holds a platform connection

Implementations live outside this package (database, license API, chat
gateway). ``guildcore.connectors.memory`` has in-process versions for local
development and tests.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from guildcore.models import ArgumentChoice, EntitlementRecord


class PersistenceConnector(ABC):
    @abstractmethod
    async def load_capability_config(self, *, tenant_id: str, key: str) -> dict[str, Any]: ...

    @abstractmethod
    async def save_capability_config(self, *, tenant_id: str, key: str, config: Mapping[str, Any]) -> None: ...

    @abstractmethod
    async def append_audit_entry(self, *, tenant_id: str, action: str, metadata: Mapping[str, Any]) -> None: ...

    @abstractmethod
    async def increment_usage_counter(self, *, tenant_id: str, counter_type: str, count: int = 1) -> None: ...


class LicenseConnector(ABC):
    @abstractmethod
    async def fetch_entitlement(self, *, tenant_id: str) -> EntitlementRecord | None:
        """Return the tenant's current entitlement, None when it has none.

        Raises LicenseUnavailableError when the license service cannot be reached.
        """


class TransportConnector(ABC):
    @abstractmethod
    async def reply(
        self,
        handle: Any,
        content: str | None = None,
        *,
        ephemeral: bool = True,
        embed: Mapping[str, Any] | None = None,
    ) -> None: ...

    @abstractmethod
    async def edit_reply(
        self,
        handle: Any,
        content: str | None = None,
        *,
        embed: Mapping[str, Any] | None = None,
    ) -> None: ...

    @abstractmethod
    async def send_autocomplete_results(self, handle: Any, candidates: Sequence[ArgumentChoice]) -> None: ...

    @abstractmethod
    async def send_message(
        self,
        *,
        tenant_id: str,
        channel_id: str,
        content: str | None = None,
        embed: Mapping[str, Any] | None = None,
    ) -> None: ...

    @abstractmethod
    async def delete_message(self, *, tenant_id: str, channel_id: str, message_id: str) -> None: ...


@dataclass(frozen=True)
class ConnectorBundle:
    """Bundle of the three collaborators the runtime consumes."""

    persistence: PersistenceConnector
    license: LicenseConnector
    transport: TransportConnector

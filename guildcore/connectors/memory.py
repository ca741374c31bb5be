# guildcore/connectors/memory.py
"""
In-process collaborators for local development and tests.

None of these talk to a network or a database: persistence is a set of dicts,
licenses come from a YAML fixture file or explicit ``set_entitlement`` calls,
and the transport records every outbound call for inspection.
"""
from __future__ import annotations

import copy
import logging
from collections import Counter
from pathlib import Path
from typing import Any, Mapping, Sequence

import yaml

from guildcore.connectors.base import (
    ConnectorBundle,
    LicenseConnector,
    PersistenceConnector,
    TransportConnector,
)
from guildcore.errors import LicenseUnavailableError
from guildcore.models import ArgumentChoice, EntitlementRecord

logger = logging.getLogger("guildcore.connectors.memory")


class InMemoryPersistenceConnector(PersistenceConnector):
    def __init__(self) -> None:
        self.configs: dict[tuple[str, str], dict[str, Any]] = {}
        self.audit_entries: list[dict[str, Any]] = []
        self.usage: Counter[tuple[str, str]] = Counter()

    async def load_capability_config(self, *, tenant_id: str, key: str) -> dict[str, Any]:
        return copy.deepcopy(self.configs.get((tenant_id, key), {}))

    async def save_capability_config(self, *, tenant_id: str, key: str, config: Mapping[str, Any]) -> None:
        self.configs[(tenant_id, key)] = copy.deepcopy(dict(config))

    async def append_audit_entry(self, *, tenant_id: str, action: str, metadata: Mapping[str, Any]) -> None:
        self.audit_entries.append({"tenant_id": tenant_id, "action": action, "metadata": dict(metadata)})

    async def increment_usage_counter(self, *, tenant_id: str, counter_type: str, count: int = 1) -> None:
        self.usage[(tenant_id, counter_type)] += count


class StaticLicenseConnector(LicenseConnector):
    """License service backed by a fixed mapping of tenant id to entitlement."""

    def __init__(self, records: Mapping[str, EntitlementRecord] | None = None) -> None:
        self._records: dict[str, EntitlementRecord] = dict(records or {})
        self.available = True
        self.fetch_count = 0

    @classmethod
    def from_yaml(cls, path: str | Path) -> "StaticLicenseConnector":
        """Load fixtures shaped as ``licenses: [{tenant_id, plan, features, limits, ...}]``."""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        entries = data.get("licenses") or []
        records = {}
        for entry in entries:
            record = EntitlementRecord.model_validate(entry)
            records[record.tenant_id] = record
        logger.info("Loaded %d license fixtures from %s", len(records), path)
        return cls(records)

    def set_entitlement(self, record: EntitlementRecord) -> None:
        self._records[record.tenant_id] = record

    def remove_entitlement(self, tenant_id: str) -> None:
        self._records.pop(tenant_id, None)

    async def fetch_entitlement(self, *, tenant_id: str) -> EntitlementRecord | None:
        self.fetch_count += 1
        if not self.available:
            raise LicenseUnavailableError("License service is unavailable")
        return self._records.get(tenant_id)


class RecordingTransportConnector(TransportConnector):
    def __init__(self) -> None:
        self.replies: list[dict[str, Any]] = []
        self.edits: list[dict[str, Any]] = []
        self.autocomplete_results: list[dict[str, Any]] = []
        self.messages: list[dict[str, Any]] = []
        self.deleted: list[dict[str, Any]] = []
        self.fail_replies = False

    async def reply(
        self,
        handle: Any,
        content: str | None = None,
        *,
        ephemeral: bool = True,
        embed: Mapping[str, Any] | None = None,
    ) -> None:
        if self.fail_replies:
            raise ConnectionError("transport closed")
        self.replies.append({"handle": handle, "content": content, "ephemeral": ephemeral, "embed": embed})

    async def edit_reply(self, handle: Any, content: str | None = None, *, embed: Mapping[str, Any] | None = None) -> None:
        if self.fail_replies:
            raise ConnectionError("transport closed")
        self.edits.append({"handle": handle, "content": content, "embed": embed})

    async def send_autocomplete_results(self, handle: Any, candidates: Sequence[ArgumentChoice]) -> None:
        self.autocomplete_results.append({"handle": handle, "candidates": list(candidates)})

    async def send_message(
        self,
        *,
        tenant_id: str,
        channel_id: str,
        content: str | None = None,
        embed: Mapping[str, Any] | None = None,
    ) -> None:
        self.messages.append({"tenant_id": tenant_id, "channel_id": channel_id, "content": content, "embed": embed})

    async def delete_message(self, *, tenant_id: str, channel_id: str, message_id: str) -> None:
        self.deleted.append({"tenant_id": tenant_id, "channel_id": channel_id, "message_id": message_id})

    def responses_for(self, handle: Any) -> list[dict[str, Any]]:
        """Replies and edits sent for one invocation handle."""
        return [r for r in self.replies if r["handle"] == handle] + [e for e in self.edits if e["handle"] == handle]


def load_memory_connectors(license_file: str | None = None) -> ConnectorBundle:
    """Return an in-memory bundle, seeding licenses from ``license_file`` when given."""
    license_connector = StaticLicenseConnector.from_yaml(license_file) if license_file else StaticLicenseConnector()
    return ConnectorBundle(
        persistence=InMemoryPersistenceConnector(),
        license=license_connector,
        transport=RecordingTransportConnector(),
    )

"""
Capability SDK
==============
What a capability (an optional per-tenant feature) implements and what it
receives at runtime.

A capability subclasses ``BaseCapability``, declares its ``definition`` and
returns its event handlers from ``event_handlers()``:

    class WelcomeCapability(BaseCapability):
        definition = CapabilityDefinition(key="welcome", name="Welcome Messages", ...)

        def event_handlers(self):
            return {CapabilityEvent.MEMBER_ADD: self.on_member_add}

        async def on_member_add(self, context, member):
            ...

The handler table is validated when the capability is added to the catalog,
so a misspelled event is a registration error instead of a silent no-op.
"""

from __future__ import annotations

import copy
import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from guildcore.connectors.base import PersistenceConnector, TransportConnector
from guildcore.errors import InvalidDefinitionError, UnknownEventError
from guildcore.logs.logging_config import ContextLogger
from guildcore.models import CapabilityDefinition


class CapabilityEvent(str, Enum):
    GUILD_CREATE = "guild_create"
    GUILD_DELETE = "guild_delete"
    MEMBER_ADD = "member_add"
    MEMBER_REMOVE = "member_remove"
    MEMBER_UPDATE = "member_update"
    MESSAGE_CREATE = "message_create"
    MESSAGE_DELETE = "message_delete"
    MESSAGE_UPDATE = "message_update"
    MEMBER_BAN = "member_ban"
    MEMBER_UNBAN = "member_unban"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value: "CapabilityEvent | str") -> "CapabilityEvent":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownEventError(str(value)) from None


EventHandler = Callable[..., Awaitable[None]]


# ---------------------------------------------------------------------------
# Event payloads
# ---------------------------------------------------------------------------


class EventPayload(BaseModel):
    model_config = ConfigDict(extra="allow")


class MemberPayload(EventPayload):
    user_id: str
    username: str = "Unknown"
    mention: Optional[str] = None
    guild_name: str = ""
    member_count: int = 0
    system_channel_id: Optional[str] = None

    @property
    def display(self) -> str:
        return self.mention or f"<@{self.user_id}>"


class MessagePayload(EventPayload):
    message_id: str
    channel_id: str
    author_id: str
    author_tag: str = ""
    content: str = ""
    mentioned_user_ids: list[str] = Field(default_factory=list)
    mentioned_role_ids: list[str] = Field(default_factory=list)
    author_permissions: frozenset[str] = frozenset()

    @property
    def mention_count(self) -> int:
        return len(self.mentioned_user_ids) + len(self.mentioned_role_ids)


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


class CapabilityContext:
    """Capability-scoped view of one tenant: live config, usage counters, audit trail."""

    def __init__(
        self,
        *,
        tenant_id: str,
        capability_key: str,
        config: Dict[str, Any],
        logger: ContextLogger,
        persistence: PersistenceConnector,
        transport: TransportConnector,
        tenant_name: Optional[str] = None,
    ):
        self.tenant_id = tenant_id
        self.tenant_name = tenant_name or tenant_id
        self.capability_key = capability_key
        self.config = config
        self.logger = logger
        self.transport = transport
        self._persistence = persistence

    async def update_config(self, new_config: Mapping[str, Any]) -> Dict[str, Any]:
        self.config.update(copy.deepcopy(dict(new_config)))
        await self._persistence.save_capability_config(
            tenant_id=self.tenant_id, key=self.capability_key, config=self.config
        )
        self.logger.debug("Capability config updated", changed_keys=sorted(new_config))
        return self.config

    async def increment_usage(self, counter_type: str, count: int = 1) -> None:
        await self._persistence.increment_usage_counter(
            tenant_id=self.tenant_id, counter_type=f"{self.capability_key}.{counter_type}", count=count
        )

    async def audit_log(self, action: str, metadata: Optional[Mapping[str, Any]] = None) -> None:
        entry = {"capability": self.capability_key, **dict(metadata or {})}
        await self._persistence.append_audit_entry(tenant_id=self.tenant_id, action=action, metadata=entry)
        self.logger.info(f"Audit: {action}")


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------


class BaseCapability:
    """Default lifecycle hooks; subclasses set ``definition`` and override as needed."""

    definition: CapabilityDefinition

    @property
    def key(self) -> str:
        return self.definition.key

    async def register(self, context: CapabilityContext) -> None:
        context.logger.debug(f"{self.definition.name} registered")

    async def enable(self, context: CapabilityContext) -> None:
        context.logger.info(f"{self.definition.name} enabled")

    async def disable(self, context: CapabilityContext) -> None:
        context.logger.info(f"{self.definition.name} disabled")

    async def migrate(self, context: CapabilityContext, from_version: str, to_version: str) -> None:
        context.logger.info(f"{self.definition.name} has no migration from {from_version} to {to_version}")

    async def health_check(self, context: CapabilityContext) -> Dict[str, Any]:
        return {"status": "ok"}

    def event_handlers(self) -> Mapping[CapabilityEvent, EventHandler]:
        return {}


def build_handler_table(capability: BaseCapability) -> Dict[CapabilityEvent, EventHandler]:
    """Validate and freeze a capability's event handler table.

    Raises InvalidDefinitionError for keys that are not CapabilityEvent members
    or handlers that are not coroutine functions.
    """
    key = getattr(getattr(capability, "definition", None), "key", "?")
    table: Dict[CapabilityEvent, EventHandler] = {}
    for event, handler in dict(capability.event_handlers() or {}).items():
        if not isinstance(event, CapabilityEvent):
            raise InvalidDefinitionError(f"Capability '{key}' declares a handler for unknown event {event!r}")
        if not inspect.iscoroutinefunction(handler):
            raise InvalidDefinitionError(
                f"Capability '{key}' handler for '{event.value}' must be an async function"
            )
        table[event] = handler
    return table

"""
Data Model
==========

Immutable definitions (capabilities, commands, arguments, entitlements) are
frozen pydantic models: they are created once at startup or when the license
service answers, and replaced rather than mutated.

Inbound requests from the transport layer (``Invocation`` and
``AutocompleteRequest``) are plain dataclasses because they carry an opaque
transport handle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from guildcore.utils.clock import utc_now


class DefinitionModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class PlanTier(str, Enum):
    """License plans, declared lowest first."""

    TRIAL = "trial"
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    ENTERPRISE = "enterprise"

    @property
    def rank(self) -> int:
        return list(PlanTier).index(self)

    @classmethod
    def lowest(cls) -> "PlanTier":
        return cls.TRIAL


class CapabilityCategory(str, Enum):
    GENERAL = "general"
    MODERATION = "moderation"
    ENGAGEMENT = "engagement"
    AI = "ai"


class ArgumentType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    USER = "user"
    CHANNEL = "channel"
    ROLE = "role"
    MENTIONABLE = "mentionable"
    ATTACHMENT = "attachment"

    @property
    def is_reference(self) -> bool:
        return self in _REFERENCE_TYPES


_REFERENCE_TYPES = frozenset(
    {
        ArgumentType.USER,
        ArgumentType.CHANNEL,
        ArgumentType.ROLE,
        ArgumentType.MENTIONABLE,
        ArgumentType.ATTACHMENT,
    }
)


# ---------------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------------


class CapabilityDefinition(DefinitionModel):
    key: str
    name: str
    description: str = ""
    version: str = "1.0.0"
    category: CapabilityCategory = CapabilityCategory.GENERAL
    is_premium: bool = False
    permissions: FrozenSet[str] = frozenset()
    default_config: Dict[str, Any] = Field(default_factory=dict)
    config_schema: Optional[Dict[str, Any]] = None


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class ArgumentChoice(DefinitionModel):
    name: str
    value: Union[int, float, str]


class ArgumentDefinition(DefinitionModel):
    name: str
    description: str = ""
    type: ArgumentType = ArgumentType.STRING
    required: bool = False
    choices: Tuple[ArgumentChoice, ...] = ()
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    autocomplete: bool = False


class CommandDefinition(DefinitionModel):
    name: str
    description: str
    category: str = "uncategorized"
    permissions: FrozenSet[str] = frozenset()
    roles: FrozenSet[str] = frozenset()
    cooldown_seconds: float = 0
    guild_only: bool = False
    owner_only: bool = False
    premium_only: bool = False
    enabled: bool = True
    arguments: Tuple[ArgumentDefinition, ...] = ()
    aliases: Tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Entitlements
# ---------------------------------------------------------------------------


class EntitlementRecord(DefinitionModel):
    tenant_id: str
    plan: PlanTier = PlanTier.TRIAL
    features: FrozenSet[str] = frozenset()
    limits: Dict[str, int] = Field(default_factory=dict)
    issued_at: datetime = Field(default_factory=utc_now)
    expires_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("issued_at", "expires_at", "revoked_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at < now

    def invalid_reason(self, now: datetime) -> Optional[str]:
        """Return ``revoked`` / ``expired`` for an unusable record, else None."""
        if self.revoked_at is not None:
            return "revoked"
        if self.is_expired(now):
            return "expired"
        return None


# ---------------------------------------------------------------------------
# Inbound requests
# ---------------------------------------------------------------------------


@dataclass
class Invocation:
    """A single request to run a command, as delivered by the transport layer."""

    command_name: str
    invoker_id: str
    invoker_name: str = "Unknown"
    tenant_id: Optional[str] = None
    tenant_name: Optional[str] = None
    options: Mapping[str, Any] = field(default_factory=dict)
    member_permissions: FrozenSet[str] = frozenset()
    member_role_ids: FrozenSet[str] = frozenset()
    handle: Any = None


@dataclass
class AutocompleteRequest(Invocation):
    focused_option: str = ""
    focused_value: str = ""


__all__ = [
    "ArgumentChoice",
    "ArgumentDefinition",
    "ArgumentType",
    "AutocompleteRequest",
    "CapabilityCategory",
    "CapabilityDefinition",
    "CommandDefinition",
    "DefinitionModel",
    "EntitlementRecord",
    "Invocation",
    "PlanTier",
]

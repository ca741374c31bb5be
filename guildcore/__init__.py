"""
guildcore
=========
Multi-tenant runtime for a chat-community bot: a capability catalog with
per-tenant lifecycle and event fan-out, a command catalog and dispatcher,
and a license-backed entitlement gate.
"""

from guildcore.capabilities import (
    BaseCapability,
    CapabilityCatalog,
    CapabilityContext,
    CapabilityEvent,
    CapabilityRuntime,
    CapabilityState,
    MemberPayload,
    MessagePayload,
)
from guildcore.commands import Command, CommandCatalog, CommandContext, CommandDispatcher, ExecutionResult
from guildcore.entitlements import EntitlementCheck, EntitlementGate
from guildcore.host import BotHost
from guildcore.models import (
    ArgumentChoice,
    ArgumentDefinition,
    ArgumentType,
    AutocompleteRequest,
    CapabilityCategory,
    CapabilityDefinition,
    CommandDefinition,
    EntitlementRecord,
    Invocation,
    PlanTier,
)

__version__ = "0.1.0"

__all__ = [
    "ArgumentChoice",
    "ArgumentDefinition",
    "ArgumentType",
    "AutocompleteRequest",
    "BaseCapability",
    "BotHost",
    "CapabilityCatalog",
    "CapabilityCategory",
    "CapabilityContext",
    "CapabilityDefinition",
    "CapabilityEvent",
    "CapabilityRuntime",
    "CapabilityState",
    "Command",
    "CommandCatalog",
    "CommandContext",
    "CommandDefinition",
    "CommandDispatcher",
    "EntitlementCheck",
    "EntitlementGate",
    "EntitlementRecord",
    "ExecutionResult",
    "Invocation",
    "MemberPayload",
    "MessagePayload",
    "PlanTier",
]

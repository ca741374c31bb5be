from guildcore.capabilities.base import (
    BaseCapability,
    CapabilityContext,
    CapabilityEvent,
    EventPayload,
    MemberPayload,
    MessagePayload,
)
from guildcore.capabilities.catalog import CapabilityCatalog
from guildcore.capabilities.runtime import (
    CapabilityRuntime,
    CapabilityRuntimeRecord,
    CapabilityState,
    EventDispatchResult,
)

__all__ = [
    "BaseCapability",
    "CapabilityCatalog",
    "CapabilityContext",
    "CapabilityEvent",
    "CapabilityRuntime",
    "CapabilityRuntimeRecord",
    "CapabilityState",
    "EventDispatchResult",
    "EventPayload",
    "MemberPayload",
    "MessagePayload",
]

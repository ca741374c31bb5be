"""
Capability Catalog
==================
The set of known capabilities, registered once at process start.

Built-in capabilities are registered with ``required=True`` so a broken one
stops startup; optional/community capabilities are logged and skipped.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from guildcore.capabilities.base import BaseCapability, CapabilityEvent, EventHandler, build_handler_table
from guildcore.errors import DuplicateKeyError, GuildCoreError, InvalidDefinitionError, NotFoundError
from guildcore.logs.logging_config import get_core_logger
from guildcore.models import CapabilityCategory, CapabilityDefinition

logger = get_core_logger("capabilities.catalog")


class CapabilityCatalog:
    def __init__(self) -> None:
        self._capabilities: Dict[str, BaseCapability] = {}
        self._handlers: Dict[str, Dict[CapabilityEvent, EventHandler]] = {}

    def register(self, capability: BaseCapability) -> BaseCapability:
        definition = getattr(capability, "definition", None)
        if not isinstance(definition, CapabilityDefinition):
            raise InvalidDefinitionError(f"{type(capability).__name__} has no CapabilityDefinition")
        if not definition.key or not definition.key.strip():
            raise InvalidDefinitionError("Capability key must be non-empty")
        if not definition.name or not definition.name.strip():
            raise InvalidDefinitionError(f"Capability '{definition.key}' name must be non-empty")
        if definition.key in self._capabilities:
            raise DuplicateKeyError(definition.key, kind="capability")

        handlers = build_handler_table(capability)
        self._capabilities[definition.key] = capability
        self._handlers[definition.key] = handlers
        logger.info(
            f"✅ Registered capability: {definition.key} v{definition.version}",
            extra={"capability_key": definition.key, "events": sorted(e.value for e in handlers)},
        )
        return capability

    def register_all(self, capabilities: Iterable[BaseCapability], *, required: bool) -> List[str]:
        registered: List[str] = []
        for capability in capabilities:
            try:
                self.register(capability)
            except GuildCoreError as exc:
                if required:
                    logger.error(f"❌ Required capability failed to register: {exc}")
                    raise
                logger.warning(f"⚠️ Skipping optional capability {type(capability).__name__}: {exc}")
                continue
            registered.append(capability.key)
        return registered

    def get(self, key: str) -> Optional[BaseCapability]:
        return self._capabilities.get(key)

    def require(self, key: str) -> BaseCapability:
        capability = self._capabilities.get(key)
        if capability is None:
            raise NotFoundError(f"Capability '{key}' is not registered")
        return capability

    def handlers_for(self, key: str) -> Dict[CapabilityEvent, EventHandler]:
        return self._handlers.get(key, {})

    def all(self) -> List[BaseCapability]:
        return list(self._capabilities.values())

    def keys(self) -> List[str]:
        return list(self._capabilities)

    def by_category(self, category: CapabilityCategory | str) -> List[BaseCapability]:
        try:
            wanted = CapabilityCategory(category)
        except ValueError:
            return []
        return [c for c in self._capabilities.values() if c.definition.category == wanted]

    def to_json(self) -> List[Dict[str, Any]]:
        return [
            {
                "key": c.definition.key,
                "name": c.definition.name,
                "description": c.definition.description,
                "category": c.definition.category.value,
                "version": c.definition.version,
                "is_premium": c.definition.is_premium,
                "permissions": sorted(c.definition.permissions),
                "default_config": dict(c.definition.default_config),
            }
            for c in self._capabilities.values()
        ]

    def __len__(self) -> int:
        return len(self._capabilities)

    def __contains__(self, key: object) -> bool:
        return key in self._capabilities

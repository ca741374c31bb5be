# guildcore/host.py
"""
BotHost wires settings, collaborators, catalogs, the entitlement gate, the
capability runtime and the command dispatcher together, and exposes the
entry points a transport adapter calls:

    host = await BotHost(settings, connectors).start()

    await host.on_tenant_join("guild-1", bot_permissions={"SendMessages", ...})
    await host.on_event("guild-1", CapabilityEvent.MEMBER_ADD, member)
    await host.on_invocation(Invocation(command_name="ping", invoker_id="u1", handle=...))
    await host.shutdown()
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from guildcore.capabilities.base import BaseCapability, CapabilityEvent
from guildcore.capabilities.catalog import CapabilityCatalog
from guildcore.capabilities.runtime import CapabilityRuntime, CapabilityRuntimeRecord, EventDispatchResult
from guildcore.commands.builtin import builtin_commands
from guildcore.commands.catalog import Command, CommandCatalog
from guildcore.commands.dispatcher import CommandDispatcher, ExecutionResult
from guildcore.config.settings import Settings, load_settings
from guildcore.connectors.base import ConnectorBundle
from guildcore.connectors.memory import load_memory_connectors
from guildcore.entitlements.gate import EntitlementGate
from guildcore.errors import GuildCoreError
from guildcore.features import builtin_capabilities
from guildcore.logs.logging_config import get_core_logger, log_operation, setup_logging_from_settings
from guildcore.models import ArgumentChoice, AutocompleteRequest, Invocation
from guildcore.utils.clock import Clock, utc_now

logger = get_core_logger("host")


class BotHost:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        connectors: Optional[ConnectorBundle] = None,
        *,
        clock: Clock = utc_now,
        extra_capabilities: Sequence[BaseCapability] = (),
        extra_commands: Sequence[Command] = (),
        configure_logging: bool = False,
    ):
        self.settings = settings or load_settings()
        self.connectors = connectors or load_memory_connectors(self.settings.license_file)
        self._extra_capabilities = list(extra_capabilities)
        self._extra_commands = list(extra_commands)
        self._configure_logging = configure_logging
        self._started = False

        self.capabilities = CapabilityCatalog()
        self.commands = CommandCatalog(allow_overwrite=self.settings.allow_command_overwrite, clock=clock)
        self.gate = EntitlementGate(self.connectors.license, clock=clock)
        self.runtime = CapabilityRuntime(
            self.capabilities,
            self.gate,
            self.connectors.persistence,
            self.connectors.transport,
            clock=clock,
        )
        self.dispatcher = CommandDispatcher(
            self.commands,
            self.gate,
            self.connectors.transport,
            owner_ids=self.settings.owner_ids,
        )

    async def start(self) -> "BotHost":
        """Register built-in and extra capabilities and commands; safe to call twice."""
        if self._started:
            return self
        if self._configure_logging:
            setup_logging_from_settings(self.settings)
        with log_operation(logger, "host_start", env=self.settings.env):
            builtins = [c for c in builtin_capabilities() if self._allowed(c)]
            self.capabilities.register_all(builtins, required=True)
            extras = [c for c in self._extra_capabilities if self._allowed(c)]
            self.capabilities.register_all(extras, required=False)

            for command in builtin_commands(self.commands, self.capabilities, self.runtime):
                self.commands.register(command)
            for command in self._extra_commands:
                try:
                    self.commands.register(command)
                except GuildCoreError as exc:
                    logger.warning(f"⚠️ Skipping command {command.name}: {exc}")
        self._started = True
        logger.info(
            f"Host started with {len(self.capabilities)} capabilities and {len(self.commands)} commands"
        )
        return self

    def _allowed(self, capability: BaseCapability) -> bool:
        key = getattr(getattr(capability, "definition", None), "key", None)
        if key is None:
            # Let the catalog reject it with a proper error.
            return True
        if not self.settings.feature_allowed(key):
            logger.debug(f"Capability {key} excluded by configuration")
            return False
        return True

    # ------------------------------------------------------------------
    # Tenant lifecycle
    # ------------------------------------------------------------------
    async def on_tenant_join(
        self,
        tenant_id: str,
        bot_permissions: Iterable[str],
        *,
        tenant_name: Optional[str] = None,
        enable: Iterable[str] = (),
    ) -> List[str]:
        """Refresh the tenant's entitlement, initialise its capabilities and enable ``enable``.

        Enabling failures are logged; the tenant still joins.
        """
        await self.gate.refresh(tenant_id)
        registered = await self.runtime.initialize_for_tenant(tenant_id, bot_permissions, tenant_name=tenant_name)
        for key in enable:
            try:
                await self.runtime.enable(tenant_id, key)
            except Exception as exc:
                logger.warning(
                    f"⚠️ Could not enable {key} on join: {exc}",
                    extra={"tenant_id": tenant_id, "capability_key": key},
                    exc_info=not isinstance(exc, GuildCoreError),
                )
        return registered

    async def on_tenant_leave(self, tenant_id: str) -> bool:
        removed = await self.runtime.remove_tenant(tenant_id)
        self.gate.forget(tenant_id)
        return removed

    async def refresh_entitlement(self, tenant_id: str):
        return await self.gate.refresh(tenant_id)

    async def enable_capability(self, tenant_id: str, key: str) -> CapabilityRuntimeRecord:
        return await self.runtime.enable(tenant_id, key)

    async def disable_capability(self, tenant_id: str, key: str) -> Optional[CapabilityRuntimeRecord]:
        return await self.runtime.disable(tenant_id, key)

    # ------------------------------------------------------------------
    # Inbound traffic
    # ------------------------------------------------------------------
    async def on_event(self, tenant_id: str, event: CapabilityEvent | str, *payload: Any) -> EventDispatchResult:
        return await self.runtime.dispatch_event(tenant_id, event, *payload)

    async def on_invocation(self, invocation: Invocation) -> ExecutionResult:
        return await self.dispatcher.execute(invocation)

    async def on_autocomplete(self, request: AutocompleteRequest) -> List[ArgumentChoice]:
        return await self.dispatcher.handle_autocomplete(request)

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------
    def get_stats(self) -> Dict[str, Any]:
        return {
            "capabilities": len(self.capabilities),
            "runtime": self.runtime.get_stats(),
            "commands": self.dispatcher.get_stats(),
            "entitlements": len(self.gate.all()),
        }

    async def shutdown(self) -> None:
        """Disable every enabled capability for every tenant before the transport is released."""
        with log_operation(logger, "host_shutdown"):
            await self.runtime.shutdown()

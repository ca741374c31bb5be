"""
Tenant Capability Runtime
=========================
Per-tenant lifecycle of every catalog capability:

    Unregistered -> Registered -> Enabled <-> Disabled -> Removed

- ``initialize_for_tenant`` creates one record per capability the bot has
  permissions for (others stay Unregistered and are logged, never fatal)
- ``enable`` / ``disable`` run the capability hooks at most once per transition;
  premium capabilities re-check the entitlement gate on every enable
- ``dispatch_event`` fans an event out to enabled capabilities concurrently;
  each handler failure is logged and collected, siblings keep running
- ``remove_tenant`` / ``shutdown`` disable best-effort and forget the tenant
"""

from __future__ import annotations

import asyncio
import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from guildcore.capabilities.base import (
    BaseCapability,
    CapabilityContext,
    CapabilityEvent,
    EventHandler,
)
from guildcore.capabilities.catalog import CapabilityCatalog
from guildcore.connectors.base import PersistenceConnector, TransportConnector
from guildcore.entitlements.gate import EntitlementGate
from guildcore.errors import EntitlementError, NotFoundError
from guildcore.logs.logging_config import get_core_logger, get_tenant_logger
from guildcore.utils.clock import Clock, utc_now

logger = get_core_logger("capabilities.runtime")


class CapabilityState(str, Enum):
    REGISTERED = "registered"
    ENABLED = "enabled"
    DISABLED = "disabled"


@dataclass
class CapabilityRuntimeRecord:
    capability: BaseCapability
    tenant_id: str
    context: CapabilityContext
    created_at: datetime
    state: CapabilityState = CapabilityState.REGISTERED
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def key(self) -> str:
        return self.capability.key

    @property
    def config(self) -> Dict[str, Any]:
        return self.context.config

    @property
    def enabled(self) -> bool:
        return self.state is CapabilityState.ENABLED


@dataclass
class EventDispatchResult:
    tenant_id: str
    event: CapabilityEvent
    delivered: List[str] = field(default_factory=list)
    failures: Dict[str, BaseException] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


async def _invoke(handler: EventHandler, context: CapabilityContext, payload: Tuple[Any, ...]) -> None:
    await handler(context, *payload)


class CapabilityRuntime:
    def __init__(
        self,
        catalog: CapabilityCatalog,
        gate: EntitlementGate,
        persistence: PersistenceConnector,
        transport: TransportConnector,
        *,
        clock: Clock = utc_now,
    ):
        self._catalog = catalog
        self._gate = gate
        self._persistence = persistence
        self._transport = transport
        self._clock = clock
        # tenant_id -> capability key -> record
        self._tenants: Dict[str, Dict[str, CapabilityRuntimeRecord]] = {}

    # ------------------------------------------------------------------
    # Tenant lifecycle
    # ------------------------------------------------------------------
    async def initialize_for_tenant(
        self,
        tenant_id: str,
        bot_permissions: Iterable[str],
        *,
        tenant_name: Optional[str] = None,
    ) -> List[str]:
        """Create Registered records for every capability the bot can run in this tenant."""
        held = frozenset(bot_permissions)
        records = self._tenants.setdefault(tenant_id, {})
        registered: List[str] = []

        for capability in self._catalog.all():
            key = capability.key
            if key in records:
                continue

            missing = sorted(capability.definition.permissions - held)
            if missing:
                logger.warning(
                    f"⚠️ Capability missing required permissions: {', '.join(missing)}",
                    extra={"tenant_id": tenant_id, "capability_key": key, "missing_permissions": missing},
                )
                continue

            config = await self._load_config(tenant_id, capability)
            context = CapabilityContext(
                tenant_id=tenant_id,
                tenant_name=tenant_name,
                capability_key=key,
                config=config,
                logger=get_tenant_logger(tenant_id, key, base_logger=get_core_logger(f"features.{key}")),
                persistence=self._persistence,
                transport=self._transport,
            )
            try:
                await capability.register(context)
            except Exception as exc:
                logger.error(
                    f"❌ Capability register hook failed: {exc}",
                    extra={"tenant_id": tenant_id, "capability_key": key},
                    exc_info=True,
                )
                continue

            if tenant_id not in self._tenants or key in records:
                continue
            records[key] = CapabilityRuntimeRecord(
                capability=capability,
                tenant_id=tenant_id,
                context=context,
                created_at=self._clock(),
            )
            registered.append(key)

        logger.info(
            f"Initialized {len(registered)} capabilities for tenant",
            extra={"tenant_id": tenant_id, "capabilities": registered},
        )
        return registered

    async def _load_config(self, tenant_id: str, capability: BaseCapability) -> Dict[str, Any]:
        config = copy.deepcopy(dict(capability.definition.default_config))
        try:
            persisted = await self._persistence.load_capability_config(tenant_id=tenant_id, key=capability.key)
        except Exception as exc:
            logger.warning(
                f"⚠️ Could not load persisted config, using defaults: {exc}",
                extra={"tenant_id": tenant_id, "capability_key": capability.key},
            )
            return config
        config.update(persisted or {})
        return config

    async def remove_tenant(self, tenant_id: str) -> bool:
        records = self._tenants.get(tenant_id)
        if records is None:
            return False

        enabled = [record for record in records.values() if record.enabled]
        outcomes = await asyncio.gather(
            *(self._disable_record(record) for record in enabled),
            return_exceptions=True,
        )
        for record, outcome in zip(enabled, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(
                    f"❌ Failed to disable capability during tenant removal: {outcome}",
                    extra={"tenant_id": tenant_id, "capability_key": record.key},
                    exc_info=outcome,
                )

        self._tenants.pop(tenant_id, None)
        logger.info("Tenant capabilities cleaned up", extra={"tenant_id": tenant_id})
        return True

    async def shutdown(self) -> None:
        tenants = list(self._tenants)
        logger.info(f"Shutting down capability runtime ({len(tenants)} tenants)")
        await asyncio.gather(*(self.remove_tenant(t) for t in tenants), return_exceptions=True)

    # ------------------------------------------------------------------
    # Enable / disable
    # ------------------------------------------------------------------
    def _require_record(self, tenant_id: str, key: str) -> CapabilityRuntimeRecord:
        records = self._tenants.get(tenant_id)
        if records is None:
            raise NotFoundError(f"Tenant {tenant_id} not found")
        record = records.get(key)
        if record is None:
            raise NotFoundError(f"Capability {key} not found for tenant {tenant_id}")
        return record

    async def enable(self, tenant_id: str, key: str) -> CapabilityRuntimeRecord:
        record = self._require_record(tenant_id, key)
        async with record.lock:
            if record.enabled:
                return record

            if record.capability.definition.is_premium:
                check = self._gate.check(tenant_id, key)
                if not check.granted:
                    logger.warning(
                        f"[CAPABILITY] Denied premium enable: {check.reason}",
                        extra={"tenant_id": tenant_id, "capability_key": key},
                    )
                    raise EntitlementError(
                        f"Premium feature requires valid license: {check.message}",
                        reason=check.reason,
                        user_message="This feature requires a premium subscription.",
                    )

            try:
                await record.capability.enable(record.context)
            except Exception as exc:
                logger.error(
                    f"❌ Capability enable hook failed: {exc}",
                    extra={"tenant_id": tenant_id, "capability_key": key},
                    exc_info=True,
                )
                raise
            record.state = CapabilityState.ENABLED

        logger.info("✅ Capability enabled", extra={"tenant_id": tenant_id, "capability_key": key})
        return record

    async def disable(self, tenant_id: str, key: str) -> Optional[CapabilityRuntimeRecord]:
        record = self._tenants.get(tenant_id, {}).get(key)
        if record is None:
            return None
        try:
            await self._disable_record(record)
        except Exception as exc:
            logger.error(
                f"❌ Capability disable hook failed: {exc}",
                extra={"tenant_id": tenant_id, "capability_key": key},
                exc_info=True,
            )
            raise
        return record

    async def _disable_record(self, record: CapabilityRuntimeRecord) -> None:
        async with record.lock:
            if not record.enabled:
                return
            await record.capability.disable(record.context)
            record.state = CapabilityState.DISABLED
        logger.info("Capability disabled", extra={"tenant_id": record.tenant_id, "capability_key": record.key})

    # ------------------------------------------------------------------
    # Event fan-out
    # ------------------------------------------------------------------
    async def dispatch_event(
        self, tenant_id: str, event: CapabilityEvent | str, *payload: Any
    ) -> EventDispatchResult:
        kind = CapabilityEvent.parse(event)
        result = EventDispatchResult(tenant_id=tenant_id, event=kind)
        records = self._tenants.get(tenant_id)
        if not records:
            return result

        targets: List[Tuple[CapabilityRuntimeRecord, EventHandler]] = []
        for key, record in list(records.items()):
            if not record.enabled:
                continue
            handler = self._catalog.handlers_for(key).get(kind)
            if handler is not None:
                targets.append((record, handler))
        if not targets:
            return result

        outcomes = await asyncio.gather(
            *(_invoke(handler, record.context, payload) for record, handler in targets),
            return_exceptions=True,
        )
        for (record, _), outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                result.failures[record.key] = outcome
                logger.error(
                    f"❌ Capability event handler failed: {outcome}",
                    extra={"tenant_id": tenant_id, "capability_key": record.key, "event_name": kind.value},
                    exc_info=outcome,
                )
            else:
                result.delivered.append(record.key)

        logger.debug(
            f"Dispatched {kind.value} to {len(targets)} capabilities",
            extra={"tenant_id": tenant_id, "event_name": kind.value, "failed": len(result.failures)},
        )
        return result

    # ------------------------------------------------------------------
    # Maintenance hooks
    # ------------------------------------------------------------------
    async def health_check(self, tenant_id: str) -> Dict[str, Dict[str, Any]]:
        records = self._tenants.get(tenant_id)
        if records is None:
            raise NotFoundError(f"Tenant {tenant_id} not found")
        report: Dict[str, Dict[str, Any]] = {}
        for key, record in records.items():
            try:
                status = await record.capability.health_check(record.context)
            except Exception as exc:
                logger.warning(
                    f"⚠️ Capability health check failed: {exc}",
                    extra={"tenant_id": tenant_id, "capability_key": key},
                )
                status = {"status": "error", "message": str(exc)}
            report[key] = {"state": record.state.value, **dict(status)}
        return report

    async def migrate(self, tenant_id: str, key: str, from_version: str, to_version: str) -> None:
        record = self._require_record(tenant_id, key)
        async with record.lock:
            await record.capability.migrate(record.context, from_version, to_version)
        logger.info(
            f"Capability migrated {from_version} -> {to_version}",
            extra={"tenant_id": tenant_id, "capability_key": key},
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    def get_record(self, tenant_id: str, key: str) -> Optional[CapabilityRuntimeRecord]:
        return self._tenants.get(tenant_id, {}).get(key)

    def get_tenant_records(self, tenant_id: str) -> Dict[str, CapabilityRuntimeRecord]:
        return dict(self._tenants.get(tenant_id, {}))

    def tenants(self) -> List[str]:
        return list(self._tenants)

    def has_tenant(self, tenant_id: str) -> bool:
        return tenant_id in self._tenants

    def get_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {"total_tenants": len(self._tenants), "total_features": 0, "enabled_features": 0, "tenants": []}
        for tenant_id, records in self._tenants.items():
            enabled_count = sum(1 for r in records.values() if r.enabled)
            stats["total_features"] += len(records)
            stats["enabled_features"] += enabled_count
            stats["tenants"].append(
                {"tenant_id": tenant_id, "feature_count": len(records), "enabled_count": enabled_count}
            )
        return stats

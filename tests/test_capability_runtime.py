import asyncio

import pytest

from guildcore.capabilities import BaseCapability, CapabilityEvent, CapabilityState
from guildcore.errors import EntitlementError, NotFoundError, UnknownEventError
from guildcore.features import ModerationCapability, WelcomeCapability
from guildcore.models import CapabilityDefinition, EntitlementRecord, PlanTier


class CountingCapability(BaseCapability):
    """Records every hook call; ``enable`` yields to the loop so callers can overlap."""

    def __init__(self, key="counter", permissions=(), is_premium=False):
        self.definition = CapabilityDefinition(
            key=key,
            name=key.title(),
            permissions=frozenset(permissions),
            is_premium=is_premium,
            default_config={"greeting": "hi", "nested": {"level": 1}},
        )
        self.calls = []
        self.seen = []

    async def register(self, context):
        self.calls.append("register")

    async def enable(self, context):
        self.calls.append("enable")
        await asyncio.sleep(0)

    async def disable(self, context):
        self.calls.append("disable")

    async def migrate(self, context, from_version, to_version):
        self.calls.append(f"migrate:{from_version}->{to_version}")

    def event_handlers(self):
        return {CapabilityEvent.MEMBER_ADD: self.on_member_add}

    async def on_member_add(self, context, member):
        self.seen.append(member)


class ExplodingCapability(CountingCapability):
    async def on_member_add(self, context, member):
        raise RuntimeError("handler blew up")

    async def health_check(self, context):
        raise RuntimeError("unhealthy")


class BrokenRegisterCapability(CountingCapability):
    async def register(self, context):
        raise RuntimeError("cannot register")


class BrokenDisableCapability(CountingCapability):
    async def disable(self, context):
        raise RuntimeError("cannot disable")


@pytest.mark.asyncio
async def test_initialize_registers_only_permitted_capabilities(capability_catalog, runtime):
    capability_catalog.register(CountingCapability("free"))
    capability_catalog.register(CountingCapability("needs_ban", permissions={"BanMembers"}))

    registered = await runtime.initialize_for_tenant("g1", {"SendMessages"})

    assert registered == ["free"]
    assert runtime.get_record("g1", "needs_ban") is None
    assert runtime.get_record("g1", "free").state is CapabilityState.REGISTERED
    assert capability_catalog.get("free").calls == ["register"]


@pytest.mark.asyncio
async def test_initialize_merges_persisted_config_over_defaults(capability_catalog, runtime, persistence):
    capability = CountingCapability()
    capability_catalog.register(capability)
    await persistence.save_capability_config(tenant_id="g1", key="counter", config={"greeting": "hello"})

    await runtime.initialize_for_tenant("g1", ())
    record = runtime.get_record("g1", "counter")

    assert record.config == {"greeting": "hello", "nested": {"level": 1}}
    record.config["nested"]["level"] = 2
    assert capability.definition.default_config["nested"]["level"] == 1


@pytest.mark.asyncio
async def test_register_hook_failure_skips_capability(capability_catalog, runtime):
    capability_catalog.register(BrokenRegisterCapability("broken"))
    capability_catalog.register(CountingCapability("ok"))

    assert await runtime.initialize_for_tenant("g1", ()) == ["ok"]
    assert runtime.get_record("g1", "broken") is None


@pytest.mark.asyncio
async def test_initialize_is_idempotent(capability_catalog, runtime):
    capability = CountingCapability()
    capability_catalog.register(capability)
    await runtime.initialize_for_tenant("g1", ())
    assert await runtime.initialize_for_tenant("g1", ()) == []
    assert capability.calls == ["register"]


@pytest.mark.asyncio
async def test_premium_enable_requires_entitlement(capability_catalog, runtime, gate, clock):
    capability_catalog.register(ModerationCapability())
    await runtime.initialize_for_tenant("g1", {"KickMembers", "BanMembers", "ManageMessages"})
    gate.record(EntitlementRecord(tenant_id="g1", plan=PlanTier.TRIAL, features={"welcome", "xp"}, issued_at=clock()))

    with pytest.raises(EntitlementError) as exc_info:
        await runtime.enable("g1", "moderation")
    assert exc_info.value.reason == "feature_missing"
    assert exc_info.value.user_message == "This feature requires a premium subscription."
    assert not runtime.get_record("g1", "moderation").enabled

    gate.record(
        EntitlementRecord(tenant_id="g1", plan=PlanTier.TRIAL, features={"welcome", "xp", "moderation"}, issued_at=clock())
    )
    record = await runtime.enable("g1", "moderation")
    assert record.state is CapabilityState.ENABLED


@pytest.mark.asyncio
async def test_enable_runs_hook_once(capability_catalog, runtime):
    capability = CountingCapability()
    capability_catalog.register(capability)
    await runtime.initialize_for_tenant("g1", ())

    await runtime.enable("g1", "counter")
    await runtime.enable("g1", "counter")
    assert capability.calls.count("enable") == 1


@pytest.mark.asyncio
async def test_concurrent_enable_runs_hook_once(capability_catalog, runtime):
    capability = CountingCapability()
    capability_catalog.register(capability)
    await runtime.initialize_for_tenant("g1", ())

    records = await asyncio.gather(*(runtime.enable("g1", "counter") for _ in range(5)))

    assert capability.calls.count("enable") == 1
    assert all(record.enabled for record in records)


@pytest.mark.asyncio
async def test_enable_unknown_tenant_or_capability(capability_catalog, runtime):
    capability_catalog.register(CountingCapability())
    with pytest.raises(NotFoundError):
        await runtime.enable("nowhere", "counter")
    await runtime.initialize_for_tenant("g1", ())
    with pytest.raises(NotFoundError):
        await runtime.enable("g1", "ghost")


@pytest.mark.asyncio
async def test_disable_transitions(capability_catalog, runtime):
    capability = CountingCapability()
    capability_catalog.register(capability)
    await runtime.initialize_for_tenant("g1", ())

    # never enabled: nothing to undo
    record = await runtime.disable("g1", "counter")
    assert record.state is CapabilityState.REGISTERED
    assert "disable" not in capability.calls

    await runtime.enable("g1", "counter")
    await runtime.disable("g1", "counter")
    await runtime.disable("g1", "counter")
    assert capability.calls.count("disable") == 1
    assert runtime.get_record("g1", "counter").state is CapabilityState.DISABLED
    assert await runtime.disable("g1", "ghost") is None


@pytest.mark.asyncio
async def test_dispatch_isolates_failing_handlers(capability_catalog, runtime):
    good = CountingCapability("good")
    bad = ExplodingCapability("bad")
    capability_catalog.register_all([good, bad], required=True)
    await runtime.initialize_for_tenant("g1", ())
    await runtime.enable("g1", "good")
    await runtime.enable("g1", "bad")

    result = await runtime.dispatch_event("g1", CapabilityEvent.MEMBER_ADD, {"user_id": "u1"})

    assert good.seen == [{"user_id": "u1"}]
    assert result.delivered == ["good"]
    assert list(result.failures) == ["bad"]
    assert isinstance(result.failures["bad"], RuntimeError)
    assert not result.ok


@pytest.mark.asyncio
async def test_dispatch_skips_capabilities_that_are_not_enabled(capability_catalog, runtime):
    capability = CountingCapability()
    capability_catalog.register(capability)
    await runtime.initialize_for_tenant("g1", ())

    result = await runtime.dispatch_event("g1", "member_add", {"user_id": "u1"})
    assert result.delivered == []
    assert capability.seen == []

    await runtime.enable("g1", "counter")
    result = await runtime.dispatch_event("g1", "message_create", {})
    assert result.delivered == []
    assert result.ok


@pytest.mark.asyncio
async def test_dispatch_unknown_event_name(runtime):
    with pytest.raises(UnknownEventError):
        await runtime.dispatch_event("g1", "memberJoined", {})


@pytest.mark.asyncio
async def test_dispatch_to_unknown_tenant_is_a_no_op(runtime):
    result = await runtime.dispatch_event("ghost", CapabilityEvent.MEMBER_ADD, {})
    assert result.ok
    assert result.delivered == []


@pytest.mark.asyncio
async def test_remove_tenant_disables_best_effort(capability_catalog, runtime):
    good = CountingCapability("good")
    stubborn = BrokenDisableCapability("stubborn")
    capability_catalog.register_all([good, stubborn], required=True)
    await runtime.initialize_for_tenant("g1", ())
    await runtime.enable("g1", "good")
    await runtime.enable("g1", "stubborn")

    assert await runtime.remove_tenant("g1") is True
    assert "disable" in good.calls
    assert not runtime.has_tenant("g1")
    assert await runtime.remove_tenant("g1") is False


@pytest.mark.asyncio
async def test_shutdown_disables_every_tenant(capability_catalog, runtime):
    capability = CountingCapability()
    capability_catalog.register(capability)
    for tenant_id in ("g1", "g2"):
        await runtime.initialize_for_tenant(tenant_id, ())
        await runtime.enable(tenant_id, "counter")

    await runtime.shutdown()

    assert capability.calls.count("disable") == 2
    assert runtime.tenants() == []


@pytest.mark.asyncio
async def test_health_check_reports_state_and_errors(capability_catalog, runtime):
    capability_catalog.register_all([CountingCapability("good"), ExplodingCapability("bad")], required=True)
    await runtime.initialize_for_tenant("g1", ())
    await runtime.enable("g1", "good")

    report = await runtime.health_check("g1")
    assert report["good"] == {"state": "enabled", "status": "ok"}
    assert report["bad"]["status"] == "error"
    assert report["bad"]["message"] == "unhealthy"

    with pytest.raises(NotFoundError):
        await runtime.health_check("ghost")


@pytest.mark.asyncio
async def test_migrate_and_stats(capability_catalog, runtime):
    capability = CountingCapability()
    capability_catalog.register_all([capability, WelcomeCapability()], required=True)
    await runtime.initialize_for_tenant("g1", {"SendMessages", "EmbedLinks"})
    await runtime.enable("g1", "welcome")

    await runtime.migrate("g1", "counter", "1.0.0", "1.1.0")
    assert capability.calls[-1] == "migrate:1.0.0->1.1.0"

    stats = runtime.get_stats()
    assert stats["total_tenants"] == 1
    assert stats["total_features"] == 2
    assert stats["enabled_features"] == 1
    assert set(runtime.get_tenant_records("g1")) == {"counter", "welcome"}

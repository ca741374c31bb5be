import pytest

from guildcore.commands import Command, CommandCatalog, CooldownStore
from guildcore.errors import DuplicateKeyError, InvalidDefinitionError
from guildcore.models import ArgumentDefinition, CommandDefinition


async def _noop(context, args):
    return None


async def _other(context, args):
    return None


def _command(name="ping", handler=_noop, **fields):
    fields.setdefault("description", f"{name} command")
    return Command(CommandDefinition(name=name, **fields), handler)


def test_register_resolves_name_and_alias(command_catalog):
    command_catalog.register(_command("ping", aliases=("p",)))

    assert command_catalog.get("ping").name == "ping"
    assert command_catalog.get("p").name == "ping"
    assert command_catalog.get("pong") is None
    assert command_catalog.aliases_for("ping") == ["p"]


def test_duplicate_name_fails_by_default(command_catalog):
    command_catalog.register(_command("ping"))
    with pytest.raises(DuplicateKeyError):
        command_catalog.register(_command("ping", handler=_other))
    assert command_catalog.get("ping").handler is _noop


def test_overwrite_replaces_handler_and_aliases(command_catalog):
    command_catalog.register(_command("ping", aliases=("p",)))
    command_catalog.register(_command("ping", handler=_other, aliases=("pg",)), allow_overwrite=True)

    assert command_catalog.get("ping").handler is _other
    assert command_catalog.get("p") is None
    assert command_catalog.get("pg").name == "ping"


def test_catalog_level_overwrite_default(clock):
    catalog = CommandCatalog(allow_overwrite=True, clock=clock)
    catalog.register(_command("ping"))
    catalog.register(_command("ping", handler=_other))
    assert len(catalog) == 1
    assert catalog.get("ping").handler is _other


def test_alias_collision_is_skipped(command_catalog):
    command_catalog.register(_command("ping", aliases=("p",)))
    command_catalog.register(_command("purge", aliases=("p", "ping", "pu")))

    assert command_catalog.get("p").name == "ping"
    assert command_catalog.get("pu").name == "purge"
    assert command_catalog.aliases_for("purge") == ["pu"]


@pytest.mark.parametrize(
    "definition",
    [
        CommandDefinition(name="x" * 33, description="too long"),
        CommandDefinition(name="ok", description=""),
        CommandDefinition(name="ok", description="d" * 101),
        CommandDefinition(name="ok", description="negative", cooldown_seconds=-1),
        CommandDefinition(
            name="ok",
            description="dup args",
            arguments=(ArgumentDefinition(name="a"), ArgumentDefinition(name="a")),
        ),
    ],
)
def test_invalid_definitions_are_rejected(command_catalog, definition):
    with pytest.raises(InvalidDefinitionError):
        command_catalog.register(Command(definition, _noop))
    assert len(command_catalog) == 0


def test_deregister_removes_aliases_and_cooldowns(command_catalog):
    command_catalog.register(_command("ping", aliases=("p",)))
    command_catalog.cooldowns.set("ping", "u1", 5)

    assert command_catalog.deregister("ping") is True
    assert command_catalog.get("p") is None
    assert command_catalog.cooldowns.remaining_ms("ping", "u1") == 0
    assert command_catalog.deregister("ping") is False


def test_set_enabled_and_add_alias(command_catalog):
    command_catalog.register(_command("ping", category="utility"))

    assert command_catalog.set_enabled("ping", False) is True
    assert command_catalog.get("ping").definition.enabled is False
    assert command_catalog.by_category("utility") == []
    assert command_catalog.add_alias("ping", "pi") is True
    assert command_catalog.get("pi").definition.aliases == ("pi",)
    assert command_catalog.set_enabled("ghost", True) is False


def test_stats(command_catalog):
    command_catalog.register(_command("ping", category="utility", aliases=("p",)))
    command_catalog.register(_command("ban", category="moderation", enabled=False))
    command_catalog.cooldowns.set("ping", "u1", 5)

    stats = command_catalog.get_stats()
    assert stats["total"] == 2
    assert stats["enabled"] == 1
    assert stats["disabled"] == 1
    assert stats["categories"] == {"utility": 1, "moderation": 1}
    assert stats["aliases"] == 1
    assert stats["active_cooldowns"] == 1


def test_cooldown_store_expires_lazily(clock):
    store = CooldownStore(clock=clock)
    store.set("ping", "u1", 5)

    assert store.remaining_ms("ping", "u1") == 5000
    assert store.remaining_ms("ping", "u2") == 0
    clock.advance(4.9995)
    assert store.remaining_ms("ping", "u1") == 1
    clock.advance(0.0005)
    assert store.remaining_ms("ping", "u1") == 0
    assert len(store) == 0


def test_cooldown_store_clear_helpers(clock):
    store = CooldownStore(clock=clock)
    store.set("ping", "u1", 5)
    store.set("ping", "u2", 5)
    store.set("help", "u1", 5)

    assert store.clear("ping", "u1") is True
    assert store.clear("ping", "u1") is False
    assert store.clear_command("ping") == 1
    assert store.active_count() == 1
    assert store.clear_all() == 1


def test_cooldown_store_sweeps_pairs_never_read_again(clock):
    store = CooldownStore(clock=clock)
    store.set("ping", "u1", 5)
    store.set("ping", "u2", 5)
    store.set("help", "u1", 30)
    clock.advance(6)

    assert len(store) == 3
    assert store.cleanup_expired() == 2
    assert len(store) == 1

    clock.advance(30)
    assert store.active_count() == 0
    assert len(store) == 0

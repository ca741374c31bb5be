"""Commands every deployment ships with: help, ping, features."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from guildcore.capabilities.catalog import CapabilityCatalog
from guildcore.capabilities.runtime import CapabilityRuntime
from guildcore.commands.arguments import format_arguments_for_help
from guildcore.commands.catalog import Command, CommandCatalog
from guildcore.commands.dispatcher import CommandContext
from guildcore.models import CommandDefinition

HELP_COLOR = 0x00FF00
FEATURES_COLOR = 0x0099FF
# Embed field values are capped by the transport.
FIELD_VALUE_LIMIT = 1024

HELP_DEFINITION = CommandDefinition(
    name="help",
    description="Shows available commands and their usage",
    category="utility",
    cooldown_seconds=5,
)

PING_DEFINITION = CommandDefinition(
    name="ping",
    description="Replies with Pong!",
    category="utility",
)

FEATURES_DEFINITION = CommandDefinition(
    name="features",
    description="Lists available features for this guild",
    category="utility",
    guild_only=True,
)


def _clip(text: str) -> str:
    if len(text) <= FIELD_VALUE_LIMIT:
        return text
    return text[: FIELD_VALUE_LIMIT - 3] + "..."


def build_help_embed(catalog: CommandCatalog, *, include_owner_only: bool = False) -> Dict[str, Any]:
    categories: Dict[str, List[str]] = {}
    for command in catalog.all():
        definition = command.definition
        if not definition.enabled or (definition.owner_only and not include_owner_only):
            continue
        line = f"`/{definition.name}` - {definition.description}"
        if definition.premium_only:
            line += " (Premium)"
        if definition.arguments:
            args_help = format_arguments_for_help(definition.arguments).replace("\n", "\n  • ")
            line += f"\n  • {args_help}"
        categories.setdefault(definition.category, []).append(line)

    fields = [
        {"name": f"📁 {category.title()}", "value": _clip("\n".join(lines)), "inline": False}
        for category, lines in sorted(categories.items())
    ]
    return {
        "title": "🤖 Bot Commands",
        "description": "Here are all available commands. Use `/command-name` to execute them.",
        "fields": fields,
        "color": HELP_COLOR,
    }


def build_help_command(catalog: CommandCatalog) -> Command:
    async def execute(context: CommandContext, args: Dict[str, Any]) -> None:
        await context.reply(embed=build_help_embed(catalog, include_owner_only=context.is_owner))

    return Command(HELP_DEFINITION, execute)


def build_ping_command() -> Command:
    async def execute(context: CommandContext, args: Dict[str, Any]) -> None:
        await context.reply("Pong! 🏓")

    return Command(PING_DEFINITION, execute)


def build_features_command(capabilities: CapabilityCatalog, runtime: CapabilityRuntime) -> Command:
    async def execute(context: CommandContext, args: Dict[str, Any]) -> None:
        tenant_id = context.tenant_id
        fields = []
        for capability in capabilities.all():
            definition = capability.definition
            record = runtime.get_record(tenant_id, definition.key) if tenant_id else None
            state = record.state.value if record else "unavailable"
            name = definition.name + (" (Premium)" if definition.is_premium else "")
            value = definition.description or definition.key
            if definition.is_premium and not context.has_feature_access(definition.key):
                value += "\nNot included in this guild's license"
            fields.append({"name": f"{name} [{state}]", "value": _clip(value), "inline": False})
        await context.reply(
            embed={
                "title": "Available Features",
                "description": "Features available for this guild:",
                "fields": fields,
                "color": FEATURES_COLOR,
            }
        )

    return Command(FEATURES_DEFINITION, execute)


def builtin_commands(
    catalog: CommandCatalog,
    capabilities: Optional[CapabilityCatalog] = None,
    runtime: Optional[CapabilityRuntime] = None,
) -> List[Command]:
    commands = [build_help_command(catalog), build_ping_command()]
    if capabilities is not None and runtime is not None:
        commands.append(build_features_command(capabilities, runtime))
    return commands

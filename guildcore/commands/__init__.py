from guildcore.commands.arguments import MAX_SUGGESTIONS, ArgumentResolver, format_arguments_for_help
from guildcore.commands.catalog import Command, CommandCatalog, validate_command_definition
from guildcore.commands.cooldowns import CooldownStore
from guildcore.commands.dispatcher import CommandContext, CommandDispatcher, ExecutionResult

__all__ = [
    "MAX_SUGGESTIONS",
    "ArgumentResolver",
    "Command",
    "CommandCatalog",
    "CommandContext",
    "CommandDispatcher",
    "CooldownStore",
    "ExecutionResult",
    "format_arguments_for_help",
    "validate_command_definition",
]

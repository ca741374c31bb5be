"""Command catalog: registered commands, their aliases and cooldowns.

- Name collisions fail with DuplicateKeyError unless overwrite is allowed
  (hot reload), in which case the last writer wins with a warning
- Alias collisions are skipped with a warning, never an error
- Deregistration removes the command, its aliases and its cooldown records
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TYPE_CHECKING

from guildcore.commands.cooldowns import CooldownStore
from guildcore.errors import DuplicateKeyError, InvalidDefinitionError
from guildcore.logs.logging_config import get_core_logger
from guildcore.models import ArgumentChoice, CommandDefinition
from guildcore.utils.clock import Clock, utc_now

if TYPE_CHECKING:
    from guildcore.commands.dispatcher import CommandContext

logger = get_core_logger("commands.catalog")

NAME_MAX_LENGTH = 32
DESCRIPTION_MAX_LENGTH = 100

CommandHandler = Callable[["CommandContext", Dict[str, Any]], Awaitable[None]]
SuggestionSupplier = Callable[[str, str], Awaitable[Sequence[ArgumentChoice]]]


@dataclass(frozen=True)
class Command:
    definition: CommandDefinition
    handler: CommandHandler
    autocomplete: Optional[SuggestionSupplier] = None

    @property
    def name(self) -> str:
        return self.definition.name


def validate_command_definition(definition: CommandDefinition) -> None:
    name = definition.name
    if not isinstance(name, str) or not name.strip():
        raise InvalidDefinitionError("Command name must be a non-empty string")
    if len(name) > NAME_MAX_LENGTH:
        raise InvalidDefinitionError(f"Command name '{name}' exceeds {NAME_MAX_LENGTH} characters")
    if not definition.description or len(definition.description) > DESCRIPTION_MAX_LENGTH:
        raise InvalidDefinitionError(
            f"Command '{name}' description must be 1-{DESCRIPTION_MAX_LENGTH} characters"
        )
    if definition.cooldown_seconds < 0:
        raise InvalidDefinitionError(f"Command '{name}' cooldown must be >= 0")
    seen = set()
    for argument in definition.arguments:
        if not argument.name:
            raise InvalidDefinitionError(f"Command '{name}' has an argument without a name")
        if argument.name in seen:
            raise InvalidDefinitionError(f"Command '{name}' declares argument '{argument.name}' twice")
        seen.add(argument.name)


class CommandCatalog:
    def __init__(self, *, allow_overwrite: bool = False, clock: Clock = utc_now) -> None:
        self._commands: Dict[str, Command] = {}
        self._aliases: Dict[str, str] = {}
        self._allow_overwrite = allow_overwrite
        self.cooldowns = CooldownStore(clock=clock)

    def register(self, command: Command, *, allow_overwrite: Optional[bool] = None) -> Command:
        validate_command_definition(command.definition)
        if not callable(command.handler):
            raise InvalidDefinitionError(f"Command '{command.name}' handler must be callable")

        name = command.name
        overwrite = self._allow_overwrite if allow_overwrite is None else allow_overwrite
        if name in self._commands:
            if not overwrite:
                raise DuplicateKeyError(name, kind="command")
            logger.warning("Command already registered, overwriting: %s", name, extra={"command_name": name})
            self._drop_aliases(name)

        self._commands[name] = command
        logger.info("Registered command: %s", name, extra={"command_name": name})

        for alias in command.definition.aliases:
            self._index_alias(name, alias)
        return command

    def _index_alias(self, name: str, alias: str) -> bool:
        if not alias or alias in self._aliases or alias in self._commands:
            logger.warning(
                "Alias conflict, skipping: %s (existing: %s)",
                alias,
                self._aliases.get(alias, alias),
                extra={"command_name": name},
            )
            return False
        self._aliases[alias] = name
        logger.debug("Alias registered: %s -> %s", alias, name)
        return True

    def _drop_aliases(self, name: str) -> None:
        for alias in [a for a, target in self._aliases.items() if target == name]:
            del self._aliases[alias]

    def deregister(self, name: str) -> bool:
        if name not in self._commands:
            logger.warning("Command not found for deregistration: %s", name)
            return False
        del self._commands[name]
        self._drop_aliases(name)
        cleared = self.cooldowns.clear_command(name)
        logger.info("Deregistered command: %s (cooldowns cleared: %d)", name, cleared, extra={"command_name": name})
        return True

    def get(self, name_or_alias: str) -> Optional[Command]:
        if not isinstance(name_or_alias, str):
            return None
        command = self._commands.get(name_or_alias)
        if command is not None:
            return command
        real_name = self._aliases.get(name_or_alias)
        return self._commands.get(real_name) if real_name else None

    def add_alias(self, name: str, alias: str) -> bool:
        command = self._commands.get(name)
        if command is None or not self._index_alias(name, alias):
            return False
        definition = command.definition.model_copy(update={"aliases": command.definition.aliases + (alias,)})
        self._commands[name] = Command(definition, command.handler, command.autocomplete)
        return True

    def set_enabled(self, name: str, enabled: bool) -> bool:
        command = self._commands.get(name)
        if command is None:
            return False
        definition = command.definition.model_copy(update={"enabled": enabled})
        self._commands[name] = Command(definition, command.handler, command.autocomplete)
        logger.info("Command %s %s", name, "enabled" if enabled else "disabled", extra={"command_name": name})
        return True

    def all(self) -> List[Command]:
        return list(self._commands.values())

    def by_category(self, category: str) -> List[Command]:
        return [
            c for c in self._commands.values() if c.definition.category == category and c.definition.enabled
        ]

    def aliases_for(self, name: str) -> List[str]:
        return [alias for alias, target in self._aliases.items() if target == name]

    def get_stats(self) -> Dict[str, Any]:
        categories: Dict[str, int] = {}
        enabled = 0
        for command in self._commands.values():
            if command.definition.enabled:
                enabled += 1
            category = command.definition.category or "uncategorized"
            categories[category] = categories.get(category, 0) + 1
        total = len(self._commands)
        return {
            "total": total,
            "enabled": enabled,
            "disabled": total - enabled,
            "categories": categories,
            "aliases": len(self._aliases),
            "active_cooldowns": self.cooldowns.active_count(),
        }

    def __len__(self) -> int:
        return len(self._commands)

    def __contains__(self, name: object) -> bool:
        return name in self._commands

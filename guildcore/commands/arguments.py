"""Argument parsing, validation and autocomplete suggestions for commands."""

from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Optional, Sequence

from guildcore.errors import (
    ArgumentChoiceError,
    ArgumentRangeError,
    ArgumentTypeError,
    MissingRequiredArgumentError,
)
from guildcore.logs.logging_config import get_core_logger
from guildcore.models import ArgumentChoice, ArgumentDefinition, ArgumentType
from guildcore.commands.catalog import SuggestionSupplier
from guildcore.utils.log_sanitizer import sanitize_for_log, sanitize_keys_for_log

logger = get_core_logger("commands.arguments")

# Hard limit of the transport protocol for autocomplete responses.
MAX_SUGGESTIONS = 25

_TRUE_STRINGS = {"true", "yes", "y", "on", "1"}
_FALSE_STRINGS = {"false", "no", "n", "off", "0"}


def _format_bound(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


class ArgumentResolver:
    def parse(self, raw_options: Optional[Mapping[str, Any]], definitions: Sequence[ArgumentDefinition]) -> Dict[str, Any]:
        """Validate raw option values against ``definitions`` and return the coerced values.

        Absent optional arguments are left out of the result; options that no
        definition names are ignored.
        """
        raw = raw_options or {}
        parsed: Dict[str, Any] = {}
        for definition in definitions:
            value = raw.get(definition.name)
            if value is None:
                if definition.required:
                    raise MissingRequiredArgumentError(definition.name)
                continue
            parsed[definition.name] = self._validate(value, definition)
        logger.debug("Arguments parsed: %s", sanitize_keys_for_log(parsed))
        return parsed

    def _validate(self, value: Any, definition: ArgumentDefinition) -> Any:
        name = definition.name
        kind = definition.type

        if kind is ArgumentType.STRING:
            if not isinstance(value, str):
                raise ArgumentTypeError(name, f"Argument '{name}' expected string, got {type(value).__name__}")
            if definition.min_length is not None and len(value) < definition.min_length:
                raise ArgumentRangeError(name, f"Argument '{name}' is too short. Minimum length: {definition.min_length}")
            if definition.max_length is not None and len(value) > definition.max_length:
                raise ArgumentRangeError(name, f"Argument '{name}' is too long. Maximum length: {definition.max_length}")

        elif kind in (ArgumentType.INTEGER, ArgumentType.NUMBER):
            value = self._coerce_number(value, definition)
            if definition.min_value is not None and value < definition.min_value:
                raise ArgumentRangeError(
                    name, f"Argument '{name}' is too small. Minimum: {_format_bound(definition.min_value)}"
                )
            if definition.max_value is not None and value > definition.max_value:
                raise ArgumentRangeError(
                    name, f"Argument '{name}' is too large. Maximum: {_format_bound(definition.max_value)}"
                )

        elif kind is ArgumentType.BOOLEAN:
            value = self._coerce_boolean(value, name)

        elif kind.is_reference:
            # Resolved objects are validated by the transport; only presence matters here.
            if not value:
                raise ArgumentTypeError(name, f"Invalid {kind.value} provided for '{name}'")

        if definition.choices:
            valid_values = [choice.value for choice in definition.choices]
            if value not in valid_values:
                raise ArgumentChoiceError(
                    name,
                    f"Invalid choice for '{name}'. Valid options: {', '.join(str(v) for v in valid_values)}",
                )
        return value

    @staticmethod
    def _coerce_number(value: Any, definition: ArgumentDefinition) -> Any:
        name = definition.name
        integer = definition.type is ArgumentType.INTEGER
        expected = "integer" if integer else "number"
        if isinstance(value, bool):
            raise ArgumentTypeError(name, f"Argument '{name}' expected {expected}, got bool")
        if isinstance(value, str):
            text = value.strip()
            try:
                value = int(text) if integer else float(text)
            except ValueError:
                raise ArgumentTypeError(name, f"Argument '{name}' expected {expected}, got '{sanitize_for_log(text, 32)}'") from None
        if integer:
            if isinstance(value, float) and value.is_integer():
                value = int(value)
            if not isinstance(value, int):
                raise ArgumentTypeError(name, f"Argument '{name}' expected integer, got {type(value).__name__}")
            return value
        if not isinstance(value, (int, float)) or (isinstance(value, float) and math.isnan(value)):
            raise ArgumentTypeError(name, f"Argument '{name}' expected number, got {type(value).__name__}")
        return value

    @staticmethod
    def _coerce_boolean(value: Any, name: str) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_STRINGS:
                return True
            if lowered in _FALSE_STRINGS:
                return False
        raise ArgumentTypeError(name, f"Argument '{name}' expected boolean, got {type(value).__name__}")

    async def suggest(
        self,
        partial: str,
        definition: ArgumentDefinition,
        supplier: Optional[SuggestionSupplier] = None,
    ) -> List[ArgumentChoice]:
        """Return at most 25 choices whose name or value contains ``partial`` (case-insensitive).

        Never raises: a failing supplier is logged and yields no suggestions.
        """
        if not definition.autocomplete:
            return []
        try:
            if supplier is not None:
                candidates = list(await supplier(definition.name, partial or ""))
            else:
                candidates = list(definition.choices)
            needle = (partial or "").lower()
            matches = [
                choice
                for choice in candidates
                if needle in choice.name.lower() or needle in str(choice.value).lower()
            ]
            return matches[:MAX_SUGGESTIONS]
        except Exception as exc:
            logger.error(
                "Autocomplete suggestions failed for argument %s: %s",
                definition.name,
                exc,
                exc_info=True,
            )
            return []


def format_arguments_for_help(definitions: Sequence[ArgumentDefinition]) -> str:
    if not definitions:
        return "No arguments required"
    lines = []
    for definition in definitions:
        required = "(required)" if definition.required else "(optional)"
        line = f"{definition.name} {required} - {definition.description}"
        if definition.choices:
            line += f" (Options: {', '.join(choice.name for choice in definition.choices)})"
        lines.append(line)
    return "\n".join(lines)

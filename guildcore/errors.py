"""
Error Taxonomy
==============

Every error raised by the runtime carries a machine-readable ``code`` and a
short ``user_message`` that is safe to show to the invoker (no stack traces,
no internal identifiers).

Catalog errors are raised to the caller at registration time. Dispatcher
errors are caught at the pipeline boundary and turned into a private reply.
Event fan-out errors are logged per capability and never propagate.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class GuildCoreError(Exception):
    """Base class for all runtime errors."""

    code = "guildcore_error"

    def __init__(self, message: str, *, user_message: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.user_message = user_message or message

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.user_message}


# ---------------------------------------------------------------------------
# Catalog / registration
# ---------------------------------------------------------------------------


class DuplicateKeyError(GuildCoreError):
    code = "duplicate_key"

    def __init__(self, key: str, kind: str = "capability"):
        super().__init__(f"{kind.capitalize()} '{key}' is already registered")
        self.key = key
        self.kind = kind


class InvalidDefinitionError(GuildCoreError):
    code = "invalid_definition"


class NotFoundError(GuildCoreError):
    code = "not_found"


class UnknownEventError(GuildCoreError):
    code = "unknown_event"

    def __init__(self, event_name: str):
        super().__init__(f"Unknown capability event: {event_name}")
        self.event_name = event_name


# ---------------------------------------------------------------------------
# Command pipeline
# ---------------------------------------------------------------------------


class UnknownCommandError(GuildCoreError):
    code = "unknown_command"

    def __init__(self, command_name: str):
        super().__init__(f"Unknown command: {command_name}")
        self.command_name = command_name


class CommandDisabledError(GuildCoreError):
    code = "command_disabled"

    def __init__(self, command_name: str):
        super().__init__(f"Command '{command_name}' is currently disabled")
        self.command_name = command_name


class CooldownError(GuildCoreError):
    code = "cooldown"

    def __init__(self, command_name: str, remaining_ms: int):
        seconds = -(-remaining_ms // 1000)
        super().__init__(
            f"Command '{command_name}' is on cooldown for {remaining_ms}ms",
            user_message=f"Command is on cooldown. Try again in {seconds} seconds.",
        )
        self.command_name = command_name
        self.remaining_ms = remaining_ms


class CommandPermissionError(GuildCoreError):
    code = "permission_denied"

    def __init__(self, reason: str):
        super().__init__(
            f"Permission denied: {reason}",
            user_message="You don't have permission to use this command.",
        )
        self.reason = reason


class EntitlementError(GuildCoreError):
    code = "not_entitled"

    def __init__(self, message: str, *, reason: Optional[str] = None, user_message: Optional[str] = None):
        super().__init__(message, user_message=user_message)
        self.reason = reason


# ---------------------------------------------------------------------------
# Argument resolution
# ---------------------------------------------------------------------------


class ArgumentError(GuildCoreError):
    code = "invalid_argument"

    def __init__(self, argument_name: str, message: str):
        super().__init__(message)
        self.argument_name = argument_name


class MissingRequiredArgumentError(ArgumentError):
    code = "missing_argument"

    def __init__(self, argument_name: str):
        super().__init__(argument_name, f"Required argument '{argument_name}' is missing")


class ArgumentTypeError(ArgumentError):
    code = "argument_type"


class ArgumentRangeError(ArgumentError):
    code = "argument_range"


class ArgumentChoiceError(ArgumentError):
    code = "argument_choice"


# ---------------------------------------------------------------------------
# Entitlements / license service
# ---------------------------------------------------------------------------


class InvalidEntitlementError(GuildCoreError):
    code = "invalid_entitlement"


class LicenseUnavailableError(GuildCoreError):
    code = "license_unavailable"


__all__ = [
    "GuildCoreError",
    "DuplicateKeyError",
    "InvalidDefinitionError",
    "NotFoundError",
    "UnknownEventError",
    "UnknownCommandError",
    "CommandDisabledError",
    "CooldownError",
    "CommandPermissionError",
    "EntitlementError",
    "ArgumentError",
    "MissingRequiredArgumentError",
    "ArgumentTypeError",
    "ArgumentRangeError",
    "ArgumentChoiceError",
    "InvalidEntitlementError",
    "LicenseUnavailableError",
]

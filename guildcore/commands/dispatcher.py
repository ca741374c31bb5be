"""
Command Dispatcher
==================
Runs one invocation through a fixed pipeline; the first failing step wins:

    1. resolve name/alias        -> UnknownCommandError
    2. enabled?                  -> CommandDisabledError
    3. cooldown (command, user)  -> CooldownError(remaining_ms)
    4. build CommandContext
    5. owner/guild/permissions/roles -> CommandPermissionError
    6. premium-only              -> EntitlementError
    7. parse arguments           -> Argument*Error (unchanged)
    8. run the handler
    9. start the cooldown (success only)

Every outcome is logged with command, invoker, tenant and duration and
returned as an ExecutionResult. On failure the invoker always gets exactly
one private reply, including for unexpected errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from guildcore.commands.arguments import ArgumentResolver
from guildcore.commands.catalog import CommandCatalog
from guildcore.connectors.base import TransportConnector
from guildcore.entitlements.gate import EntitlementGate
from guildcore.errors import (
    CommandDisabledError,
    CommandPermissionError,
    CooldownError,
    EntitlementError,
    GuildCoreError,
    UnknownCommandError,
)
from guildcore.logs.logging_config import ContextLogger, get_core_logger, get_tenant_logger
from guildcore.models import ArgumentChoice, AutocompleteRequest, CommandDefinition, Invocation
from guildcore.utils.log_sanitizer import sanitize_for_log, sanitize_keys_for_log

logger = get_core_logger("commands.dispatcher")

INTERNAL_ERROR_CODE = "internal_error"
INTERNAL_ERROR_MESSAGE = "There was an error while executing this command!"


@dataclass
class CommandContext:
    invocation: Invocation
    command: CommandDefinition
    is_owner: bool
    is_premium: bool
    transport: TransportConnector
    logger: ContextLogger
    has_permission: Callable[[str], bool]
    has_role: Callable[[str], bool]
    has_feature_access: Callable[[str], bool]
    args: Dict[str, Any] = field(default_factory=dict)
    replied: bool = False

    @property
    def invoker_id(self) -> str:
        return self.invocation.invoker_id

    @property
    def invoker_name(self) -> str:
        return self.invocation.invoker_name

    @property
    def tenant_id(self) -> Optional[str]:
        return self.invocation.tenant_id

    @property
    def tenant_name(self) -> Optional[str]:
        return self.invocation.tenant_name

    async def reply(
        self,
        content: Optional[str] = None,
        *,
        embed: Optional[Mapping[str, Any]] = None,
        ephemeral: bool = True,
    ) -> None:
        """Reply to the invoker; a second call edits the first reply."""
        if self.replied:
            await self.transport.edit_reply(self.invocation.handle, content, embed=embed)
        else:
            await self.transport.reply(self.invocation.handle, content, ephemeral=ephemeral, embed=embed)
            self.replied = True


@dataclass
class ExecutionResult:
    success: bool
    command: str
    invoker_id: str
    tenant_id: Optional[str]
    duration_ms: float
    error: Optional[str] = None
    error_code: Optional[str] = None
    remaining_ms: Optional[int] = None


class CommandDispatcher:
    def __init__(
        self,
        catalog: CommandCatalog,
        gate: EntitlementGate,
        transport: TransportConnector,
        *,
        resolver: Optional[ArgumentResolver] = None,
        owner_ids: Iterable[str] = (),
    ):
        self._catalog = catalog
        self._gate = gate
        self._transport = transport
        self._resolver = resolver or ArgumentResolver()
        self._owner_ids = frozenset(owner_ids)
        self._stats: Dict[str, Any] = {"executed": 0, "succeeded": 0, "failed": 0, "errors": {}}

    # ------------------------------------------------------------------
    # Invocation pipeline
    # ------------------------------------------------------------------
    async def execute(self, invocation: Invocation) -> ExecutionResult:
        start = perf_counter()
        context: Optional[CommandContext] = None
        command_name = invocation.command_name

        try:
            command = self._catalog.get(command_name)
            if command is None:
                raise UnknownCommandError(sanitize_for_log(command_name, 32))
            definition = command.definition
            command_name = definition.name

            if not definition.enabled:
                raise CommandDisabledError(command_name)

            remaining_ms = self._catalog.cooldowns.remaining_ms(command_name, invocation.invoker_id)
            if remaining_ms > 0:
                raise CooldownError(command_name, remaining_ms)

            context = self._build_context(invocation, definition)
            self._check_permissions(context, definition)

            if definition.premium_only and not context.is_premium:
                raise EntitlementError(
                    f"Command '{command_name}' requires premium access",
                    user_message="This command requires a premium subscription.",
                )

            context.args = self._resolver.parse(invocation.options, definition.arguments)

            context.logger.info("Executing command", argument_names=sanitize_keys_for_log(context.args))
            await command.handler(context, context.args)

            if definition.cooldown_seconds > 0:
                self._catalog.cooldowns.set(command_name, invocation.invoker_id, definition.cooldown_seconds)
        except Exception as exc:
            duration_ms = (perf_counter() - start) * 1000
            return await self._fail(invocation, command_name, context, exc, duration_ms)

        duration_ms = (perf_counter() - start) * 1000
        self._stats["executed"] += 1
        self._stats["succeeded"] += 1
        logger.info(
            f"✅ Command executed successfully: {command_name}",
            extra=self._outcome_extra(invocation, command_name, duration_ms),
        )
        return ExecutionResult(
            success=True,
            command=command_name,
            invoker_id=invocation.invoker_id,
            tenant_id=invocation.tenant_id,
            duration_ms=duration_ms,
        )

    async def _fail(
        self,
        invocation: Invocation,
        command_name: str,
        context: Optional[CommandContext],
        exc: Exception,
        duration_ms: float,
    ) -> ExecutionResult:
        extra = self._outcome_extra(invocation, command_name, duration_ms)
        if isinstance(exc, GuildCoreError):
            message, code = exc.user_message, exc.code
            logger.warning(f"⚠️ Command rejected: {exc.message}", extra={**extra, "error_code": code})
        else:
            message, code = INTERNAL_ERROR_MESSAGE, INTERNAL_ERROR_CODE
            logger.error(
                f"❌ Command execution failed: {exc}",
                extra={**extra, "error_code": code, "error_type": type(exc).__name__},
                exc_info=True,
            )

        self._stats["executed"] += 1
        self._stats["failed"] += 1
        self._stats["errors"][code] = self._stats["errors"].get(code, 0) + 1

        try:
            content = f"❌ {message}"
            if context is not None and context.replied:
                await self._transport.edit_reply(invocation.handle, content)
            else:
                await self._transport.reply(invocation.handle, content, ephemeral=True)
        except Exception as reply_exc:
            logger.error(f"Failed to send error reply: {reply_exc}", extra=extra)

        return ExecutionResult(
            success=False,
            command=command_name,
            invoker_id=invocation.invoker_id,
            tenant_id=invocation.tenant_id,
            duration_ms=duration_ms,
            error=message,
            error_code=code,
            remaining_ms=exc.remaining_ms if isinstance(exc, CooldownError) else None,
        )

    @staticmethod
    def _outcome_extra(invocation: Invocation, command_name: str, duration_ms: float) -> Dict[str, Any]:
        return {
            "command_name": sanitize_for_log(command_name, 32),
            "invoker_id": invocation.invoker_id,
            "tenant_id": invocation.tenant_id,
            "duration_ms": round(duration_ms, 3),
        }

    # ------------------------------------------------------------------
    # Context & checks
    # ------------------------------------------------------------------
    def _build_context(self, invocation: Invocation, definition: CommandDefinition) -> CommandContext:
        tenant_id = invocation.tenant_id
        member_permissions = frozenset(invocation.member_permissions or ())
        member_roles = frozenset(invocation.member_role_ids or ())
        in_tenant = tenant_id is not None

        def has_permission(permission: str) -> bool:
            return in_tenant and permission in member_permissions

        def has_role(role_id: str) -> bool:
            return in_tenant and role_id in member_roles

        def has_feature_access(feature_key: str) -> bool:
            return in_tenant and self._gate.check(tenant_id, feature_key).granted

        return CommandContext(
            invocation=invocation,
            command=definition,
            is_owner=invocation.invoker_id in self._owner_ids,
            is_premium=self._gate.has_premium_access(tenant_id),
            transport=self._transport,
            logger=get_tenant_logger(
                tenant_id,
                command_name=definition.name,
                base_logger=logger,
                invoker_id=invocation.invoker_id,
            ),
            has_permission=has_permission,
            has_role=has_role,
            has_feature_access=has_feature_access,
        )

    @staticmethod
    def _check_permissions(context: CommandContext, definition: CommandDefinition) -> None:
        if definition.owner_only and not context.is_owner:
            raise CommandPermissionError("owner-only command")
        if definition.guild_only and context.tenant_id is None:
            raise CommandPermissionError("guild-only command used outside a guild")
        missing = sorted(p for p in definition.permissions if not context.has_permission(p))
        if missing:
            raise CommandPermissionError(f"missing permissions: {', '.join(missing)}")
        missing_roles = sorted(r for r in definition.roles if not context.has_role(r))
        if missing_roles:
            raise CommandPermissionError(f"missing roles: {', '.join(missing_roles)}")

    # ------------------------------------------------------------------
    # Autocomplete
    # ------------------------------------------------------------------
    async def handle_autocomplete(self, request: AutocompleteRequest) -> List[ArgumentChoice]:
        """Answer a partial-input request; never raises."""
        try:
            command = self._catalog.get(request.command_name)
            if command is None or not command.definition.arguments:
                return []

            context = self._build_context(request, command.definition)
            try:
                self._check_permissions(context, command.definition)
            except CommandPermissionError:
                return []

            argument = next((a for a in command.definition.arguments if a.name == request.focused_option), None)
            if argument is None or not argument.autocomplete:
                return []

            candidates = await self._resolver.suggest(request.focused_value, argument, command.autocomplete)
            await self._transport.send_autocomplete_results(request.handle, candidates)
            logger.debug(
                f"Autocomplete handled: {len(candidates)} results",
                extra={"command_name": command.name, "argument": argument.name},
            )
            return candidates
        except Exception as exc:
            logger.error(
                f"Autocomplete handling failed: {exc}",
                extra={"command_name": sanitize_for_log(request.command_name, 32)},
                exc_info=True,
            )
            return []

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------
    def get_stats(self) -> Dict[str, Any]:
        return {
            "registry": self._catalog.get_stats(),
            "executions": {**self._stats, "errors": dict(self._stats["errors"])},
        }

    def clear_all_cooldowns(self) -> int:
        cleared = self._catalog.cooldowns.clear_all()
        logger.info(f"All command cooldowns cleared ({cleared})")
        return cleared

    def clear_cooldown(self, command_name: str, invoker_id: str) -> bool:
        command = self._catalog.get(command_name)
        name = command.name if command is not None else command_name
        return self._catalog.cooldowns.clear(name, invoker_id)

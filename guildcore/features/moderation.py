"""Automated moderation: mention and caps spam protection (premium)."""

from __future__ import annotations

import re
from typing import List, Mapping

from guildcore.capabilities.base import BaseCapability, CapabilityContext, CapabilityEvent, EventHandler, MessagePayload
from guildcore.models import CapabilityCategory, CapabilityDefinition

_UPPER_RE = re.compile(r"[A-Z]")
_WHITESPACE_RE = re.compile(r"\s")

WARNING_COLOR = 0xFFA500
LOG_COLOR = 0xFF0000


def caps_percentage(content: str) -> float:
    total = len(_WHITESPACE_RE.sub("", content))
    if total == 0:
        return 0.0
    return len(_UPPER_RE.findall(content)) / total * 100


class ModerationCapability(BaseCapability):
    definition = CapabilityDefinition(
        key="moderation",
        name="Auto Moderation",
        description="Automated moderation tools and spam protection",
        category=CapabilityCategory.MODERATION,
        is_premium=True,
        permissions=frozenset({"KickMembers", "BanMembers", "ManageMessages"}),
        default_config={
            "enabled": False,
            "spam_protection": True,
            "max_mentions": 5,
            "max_caps_percentage": 70,
            "warning_threshold": 3,
            "auto_kick": False,
            "auto_ban": False,
            "log_channel_id": None,
        },
    )

    def event_handlers(self) -> Mapping[CapabilityEvent, EventHandler]:
        return {CapabilityEvent.MESSAGE_CREATE: self.on_message_create}

    def find_violations(self, config: Mapping, message: MessagePayload) -> List[str]:
        reasons: List[str] = []
        max_mentions = config.get("max_mentions", 5)
        if message.mention_count > max_mentions:
            reasons.append(f"Too many mentions ({message.mention_count}/{max_mentions})")

        max_caps = config.get("max_caps_percentage", 70)
        if message.content:
            percentage = caps_percentage(message.content)
            if percentage > max_caps:
                reasons.append(f"Too many caps ({round(percentage)}% > {max_caps}%)")
        return reasons

    async def on_message_create(self, context: CapabilityContext, message: MessagePayload) -> None:
        config = context.config
        if not config.get("enabled") or not config.get("spam_protection", True):
            return
        if "ManageMessages" in message.author_permissions:
            return

        reasons = self.find_violations(config, message)
        if not reasons:
            return

        await self._handle_violation(context, message, reasons)
        if config.get("log_channel_id"):
            await self._log_action(context, message, reasons, config["log_channel_id"])

    async def _handle_violation(self, context: CapabilityContext, message: MessagePayload, reasons: List[str]) -> None:
        transport = context.transport
        await transport.delete_message(
            tenant_id=context.tenant_id, channel_id=message.channel_id, message_id=message.message_id
        )
        await transport.send_message(
            tenant_id=context.tenant_id,
            channel_id=message.channel_id,
            content=f"<@{message.author_id}>",
            embed={
                "title": "⚠️ Message Removed",
                "description": "Your message was removed for violating server rules.",
                "fields": [{"name": "Reasons", "value": "\n".join(reasons)}],
                "color": WARNING_COLOR,
            },
        )
        await context.audit_log(
            "moderation.violation",
            {"user_id": message.author_id, "channel_id": message.channel_id, "reasons": reasons},
        )
        await context.increment_usage("actions")
        context.logger.info("Moderation violation handled", user_id=message.author_id, reasons=reasons)

    async def _log_action(
        self, context: CapabilityContext, message: MessagePayload, reasons: List[str], log_channel_id: str
    ) -> None:
        await context.transport.send_message(
            tenant_id=context.tenant_id,
            channel_id=log_channel_id,
            embed={
                "title": "🛡️ Auto Moderation",
                "fields": [
                    {"name": "User", "value": f"{message.author_tag} ({message.author_id})", "inline": True},
                    {"name": "Channel", "value": f"<#{message.channel_id}>", "inline": True},
                    {"name": "Reasons", "value": "\n".join(reasons)},
                    {"name": "Message Content", "value": message.content or "*No text content*"},
                ],
                "color": LOG_COLOR,
            },
        )

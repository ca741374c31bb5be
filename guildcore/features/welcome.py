"""Welcome messages for new members."""

from __future__ import annotations

from typing import Mapping, Optional

from guildcore.capabilities.base import BaseCapability, CapabilityContext, CapabilityEvent, EventHandler, MemberPayload
from guildcore.models import CapabilityCategory, CapabilityDefinition

DEFAULT_MESSAGE = "Welcome {user} to {guild}! We're glad to have you here. 🎉"


class WelcomeCapability(BaseCapability):
    definition = CapabilityDefinition(
        key="welcome",
        name="Welcome Messages",
        description="Automatically send welcome messages to new members",
        category=CapabilityCategory.ENGAGEMENT,
        is_premium=False,
        permissions=frozenset({"SendMessages", "EmbedLinks"}),
        default_config={
            "enabled": True,
            "channel_id": None,
            "message": DEFAULT_MESSAGE,
            "embed_color": 0x00FF00,
            "use_embed": True,
        },
    )

    def event_handlers(self) -> Mapping[CapabilityEvent, EventHandler]:
        return {CapabilityEvent.MEMBER_ADD: self.on_member_add}

    @staticmethod
    def format_message(template: str, member: MemberPayload, guild_name: str) -> str:
        return (
            template.replace("{user}", member.display)
            .replace("{username}", member.username)
            .replace("{guild}", guild_name)
            .replace("{memberCount}", str(member.member_count))
        )

    @staticmethod
    def _resolve_channel(config: Mapping, member: MemberPayload) -> Optional[str]:
        return config.get("channel_id") or member.system_channel_id

    async def on_member_add(self, context: CapabilityContext, member: MemberPayload) -> None:
        config = context.config
        if not config.get("enabled", True):
            return

        channel_id = self._resolve_channel(config, member)
        if not channel_id:
            context.logger.warning("No suitable channel found for welcome messages")
            return

        guild_name = member.guild_name or context.tenant_name
        message = self.format_message(config.get("message") or DEFAULT_MESSAGE, member, guild_name)

        if config.get("use_embed", True):
            embed = {
                "title": "👋 Welcome!",
                "description": message,
                "color": config.get("embed_color", 0x00FF00),
            }
            await context.transport.send_message(tenant_id=context.tenant_id, channel_id=channel_id, embed=embed)
        else:
            await context.transport.send_message(tenant_id=context.tenant_id, channel_id=channel_id, content=message)

        await context.increment_usage("messages_sent")
        context.logger.info("Welcome message sent", user_id=member.user_id, channel_id=channel_id)

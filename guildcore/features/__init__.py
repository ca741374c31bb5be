"""Capabilities bundled with the runtime."""

from guildcore.features.moderation import ModerationCapability
from guildcore.features.welcome import WelcomeCapability


def builtin_capabilities():
    return [WelcomeCapability(), ModerationCapability()]


__all__ = ["ModerationCapability", "WelcomeCapability", "builtin_capabilities"]

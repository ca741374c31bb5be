# guildcore/config/settings.py
from __future__ import annotations

import os
import logging
from dataclasses import dataclass

from dotenv import load_dotenv

logger = logging.getLogger("guildcore.settings")

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _dotenv_enabled() -> bool:
    value = os.getenv("GUILDCORE_LOAD_DOTENV")
    if value is None:
        return True
    return value.strip().lower() not in {"0", "false", "no", "off"}


# Load environment variables from a local .env for dev/test (never override process env).
if _dotenv_enabled():
    load_dotenv(override=False)


def _env_str(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value if value else default


def _env_bool(name: str, default: bool = False) -> bool:
    value = _env_str(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "y", "on"}


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


@dataclass(frozen=True)
class Settings:
    env: str
    log_level: str
    logs_as_json: bool
    owner_ids: tuple[str, ...]
    enabled_features: tuple[str, ...]
    disabled_features: tuple[str, ...]
    allow_command_overwrite: bool
    license_file: str | None

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    def feature_allowed(self, key: str) -> bool:
        """Apply the FEATURES_ENABLED whitelist and FEATURES_DISABLED blacklist."""
        if key in self.disabled_features:
            return False
        if self.enabled_features and key not in self.enabled_features:
            return False
        return True

    def validate(self) -> None:
        if self.log_level not in _LOG_LEVELS:
            raise RuntimeError(f"Invalid LOG_LEVEL: '{self.log_level}' (expected one of: {', '.join(sorted(_LOG_LEVELS))})")
        overlap = set(self.enabled_features) & set(self.disabled_features)
        if overlap:
            raise RuntimeError(
                f"Features cannot be both enabled and disabled: {', '.join(sorted(overlap))}"
            )
        if self.license_file and not os.path.isfile(self.license_file):
            raise RuntimeError(f"LICENSE_FILE does not exist: {self.license_file}")
        if self.is_production and self.allow_command_overwrite:
            logger.warning("COMMAND_ALLOW_OVERWRITE is enabled in production; command name collisions will not fail")


def load_settings() -> Settings:
    settings = Settings(
        env=(_env_str("ENV", "development") or "development").lower(),
        log_level=(_env_str("LOG_LEVEL", "INFO") or "INFO").upper(),
        logs_as_json=_env_bool("LOGS_AS_JSON", default=False),
        owner_ids=tuple(_split_csv(_env_str("OWNER_IDS"))),
        enabled_features=tuple(_split_csv(_env_str("FEATURES_ENABLED"))),
        disabled_features=tuple(_split_csv(_env_str("FEATURES_DISABLED"))),
        allow_command_overwrite=_env_bool("COMMAND_ALLOW_OVERWRITE", default=False),
        license_file=_env_str("LICENSE_FILE"),
    )
    settings.validate()
    return settings

# guildcore/commands/cooldowns.py
from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Dict, Tuple

from guildcore.utils.clock import Clock, utc_now


class CooldownStore:
    """Per (command, invoker) expiry times.

    Expired entries are dropped when read, and by cleanup_expired()
    for pairs that are never read again. Each entry is keyed by a
    single call's (command, invoker) pair, so concurrent invocations never
    write the same slot with different meaning.
    """

    def __init__(self, *, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._expiry: Dict[Tuple[str, str], datetime] = {}

    def remaining_ms(self, command_name: str, invoker_id: str) -> int:
        key = (command_name, invoker_id)
        expires_at = self._expiry.get(key)
        if expires_at is None:
            return 0
        remaining = (expires_at - self._clock()).total_seconds() * 1000
        if remaining <= 0:
            self._expiry.pop(key, None)
            return 0
        return max(1, math.ceil(remaining))

    def set(self, command_name: str, invoker_id: str, duration_seconds: float) -> datetime:
        expires_at = self._clock() + timedelta(seconds=duration_seconds)
        self._expiry[(command_name, invoker_id)] = expires_at
        return expires_at

    def clear(self, command_name: str, invoker_id: str) -> bool:
        return self._expiry.pop((command_name, invoker_id), None) is not None

    def clear_command(self, command_name: str) -> int:
        keys = [key for key in self._expiry if key[0] == command_name]
        for key in keys:
            del self._expiry[key]
        return len(keys)

    def clear_all(self) -> int:
        count = len(self._expiry)
        self._expiry.clear()
        return count

    def cleanup_expired(self) -> int:
        now = self._clock()
        expired = [key for key, expires_at in self._expiry.items() if expires_at <= now]
        for key in expired:
            del self._expiry[key]
        return len(expired)

    def active_count(self) -> int:
        self.cleanup_expired()
        return len(self._expiry)

    def __len__(self) -> int:
        return len(self._expiry)

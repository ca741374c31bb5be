"""Time source used by cooldowns and entitlement expiry.

Components take a zero-argument callable returning an aware UTC datetime so
tests can drive time forward without sleeping.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)

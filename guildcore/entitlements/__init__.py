"""
Entitlements
============
License-derived access checks for premium capabilities and commands.

- EntitlementGate.check(tenant_id, feature_key) -> EntitlementCheck(granted, reason)
- EntitlementGate.has_premium_access(tenant_id) -> bool
- EntitlementGate.refresh(tenant_id) pulls from the license service
"""

from guildcore.entitlements.gate import (
    REASON_EXPIRED,
    REASON_FEATURE_MISSING,
    REASON_NO_RECORD,
    REASON_REVOKED,
    EntitlementCheck,
    EntitlementGate,
)

__all__ = [
    "EntitlementCheck",
    "EntitlementGate",
    "REASON_EXPIRED",
    "REASON_FEATURE_MISSING",
    "REASON_NO_RECORD",
    "REASON_REVOKED",
]

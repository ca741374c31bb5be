"""
Entitlement Gate
================
Answers whether a tenant's current license entitles access to a feature key.

Two kinds of check:

- ``check(tenant_id, feature_key)``: per-feature grant (premium capability enable,
  ``has_feature_access`` in command contexts)
- ``has_premium_access(tenant_id)``: tier-level grant, true whenever the plan ranks
  above the lowest tier regardless of feature keys (premium-only commands)

Records are pulled from the license service with ``refresh``. If the service
is unreachable the cached record is dropped: premium access is denied while
free capabilities keep working.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from guildcore.connectors.base import LicenseConnector
from guildcore.errors import InvalidEntitlementError, LicenseUnavailableError
from guildcore.models import EntitlementRecord, PlanTier
from guildcore.utils.clock import Clock, utc_now

logger = logging.getLogger("guildcore.entitlements.gate")

REASON_NO_RECORD = "no_record"
REASON_EXPIRED = "expired"
REASON_REVOKED = "revoked"
REASON_FEATURE_MISSING = "feature_missing"

_REASON_MESSAGES = {
    REASON_NO_RECORD: "No license found for this guild",
    REASON_EXPIRED: "License has expired",
    REASON_REVOKED: "License has been revoked",
    REASON_FEATURE_MISSING: "Feature is not included in this license",
}


@dataclass(frozen=True)
class EntitlementCheck:
    granted: bool
    reason: Optional[str] = None

    @property
    def message(self) -> Optional[str]:
        return _REASON_MESSAGES.get(self.reason) if self.reason else None

    def to_dict(self) -> Dict[str, object]:
        return {"granted": self.granted, "reason": self.reason}


class EntitlementGate:
    """
    Per-tenant entitlement records with expiry and revocation.

    Usage:
        gate = EntitlementGate(license_connector)
        await gate.refresh("guild-1")

        if gate.check("guild-1", "moderation").granted:
            ...
    """

    def __init__(self, license_connector: Optional[LicenseConnector] = None, *, clock: Clock = utc_now):
        self._license = license_connector
        self._clock = clock
        self._records: Dict[str, EntitlementRecord] = {}

    def record(self, entitlement: EntitlementRecord) -> EntitlementRecord:
        """Store an entitlement, replacing any previous one for the tenant."""
        reason = entitlement.invalid_reason(self._clock())
        if reason == REASON_REVOKED:
            raise InvalidEntitlementError(f"Entitlement for tenant {entitlement.tenant_id} is already revoked")
        if reason == REASON_EXPIRED:
            raise InvalidEntitlementError(f"Entitlement for tenant {entitlement.tenant_id} has already expired")

        self._records[entitlement.tenant_id] = entitlement
        logger.info(
            f"[ENTITLEMENT] Recorded plan={entitlement.plan.value} features={len(entitlement.features)}",
            extra={"tenant_id": entitlement.tenant_id},
        )
        return entitlement

    def revoke(self, tenant_id: str) -> bool:
        current = self._records.get(tenant_id)
        if current is None:
            return False
        self._records[tenant_id] = current.model_copy(update={"revoked_at": self._clock()})
        logger.info("[ENTITLEMENT] Revoked", extra={"tenant_id": tenant_id})
        return True

    def check(self, tenant_id: str, feature_key: str) -> EntitlementCheck:
        current = self._records.get(tenant_id)
        if current is None:
            return EntitlementCheck(False, REASON_NO_RECORD)
        invalid = current.invalid_reason(self._clock())
        if invalid is not None:
            return EntitlementCheck(False, invalid)
        if feature_key not in current.features:
            return EntitlementCheck(False, REASON_FEATURE_MISSING)
        return EntitlementCheck(True)

    def has_premium_access(self, tenant_id: Optional[str]) -> bool:
        if not tenant_id:
            return False
        current = self._records.get(tenant_id)
        if current is None or current.invalid_reason(self._clock()) is not None:
            return False
        return current.plan.rank > PlanTier.lowest().rank

    def get(self, tenant_id: str) -> Optional[EntitlementRecord]:
        return self._records.get(tenant_id)

    def all(self) -> List[EntitlementRecord]:
        return list(self._records.values())

    def get_limit(
        self, tenant_id: str, limit_name: str, default: Optional[Union[int, float]] = None
    ) -> Optional[Union[int, float]]:
        current = self._records.get(tenant_id)
        if current is None or current.invalid_reason(self._clock()) is not None:
            return default
        return current.limits.get(limit_name, default)

    def forget(self, tenant_id: str) -> bool:
        return self._records.pop(tenant_id, None) is not None

    def cleanup_expired(self) -> int:
        now = self._clock()
        expired = [tenant_id for tenant_id, rec in self._records.items() if rec.is_expired(now)]
        for tenant_id in expired:
            del self._records[tenant_id]
        if expired:
            logger.info(f"[ENTITLEMENT] Cleaned up {len(expired)} expired records")
        return len(expired)

    async def refresh(self, tenant_id: str) -> Optional[EntitlementRecord]:
        """Pull the tenant's entitlement from the license service.

        Any failure leaves the tenant without a cached record (premium denied).
        """
        if self._license is None:
            return self._records.get(tenant_id)
        try:
            fetched = await self._license.fetch_entitlement(tenant_id=tenant_id)
        except LicenseUnavailableError as exc:
            logger.warning(f"[ENTITLEMENT] License service unavailable, denying premium: {exc}", extra={"tenant_id": tenant_id})
            self.forget(tenant_id)
            return None
        except Exception as exc:
            logger.error(
                f"[ENTITLEMENT] License lookup failed, denying premium: {exc}",
                extra={"tenant_id": tenant_id},
                exc_info=True,
            )
            self.forget(tenant_id)
            return None

        if fetched is None:
            self.forget(tenant_id)
            return None
        if fetched.tenant_id != tenant_id:
            fetched = fetched.model_copy(update={"tenant_id": tenant_id})
        try:
            return self.record(fetched)
        except InvalidEntitlementError as exc:
            logger.warning(f"[ENTITLEMENT] Ignoring unusable license: {exc}", extra={"tenant_id": tenant_id})
            self.forget(tenant_id)
            return None

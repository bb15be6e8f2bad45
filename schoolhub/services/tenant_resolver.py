"""
Tenant resolution for a session user
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
import asyncio
import uuid

import structlog

from schoolhub.core.errors import DataStoreError, ResolutionFailed, ResolutionNotFound
from schoolhub.schemas.tenant import FeatureSnapshot, TenantSnapshot
from schoolhub.services.feature_flags import parse_feature_config

logger = structlog.get_logger(__name__)


class ResolutionStatus(str, Enum):
    RESOLVED = "resolved"
    NOT_FOUND = "not_found"   # route to onboarding
    FAILED = "failed"         # prompt a retry


@dataclass(frozen=True)
class TenantResolution:
    """Outcome of one resolution attempt"""
    status: ResolutionStatus
    user_id: uuid.UUID
    tenant: Optional[TenantSnapshot] = None
    features: List[FeatureSnapshot] = field(default_factory=list)
    reason: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.status == ResolutionStatus.RESOLVED

    def raise_for_status(self) -> None:
        if self.status == ResolutionStatus.NOT_FOUND:
            raise ResolutionNotFound(self.user_id)
        if self.status == ResolutionStatus.FAILED:
            raise ResolutionFailed(self.user_id, self.reason or "unknown error")


def tenant_snapshot(row) -> TenantSnapshot:
    return TenantSnapshot.model_validate(row)


def feature_snapshot(row) -> FeatureSnapshot:
    return FeatureSnapshot(
        id=row.id,
        tenant_id=row.tenant_id,
        feature_key=row.feature_key,
        is_enabled=row.is_enabled,
        config=parse_feature_config(row.config, row.feature_key),
        created_at=row.created_at,
    )


class TenantResolver:
    """
    Determines the single tenant a session operates on.

    profile -> tenant reference -> tenant row (+ feature rows). Never raises;
    data store errors and timeouts are reported as FAILED.
    """

    def __init__(self, datastore, timeout: Optional[float] = None):
        self._datastore = datastore
        self._timeout = timeout

    async def resolve(self, user_id: uuid.UUID) -> TenantResolution:
        try:
            return await asyncio.wait_for(self._resolve(user_id), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.error("tenant_resolution_failed", user_id=str(user_id), reason="timeout")
            return TenantResolution(ResolutionStatus.FAILED, user_id, reason="timeout")
        except DataStoreError as e:
            logger.error("tenant_resolution_failed", user_id=str(user_id), reason=str(e))
            return TenantResolution(ResolutionStatus.FAILED, user_id, reason=str(e))

    async def _resolve(self, user_id: uuid.UUID) -> TenantResolution:
        tenant_id = await self._datastore.get_profile_tenant_id(user_id)
        if tenant_id is None:
            logger.info("tenant_not_found", user_id=str(user_id))
            return TenantResolution(ResolutionStatus.NOT_FOUND, user_id)

        row = await self._datastore.get_tenant(tenant_id)
        if row is None:
            # Profile points at a tenant that no longer exists
            logger.warning("tenant_reference_dangling", user_id=str(user_id), tenant_id=str(tenant_id))
            return TenantResolution(ResolutionStatus.NOT_FOUND, user_id)

        features = [feature_snapshot(f) for f in await self._datastore.list_features(tenant_id)]
        logger.info(
            "tenant_resolved",
            user_id=str(user_id),
            tenant_id=str(tenant_id),
            slug=row.slug,
            feature_rows=len(features),
        )
        return TenantResolution(
            ResolutionStatus.RESOLVED,
            user_id,
            tenant=tenant_snapshot(row),
            features=features,
        )

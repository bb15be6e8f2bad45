"""
Relational data store access for tenants, tenant features and profiles

Every method opens its own session, so each call is one request/response
round-trip. Driver and SQL errors are converted into DataStoreError.
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Mapping, Optional, Tuple
import uuid

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select
import structlog

from schoolhub.core.errors import DataStoreError, ProfileAttachedError, UniqueViolationError
from schoolhub.models.profile import Profile
from schoolhub.models.tenant import Tenant
from schoolhub.models.tenant_feature import TenantFeature
from schoolhub.models.timestamps import utcnow

logger = structlog.get_logger(__name__)

IMMUTABLE_TENANT_FIELDS = frozenset({"id", "slug", "created_at"})

# How each unique constraint shows up in driver messages (SQLite names the
# columns, Postgres names the index)
UNIQUE_CONSTRAINTS: Dict[str, Tuple[str, ...]] = {
    "tenants.slug": ("tenants.slug", "ix_tenants_slug"),
    "profiles.user_id": ("profiles.user_id", "ix_profiles_user_id"),
    "tenant_features.feature_key": (
        "tenant_features.tenant_id, tenant_features.feature_key",
        "uq_tenant_features_tenant_key",
    ),
}


def violated_unique_constraint(error: IntegrityError) -> Optional[str]:
    """table.column of the unique constraint behind an IntegrityError, None for other violations"""
    message = str(error.orig)
    lowered = message.lower()
    if "unique" not in lowered and "duplicate key" not in lowered:
        return None
    for constraint, markers in UNIQUE_CONSTRAINTS.items():
        if any(marker in message for marker in markers):
            return constraint
    return "unknown"


class TenantDataStore:
    """select / insert / update / upsert verbs over the tenancy tables"""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str):
        try:
            async with self._session_factory() as session:
                yield session
        except IntegrityError as e:
            constraint = violated_unique_constraint(e)
            if constraint is None:
                logger.error("datastore_integrity_error", operation=operation, error=str(e.orig))
                raise DataStoreError(operation, e) from e
            logger.warning("datastore_unique_violation", operation=operation, constraint=constraint, error=str(e.orig))
            raise UniqueViolationError(operation, e, constraint=constraint) from e
        except (SQLAlchemyError, OSError) as e:
            logger.error("datastore_error", operation=operation, error=str(e))
            raise DataStoreError(operation, e) from e

    # ------------------------------------------------------------------
    # profiles
    # ------------------------------------------------------------------

    async def get_profile_tenant_id(self, user_id: uuid.UUID) -> Optional[uuid.UUID]:
        """Tenant reference of the user's profile, or None when there is none"""
        async with self._session("select_profile") as session:
            profile = (
                await session.exec(select(Profile).where(Profile.user_id == user_id))
            ).first()
            return profile.tenant_id if profile else None

    # ------------------------------------------------------------------
    # tenants
    # ------------------------------------------------------------------

    async def get_tenant(self, tenant_id: uuid.UUID) -> Optional[Tenant]:
        async with self._session("select_tenant") as session:
            return await session.get(Tenant, tenant_id)

    async def update_tenant(self, tenant_id: uuid.UUID, changes: Mapping[str, Any]) -> Tenant:
        """Write only the given columns; returns the stored row"""
        illegal = IMMUTABLE_TENANT_FIELDS.intersection(changes)
        if illegal:
            raise ValueError(f"Immutable tenant fields cannot be updated: {sorted(illegal)}")

        async with self._session("update_tenant") as session:
            tenant = await session.get(Tenant, tenant_id)
            if tenant is None:
                raise DataStoreError("update_tenant", LookupError(f"tenant {tenant_id} not found"))

            for key, value in changes.items():
                setattr(tenant, key, value)
            tenant.updated_at = utcnow()

            session.add(tenant)
            await session.commit()
            await session.refresh(tenant)
            logger.info("tenant_row_updated", tenant_id=str(tenant_id), fields=sorted(changes))
            return tenant

    # ------------------------------------------------------------------
    # tenant_features
    # ------------------------------------------------------------------

    async def list_features(self, tenant_id: uuid.UUID) -> List[TenantFeature]:
        async with self._session("select_features") as session:
            rows = await session.exec(
                select(TenantFeature)
                .where(TenantFeature.tenant_id == tenant_id)
                .order_by(TenantFeature.created_at)
            )
            return list(rows.all())

    async def upsert_feature(
        self,
        tenant_id: uuid.UUID,
        feature_key: str,
        is_enabled: bool,
    ) -> Tuple[TenantFeature, bool]:
        """
        Upsert on (tenant_id, feature_key).

        Existing rows only get is_enabled rewritten; config is left alone.
        Returns the row and whether it was created by this call.
        """
        async with self._session("upsert_feature") as session:
            feature = await self._find_feature(session, tenant_id, feature_key)
            created = feature is None
            if created:
                feature = TenantFeature(
                    tenant_id=tenant_id,
                    feature_key=feature_key,
                    is_enabled=is_enabled,
                    config={},
                )
            else:
                feature.is_enabled = is_enabled

            session.add(feature)
            try:
                await session.commit()
            except IntegrityError:
                # Lost an insert race on the composite key; fall back to update
                await session.rollback()
                feature = await self._find_feature(session, tenant_id, feature_key)
                feature.is_enabled = is_enabled
                session.add(feature)
                await session.commit()
                created = False

            await session.refresh(feature)
            return feature, created

    @staticmethod
    async def _find_feature(session, tenant_id: uuid.UUID, feature_key: str) -> Optional[TenantFeature]:
        return (
            await session.exec(
                select(TenantFeature).where(
                    (TenantFeature.tenant_id == tenant_id)
                    & (TenantFeature.feature_key == feature_key)
                )
            )
        ).first()

    # ------------------------------------------------------------------
    # onboarding unit of work
    # ------------------------------------------------------------------

    async def onboard_tenant(
        self,
        user_id: uuid.UUID,
        tenant_fields: Mapping[str, Any],
        feature_flags: Mapping[str, bool],
    ) -> Tenant:
        """
        Create the tenant, attach the user's profile and write one feature row per
        catalog entry in a single transaction. Nothing is persisted on failure.

        The profile row is locked before the tenant insert; a profile that already
        points at a tenant raises ProfileAttachedError.
        """
        async with self._session("onboard_tenant") as session:
            async with session.begin():
                profile = (
                    await session.exec(
                        select(Profile).where(Profile.user_id == user_id).with_for_update()
                    )
                ).first()
                if profile is not None and profile.tenant_id is not None:
                    raise ProfileAttachedError(user_id, profile.tenant_id)

                tenant = Tenant(**tenant_fields)
                session.add(tenant)
                await session.flush()

                if profile is None:
                    profile = Profile(user_id=user_id)
                profile.tenant_id = tenant.id
                session.add(profile)

                for feature_key, is_enabled in feature_flags.items():
                    session.add(
                        TenantFeature(
                            tenant_id=tenant.id,
                            feature_key=feature_key,
                            is_enabled=is_enabled,
                            config={},
                        )
                    )
                await session.flush()

            await session.refresh(tenant)
            logger.info(
                "tenant_onboarded",
                tenant_id=str(tenant.id),
                slug=tenant.slug,
                user_id=str(user_id),
                feature_rows=len(feature_flags),
            )
            return tenant


def feature_flags_for(catalog, selected) -> Dict[str, bool]:
    """One entry per catalog key, enabled when it was selected"""
    chosen = {getattr(key, "value", key) for key in selected}
    return {getattr(key, "value", key): getattr(key, "value", key) in chosen for key in catalog}

"""
Per-session tenant state

TenantStore holds the resolved tenant and its feature rows as immutable
snapshots. Readers always see either the old or the new snapshot; the two
mutation entry points swap the snapshot only after the data store accepted
the write, so a failed write never changes what readers see.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple, Union
import asyncio
import uuid

import structlog

from schoolhub.core.errors import (
    DataStoreError,
    NoTenantError,
    ResolutionNotFound,
    UpdateError,
)
from schoolhub.core.events import AuditLog, EventBus, FeatureToggled, TenantChanged
from schoolhub.core.notifications import LogNotifier, Notifier, failure, success
from schoolhub.models.feature_catalog import FeatureKey, feature_label, to_feature_key
from schoolhub.schemas.tenant import FeatureSnapshot, TenantSnapshot, TenantUpdate
from schoolhub.services.feature_flags import FeatureFlagEngine
from schoolhub.services.tenant_resolver import (
    ResolutionStatus,
    TenantResolution,
    TenantResolver,
    feature_snapshot,
)
from schoolhub.services.theme import PresentationSurface, ThemeResolver

logger = structlog.get_logger(__name__)


class MutationLocks:
    """One asyncio.Lock per tenant, shared by every store in the process"""

    def __init__(self):
        self._locks: Dict[uuid.UUID, asyncio.Lock] = {}

    def for_tenant(self, tenant_id: uuid.UUID) -> asyncio.Lock:
        lock = self._locks.get(tenant_id)
        if lock is None:
            lock = self._locks[tenant_id] = asyncio.Lock()
        return lock


class TenantStore:
    """Tenant + feature snapshot for one session"""

    def __init__(
        self,
        user_id: uuid.UUID,
        datastore,
        resolver: Optional[TenantResolver] = None,
        events: Optional[EventBus] = None,
        notifier: Optional[Notifier] = None,
        locks: Optional[MutationLocks] = None,
        timeout: Optional[float] = None,
    ):
        self.user_id = user_id
        self.events = events or EventBus()
        self._datastore = datastore
        self._resolver = resolver or TenantResolver(datastore, timeout=timeout)
        self._notifier = notifier or LogNotifier()
        self._locks = locks or MutationLocks()
        self._timeout = timeout

        self._tenant: Optional[TenantSnapshot] = None
        self._features: Tuple[FeatureSnapshot, ...] = ()
        self._loading = True
        self._resolution: Optional[TenantResolution] = None
        self._load_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # read accessors
    # ------------------------------------------------------------------

    @property
    def tenant(self) -> Optional[TenantSnapshot]:
        return self._tenant

    @property
    def features(self) -> Tuple[FeatureSnapshot, ...]:
        return self._features

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def resolution_status(self) -> Optional[ResolutionStatus]:
        return self._resolution.status if self._resolution else None

    def require_tenant(self) -> TenantSnapshot:
        """The loaded tenant, or the resolution error explaining why there is none"""
        if self._tenant is not None:
            return self._tenant
        if self._resolution is not None:
            self._resolution.raise_for_status()
        raise ResolutionNotFound(self.user_id)

    # ------------------------------------------------------------------
    # resolution
    # ------------------------------------------------------------------

    async def load(self) -> TenantResolution:
        """
        Resolve the session's tenant and install the result.

        NOT_FOUND clears the snapshot. FAILED keeps the last-known-good snapshot.
        """
        resolution = await self._resolver.resolve(self.user_id)
        self._resolution = resolution

        if resolution.status == ResolutionStatus.RESOLVED:
            await self._install(resolution.tenant, tuple(resolution.features))
        elif resolution.status == ResolutionStatus.NOT_FOUND:
            await self._install(None, ())

        self._loading = False
        return resolution

    async def ensure_loaded(self) -> TenantResolution:
        """First call resolves; concurrent and later callers share that result"""
        if self._load_task is None:
            self._load_task = asyncio.ensure_future(self.load())
        return await asyncio.shield(self._load_task)

    async def refresh(self) -> TenantResolution:
        self._load_task = asyncio.ensure_future(self.load())
        return await asyncio.shield(self._load_task)

    async def _install(
        self,
        tenant: Optional[TenantSnapshot],
        features: Tuple[FeatureSnapshot, ...],
    ) -> None:
        previous = self._tenant
        self._tenant, self._features = tenant, features
        if tenant is not previous:
            await self.events.publish(
                TenantChanged(tenant, previous_tenant_id=previous.id if previous else None)
            )

    # ------------------------------------------------------------------
    # mutations
    # ------------------------------------------------------------------

    async def _call(self, coro):
        return await asyncio.wait_for(coro, timeout=self._timeout)

    async def update_tenant(
        self,
        changes: Union[TenantUpdate, Mapping[str, Any]],
        notifier: Optional[Notifier] = None,
    ) -> TenantSnapshot:
        """
        Send only the given fields to the data store, then merge them over the
        current snapshot. Mutations on one tenant run one at a time.
        """
        notifier = notifier or self._notifier
        if self._tenant is None:
            raise NoTenantError()

        update = changes if isinstance(changes, TenantUpdate) else TenantUpdate(**changes)
        payload = update.changes()
        if not payload:
            return self._tenant

        async with self._locks.for_tenant(self._tenant.id):
            current = self._tenant
            try:
                row = await self._call(self._datastore.update_tenant(current.id, payload))
            except (DataStoreError, asyncio.TimeoutError) as e:
                logger.error("tenant_update_failed", tenant_id=str(current.id), error=str(e) or type(e).__name__)
                failure(notifier, "Update failed", "Failed to update settings. Please try again.")
                raise UpdateError("Failed to update tenant settings", e) from e

            merged = current.model_copy(update={**payload, "updated_at": row.updated_at})
            await self._install(merged, self._features)

        logger.info("tenant_updated", tenant_id=str(merged.id), fields=sorted(payload))
        success(notifier, "Settings updated", "Your school settings have been updated successfully.")
        return merged

    async def toggle_feature(
        self,
        key: Union[FeatureKey, str],
        enabled: bool,
        notifier: Optional[Notifier] = None,
    ) -> FeatureSnapshot:
        """
        Upsert (tenant, key) with the new is_enabled and leave config alone.
        A catalog key without a row is provisioned by this call.
        """
        notifier = notifier or self._notifier
        feature_key = to_feature_key(key)
        if self._tenant is None:
            raise NoTenantError()

        tenant_id = self._tenant.id
        async with self._locks.for_tenant(tenant_id):
            try:
                row, created = await self._call(
                    self._datastore.upsert_feature(tenant_id, feature_key.value, enabled)
                )
            except (DataStoreError, asyncio.TimeoutError) as e:
                logger.error(
                    "feature_toggle_failed",
                    tenant_id=str(tenant_id),
                    feature_key=feature_key.value,
                    error=str(e) or type(e).__name__,
                )
                failure(notifier, "Update failed", "Failed to update feature. Please try again.")
                raise UpdateError(f"Failed to toggle {feature_key.value}", e) from e

            features = list(self._features)
            for index, existing in enumerate(features):
                if existing.feature_key == feature_key.value:
                    updated = existing.model_copy(update={"is_enabled": enabled})
                    features[index] = updated
                    break
            else:
                updated = feature_snapshot(row)
                features.append(updated)
            self._features = tuple(features)

        if created:
            logger.info("feature_implicitly_provisioned", tenant_id=str(tenant_id), feature_key=feature_key.value)
        logger.info("feature_toggled", tenant_id=str(tenant_id), feature_key=feature_key.value, is_enabled=enabled)

        label = feature_label(feature_key)
        state = "enabled" if enabled else "disabled"
        success(notifier, f"Feature {state}", f"{label} has been {state}.")
        await self.events.publish(FeatureToggled(tenant_id, feature_key.value, enabled, provisioned=created))
        return updated

    def close(self) -> None:
        self.events.clear_subscribers()
        if self._load_task is not None and not self._load_task.done():
            self._load_task.cancel()


@dataclass
class TenantContext:
    """Everything a session's UI surfaces read tenant state through"""
    store: TenantStore
    flags: FeatureFlagEngine
    theme: ThemeResolver

    @property
    def user_id(self) -> uuid.UUID:
        return self.store.user_id


class TenantStoreRegistry:
    """
    Owns one TenantContext per session user for the life of the process.

    Stores are created on first use and torn down by end_session(); nothing is
    pushed between sessions, other sessions see changes after refresh().
    """

    def __init__(self, datastore, timeout: Optional[float] = None):
        self._datastore = datastore
        self._timeout = timeout
        self._locks = MutationLocks()
        self._contexts: Dict[uuid.UUID, TenantContext] = {}

    def __contains__(self, user_id: uuid.UUID) -> bool:
        return user_id in self._contexts

    def __len__(self) -> int:
        return len(self._contexts)

    def context_for(self, user_id: uuid.UUID) -> TenantContext:
        context = self._contexts.get(user_id)
        if context is None:
            store = TenantStore(
                user_id,
                self._datastore,
                locks=self._locks,
                timeout=self._timeout,
            )
            theme = ThemeResolver(PresentationSurface())
            theme.bind(store.events)
            AuditLog().attach(store.events)
            context = TenantContext(store=store, flags=FeatureFlagEngine(store), theme=theme)
            self._contexts[user_id] = context
            logger.debug("tenant_session_opened", user_id=str(user_id))
        return context

    async def open_session(self, user_id: uuid.UUID) -> TenantContext:
        context = self.context_for(user_id)
        await context.store.ensure_loaded()
        return context

    def end_session(self, user_id: uuid.UUID) -> bool:
        context = self._contexts.pop(user_id, None)
        if context is None:
            return False
        context.theme.unbind()
        context.store.close()
        logger.debug("tenant_session_closed", user_id=str(user_id))
        return True

    def clear(self) -> None:
        for user_id in list(self._contexts):
            self.end_session(user_id)

"""
Tenant settings panel

Keeps an editable draft of the loaded tenant. Save submits the whole draft;
reset throws local edits away and re-reads whatever the store currently holds.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

import structlog

from schoolhub.core.config import get_settings
from schoolhub.core.errors import NoTenantError
from schoolhub.core.notifications import Notifier
from schoolhub.models.feature_catalog import FeatureKey
from schoolhub.schemas.tenant import FeatureSnapshot, FeatureState, TenantSnapshot, TenantUpdate
from schoolhub.services.feature_flags import FeatureFlagEngine

logger = structlog.get_logger(__name__)
settings = get_settings()

BASIC_INFO_FIELDS = ("name", "contact_email", "contact_phone", "address", "timezone", "language", "currency")
BRANDING_FIELDS = ("primary_color", "secondary_color", "accent_color", "font_family", "theme")
SEO_FIELDS = ("meta_title", "meta_description", "keywords")
PUBLICATION_FIELDS = ("is_published",)

DRAFT_FIELDS = BASIC_INFO_FIELDS + BRANDING_FIELDS + SEO_FIELDS + PUBLICATION_FIELDS


@dataclass(frozen=True)
class PublicationStatus:
    published: bool
    label: str
    description: str
    urls: Tuple[str, ...]


def publication_status(tenant: TenantSnapshot) -> PublicationStatus:
    """Live site addresses are only listed once the site is published"""
    if not tenant.is_published:
        return PublicationStatus(
            published=False,
            label="Unpublished",
            description="Your school website is in draft mode and only visible to logged-in users",
            urls=(),
        )

    urls = [f"https://{tenant.slug}.{settings.PUBLIC_SITE_DOMAIN}"]
    if tenant.custom_domain:
        urls.append(f"https://{tenant.custom_domain}")
    return PublicationStatus(
        published=True,
        label="Published",
        description="Your school website is live and visible to everyone",
        urls=tuple(urls),
    )


class SettingsPanel:
    def __init__(self, store, flags: Optional[FeatureFlagEngine] = None):
        self._store = store
        self._flags = flags or FeatureFlagEngine(store)
        self._draft: Dict[str, Any] = {}
        self._saving = False
        self.reset()

    @property
    def draft(self) -> Dict[str, Any]:
        return dict(self._draft)

    @property
    def saving(self) -> bool:
        return self._saving

    @property
    def is_dirty(self) -> bool:
        return self._draft != self._snapshot_values(self._store.tenant)

    @staticmethod
    def _snapshot_values(tenant: Optional[TenantSnapshot]) -> Dict[str, Any]:
        if tenant is None:
            return {}
        values = {name: getattr(tenant, name) for name in DRAFT_FIELDS}
        values["keywords"] = list(values["keywords"])
        return values

    def edit(self, **fields: Any) -> None:
        unknown = set(fields) - set(DRAFT_FIELDS)
        if unknown:
            raise ValueError(f"Fields not editable from settings: {sorted(unknown)}")
        if not self._draft:
            raise NoTenantError()
        self._draft.update(fields)

    def reset(self) -> None:
        """Discard local edits; re-read from the store, not the data store"""
        self._draft = self._snapshot_values(self._store.tenant)

    async def save(self, notifier: Optional[Notifier] = None) -> Optional[TenantSnapshot]:
        """
        Submit the full draft. Returns None without a request when a save is
        already in flight.
        """
        if self._saving:
            logger.info("settings_save_skipped", reason="in_flight")
            return None
        if not self._draft:
            raise NoTenantError()

        update = TenantUpdate(**self._draft)
        self._saving = True
        try:
            tenant = await self._store.update_tenant(update, notifier=notifier)
        finally:
            self._saving = False

        self.reset()
        return tenant

    async def toggle_feature(
        self,
        key: Union[FeatureKey, str],
        enabled: bool,
        notifier: Optional[Notifier] = None,
    ) -> FeatureSnapshot:
        return await self._store.toggle_feature(key, enabled, notifier=notifier)

    def features(self) -> List[FeatureState]:
        return self._flags.catalog()

    async def set_published(self, published: bool, notifier: Optional[Notifier] = None) -> TenantSnapshot:
        """
        Publish or unpublish the public site right away, outside Save. Other
        unsaved edits in the draft are kept.
        """
        tenant = await self._store.update_tenant(TenantUpdate(is_published=published), notifier=notifier)
        if self._draft:
            self._draft["is_published"] = tenant.is_published
        return tenant

    def publication(self) -> PublicationStatus:
        return publication_status(self._store.require_tenant())

"""
Tenant API endpoints
"""

from fastapi import APIRouter, Depends
from typing import List
import structlog

from schoolhub.core.dependencies import get_tenant_context, require_tenant_context
from schoolhub.core.notifications import CollectingNotifier
from schoolhub.schemas.tenant import (
    FeatureMutationResponse,
    FeatureState,
    FeatureToggle,
    MutationResponse,
    Notice,
    PublicationResponse,
    PublicationToggle,
    TenantContextResponse,
    TenantUpdate,
)
from schoolhub.services.settings_panel import publication_status
from schoolhub.services.tenant_store import TenantContext

logger = structlog.get_logger(__name__)
router = APIRouter()


def _context_response(context: TenantContext) -> TenantContextResponse:
    return TenantContextResponse(
        tenant=context.store.require_tenant(),
        features=list(context.store.features),
    )


@router.get("", response_model=TenantContextResponse)
async def get_tenant(context: TenantContext = Depends(require_tenant_context)):
    """Get the session's tenant and its feature rows"""
    return _context_response(context)


@router.post("/refresh", response_model=TenantContextResponse)
async def refresh_tenant(context: TenantContext = Depends(get_tenant_context)):
    """Re-resolve the session's tenant from the data store"""
    await context.store.refresh()
    return _context_response(context)


@router.patch("", response_model=MutationResponse)
async def update_tenant(
    tenant_update: TenantUpdate,
    context: TenantContext = Depends(require_tenant_context),
):
    """Update the given tenant fields"""
    notifier = CollectingNotifier()
    tenant = await context.store.update_tenant(tenant_update, notifier=notifier)
    return MutationResponse(tenant=tenant, notices=Notice.collect(notifier))


@router.get("/features", response_model=List[FeatureState])
async def list_features(context: TenantContext = Depends(require_tenant_context)):
    """Every catalog feature with its effective state"""
    return context.flags.catalog()


@router.put("/features/{feature_key}", response_model=FeatureMutationResponse)
async def toggle_feature(
    feature_key: str,
    toggle: FeatureToggle,
    context: TenantContext = Depends(require_tenant_context),
):
    """Enable or disable one feature"""
    notifier = CollectingNotifier()
    await context.store.toggle_feature(feature_key, toggle.is_enabled, notifier=notifier)
    return FeatureMutationResponse(
        feature=context.flags.state(feature_key),
        notices=Notice.collect(notifier),
    )


@router.get("/publication", response_model=PublicationResponse)
async def get_publication(context: TenantContext = Depends(require_tenant_context)):
    """Whether the public school site is live, and where"""
    status = publication_status(context.store.require_tenant())
    return PublicationResponse(
        published=status.published,
        label=status.label,
        description=status.description,
        urls=list(status.urls),
    )


@router.put("/publication", response_model=MutationResponse)
async def set_publication(
    toggle: PublicationToggle,
    context: TenantContext = Depends(require_tenant_context),
):
    """Publish or unpublish the public school site"""
    notifier = CollectingNotifier()
    tenant = await context.store.update_tenant(
        TenantUpdate(is_published=toggle.is_published), notifier=notifier
    )
    return MutationResponse(tenant=tenant, notices=Notice.collect(notifier))

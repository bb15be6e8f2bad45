"""
Onboarding and session API endpoints
"""

from fastapi import APIRouter, Depends, status
import uuid
import structlog

from schoolhub.core.config import get_settings
from schoolhub.core.dependencies import (
    get_current_user_id,
    get_datastore,
    get_registry,
    get_tenant_context,
)
from schoolhub.core.errors import AlreadyOnboardedError
from schoolhub.core.notifications import CollectingNotifier
from schoolhub.schemas.session import SessionEndResponse
from schoolhub.schemas.tenant import MutationResponse, Notice, OnboardingData
from schoolhub.services.datastore import TenantDataStore
from schoolhub.services.onboarding import OnboardingStep, OnboardingWizard
from schoolhub.services.tenant_resolver import ResolutionStatus
from schoolhub.services.tenant_store import TenantContext, TenantStoreRegistry

logger = structlog.get_logger(__name__)
settings = get_settings()
router = APIRouter()


@router.post("/onboarding", response_model=MutationResponse, status_code=status.HTTP_201_CREATED)
async def complete_onboarding(
    data: OnboardingData,
    user_id: uuid.UUID = Depends(get_current_user_id),
    context: TenantContext = Depends(get_tenant_context),
    datastore: TenantDataStore = Depends(get_datastore),
):
    """Walk the wizard over the submitted draft and create the tenant"""
    if context.store.resolution_status == ResolutionStatus.FAILED:
        # A failed lookup is not proof the user has no school
        context.store.require_tenant()
    if context.store.tenant is not None:
        raise AlreadyOnboardedError(user_id)

    wizard = OnboardingWizard(data)
    while wizard.step < OnboardingStep.FEATURES:
        wizard.next_step()

    notifier = CollectingNotifier()
    tenant = await wizard.complete(
        datastore,
        user_id,
        store=context.store,
        notifier=notifier,
        timeout=settings.MUTATION_TIMEOUT_SECONDS,
    )
    return MutationResponse(tenant=tenant, notices=Notice.collect(notifier))


@router.post("/session/end", response_model=SessionEndResponse)
async def end_session(
    user_id: uuid.UUID = Depends(get_current_user_id),
    registry: TenantStoreRegistry = Depends(get_registry),
):
    """Drop the session's tenant store"""
    return SessionEndResponse(ended=registry.end_session(user_id))

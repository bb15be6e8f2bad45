"""
Theme API endpoints
"""

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from schoolhub.core.dependencies import require_tenant_context
from schoolhub.schemas.tenant import ThemeResponse
from schoolhub.services.tenant_store import TenantContext
from schoolhub.services.theme import site_theme_config

router = APIRouter()


@router.get("/theme", response_model=ThemeResponse)
async def get_theme(context: TenantContext = Depends(require_tenant_context)):
    """Presentation variables currently applied for the session's tenant"""
    tenant = context.store.require_tenant()
    surface = context.theme.surface
    return ThemeResponse(
        variables=surface.variables,
        font_family=surface.document_font,
        site_theme=tenant.theme,
        site_theme_config=site_theme_config(tenant.theme).to_dict(),
    )


@router.get("/theme.css", response_class=PlainTextResponse)
async def get_theme_css(context: TenantContext = Depends(require_tenant_context)):
    return PlainTextResponse(context.theme.surface.to_css(), media_type="text/css")

"""
Authentication and tenant-context dependencies for FastAPI
"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import uuid
import structlog

from schoolhub.core.auth import session_user_id
from schoolhub.services.datastore import TenantDataStore
from schoolhub.services.tenant_store import TenantContext, TenantStoreRegistry

logger = structlog.get_logger(__name__)
security = HTTPBearer()


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> uuid.UUID:
    """Get the session user ID from the JWT token"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    user_id = session_user_id(credentials.credentials)
    if user_id is None:
        raise credentials_exception

    structlog.contextvars.bind_contextvars(user_id=str(user_id))
    return user_id


def get_registry(request: Request) -> TenantStoreRegistry:
    return request.app.state.registry


def get_datastore(request: Request) -> TenantDataStore:
    return request.app.state.datastore


async def get_tenant_context(
    user_id: uuid.UUID = Depends(get_current_user_id),
    registry: TenantStoreRegistry = Depends(get_registry),
) -> TenantContext:
    """The session's tenant context, resolved on first use"""
    return await registry.open_session(user_id)


async def require_tenant_context(
    context: TenantContext = Depends(get_tenant_context),
) -> TenantContext:
    """Like get_tenant_context, but a session without a tenant is an error"""
    context.store.require_tenant()
    return context

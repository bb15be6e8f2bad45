"""
Schemas module
"""

from schoolhub.schemas.session import SessionClaims, SessionEndResponse
from schoolhub.schemas.tenant import (
    FeatureSnapshot,
    OnboardingData,
    TenantSnapshot,
    TenantUpdate,
)

__all__ = [
    "SessionClaims",
    "SessionEndResponse",
    "FeatureSnapshot",
    "OnboardingData",
    "TenantSnapshot",
    "TenantUpdate",
]

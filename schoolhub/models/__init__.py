from schoolhub.models.tenant import Tenant, TenantStatus, TenantPlan, SiteTheme
from schoolhub.models.tenant_feature import TenantFeature
from schoolhub.models.profile import Profile
from schoolhub.models.feature_catalog import (
    FeatureKey,
    FEATURE_DEFAULTS,
    FEATURE_DESCRIPTIONS,
    FEATURE_PRESETS,
    ONBOARDING_FEATURES,
)

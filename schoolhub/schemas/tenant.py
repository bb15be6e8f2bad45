"""
Pydantic schemas for tenants, feature flags and onboarding
"""

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, validate_email
from typing import Any, Dict, List, Optional
from datetime import datetime
import re
import uuid

from schoolhub.core.config import get_settings
from schoolhub.models.feature_catalog import FEATURE_PRESETS, FeatureKey
from schoolhub.models.tenant import SiteTheme, TenantPlan, TenantStatus
from schoolhub.models.timestamps import as_utc

HEX_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")
SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def validate_hex_color(value: str) -> str:
    if not HEX_COLOR_RE.match(value or ""):
        raise ValueError("color must be a #RRGGBB hex string")
    return value


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _check_email(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    _, email = validate_email(value.strip())
    return email


# ============================================================================
# Snapshots held by the tenant store
# ============================================================================

class TenantSnapshot(BaseModel):
    """Immutable in-memory copy of a tenants row"""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: uuid.UUID
    slug: str
    name: str
    custom_domain: Optional[str] = None
    status: TenantStatus
    plan: TenantPlan
    logo_url: Optional[str] = None
    primary_color: str
    secondary_color: str
    accent_color: str
    font_family: str
    theme: SiteTheme = SiteTheme.MODERN
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    timezone: str
    language: str
    currency: str
    country: Optional[str] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    is_published: bool = False
    subscription_start: Optional[datetime] = None
    subscription_end: Optional[datetime] = None
    last_payment_date: Optional[datetime] = None
    onboarding_completed: bool = False
    created_at: datetime
    updated_at: datetime


class FeatureSnapshot(BaseModel):
    """Immutable in-memory copy of a tenant_features row"""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: uuid.UUID
    tenant_id: uuid.UUID
    feature_key: str
    is_enabled: bool
    config: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


# ============================================================================
# Mutations
# ============================================================================

# Columns declared NOT NULL on tenants; an explicit null is a client error
NON_NULLABLE_UPDATE_FIELDS = (
    "name",
    "status",
    "plan",
    "primary_color",
    "secondary_color",
    "accent_color",
    "font_family",
    "theme",
    "timezone",
    "language",
    "currency",
    "keywords",
    "is_published",
)


class TenantUpdate(BaseModel):
    """Partial tenant update; only fields that were set are written"""
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    custom_domain: Optional[str] = None
    status: Optional[TenantStatus] = None
    plan: Optional[TenantPlan] = None
    logo_url: Optional[str] = None
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    accent_color: Optional[str] = None
    font_family: Optional[str] = Field(default=None, min_length=1, max_length=100)
    theme: Optional[SiteTheme] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    timezone: Optional[str] = Field(default=None, min_length=1, max_length=64)
    language: Optional[str] = Field(default=None, min_length=1, max_length=16)
    currency: Optional[str] = Field(default=None, min_length=1, max_length=8)
    country: Optional[str] = Field(default=None, max_length=2)
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    keywords: Optional[List[str]] = None
    is_published: Optional[bool] = None
    subscription_start: Optional[datetime] = None
    subscription_end: Optional[datetime] = None

    @field_validator(*NON_NULLABLE_UPDATE_FIELDS, mode="before")
    @classmethod
    def reject_null(cls, v, info: ValidationInfo):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator("primary_color", "secondary_color", "accent_color")
    @classmethod
    def check_color(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return validate_hex_color(v)

    @field_validator("contact_email", mode="before")
    @classmethod
    def blank_email(cls, v):
        return _blank_to_none(v)

    @field_validator("contact_email")
    @classmethod
    def check_email(cls, v: Optional[str]) -> Optional[str]:
        return _check_email(v)

    @field_validator("keywords")
    @classmethod
    def clean_keywords(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return None
        return list(dict.fromkeys(word.strip() for word in v if word.strip()))

    @field_validator("subscription_start", "subscription_end")
    @classmethod
    def to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class FeatureToggle(BaseModel):
    is_enabled: bool


class PublicationToggle(BaseModel):
    is_published: bool


# ============================================================================
# Onboarding
# ============================================================================

def _default(name: str):
    return lambda: getattr(get_settings(), name)


class OnboardingData(BaseModel):
    """Everything the onboarding wizard collects"""
    model_config = ConfigDict(validate_assignment=True)

    # Step 1 - school info
    name: str = ""
    slug: str = ""
    contact_email: str = ""

    # Step 2 - contact and locale
    address: str = ""
    contact_phone: str = ""
    timezone: str = Field(default_factory=_default("DEFAULT_TIMEZONE"))
    country: str = Field(default_factory=_default("DEFAULT_COUNTRY"))
    language: str = Field(default_factory=_default("DEFAULT_LANGUAGE"))
    currency: str = Field(default_factory=_default("DEFAULT_CURRENCY"))

    # Step 3 - branding
    theme: SiteTheme = SiteTheme.MODERN
    primary_color: str = Field(default_factory=_default("DEFAULT_PRIMARY_COLOR"))
    secondary_color: str = Field(default_factory=_default("DEFAULT_SECONDARY_COLOR"))
    accent_color: str = Field(default_factory=_default("DEFAULT_ACCENT_COLOR"))
    font_family: str = Field(default_factory=_default("DEFAULT_FONT_FAMILY"))
    meta_title: str = ""
    meta_description: str = ""

    # Step 4 - features
    features: List[FeatureKey] = Field(default_factory=lambda: list(FEATURE_PRESETS["core"]))

    @field_validator("primary_color", "secondary_color", "accent_color")
    @classmethod
    def check_color(cls, v: str) -> str:
        return validate_hex_color(v)

    @field_validator("slug")
    @classmethod
    def check_slug(cls, v: str) -> str:
        if v and not SLUG_RE.match(v):
            raise ValueError("slug may only contain lowercase letters, digits and single hyphens")
        return v

    @field_validator("contact_email")
    @classmethod
    def check_email(cls, v: str) -> str:
        if not v:
            return v
        return _check_email(v)

    @field_validator("features")
    @classmethod
    def dedupe_features(cls, v: List[FeatureKey]) -> List[FeatureKey]:
        return list(dict.fromkeys(v))


# ============================================================================
# API responses
# ============================================================================

class FeatureState(BaseModel):
    feature_key: FeatureKey
    label: str
    description: str
    is_enabled: bool
    provisioned: bool
    config: Dict[str, Any] = Field(default_factory=dict)


class TenantContextResponse(BaseModel):
    tenant: TenantSnapshot
    features: List[FeatureSnapshot]


class ThemeResponse(BaseModel):
    variables: Dict[str, str]
    font_family: Optional[str] = None
    site_theme: SiteTheme
    site_theme_config: Dict[str, str]


class Notice(BaseModel):
    level: str
    title: str
    description: str

    @classmethod
    def collect(cls, notifier) -> List["Notice"]:
        return [
            cls(level=n.level.value, title=n.title, description=n.description)
            for n in notifier.notices
        ]


class PublicationResponse(BaseModel):
    published: bool
    label: str
    description: str
    urls: List[str] = Field(default_factory=list)


class MutationResponse(BaseModel):
    tenant: TenantSnapshot
    notices: List[Notice] = Field(default_factory=list)


class FeatureMutationResponse(BaseModel):
    feature: FeatureState
    notices: List[Notice] = Field(default_factory=list)

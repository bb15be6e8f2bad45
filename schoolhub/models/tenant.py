"""
Tenant model - one row per school
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, JSON
from datetime import datetime
from typing import List, Optional
from enum import Enum
import uuid

from schoolhub.models.timestamps import timestamp_column, utcnow


class TenantStatus(str, Enum):
    """Lifecycle status, governed outside the tenancy core"""
    ACTIVE = "active"
    SUSPENDED = "suspended"
    TRIAL = "trial"


class TenantPlan(str, Enum):
    """Subscription plan"""
    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class SiteTheme(str, Enum):
    """Layout theme of the public school site"""
    MODERN = "modern"
    MINIMAL = "minimal"
    CLASSIC = "classic"


class Tenant(SQLModel, table=True):
    """Tenant model for multi-tenant architecture"""

    __tablename__ = "tenants"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    slug: str = Field(
        unique=True,
        index=True,
        max_length=100,
        description="URL-safe unique identifier, immutable after creation"
    )
    name: str = Field(index=True, max_length=200)
    custom_domain: Optional[str] = Field(default=None, max_length=255)

    status: TenantStatus = Field(default=TenantStatus.TRIAL, index=True)
    plan: TenantPlan = Field(default=TenantPlan.BASIC)

    # Branding
    logo_url: Optional[str] = None
    primary_color: str = Field(default="#3b82f6", max_length=7)
    secondary_color: str = Field(default="#10b981", max_length=7)
    accent_color: str = Field(default="#f59e0b", max_length=7)
    font_family: str = Field(default="Inter", max_length=100)
    theme: SiteTheme = Field(default=SiteTheme.MODERN)

    # Contact
    contact_email: Optional[str] = Field(default=None, max_length=255)
    contact_phone: Optional[str] = Field(default=None, max_length=50)
    address: Optional[str] = None

    # Locale
    timezone: str = Field(default="Asia/Dhaka", max_length=64)
    language: str = Field(default="en", max_length=16)
    currency: str = Field(default="BDT", max_length=8)
    country: Optional[str] = Field(default=None, max_length=2)

    # SEO
    meta_title: Optional[str] = Field(default=None, max_length=200)
    meta_description: Optional[str] = None
    keywords: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    # Public site visibility
    is_published: bool = Field(default=False)

    # Subscription window
    subscription_start: Optional[datetime] = Field(default=None, sa_column=timestamp_column(nullable=True))
    subscription_end: Optional[datetime] = Field(default=None, sa_column=timestamp_column(nullable=True))
    last_payment_date: Optional[datetime] = Field(default=None, sa_column=timestamp_column(nullable=True))

    onboarding_completed: bool = Field(default=False)

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())
    updated_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())

"""
Tenant feature model - sparse per-tenant feature flags
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, JSON, UniqueConstraint
from datetime import datetime
from typing import Any, Dict
import uuid

from schoolhub.models.timestamps import timestamp_column, utcnow


class TenantFeature(SQLModel, table=True):
    """One row per (tenant, feature_key); a missing row means the feature is off"""

    __tablename__ = "tenant_features"
    __table_args__ = (
        UniqueConstraint("tenant_id", "feature_key", name="uq_tenant_features_tenant_key"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_id: uuid.UUID = Field(
        foreign_key="tenants.id",
        index=True,
        description="Tenant ID for multi-tenant isolation"
    )
    feature_key: str = Field(max_length=64, index=True)
    is_enabled: bool = Field(default=False)
    config: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())

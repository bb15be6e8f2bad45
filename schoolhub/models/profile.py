"""
Profile model - links an authenticated user to a tenant
"""

from sqlmodel import Field, SQLModel
from datetime import datetime
from typing import Optional
import uuid

from schoolhub.models.timestamps import timestamp_column, utcnow


class Profile(SQLModel, table=True):
    """User profile; tenant_id stays empty until onboarding attaches one"""

    __tablename__ = "profiles"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(unique=True, index=True)
    tenant_id: Optional[uuid.UUID] = Field(
        default=None,
        foreign_key="tenants.id",
        index=True,
        nullable=True
    )
    full_name: Optional[str] = Field(default=None, max_length=200)
    email: Optional[str] = Field(default=None, max_length=255)
    created_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())

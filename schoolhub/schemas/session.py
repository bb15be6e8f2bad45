"""
Pydantic schemas for session tokens and session lifecycle
"""

from pydantic import BaseModel, Field
from datetime import datetime, timezone
import uuid


class SessionClaims(BaseModel):
    """Claims carried by a session token"""
    sub: str = Field(..., description="Session user ID")
    exp: datetime = Field(..., description="Expiration time")
    iat: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Issued at")

    @property
    def user_id(self) -> uuid.UUID:
        return uuid.UUID(self.sub)


class SessionEndResponse(BaseModel):
    """Whether a tenant store was open for the session"""
    ended: bool

"""
Session tokens

A bearer JWT whose subject is the session user id. The tenant is never read
from a claim; it is always resolved from the user's profile.
"""

from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from typing import Any, Dict, Optional
import uuid
import structlog

from schoolhub.core.config import get_settings
from schoolhub.schemas.session import SessionClaims

logger = structlog.get_logger(__name__)
settings = get_settings()


def issue_session_token(user_id: uuid.UUID, ttl: Optional[timedelta] = None) -> str:
    issued_at = datetime.now(timezone.utc)
    if ttl is None:
        ttl = timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)

    claims = SessionClaims(sub=str(user_id), exp=issued_at + ttl, iat=issued_at)
    return jwt.encode(claims.model_dump(), settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def read_session_claims(token: str) -> Optional[Dict[str, Any]]:
    """Signature- and expiry-checked claims, or None"""
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.info("session_token_rejected", reason=str(e))
        return None


def session_user_id(token: str) -> Optional[uuid.UUID]:
    claims = read_session_claims(token)
    if claims is None:
        return None

    try:
        return SessionClaims(**claims).user_id
    except ValueError:
        logger.info("session_token_rejected", reason="subject is not a user id")
        return None

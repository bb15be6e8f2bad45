"""
Error taxonomy for tenant resolution, mutation and onboarding
"""

from typing import Optional
import uuid


class TenancyError(Exception):
    """Base class for tenancy core errors"""


class DataStoreError(TenancyError):
    """A call against the relational data store failed"""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        message = f"Data store operation '{operation}' failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class UniqueViolationError(DataStoreError):
    """A unique constraint rejected the write; constraint names the table.column when known"""

    def __init__(self, operation: str, cause: Optional[BaseException] = None, constraint: Optional[str] = None):
        self.constraint = constraint
        super().__init__(operation, cause)


class ProfileAttachedError(DataStoreError):
    """The user's profile already points at a tenant"""

    def __init__(self, user_id: uuid.UUID, tenant_id: uuid.UUID):
        self.user_id = user_id
        self.tenant_id = tenant_id
        super().__init__("onboard_tenant", LookupError(f"profile of user {user_id} already belongs to tenant {tenant_id}"))


class ResolutionNotFound(TenancyError):
    """The session user has no tenant; route to onboarding"""

    def __init__(self, user_id: uuid.UUID):
        self.user_id = user_id
        super().__init__(f"No tenant associated with user {user_id}")


class ResolutionFailed(TenancyError):
    """The tenant lookup itself failed; prompt a retry"""

    def __init__(self, user_id: uuid.UUID, reason: str):
        self.user_id = user_id
        self.reason = reason
        super().__init__(f"Tenant resolution failed for user {user_id}: {reason}")


class UpdateError(TenancyError):
    """A mutation against the data store failed; in-memory state is unchanged"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class NoTenantError(UpdateError):
    """Mutation attempted on a store with no tenant loaded"""

    def __init__(self):
        super().__init__("No tenant is loaded for this session")


class SlugConflictError(UpdateError):
    """Another tenant already owns the requested slug"""

    def __init__(self, slug: str, cause: Optional[BaseException] = None):
        self.slug = slug
        super().__init__(f"Slug '{slug}' is already taken", cause)


class AlreadyOnboardedError(UpdateError):
    """The session user already belongs to a school"""

    def __init__(self, user_id: uuid.UUID, cause: Optional[BaseException] = None):
        self.user_id = user_id
        super().__init__("This account already belongs to a school", cause)


class UnknownFeatureError(TenancyError, ValueError):
    """Feature key is not part of the catalog"""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Unknown feature key: {key}")


class OnboardingValidationError(TenancyError, ValueError):
    """The current onboarding step is missing required input"""

    def __init__(self, step, reason: str):
        self.step = step
        self.reason = reason
        super().__init__(f"Cannot leave step {step}: {reason}")

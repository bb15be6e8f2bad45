"""
School onboarding wizard

Four data-collecting steps followed by a terminal completion that creates the
tenant, attaches the session's profile and writes one feature row per catalog
entry as a single unit of work.
"""

from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple, Union
import asyncio
import re
import uuid

import structlog

from schoolhub.core.errors import (
    AlreadyOnboardedError,
    DataStoreError,
    OnboardingValidationError,
    ProfileAttachedError,
    SlugConflictError,
    UpdateError,
)
from schoolhub.core.events import TenantOnboarded
from schoolhub.core.notifications import LogNotifier, Notifier, failure, success
from schoolhub.models.feature_catalog import (
    FEATURE_PRESETS,
    ONBOARDING_FEATURES,
    FeatureKey,
    to_feature_key,
)
from schoolhub.models.tenant import TenantStatus
from schoolhub.schemas.tenant import OnboardingData, TenantSnapshot
from schoolhub.services.datastore import feature_flags_for
from schoolhub.services.tenant_resolver import tenant_snapshot

logger = structlog.get_logger(__name__)

_SLUG_SEPARATORS = re.compile(r"[^a-z0-9]+")

# Optional text columns stored as NULL rather than ""
_NULLABLE_FIELDS = ("contact_phone", "address", "country", "meta_description")


class OnboardingStep(int, Enum):
    INFO = 1
    CONTACT = 2
    BRANDING = 3
    FEATURES = 4
    COMPLETE = 5


def generate_slug(name: str) -> str:
    """'Green Valley High!' -> 'green-valley-high'"""
    return _SLUG_SEPARATORS.sub("-", (name or "").lower()).strip("-")


class OnboardingWizard:
    """Step state machine over an OnboardingData draft"""

    def __init__(
        self,
        data: Optional[OnboardingData] = None,
        catalog: Sequence[FeatureKey] = ONBOARDING_FEATURES,
    ):
        self.data = data or OnboardingData()
        self.catalog: Tuple[FeatureKey, ...] = tuple(catalog)
        self.step = OnboardingStep.INFO
        self.completing = False

    # ------------------------------------------------------------------
    # draft editing
    # ------------------------------------------------------------------

    def set_name(self, name: str) -> None:
        """
        Slug and meta title follow the name until the user edits them by hand.
        """
        previous = self.data.name
        if not self.data.slug or self.data.slug == generate_slug(previous):
            self.data.slug = generate_slug(name)
        if not self.data.meta_title or self.data.meta_title == previous:
            self.data.meta_title = name
        self.data.name = name

    def update(self, **fields: Any) -> None:
        if "name" in fields:
            self.set_name(fields.pop("name"))
        for key, value in fields.items():
            if key not in OnboardingData.model_fields:
                raise ValueError(f"Unknown onboarding field: {key}")
            setattr(self.data, key, value)

    def toggle_feature(self, key: Union[FeatureKey, str], checked: bool) -> None:
        feature_key = to_feature_key(key)
        if feature_key not in self.catalog:
            raise ValueError(f"{feature_key.value} is not offered during onboarding")
        selected = [f for f in self.data.features if f != feature_key]
        if checked:
            selected.append(feature_key)
        self.data.features = selected

    def apply_preset(self, name: str) -> None:
        try:
            preset = FEATURE_PRESETS[name]
        except KeyError:
            raise ValueError(f"Unknown feature preset: {name}") from None
        self.data.features = [key for key in preset if key in self.catalog]

    # ------------------------------------------------------------------
    # step transitions
    # ------------------------------------------------------------------

    def validate_step(self, step: OnboardingStep) -> Tuple[bool, str]:
        """Check whether the draft satisfies the given step's required fields"""
        if step == OnboardingStep.INFO:
            missing = [
                label
                for label, value in (
                    ("name", self.data.name.strip()),
                    ("slug", self.data.slug),
                    ("contact email", self.data.contact_email),
                )
                if not value
            ]
            if missing:
                return False, f"Missing required fields: {', '.join(missing)}"
            return True, "School info complete"

        if step in (OnboardingStep.CONTACT, OnboardingStep.BRANDING):
            return True, "No required fields"

        if step == OnboardingStep.FEATURES:
            if not self.data.features:
                return False, "Select at least one feature"
            return True, "Features selected"

        return False, "Onboarding is already complete"

    def can_advance(self) -> Tuple[bool, str]:
        if self.step >= OnboardingStep.FEATURES:
            return False, "Use complete() to finish onboarding"
        return self.validate_step(self.step)

    def next_step(self) -> OnboardingStep:
        can, reason = self.can_advance()
        if not can:
            raise OnboardingValidationError(self.step.value, reason)
        self.step = OnboardingStep(self.step + 1)
        return self.step

    def prev_step(self) -> OnboardingStep:
        if OnboardingStep.INFO < self.step < OnboardingStep.COMPLETE:
            self.step = OnboardingStep(self.step - 1)
        return self.step

    def can_complete(self) -> Tuple[bool, str]:
        if self.step != OnboardingStep.FEATURES:
            return False, "Onboarding is not on the features step"
        if self.completing:
            return False, "Onboarding is already being completed"
        for step in (OnboardingStep.INFO, OnboardingStep.FEATURES):
            ok, reason = self.validate_step(step)
            if not ok:
                return False, reason
        return True, "Can complete onboarding"

    # ------------------------------------------------------------------
    # completion
    # ------------------------------------------------------------------

    def tenant_fields(self) -> Dict[str, Any]:
        data = self.data
        fields: Dict[str, Any] = {
            "name": data.name.strip(),
            "slug": data.slug,
            "contact_email": data.contact_email,
            "contact_phone": data.contact_phone,
            "address": data.address,
            "country": data.country,
            "timezone": data.timezone,
            "language": data.language,
            "currency": data.currency,
            "primary_color": data.primary_color,
            "secondary_color": data.secondary_color,
            "accent_color": data.accent_color,
            "font_family": data.font_family,
            "theme": data.theme,
            "meta_title": data.meta_title or data.name.strip(),
            "meta_description": data.meta_description,
            "status": TenantStatus.TRIAL,
            "onboarding_completed": True,
        }
        for key in _NULLABLE_FIELDS:
            if not fields[key]:
                fields[key] = None
        return fields

    async def complete(
        self,
        datastore,
        user_id: uuid.UUID,
        store=None,
        notifier: Optional[Notifier] = None,
        timeout: Optional[float] = None,
    ) -> TenantSnapshot:
        """
        Create the tenant as one transaction.

        On failure nothing is persisted and the wizard stays on the features
        step. A taken slug raises SlugConflictError, a user who already has a
        school AlreadyOnboardedError, anything else UpdateError.
        When a store is given it is re-resolved so the session sees the tenant.
        """
        notifier = notifier or LogNotifier()
        can, reason = self.can_complete()
        if not can:
            raise OnboardingValidationError(self.step.value, reason)

        flags = feature_flags_for(self.catalog, self.data.features)
        self.completing = True
        try:
            row = await asyncio.wait_for(
                datastore.onboard_tenant(user_id, self.tenant_fields(), flags),
                timeout=timeout,
            )
        except (DataStoreError, asyncio.TimeoutError) as e:
            error, reason, notice = self._failure_for(user_id, e)
            log = logger.error if reason == "store_error" else logger.warning
            log("onboarding_rolled_back", user_id=str(user_id), slug=self.data.slug, reason=reason, error=str(e) or type(e).__name__)
            failure(notifier, "Setup failed", notice)
            raise error from e
        finally:
            self.completing = False

        self.step = OnboardingStep.COMPLETE
        tenant = tenant_snapshot(row)
        enabled = [key for key, on in flags.items() if on]
        logger.info("onboarding_completed", tenant_id=str(tenant.id), slug=tenant.slug, enabled_features=enabled)
        success(notifier, "School setup complete!", "Welcome to your new school management system.")

        if store is not None:
            await store.refresh()
            await store.events.publish(TenantOnboarded(tenant.id, tenant.slug, user_id, enabled))
        return tenant

    def _failure_for(self, user_id: uuid.UUID, error: BaseException) -> Tuple[UpdateError, str, str]:
        """The error to raise, a log reason and the user-facing notice"""
        constraint = getattr(error, "constraint", None)
        if isinstance(error, ProfileAttachedError) or constraint == "profiles.user_id":
            return AlreadyOnboardedError(user_id, error), "already_onboarded", "This account already belongs to a school."
        if constraint == "tenants.slug":
            slug = self.data.slug
            return SlugConflictError(slug, error), "slug_taken", f"The URL slug '{slug}' is already taken."
        return (
            UpdateError("Failed to complete onboarding", error),
            "store_error",
            "There was an error setting up your school. Please try again.",
        )

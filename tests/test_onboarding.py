"""
Tests for the onboarding wizard state machine and its completion
"""

import pytest
from sqlmodel import select
import uuid

from schoolhub.core.errors import (
    AlreadyOnboardedError,
    DataStoreError,
    OnboardingValidationError,
    SlugConflictError,
    UniqueViolationError,
    UpdateError,
)
from schoolhub.core.events import TenantOnboarded
from schoolhub.core.notifications import CollectingNotifier, NoticeLevel
from schoolhub.models import FeatureKey, Profile, Tenant, TenantFeature, TenantStatus
from schoolhub.services.onboarding import OnboardingStep, OnboardingWizard, generate_slug
from schoolhub.services.tenant_store import TenantStore


def filled_wizard(slug: str = "green-valley-high") -> OnboardingWizard:
    wizard = OnboardingWizard()
    wizard.update(name="Green Valley High", slug=slug, contact_email="a@b.com")
    return wizard


def advance_to_features(wizard: OnboardingWizard) -> None:
    while wizard.step < OnboardingStep.FEATURES:
        wizard.next_step()


class TestSlug:
    def test_generate_slug(self):
        assert generate_slug("Green Valley High") == "green-valley-high"
        assert generate_slug("  St. Mary's School!! ") == "st-mary-s-school"
        assert generate_slug("") == ""

    def test_name_drives_slug_and_meta_title(self):
        wizard = OnboardingWizard()
        wizard.set_name("Green Valley")
        wizard.set_name("Green Valley High")

        assert wizard.data.slug == "green-valley-high"
        assert wizard.data.meta_title == "Green Valley High"

    def test_manual_slug_is_kept(self):
        wizard = OnboardingWizard()
        wizard.set_name("Green Valley")
        wizard.update(slug="gvh", meta_title="GVH Online")
        wizard.set_name("Green Valley High")

        assert wizard.data.slug == "gvh"
        assert wizard.data.meta_title == "GVH Online"

    def test_invalid_slug_rejected(self):
        wizard = OnboardingWizard()
        with pytest.raises(ValueError):
            wizard.update(slug="Green Valley")


class TestStepGating:
    def test_starts_on_info(self):
        assert OnboardingWizard().step == OnboardingStep.INFO

    def test_cannot_leave_info_without_name(self):
        wizard = OnboardingWizard()
        wizard.update(slug="green-valley-high", contact_email="a@b.com")

        with pytest.raises(OnboardingValidationError) as exc_info:
            wizard.next_step()

        assert wizard.step == OnboardingStep.INFO
        assert "name" in exc_info.value.reason

    def test_info_complete_advances_to_contact(self):
        wizard = filled_wizard()

        assert wizard.can_advance() == (True, "School info complete")
        assert wizard.next_step() == OnboardingStep.CONTACT

    def test_contact_and_branding_have_no_required_fields(self):
        wizard = filled_wizard()
        wizard.next_step()
        wizard.update(address="", contact_phone="")

        assert wizard.next_step() == OnboardingStep.BRANDING
        assert wizard.next_step() == OnboardingStep.FEATURES

    def test_features_step_cannot_next(self):
        wizard = filled_wizard()
        advance_to_features(wizard)

        with pytest.raises(OnboardingValidationError):
            wizard.next_step()
        assert wizard.step == OnboardingStep.FEATURES

    def test_back_is_always_allowed(self):
        wizard = filled_wizard()
        advance_to_features(wizard)
        wizard.update(name="  ")

        assert wizard.prev_step() == OnboardingStep.BRANDING
        assert wizard.prev_step() == OnboardingStep.CONTACT
        assert wizard.prev_step() == OnboardingStep.INFO
        assert wizard.prev_step() == OnboardingStep.INFO

    def test_at_least_one_feature(self):
        wizard = filled_wizard()
        advance_to_features(wizard)
        wizard.apply_preset("none")

        can, reason = wizard.can_complete()
        assert can is False
        assert reason == "Select at least one feature"

    def test_default_selection_is_core_preset(self):
        wizard = OnboardingWizard()
        assert wizard.data.features == [
            FeatureKey.ATTENDANCE_MANAGEMENT,
            FeatureKey.FEE_MANAGEMENT,
            FeatureKey.STUDENT_PORTAL,
            FeatureKey.TEACHER_PORTAL,
        ]

    def test_toggle_feature(self):
        wizard = OnboardingWizard()
        wizard.apply_preset("none")
        wizard.toggle_feature("onlineExams", True)
        wizard.toggle_feature("onlineExams", True)
        wizard.toggle_feature(FeatureKey.REPORT_CARDS, True)
        wizard.toggle_feature("onlineExams", False)

        assert wizard.data.features == [FeatureKey.REPORT_CARDS]

    def test_feature_outside_catalog(self):
        wizard = OnboardingWizard()
        with pytest.raises(ValueError):
            wizard.toggle_feature("hostelManagement", True)

    def test_branding_defaults(self):
        data = OnboardingWizard().data
        assert data.primary_color == "#3b82f6"
        assert data.font_family == "Inter"
        assert data.timezone == "Asia/Dhaka"


class TestCompletion:
    @pytest.mark.asyncio
    async def test_end_to_end(self, datastore, session_factory, make_profile):
        user_id = uuid.uuid4()
        await make_profile(user_id, email="a@b.com")
        store = TenantStore(user_id, datastore)
        await store.load()
        assert store.tenant is None

        onboarded = []

        async def on_onboarded(event):
            onboarded.append(event)

        store.events.subscribe(TenantOnboarded.__name__, on_onboarded)

        wizard = filled_wizard()
        advance_to_features(wizard)
        wizard.apply_preset("none")
        wizard.toggle_feature("attendanceManagement", True)
        wizard.toggle_feature("feeManagement", True)
        notifier = CollectingNotifier()

        tenant = await wizard.complete(datastore, user_id, store=store, notifier=notifier)

        assert wizard.step == OnboardingStep.COMPLETE
        assert tenant.slug == "green-valley-high"
        assert tenant.status == TenantStatus.TRIAL
        assert tenant.onboarding_completed is True
        assert tenant.meta_title == "Green Valley High"

        rows = await datastore.list_features(tenant.id)
        assert len(rows) == 10
        enabled = {row.feature_key for row in rows if row.is_enabled}
        assert enabled == {"attendanceManagement", "feeManagement"}

        assert await datastore.get_profile_tenant_id(user_id) == tenant.id
        assert store.tenant.id == tenant.id
        assert len(store.features) == 10
        assert onboarded[0].enabled_features == ["attendanceManagement", "feeManagement"]
        assert notifier.notices[0].title == "School setup complete!"

    @pytest.mark.asyncio
    async def test_creates_missing_profile(self, datastore):
        user_id = uuid.uuid4()
        wizard = filled_wizard()
        advance_to_features(wizard)

        tenant = await wizard.complete(datastore, user_id)

        assert await datastore.get_profile_tenant_id(user_id) == tenant.id

    @pytest.mark.asyncio
    async def test_duplicate_slug(self, datastore, session_factory, make_profile):
        first = filled_wizard()
        advance_to_features(first)
        await first.complete(datastore, uuid.uuid4())

        other_user = uuid.uuid4()
        await make_profile(other_user)
        second = filled_wizard()
        advance_to_features(second)
        notifier = CollectingNotifier()

        with pytest.raises(SlugConflictError) as exc_info:
            await second.complete(datastore, other_user, notifier=notifier)

        assert isinstance(exc_info.value, UpdateError)
        assert second.step == OnboardingStep.FEATURES
        assert notifier.notices[0].level == NoticeLevel.ERROR
        assert await datastore.get_profile_tenant_id(other_user) is None

        async with session_factory() as session:
            tenants = (await session.exec(select(Tenant))).all()
        assert len(tenants) == 1

    @pytest.mark.asyncio
    async def test_transport_failure(self, failing_datastore):
        wizard = filled_wizard()
        advance_to_features(wizard)
        notifier = CollectingNotifier()

        with pytest.raises(UpdateError) as exc_info:
            await wizard.complete(failing_datastore, uuid.uuid4(), notifier=notifier)

        assert not isinstance(exc_info.value, SlugConflictError)
        assert wizard.step == OnboardingStep.FEATURES
        assert wizard.completing is False
        assert notifier.notices[0].title == "Setup failed"

    @pytest.mark.asyncio
    async def test_complete_before_features_step(self, datastore):
        wizard = filled_wizard()

        with pytest.raises(OnboardingValidationError):
            await wizard.complete(datastore, uuid.uuid4())


@pytest.mark.asyncio
async def test_failed_feature_write_rolls_back_tenant(engine, datastore, session_factory, make_profile):
    """A failure after the tenant insert must not leave an orphan tenant"""
    user_id = uuid.uuid4()
    await make_profile(user_id)

    async with engine.begin() as conn:
        await conn.exec_driver_sql(
            "CREATE TRIGGER reject_features BEFORE INSERT ON tenant_features "
            "BEGIN SELECT RAISE(ABORT, 'feature writes disabled'); END"
        )

    with pytest.raises(DataStoreError):
        await datastore.onboard_tenant(
            user_id,
            {"name": "Orphan High", "slug": "orphan-high"},
            {"attendanceManagement": True},
        )

    async with session_factory() as session:
        assert (await session.exec(select(Tenant))).all() == []
        assert (await session.exec(select(TenantFeature))).all() == []
        profile = (await session.exec(select(Profile).where(Profile.user_id == user_id))).first()
    assert profile.tenant_id is None


@pytest.mark.asyncio
async def test_second_onboarding_keeps_first_school(datastore, session_factory):
    user_id = uuid.uuid4()
    first = filled_wizard("school-one")
    advance_to_features(first)
    tenant = await first.complete(datastore, user_id)

    second = filled_wizard("school-two")
    advance_to_features(second)
    notifier = CollectingNotifier()

    with pytest.raises(AlreadyOnboardedError) as exc_info:
        await second.complete(datastore, user_id, notifier=notifier)

    assert isinstance(exc_info.value, UpdateError)
    assert second.step == OnboardingStep.FEATURES
    assert notifier.notices[0].description == "This account already belongs to a school."
    assert await datastore.get_profile_tenant_id(user_id) == tenant.id

    async with session_factory() as session:
        slugs = [row.slug for row in (await session.exec(select(Tenant))).all()]
        feature_rows = (await session.exec(select(TenantFeature))).all()
    assert slugs == ["school-one"]
    assert len(feature_rows) == 10


class ProfileRaceDataStore:
    """Another request created the user's profile first"""

    async def onboard_tenant(self, user_id, tenant_fields, feature_flags):
        raise UniqueViolationError("onboard_tenant", constraint="profiles.user_id")


@pytest.mark.asyncio
async def test_concurrent_profile_insert_is_already_onboarded():
    wizard = filled_wizard()
    advance_to_features(wizard)

    with pytest.raises(AlreadyOnboardedError):
        await wizard.complete(ProfileRaceDataStore(), uuid.uuid4())


@pytest.mark.asyncio
async def test_non_slug_constraint_failure_is_not_a_slug_conflict(engine, datastore, session_factory):
    async with engine.begin() as conn:
        await conn.exec_driver_sql(
            "CREATE TRIGGER reject_features BEFORE INSERT ON tenant_features "
            "BEGIN SELECT RAISE(ABORT, 'feature writes disabled'); END"
        )

    wizard = filled_wizard()
    advance_to_features(wizard)
    notifier = CollectingNotifier()

    with pytest.raises(UpdateError) as exc_info:
        await wizard.complete(datastore, uuid.uuid4(), notifier=notifier)

    assert not isinstance(exc_info.value, SlugConflictError)
    assert "already taken" not in notifier.notices[0].description
    async with session_factory() as session:
        assert (await session.exec(select(Tenant))).all() == []

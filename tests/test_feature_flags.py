"""
Unit tests for the feature catalog and flag evaluation
"""

import pytest
from datetime import datetime, timezone
from types import SimpleNamespace
import uuid

from schoolhub.core.errors import UnknownFeatureError
from schoolhub.models.feature_catalog import (
    FEATURE_DEFAULTS,
    FEATURE_DESCRIPTIONS,
    FEATURE_PRESETS,
    ONBOARDING_FEATURES,
    FeatureKey,
    feature_label,
    to_feature_key,
)
from schoolhub.schemas.tenant import FeatureSnapshot
from schoolhub.services.feature_flags import FeatureFlagEngine, parse_feature_config

TENANT_ID = uuid.uuid4()


def feature(key: str, enabled: bool, config=None) -> FeatureSnapshot:
    return FeatureSnapshot(
        id=uuid.uuid4(),
        tenant_id=TENANT_ID,
        feature_key=key,
        is_enabled=enabled,
        config=config or {},
        created_at=datetime.now(timezone.utc),
    )


class TestCatalog:
    def test_every_key_has_default_and_description(self):
        assert set(FEATURE_DEFAULTS) == set(FeatureKey)
        assert set(FEATURE_DESCRIPTIONS) == set(FeatureKey)

    def test_defaults_deny(self):
        assert not any(FEATURE_DEFAULTS.values())

    def test_onboarding_catalog(self):
        assert len(ONBOARDING_FEATURES) == 10
        assert FeatureKey.HOSTEL_MANAGEMENT not in ONBOARDING_FEATURES
        assert set(FEATURE_PRESETS["core"]) <= set(ONBOARDING_FEATURES)

    def test_to_feature_key(self):
        assert to_feature_key("onlineExams") is FeatureKey.ONLINE_EXAMS
        assert to_feature_key(FeatureKey.ONLINE_EXAMS) is FeatureKey.ONLINE_EXAMS

    def test_unknown_key_rejected(self):
        with pytest.raises(UnknownFeatureError) as exc_info:
            to_feature_key("quidditchLeague")
        assert exc_info.value.key == "quidditchLeague"
        assert isinstance(exc_info.value, ValueError)

    def test_feature_label(self):
        assert feature_label("attendanceManagement") == "Attendance Management"
        assert feature_label(FeatureKey.HEALTH_RECORDS) == "Health Records"


class TestParseFeatureConfig:
    def test_dict_passthrough(self):
        assert parse_feature_config({"max_books": 3}) == {"max_books": 3}

    def test_json_text(self):
        assert parse_feature_config('{"max_books": 3}') == {"max_books": 3}

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", "42", [1, 2], 7, True])
    def test_malformed_becomes_empty(self, raw):
        assert parse_feature_config(raw, "libraryManagement") == {}

    def test_none_is_empty(self):
        assert parse_feature_config(None) == {}


class TestFeatureFlagEngine:
    def test_default_deny_without_rows(self):
        engine = FeatureFlagEngine(SimpleNamespace(features=()))

        for key in FeatureKey:
            assert engine.is_enabled(key) is False
            assert engine.get_config(key) == {}
            assert engine.is_provisioned(key) is False

    def test_rows_decide(self):
        store = SimpleNamespace(features=(
            feature("attendanceManagement", True, {"grace_minutes": 10}),
            feature("feeManagement", False),
        ))
        engine = FeatureFlagEngine(store)

        assert engine.is_enabled("attendanceManagement") is True
        assert engine.get_config("attendanceManagement") == {"grace_minutes": 10}
        assert engine.is_enabled(FeatureKey.FEE_MANAGEMENT) is False
        assert engine.is_provisioned("feeManagement") is True
        assert engine.is_enabled("onlineExams") is False
        assert engine.enabled_features() == [FeatureKey.ATTENDANCE_MANAGEMENT]

    def test_reads_current_snapshot(self):
        store = SimpleNamespace(features=())
        engine = FeatureFlagEngine(store)
        assert engine.is_enabled("reportCards") is False

        store.features = (feature("reportCards", True),)
        assert engine.is_enabled("reportCards") is True

    def test_unknown_key(self):
        engine = FeatureFlagEngine(SimpleNamespace(features=()))
        with pytest.raises(UnknownFeatureError):
            engine.is_enabled("quidditchLeague")
        with pytest.raises(UnknownFeatureError):
            engine.get_config("quidditchLeague")

    def test_catalog_states(self):
        engine = FeatureFlagEngine(SimpleNamespace(features=(feature("parentPortal", True),)))

        states = {state.feature_key: state for state in engine.catalog()}
        assert len(states) == len(FeatureKey)
        parent = states[FeatureKey.PARENT_PORTAL]
        assert parent.is_enabled and parent.provisioned
        assert parent.label == "Parent Portal"
        hostel = states[FeatureKey.HOSTEL_MANAGEMENT]
        assert not hostel.is_enabled and not hostel.provisioned
        assert hostel.description == FEATURE_DESCRIPTIONS[FeatureKey.HOSTEL_MANAGEMENT]

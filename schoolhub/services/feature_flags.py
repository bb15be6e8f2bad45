"""
Feature flag evaluation against the tenant store snapshot
"""

from typing import Any, Dict, List, Optional, Union
import json

import structlog

from schoolhub.models.feature_catalog import (
    FEATURE_DEFAULTS,
    FeatureKey,
    describe_feature,
    feature_label,
    to_feature_key,
)
from schoolhub.schemas.tenant import FeatureSnapshot, FeatureState

logger = structlog.get_logger(__name__)


def parse_feature_config(raw: Any, feature_key: Optional[str] = None) -> Dict[str, Any]:
    """
    Normalize a stored config value into a dict.

    Config is advisory metadata: anything that is not a JSON object (a scalar,
    an array, unparsable text) is logged and replaced with {}.
    """
    if raw is None:
        return {}
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("malformed_feature_config", feature_key=feature_key, reason="invalid_json")
            return {}
    if not isinstance(raw, dict):
        logger.warning(
            "malformed_feature_config",
            feature_key=feature_key,
            reason=f"expected object, got {type(raw).__name__}",
        )
        return {}
    return raw


class FeatureFlagEngine:
    """
    Answers "is feature X enabled" and "what is feature X's config".

    Reads whatever snapshot the store currently holds; never fetches.
    """

    def __init__(self, store):
        self._store = store

    def _find(self, key: FeatureKey) -> Optional[FeatureSnapshot]:
        for feature in self._store.features:
            if feature.feature_key == key.value:
                return feature
        return None

    def is_enabled(self, key: Union[FeatureKey, str]) -> bool:
        feature_key = to_feature_key(key)
        feature = self._find(feature_key)
        if feature is None:
            return FEATURE_DEFAULTS[feature_key]
        return feature.is_enabled

    def get_config(self, key: Union[FeatureKey, str]) -> Dict[str, Any]:
        feature_key = to_feature_key(key)
        feature = self._find(feature_key)
        if feature is None:
            return {}
        return parse_feature_config(feature.config, feature_key.value)

    def is_provisioned(self, key: Union[FeatureKey, str]) -> bool:
        return self._find(to_feature_key(key)) is not None

    def enabled_features(self) -> List[FeatureKey]:
        return [key for key in FeatureKey if self.is_enabled(key)]

    def state(self, key: Union[FeatureKey, str]) -> FeatureState:
        feature_key = to_feature_key(key)
        return FeatureState(
            feature_key=feature_key,
            label=feature_label(feature_key),
            description=describe_feature(feature_key),
            is_enabled=self.is_enabled(feature_key),
            provisioned=self.is_provisioned(feature_key),
            config=self.get_config(feature_key),
        )

    def catalog(self) -> List[FeatureState]:
        """Every catalog entry with its effective state"""
        return [self.state(key) for key in FeatureKey]

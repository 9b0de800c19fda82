import dataclasses
import math

import numpy as np
import pytest

from responsive_optimizer.data_processing import FeatureExtractor
from responsive_optimizer.data_processing.feature_extractor import five_number_summary, pad
from responsive_optimizer.types import Breakpoint, ComponentContext, PerformanceMetrics


class TestFeatureExtractor:
    """Feature extraction and vector layout."""

    @pytest.fixture
    def extractor(self, settings):
        return FeatureExtractor(settings)

    def test_vector_has_fixed_dimension_and_is_finite(self, extractor, config, usage_data):
        vector = extractor.features_to_vector(extractor.extract_features(config, usage_data))
        assert vector.shape == (128,)
        assert np.all(np.isfinite(vector))

    def test_configuration_features(self, extractor, config, usage_data):
        features = extractor.extract_features(config, usage_data).config
        assert features.breakpoint_count == 3
        assert features.breakpoint_ratios[:3] == pytest.approx((0.4, 1024 / 1920, 1.0))
        assert features.breakpoint_ratios[3:] == (1.0,) * 5
        assert features.token_complexity == 24
        assert features.origin_distribution["width"] == 1.0
        assert sum(features.origin_distribution.values()) == 1.0

    def test_breakpoint_ratios_are_truncated(self, extractor, config_factory):
        breakpoints = [Breakpoint(f"bp{i}", 100 * (i + 1), 100) for i in range(10)]
        features = extractor.extract_features(config_factory(breakpoints=breakpoints), []).config
        assert features.breakpoint_count == 10
        assert len(features.breakpoint_ratios) == 8

    def test_usage_features(self, extractor, config, usage_data):
        usage = extractor.extract_features(config, usage_data).usage
        assert usage.common_values == (14.0, 16.0, 18.0, 44.0, 48.0, 52.0, 0.0, 0.0, 0.0, 0.0)
        assert usage.property_counts == {"fontSize": 3.0, "height": 3.0}
        assert usage.component_frequencies == pytest.approx(
            {"Button": 1 / 3, "ProductCard": 1 / 3, "Navigation": 1 / 3}
        )
        assert usage.value_distributions["fontSize"] == (16.0, 14.0, 18.0)

    def test_common_values_prefer_frequent_values(self, extractor, config, usage_factory):
        usage = [usage_factory(font_size=20, height=48), usage_factory(font_size=20, height=30)]
        common = extractor.extract_features(config, usage).usage.common_values
        assert common[:4] == (20.0, 30.0, 48.0, 0.0)

    def test_input_order_does_not_change_vector(self, extractor, config, usage_data):
        forward = extractor.features_to_vector(extractor.extract_features(config, usage_data))
        backward = extractor.features_to_vector(extractor.extract_features(config, list(reversed(usage_data))))
        np.testing.assert_allclose(forward, backward)

    def test_performance_summary(self, extractor, config, usage_data):
        performance = extractor.extract_features(config, usage_data).performance
        mean, median, low, high, std = performance.render_times
        assert mean == pytest.approx(13.0)
        assert median == pytest.approx(12.0)
        assert (low, high) == (9.0, 18.0)
        assert std == pytest.approx(math.sqrt(14.0))

    def test_missing_performance_values_are_skipped(self, extractor, config, usage_factory):
        usage = [usage_factory(render_time=10), usage_factory(render_time=20)]
        usage.append(dataclasses.replace(usage_factory(), performance=PerformanceMetrics()))
        render_times = extractor.extract_features(config, usage).performance.render_times
        assert render_times == pytest.approx((15.0, 15.0, 10.0, 20.0, 5.0))

    def test_context_features(self, extractor, config, usage_data):
        context = extractor.extract_features(config, usage_data).context
        assert context.application_type == "e-commerce"
        assert context.industry == "retail"
        assert context.device_distribution == pytest.approx(
            {"desktop": 1 / 3, "tablet": 1 / 3, "mobile": 1 / 3, "other": 0.0}
        )
        assert context.user_behavior == pytest.approx(
            {"engagement": 0.3, "accessibility": 0.9, "performance": 0.0}
        )

    def test_slow_view_time_flags_performance_behavior(self, extractor, config, usage_factory):
        record = usage_factory()
        record.interactions.view_time = 6000
        context = extractor.extract_features(config, [record]).context
        assert context.user_behavior["performance"] == 1.0

    def test_empty_usage_is_total(self, extractor, config):
        features = extractor.extract_features(config, [])
        assert features.usage.common_values == (0.0,) * 10
        assert features.performance.render_times == (0.0,) * 5
        assert features.context.application_type == "general"
        assert features.context.industry == "general"
        assert set(features.context.device_distribution.values()) == {0.0}

        vector = extractor.features_to_vector(features)
        names = extractor.feature_names()
        assert vector[names.index("breakpoint_count")] == 3.0
        assert vector[names.index("render_time_mean")] == 0.0

    def test_vector_slots_match_feature_names(self, extractor, config, usage_data):
        vector = extractor.features_to_vector(extractor.extract_features(config, usage_data))
        names = extractor.feature_names()
        assert len(names) == 128
        assert len(set(names)) == 128
        assert vector[names.index("token_complexity")] == 24.0
        assert vector[names.index("origin_width")] == 1.0
        assert vector[names.index("render_time_max")] == 18.0
        assert vector[names.index("application_type")] == 1.0
        assert vector[names.index("industry")] == 1.0
        assert vector[names.index("property_count_0")] == 3.0
        assert np.all(vector[names.index("padding_0"):] == 0.0)

    def test_features_are_immutable(self, extractor, config, usage_data):
        features = extractor.extract_features(config, usage_data)
        with pytest.raises(dataclasses.FrozenInstanceError):
            features.config = None

    def test_extraction_is_deterministic(self, extractor, config, usage_data):
        first = extractor.features_to_vector(extractor.extract_features(config, usage_data))
        second = extractor.features_to_vector(extractor.extract_features(config, usage_data))
        np.testing.assert_array_equal(first, second)


class TestContextHeuristics:
    """Application archetype and device inference."""

    @pytest.fixture
    def extractor(self, settings):
        return FeatureExtractor(settings)

    def test_single_archetype_wins(self, extractor):
        assert extractor.infer_application_type(["ProductCard", "ShoppingCart", "Button"]) == "e-commerce"
        assert extractor.infer_application_type(["Chart"]) == "dashboard"

    def test_dominant_archetype_wins_a_mix(self, extractor):
        assert extractor.infer_application_type(["ProductCard"] * 3 + ["Chart"]) == "e-commerce"

    def test_balanced_mix_is_general(self, extractor):
        assert extractor.infer_application_type(["ProductCard", "Chart"]) == "general"
        assert extractor.infer_application_type(["Button", "Link"]) == "general"
        assert extractor.infer_application_type([]) == "general"

    def test_device_distribution(self, extractor):
        distribution = extractor.device_distribution(["main", "main", "modal", "footer"])
        assert distribution == {"desktop": 0.5, "tablet": 0.0, "mobile": 0.0, "other": 0.5}
        assert extractor.device_distribution([]) == {"desktop": 0.0, "tablet": 0.0, "mobile": 0.0, "other": 0.0}

    def test_device_mapping_is_configurable(self, settings, usage_factory):
        settings.POSITION_DEVICE_MAP = {**settings.POSITION_DEVICE_MAP, "modal": "mobile"}
        extractor = FeatureExtractor(settings)
        record = usage_factory()
        record.context = ComponentContext(position="modal")
        assert extractor.device_distribution([record.context.position])["mobile"] == 1.0


class TestHelpers:
    def test_pad_truncates_and_fills(self):
        assert pad([1, 2, 3], 2, 0.0) == [1, 2]
        assert pad([1], 3, 9.0) == [1, 9.0, 9.0]

    def test_five_number_summary_ignores_missing(self):
        assert five_number_summary([None, float("nan"), 4.0]) == [4.0, 4.0, 4.0, 4.0, 0.0]
        assert five_number_summary([]) == [0.0] * 5

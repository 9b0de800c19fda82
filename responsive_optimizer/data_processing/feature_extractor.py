"""Turns a responsive configuration and component usage into model features."""

import logging
from collections import Counter
from typing import Dict, List, Optional, Sequence

import numpy as np

from responsive_optimizer.config import Config
from responsive_optimizer.types import (
    ComponentUsageData,
    ConfigurationFeatures,
    ContextFeatures,
    ModelFeatures,
    PerformanceFeatures,
    ResponsiveConfig,
    UsageFeatures,
)


def pad(values: Sequence[float], length: int, fill: float) -> List[float]:
    """Pads with ``fill`` or truncates so the result has exactly ``length`` items."""
    values = list(values)[:length]
    return values + [fill] * (length - len(values))


def five_number_summary(values: Sequence[Optional[float]]) -> List[float]:
    """
    ``[mean, median, min, max, std]`` over the values that are present.

    ``None`` and non-finite entries are skipped; with nothing left the summary
    is all zeros. The standard deviation is the population one, so a single
    observation yields 0.
    """
    present = np.array([v for v in values if v is not None], dtype=float)
    present = present[np.isfinite(present)]
    if present.size == 0:
        return [0.0] * 5
    return [
        float(np.mean(present)),
        float(np.median(present)),
        float(np.min(present)),
        float(np.max(present)),
        float(np.std(present)),
    ]


def _ranked(mapping: Dict[str, float]) -> List[float]:
    """Dictionary values ordered by value (descending) then key, independent of insertion order."""
    return [value for _, value in sorted(mapping.items(), key=lambda item: (-item[1], item[0]))]


class FeatureExtractor:
    """
    Builds the four feature groups (configuration, usage, performance,
    context) and flattens them into the fixed 128-slot model input.

    Extraction is a total function: empty usage lists and missing numeric
    observations produce zeroed sections instead of errors.
    """

    def __init__(self, settings: Config | None = None, logger: logging.Logger | None = None):
        self.settings = settings or Config()
        self.logger = logger or logging.getLogger(__name__)

    def extract_features(
        self, config: ResponsiveConfig, usage_data: Sequence[ComponentUsageData]
    ) -> ModelFeatures:
        """
        Extract all feature groups from a configuration and its usage observations.

        Args:
            config: The responsive configuration being optimized
            usage_data: Usage observations, possibly empty

        Returns:
            A new, immutable ModelFeatures record
        """
        usage_data = list(usage_data or [])
        self.logger.debug("Extracting features from %s usage records", len(usage_data))
        return ModelFeatures(
            config=self._configuration_features(config),
            usage=self._usage_features(usage_data),
            performance=self._performance_features(usage_data),
            context=self._context_features(usage_data),
        )

    def features_to_vector(self, features: ModelFeatures) -> np.ndarray:
        """
        Flatten features into the fixed-length model input.

        Sections are laid out in a fixed order (config, usage, performance,
        context), each in a fixed number of slots, so a given leaf always lands
        in the same position. Remaining capacity is zero-padded.

        Args:
            features: Extracted model features

        Returns:
            np.ndarray of shape (FEATURE_DIMENSION,) with finite values
        """
        s = self.settings
        cfg, usage, perf, ctx = features.config, features.usage, features.performance, features.context

        config_part = (
            [float(cfg.breakpoint_count)]
            + pad(cfg.breakpoint_ratios, s.MAX_BREAKPOINTS, 1.0)
            + [float(cfg.token_complexity)]
            + [float(cfg.origin_distribution.get(origin, 0.0)) for origin in s.ORIGINS]
        )
        usage_part = (
            pad(usage.common_values, s.TOP_VALUES, 0.0)
            + pad(_ranked(usage.component_frequencies), s.TOP_VALUES, 0.0)
            + pad(_ranked(usage.property_counts), s.TOP_VALUES, 0.0)
        )
        performance_part = (
            pad(perf.render_times, 5, 0.0)
            + pad(perf.bundle_sizes, 5, 0.0)
            + pad(perf.memory_usage, 5, 0.0)
            + pad(perf.layout_shifts, 5, 0.0)
        )
        context_part = (
            [float(s.APPLICATION_TYPE_CODES.get(ctx.application_type, s.APPLICATION_TYPE_CODES["general"]))]
            + [float(ctx.device_distribution.get(bucket, 0.0)) for bucket in s.DEVICE_BUCKETS]
            + [float(ctx.user_behavior.get(key, 0.0)) for key in ("engagement", "accessibility", "performance")]
            + [float(s.INDUSTRY_CODES.get(ctx.industry, s.INDUSTRY_CODES["general"]))]
        )

        vector = np.array(
            pad(config_part + usage_part + performance_part + context_part, s.FEATURE_DIMENSION, 0.0),
            dtype=float,
        )
        return np.nan_to_num(vector, nan=0.0, posinf=0.0, neginf=0.0)

    def feature_names(self) -> List[str]:
        """Names of the vector slots produced by ``features_to_vector``."""
        s = self.settings
        names = (
            ["breakpoint_count"]
            + [f"breakpoint_ratio_{i}" for i in range(s.MAX_BREAKPOINTS)]
            + ["token_complexity"]
            + [f"origin_{origin}" for origin in s.ORIGINS]
            + [f"common_value_{i}" for i in range(s.TOP_VALUES)]
            + [f"component_frequency_{i}" for i in range(s.TOP_VALUES)]
            + [f"property_count_{i}" for i in range(s.TOP_VALUES)]
            + [f"{metric}_{stat}" for metric in s.PERFORMANCE_METRICS for stat in s.STAT_NAMES]
            + ["application_type"]
            + [f"device_{bucket}" for bucket in s.DEVICE_BUCKETS]
            + ["behavior_engagement", "behavior_accessibility", "behavior_performance"]
            + ["industry"]
        )
        return names + [f"padding_{i}" for i in range(s.FEATURE_DIMENSION - len(names))]

    # ------------------------------------------------------------------
    # Feature groups
    # ------------------------------------------------------------------

    def _configuration_features(self, config: ResponsiveConfig) -> ConfigurationFeatures:
        breakpoints = list(config.breakpoints or [])
        base_width = float(config.base.width) if config.base and config.base.width else 0.0
        ratios = [bp.width / base_width if base_width else 1.0 for bp in breakpoints]

        strategy = config.strategy
        tokens = strategy.tokens if strategy and strategy.tokens else {}
        origin = strategy.origin if strategy else None

        return ConfigurationFeatures(
            breakpoint_count=len(breakpoints),
            breakpoint_ratios=tuple(pad(ratios, self.settings.MAX_BREAKPOINTS, 1.0)),
            token_complexity=float(len(tokens) * 4),
            origin_distribution={o: 1.0 if o == origin else 0.0 for o in self.settings.ORIGINS},
        )

    def _usage_features(self, usage_data: List[ComponentUsageData]) -> UsageFeatures:
        base_values: List[float] = []
        distributions: Dict[str, List[float]] = {}
        property_counts: Counter = Counter()
        component_types = Counter(record.component_type for record in usage_data)

        for record in usage_data:
            for value in record.responsive_values or []:
                if value.base_value is None:
                    continue
                base_values.append(float(value.base_value))
                distributions.setdefault(value.token, []).append(float(value.base_value))
                property_counts[value.property] += 1

        # Most frequent first; ties broken by the value itself
        value_counts = Counter(base_values)
        common = sorted(value_counts, key=lambda v: (-value_counts[v], v))[: self.settings.TOP_VALUES]

        total = sum(component_types.values())
        frequencies = {name: count / total for name, count in component_types.items()} if total else {}

        return UsageFeatures(
            common_values=tuple(pad(common, self.settings.TOP_VALUES, 0.0)),
            value_distributions={token: tuple(values) for token, values in distributions.items()},
            component_frequencies=frequencies,
            property_counts={name: float(count) for name, count in property_counts.items()},
        )

    def _performance_features(self, usage_data: List[ComponentUsageData]) -> PerformanceFeatures:
        snapshots = [record.performance for record in usage_data if record.performance is not None]
        return PerformanceFeatures(
            render_times=tuple(five_number_summary([p.render_time for p in snapshots])),
            bundle_sizes=tuple(five_number_summary([p.bundle_size for p in snapshots])),
            memory_usage=tuple(five_number_summary([p.memory_usage for p in snapshots])),
            layout_shifts=tuple(five_number_summary([p.layout_shift for p in snapshots])),
        )

    def _context_features(self, usage_data: List[ComponentUsageData]) -> ContextFeatures:
        application_type = self.infer_application_type([record.component_type for record in usage_data])
        return ContextFeatures(
            application_type=application_type,
            device_distribution=self.device_distribution(
                [record.context.position if record.context else None for record in usage_data]
            ),
            user_behavior=self._user_behavior(usage_data),
            industry=self.settings.INDUSTRY_BY_APPLICATION.get(application_type, self.settings.DEFAULT_INDUSTRY),
        )

    # ------------------------------------------------------------------
    # Context heuristics
    # ------------------------------------------------------------------

    def infer_application_type(self, component_types: Sequence[str]) -> str:
        """
        Infer the application archetype from the component types present.

        A single matching archetype wins outright. When components point at
        several archetypes, one of them must cover more than
        ``APPLICATION_DOMINANCE`` of the matched components; otherwise the
        mix is reported with the generic label.
        """
        matches: Counter = Counter()
        for component_type in component_types:
            for archetype, indicators in self.settings.APPLICATION_TYPE_INDICATORS.items():
                if component_type in indicators:
                    matches[archetype] += 1

        if not matches:
            return self.settings.DEFAULT_APPLICATION_TYPE
        if len(matches) == 1:
            return next(iter(matches))

        archetype, count = sorted(matches.items(), key=lambda item: (-item[1], item[0]))[0]
        if count / sum(matches.values()) > self.settings.APPLICATION_DOMINANCE:
            return archetype
        return self.settings.DEFAULT_APPLICATION_TYPE

    def device_distribution(self, positions: Sequence[Optional[str]]) -> Dict[str, float]:
        """Share of usage records per device bucket, from their layout position."""
        distribution = {bucket: 0.0 for bucket in self.settings.DEVICE_BUCKETS}
        if not positions:
            return distribution
        for position in positions:
            bucket = self.settings.POSITION_DEVICE_MAP.get(position, "other")
            distribution[bucket] += 1.0
        return {bucket: count / len(positions) for bucket, count in distribution.items()}

    def _user_behavior(self, usage_data: List[ComponentUsageData]) -> Dict[str, float]:
        interactions = [record.interactions for record in usage_data if record.interactions is not None]

        def average(values):
            present = [float(v) for v in values if v is not None]
            return float(np.mean(present)) if present else 0.0

        view_time = average([i.view_time for i in interactions])
        return {
            "engagement": average([i.interaction_rate for i in interactions]),
            "accessibility": average([i.accessibility_score for i in interactions]),
            "performance": 1.0 if view_time > self.settings.SLOW_VIEW_TIME_MS else 0.0,
        }

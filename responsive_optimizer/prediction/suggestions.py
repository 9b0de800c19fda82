"""Turns post-processed model output into human-facing optimization suggestions."""

import dataclasses
import logging
import math
from typing import Dict, List, Optional, Sequence

import numpy as np

from responsive_optimizer.config import Config
from responsive_optimizer.types import (
    AccessibilityWarning,
    ComponentUsageData,
    EstimatedImprovements,
    ModelFeatures,
    OptimizationSuggestions,
    PerformanceImpact,
    PostProcessedPrediction,
    PredictionConfidence,
    ResponsiveConfig,
    ScalingCurveRecommendation,
    SuggestedToken,
)

# Reported aspect -> performance output it is read from
PERFORMANCE_ASPECTS = {
    "bundle-size": "bundle_size",
    "render-time": "render_time",
    "memory": "memory_usage",
    "layout-shift": "layout_shift",
}


def _observed_values(usage_data: Sequence[ComponentUsageData], properties) -> List[float]:
    """Base and per-breakpoint values of the given properties across all usage records."""
    values = []
    for record in usage_data:
        for value in record.responsive_values or []:
            if value.property not in properties:
                continue
            candidates = [value.base_value, *value.breakpoint_values.values()]
            values.extend(float(v) for v in candidates if v is not None and math.isfinite(float(v)))
    return values


class SuggestionGenerator:
    """
    Builds ``OptimizationSuggestions`` from a post-processed prediction.

    Nothing here touches the model: the generator only interprets the
    prediction against the current configuration and the observed usage.
    """

    def __init__(self, settings: Config | None = None, logger: logging.Logger | None = None):
        self.settings = settings or Config()
        self.logger = logger or logging.getLogger(__name__)

    def generate(
        self,
        config: ResponsiveConfig,
        usage_data: Sequence[ComponentUsageData],
        features: ModelFeatures,
        processed: PostProcessedPrediction,
        confidence: PredictionConfidence,
    ) -> OptimizationSuggestions:
        """
        Assemble the full suggestion set for one optimization request.

        Args:
            config: The configuration being optimized (must carry a strategy)
            usage_data: The usage observations the features were built from
            features: Extracted features
            processed: Post-processed model output
            confidence: Perturbation-based prediction confidence

        Returns:
            OptimizationSuggestions
        """
        current_tokens = config.strategy.tokens
        suggested = {
            name: dataclasses.replace(token, responsive=current_tokens[name].responsive)
            if name in current_tokens else token
            for name, token in processed.tokens.items()
        }

        curves = self.scaling_curve_recommendations(config, suggested, confidence)
        impacts = self.performance_impacts(features, processed)
        warnings = self.accessibility_warnings(config, usage_data, suggested)

        self.logger.debug(
            "Generated %s curve recommendations, %s performance impacts and %s accessibility warnings",
            len(curves), len(impacts), len(warnings),
        )
        return OptimizationSuggestions(
            suggested_tokens=suggested,
            scaling_curve_recommendations=curves,
            performance_impacts=impacts,
            accessibility_warnings=warnings,
            confidence_score=float(np.clip(confidence.confidence, 0.0, 1.0)),
            estimated_improvements=self.estimated_improvements(config, suggested, impacts, warnings),
        )

    # ------------------------------------------------------------------
    # Scaling curves
    # ------------------------------------------------------------------

    def curve_mode(self, scale: float, configured_mode: Optional[str] = None) -> str:
        """Scaling curve that best describes a suggested scale factor."""
        s = self.settings
        if any(abs(scale - ratio) <= s.GOLDEN_RATIO_TOLERANCE for ratio in s.GOLDEN_RATIO_SCALES):
            return "golden-ratio"
        if scale >= s.EXPONENTIAL_SCALE:
            return "exponential"
        if scale <= s.LOGARITHMIC_SCALE:
            return "logarithmic"
        if configured_mode == "custom":
            return "custom"
        return "linear"

    def _token_confidence(self, name: str, confidence: PredictionConfidence) -> float:
        s = self.settings
        if name not in s.TOKEN_NAMES or confidence.mean is None or confidence.variance is None:
            return float(np.clip(confidence.confidence, 0.0, 1.0))
        offset = s.TOKEN_NAMES.index(name) * len(s.TOKEN_PARAMS)
        mean = np.asarray(confidence.mean, dtype=float)[offset: offset + 4]
        variance = np.asarray(confidence.variance, dtype=float)[offset: offset + 4]
        relative = np.nan_to_num(variance / (mean ** 2 + 1e-8), nan=0.0, posinf=1e12)
        return float(np.clip(1.0 / (1.0 + float(np.mean(relative))), 0.0, 1.0))

    def scaling_curve_recommendations(
        self,
        config: ResponsiveConfig,
        suggested: Dict[str, SuggestedToken],
        confidence: PredictionConfidence,
    ) -> List[ScalingCurveRecommendation]:
        """One curve recommendation per configured token, most confident first."""
        s = self.settings
        base_width = float(config.base.width) if config.base and config.base.width else 0.0
        limit = s.MAX_BREAKPOINT_ADJUSTMENT
        recommendations = []

        for name, current in config.strategy.tokens.items():
            token = suggested.get(name)
            if token is None:
                continue
            mode = self.curve_mode(token.scale, config.strategy.mode)
            delta = token.scale - current.scale

            adjustments = {}
            for bp in config.breakpoints:
                ratio = bp.width / base_width if base_width else 1.0
                adjustments[bp.name] = float(np.clip(delta * (1.0 - ratio), -limit, limit))

            direction = "increase" if delta > 0 else "decrease" if delta < 0 else "keep"
            rationale = (
                f"{mode.capitalize()} scaling fits the suggested factor {token.scale:.3f} for {name}; "
                f"{direction} the current factor {current.scale:.3f} and keep values within "
                f"{token.min:g}-{token.max:g} in steps of {token.step:g}."
            )
            recommendations.append(
                ScalingCurveRecommendation(
                    token=name,
                    mode=mode,
                    scale=token.scale,
                    breakpoint_adjustments=adjustments,
                    confidence=self._token_confidence(name, confidence),
                    rationale=rationale,
                )
            )

        recommendations.sort(key=lambda rec: -rec.confidence)
        return recommendations

    # ------------------------------------------------------------------
    # Performance and accessibility
    # ------------------------------------------------------------------

    def severity(self, improvement_percent: float) -> str:
        magnitude = abs(improvement_percent)
        for threshold, label in self.settings.SEVERITY_THRESHOLDS:
            if magnitude >= threshold:
                return label
        return "low"

    def performance_impacts(self, features: ModelFeatures, processed: PostProcessedPrediction) -> List[PerformanceImpact]:
        """
        Predicted change of each performance aspect relative to the observed mean.

        The prediction is held within ``MAX_PERFORMANCE_GAIN`` below and
        ``MAX_PERFORMANCE_REGRESSION`` above the current value. Lower values
        are better, so a positive improvement means a smaller cost.
        """
        s = self.settings
        observed = {
            "render_time": features.performance.render_times[0],
            "bundle_size": features.performance.bundle_sizes[0],
            "memory_usage": features.performance.memory_usage[0],
            "layout_shift": features.performance.layout_shifts[0],
        }
        values = np.asarray(processed.values, dtype=float)

        impacts = []
        for aspect, metric in PERFORMANCE_ASPECTS.items():
            current = float(observed[metric])
            slot = s.PERFORMANCE_OFFSET + s.PERFORMANCE_METRICS.index(metric)
            raw = float(np.nan_to_num(values[slot], nan=current, posinf=current, neginf=current))
            low = current * (1.0 - s.MAX_PERFORMANCE_GAIN)
            high = current * (1.0 + s.MAX_PERFORMANCE_REGRESSION)
            predicted = float(np.clip(raw, min(low, high), max(low, high)))
            improvement = (current - predicted) / abs(current) * 100.0 if current else 0.0
            impacts.append(
                PerformanceImpact(
                    aspect=aspect,
                    current_value=current,
                    predicted_value=predicted,
                    improvement_percent=float(improvement),
                    severity=self.severity(improvement),
                )
            )
        return impacts

    def accessibility_warnings(
        self,
        config: ResponsiveConfig,
        usage_data: Sequence[ComponentUsageData],
        suggested: Dict[str, SuggestedToken],
    ) -> List[AccessibilityWarning]:
        """Font sizes and tap targets that would fall below the configured minimums."""
        s = self.settings
        accessibility = config.strategy.accessibility
        warnings = []

        if "fontSize" in suggested:
            smallest_font = suggested["fontSize"].min
        else:
            fonts = _observed_values(usage_data, s.FONT_SIZE_PROPERTIES)
            smallest_font = min(fonts) if fonts else None
        if smallest_font is not None and smallest_font < accessibility.min_font_size:
            warnings.append(
                AccessibilityWarning(
                    type="font-size",
                    current_value=float(smallest_font),
                    recommended_value=float(accessibility.min_font_size),
                    wcag_reference="WCAG 2.1 AA - 1.4.4 Resize text",
                    severity="AA",
                    description=(
                        f"Font size can drop to {smallest_font:g}px; keep it at or above "
                        f"{accessibility.min_font_size:g}px so text stays readable when resized."
                    ),
                )
            )

        targets = _observed_values(usage_data, s.TAP_TARGET_PROPERTIES)
        if targets and min(targets) < accessibility.min_tap_target:
            smallest_target = min(targets)
            warnings.append(
                AccessibilityWarning(
                    type="tap-target",
                    current_value=float(smallest_target),
                    recommended_value=float(accessibility.min_tap_target),
                    wcag_reference="WCAG 2.1 AAA - 2.5.5 Target Size",
                    severity="AAA",
                    description=(
                        f"Interactive elements shrink to {smallest_target:g}px; targets should be at "
                        f"least {accessibility.min_tap_target:g}px on every breakpoint."
                    ),
                )
            )
        return warnings

    # ------------------------------------------------------------------
    # Estimated improvements
    # ------------------------------------------------------------------

    def estimated_improvements(
        self,
        config: ResponsiveConfig,
        suggested: Dict[str, SuggestedToken],
        impacts: Sequence[PerformanceImpact],
        warnings: Sequence[AccessibilityWarning],
    ) -> EstimatedImprovements:
        s = self.settings
        performance = {impact.aspect: impact.improvement_percent for impact in impacts}

        gains = [impact.improvement_percent for impact in impacts if impact.improvement_percent > 0]
        scale_changes = [
            abs(token.scale - config.strategy.tokens[name].scale) / abs(config.strategy.tokens[name].scale)
            for name, token in suggested.items()
            if name in config.strategy.tokens and config.strategy.tokens[name].scale
        ]
        user_experience = {
            "interaction_rate": float(np.mean(gains)) * s.UX_INTERACTION_WEIGHT if gains else 0.0,
            "accessibility_score": len(warnings) * s.ACCESSIBILITY_POINTS_PER_FIX,
            "visual_hierarchy": float(np.mean(scale_changes)) * 100.0 if scale_changes else 0.0,
        }

        configured = config.strategy.tokens
        coverage = len(set(suggested) & set(configured)) / len(configured) if configured else 0.0
        developer_experience = {
            name: coverage * weight for name, weight in s.DEVELOPER_EXPERIENCE_WEIGHTS.items()
        }
        return EstimatedImprovements(
            performance=performance,
            user_experience=user_experience,
            developer_experience=developer_experience,
        )

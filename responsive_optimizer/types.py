"""Data model shared by feature extraction, training, prediction and suggestions.

Input records (configuration, usage, training data) can be built directly or
from JSON-like dictionaries through their ``from_dict`` constructors. Feature
records are frozen once extracted; result records are plain dataclasses
returned by value.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np


# ---------------------------------------------------------------------------
# Responsive configuration
# ---------------------------------------------------------------------------


@dataclass
class ViewportSize:
    width: float
    height: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ViewportSize":
        return cls(width=float(data["width"]), height=float(data["height"]))


@dataclass
class Breakpoint:
    name: str
    width: float
    height: float
    alias: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Breakpoint":
        return cls(
            name=data["name"],
            width=float(data["width"]),
            height=float(data["height"]),
            alias=data.get("alias"),
        )


@dataclass
class ScalingToken:
    """A named design token and the rule used to scale it across breakpoints."""

    scale: float
    min: float
    max: float
    step: float = 1.0
    responsive: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScalingToken":
        return cls(
            scale=float(data.get("scale", 1.0)),
            min=float(data.get("min", 0.0)),
            max=float(data.get("max", 0.0)),
            step=float(data.get("step", 1.0)),
            responsive=bool(data.get("responsive", True)),
        )


@dataclass
class AccessibilityConfig:
    min_font_size: float = 12.0
    min_tap_target: float = 44.0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AccessibilityConfig":
        data = data or {}
        return cls(
            min_font_size=float(data.get("min_font_size", 12.0)),
            min_tap_target=float(data.get("min_tap_target", 44.0)),
        )


@dataclass
class ScalingStrategy:
    origin: str = "width"
    mode: str = "linear"
    tokens: Dict[str, ScalingToken] = field(default_factory=dict)
    accessibility: AccessibilityConfig = field(default_factory=AccessibilityConfig)
    rounding: Dict[str, Any] = field(default_factory=dict)
    performance: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScalingStrategy":
        tokens = data.get("tokens")
        return cls(
            origin=data.get("origin", "width"),
            mode=data.get("mode", "linear"),
            tokens={name: ScalingToken.from_dict(t) for name, t in tokens.items()} if tokens else {},
            accessibility=AccessibilityConfig.from_dict(data.get("accessibility")),
            rounding=dict(data.get("rounding") or {}),
            performance=dict(data.get("performance") or {}),
        )


@dataclass
class ResponsiveConfig:
    """Base viewport, ordered breakpoints and the scaling strategy."""

    base: ViewportSize
    breakpoints: List[Breakpoint] = field(default_factory=list)
    strategy: Optional[ScalingStrategy] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResponsiveConfig":
        strategy = data.get("strategy")
        return cls(
            base=ViewportSize.from_dict(data["base"]),
            breakpoints=[Breakpoint.from_dict(bp) for bp in data.get("breakpoints") or []],
            strategy=ScalingStrategy.from_dict(strategy) if strategy is not None else None,
        )


# ---------------------------------------------------------------------------
# Component usage observations
# ---------------------------------------------------------------------------


@dataclass
class ResponsiveValueUsage:
    property: str
    base_value: float
    token: str
    breakpoint_values: Dict[str, float] = field(default_factory=dict)
    usage_frequency: float = 1.0
    satisfaction_score: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResponsiveValueUsage":
        return cls(
            property=data["property"],
            base_value=float(data["base_value"]),
            token=data.get("token", ""),
            breakpoint_values={k: float(v) for k, v in (data.get("breakpoint_values") or {}).items()},
            usage_frequency=float(data.get("usage_frequency", 1.0)),
            satisfaction_score=data.get("satisfaction_score"),
        )


@dataclass
class PerformanceMetrics:
    render_time: Optional[float] = None
    layout_shift: Optional[float] = None
    memory_usage: Optional[float] = None
    bundle_size: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PerformanceMetrics":
        data = data or {}
        return cls(
            render_time=data.get("render_time"),
            layout_shift=data.get("layout_shift"),
            memory_usage=data.get("memory_usage"),
            bundle_size=data.get("bundle_size"),
        )


@dataclass
class InteractionData:
    interaction_rate: Optional[float] = None
    view_time: Optional[float] = None
    scroll_behavior: str = "normal"
    accessibility_score: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "InteractionData":
        data = data or {}
        return cls(
            interaction_rate=data.get("interaction_rate"),
            view_time=data.get("view_time"),
            scroll_behavior=data.get("scroll_behavior", "normal"),
            accessibility_score=data.get("accessibility_score"),
        )


@dataclass
class ComponentContext:
    position: str = "other"
    importance: str = "secondary"
    parent: Optional[str] = None
    children: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ComponentContext":
        data = data or {}
        return cls(
            position=data.get("position", "other"),
            importance=data.get("importance", "secondary"),
            parent=data.get("parent"),
            children=list(data.get("children") or []),
        )


@dataclass
class ComponentUsageData:
    """Observed usage of one component instance.

    ``responsive_values`` may be an empty list but never ``None``; a ``None``
    list is rejected by the optimizer as malformed input.
    """

    component_id: str
    component_type: str
    responsive_values: Optional[List[ResponsiveValueUsage]] = field(default_factory=list)
    performance: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    interactions: InteractionData = field(default_factory=InteractionData)
    context: ComponentContext = field(default_factory=ComponentContext)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ComponentUsageData":
        values = data.get("responsive_values")
        return cls(
            component_id=data.get("component_id", ""),
            component_type=data.get("component_type", "Unknown"),
            responsive_values=[ResponsiveValueUsage.from_dict(v) for v in values] if values is not None else None,
            performance=PerformanceMetrics.from_dict(data.get("performance")),
            interactions=InteractionData.from_dict(data.get("interactions")),
            context=ComponentContext.from_dict(data.get("context")),
        )


# ---------------------------------------------------------------------------
# Extracted features
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConfigurationFeatures:
    breakpoint_count: int
    breakpoint_ratios: Tuple[float, ...]
    token_complexity: float
    origin_distribution: Dict[str, float]


@dataclass(frozen=True)
class UsageFeatures:
    common_values: Tuple[float, ...]
    value_distributions: Dict[str, Tuple[float, ...]]
    component_frequencies: Dict[str, float]
    property_counts: Dict[str, float]


@dataclass(frozen=True)
class PerformanceFeatures:
    """Five-number summaries ``(mean, median, min, max, std)`` per metric."""

    render_times: Tuple[float, ...]
    bundle_sizes: Tuple[float, ...]
    memory_usage: Tuple[float, ...]
    layout_shifts: Tuple[float, ...]


@dataclass(frozen=True)
class ContextFeatures:
    application_type: str
    device_distribution: Dict[str, float]
    user_behavior: Dict[str, float]
    industry: str


@dataclass(frozen=True)
class ModelFeatures:
    config: ConfigurationFeatures
    usage: UsageFeatures
    performance: PerformanceFeatures
    context: ContextFeatures


# ---------------------------------------------------------------------------
# Training data and metrics
# ---------------------------------------------------------------------------


@dataclass
class ModelLabels:
    optimal_tokens: Dict[str, ScalingToken] = field(default_factory=dict)
    performance_scores: Dict[str, float] = field(default_factory=dict)
    satisfaction_ratings: List[float] = field(default_factory=list)
    accessibility_scores: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelLabels":
        return cls(
            optimal_tokens={k: ScalingToken.from_dict(v) for k, v in (data.get("optimal_tokens") or {}).items()},
            performance_scores=dict(data.get("performance_scores") or {}),
            satisfaction_ratings=list(data.get("satisfaction_ratings") or []),
            accessibility_scores=dict(data.get("accessibility_scores") or {}),
        )


@dataclass
class TrainingMetadata:
    timestamp: datetime = field(default_factory=datetime.now)
    source: str = "unknown"
    quality_score: float = 1.0
    sample_size: int = 1
    region: str = "global"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "TrainingMetadata":
        data = data or {}
        timestamp = data.get("timestamp")
        return cls(
            timestamp=datetime.fromisoformat(timestamp) if isinstance(timestamp, str) else datetime.now(),
            source=data.get("source", "unknown"),
            quality_score=float(data.get("quality_score", 1.0)),
            sample_size=int(data.get("sample_size", 1)),
            region=data.get("region", "global"),
        )


@dataclass
class TrainingData:
    """One labelled example.

    ``features`` is either a ``ModelFeatures`` record or an already flattened
    feature vector; ``labels`` is either a ``ModelLabels`` record or an
    already flattened label vector.
    """

    features: Union[ModelFeatures, Sequence[float], None]
    labels: Union[ModelLabels, Sequence[float], None]
    metadata: TrainingMetadata = field(default_factory=TrainingMetadata)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrainingData":
        labels = data.get("labels")
        if isinstance(labels, dict):
            labels = ModelLabels.from_dict(labels)
        return cls(
            features=data.get("features"),
            labels=labels,
            metadata=TrainingMetadata.from_dict(data.get("metadata")),
        )


@dataclass
class TrainingMetrics:
    accuracy: float
    precision: float
    recall: float
    f1_score: float
    mse: float
    confidence_intervals: Dict[str, Tuple[float, float]] = field(default_factory=dict)
    sample_count: int = 0


@dataclass
class CrossValidationResult:
    mean_accuracy: float
    mean_precision: float
    mean_recall: float
    mean_f1_score: float
    mean_mse: float
    std_accuracy: float
    std_precision: float
    std_recall: float
    std_f1_score: float
    std_mse: float
    folds: Any = None  # pandas.DataFrame, one row per fold


# ---------------------------------------------------------------------------
# Prediction results
# ---------------------------------------------------------------------------


@dataclass
class PredictionConfidence:
    mean: np.ndarray
    variance: np.ndarray
    confidence: float


@dataclass
class FeatureContribution:
    name: str
    importance: float


@dataclass
class PredictionExplanation:
    feature_importance: Dict[str, float]
    top_features: List[FeatureContribution]


@dataclass
class RangeViolation:
    parameter: str
    value: float
    expected: Tuple[float, float]


@dataclass
class PredictionValidation:
    is_valid: bool
    violations: List[RangeViolation]
    confidence: float


@dataclass
class PredictionComparison:
    improvements: Dict[str, float]
    regressions: Dict[str, float]
    overall_improvement: float


@dataclass
class TokenConstraint:
    min: float
    max: float
    step: float = 1.0


@dataclass
class PredictionConstraints:
    token_constraints: Dict[str, TokenConstraint] = field(default_factory=dict)
    performance_constraints: List[Tuple[float, float]] = field(default_factory=list)


@dataclass
class SuggestedToken:
    scale: float
    min: float
    max: float
    step: float
    responsive: bool = True


@dataclass
class PostProcessedPrediction:
    tokens: Dict[str, SuggestedToken]
    performance: List[float]
    values: np.ndarray


# ---------------------------------------------------------------------------
# Optimization suggestions
# ---------------------------------------------------------------------------


@dataclass
class ScalingCurveRecommendation:
    token: str
    mode: str
    scale: float
    breakpoint_adjustments: Dict[str, float]
    confidence: float
    rationale: str


@dataclass
class PerformanceImpact:
    aspect: str
    current_value: float
    predicted_value: float
    improvement_percent: float
    severity: str


@dataclass
class AccessibilityWarning:
    type: str
    current_value: float
    recommended_value: float
    wcag_reference: str
    severity: str
    description: str


@dataclass
class EstimatedImprovements:
    performance: Dict[str, float]
    user_experience: Dict[str, float]
    developer_experience: Dict[str, float]


@dataclass
class OptimizationSuggestions:
    suggested_tokens: Dict[str, SuggestedToken]
    scaling_curve_recommendations: List[ScalingCurveRecommendation]
    performance_impacts: List[PerformanceImpact]
    accessibility_warnings: List[AccessibilityWarning]
    confidence_score: float
    estimated_improvements: EstimatedImprovements


@dataclass
class ModelInfo:
    architecture: str
    parameters: int
    layers: List[str]
    is_initialized: bool

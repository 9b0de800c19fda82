"""Shared fixtures: a fast configuration, a sample responsive configuration and usage data."""

import copy
import os
import warnings

import numpy as np
import pytest

from responsive_optimizer.config import Config
from responsive_optimizer.types import (
    AccessibilityConfig,
    Breakpoint,
    ComponentContext,
    ComponentUsageData,
    InteractionData,
    ModelLabels,
    PerformanceMetrics,
    ResponsiveConfig,
    ResponsiveValueUsage,
    ScalingStrategy,
    ScalingToken,
    TrainingData,
    TrainingMetadata,
    ViewportSize,
)

for var in ["OMP_NUM_THREADS", "OPENBLAS_NUM_THREADS", "MKL_NUM_THREADS"]:
    os.environ.setdefault(var, "1")

warnings.filterwarnings('ignore', category=UserWarning)
warnings.filterwarnings('ignore', category=FutureWarning)


def _small_search_space():
    """Shrink every model so a training round takes milliseconds."""
    configs = copy.deepcopy(Config.HYPERPARAMETER_CONFIGS)
    configs["neural-network"]["hidden_layers"] = {"choices": ["16-8", "8"], "default": "16-8"}
    for family in ("random-forest", "gradient-boosting"):
        configs[family]["n_estimators"] = {"min": 3, "max": 5, "type": "int", "default": 5}
        configs[family]["max_depth"] = {"min": 2, "max": 3, "type": "int", "default": 3}
    configs["ensemble"]["nn_hidden_layers"] = {"choices": ["8"], "default": "8"}
    for prefix in ("rf", "xgb"):
        configs["ensemble"][f"{prefix}_n_estimators"] = {"min": 3, "max": 5, "type": "int", "default": 5}
        configs["ensemble"][f"{prefix}_max_depth"] = {"min": 2, "max": 3, "type": "int", "default": 3}
    return configs


class TestConfig(Config):
    """Modified configuration for testing with tiny models and few passes."""

    __test__ = False

    EPOCHS = 5
    BATCH_SIZE = 16
    CV_SPLITS = 3
    N_TRIALS = 2
    SHOW_PROGRESS = False
    HYPERPARAMETER_CONFIGS = _small_search_space()


@pytest.fixture
def settings():
    return TestConfig()


def make_config(breakpoints=None, tokens=None, mode="linear", accessibility=None):
    """The reference configuration: 1920x1080 base, three breakpoints and six tokens."""
    if breakpoints is None:
        breakpoints = [
            Breakpoint("mobile", 768, 1024),
            Breakpoint("tablet", 1024, 768),
            Breakpoint("desktop", 1920, 1080),
        ]
    if tokens is None:
        tokens = {
            "fontSize": ScalingToken(scale=0.85, min=12, max=72, step=1),
            "spacing": ScalingToken(scale=0.9, min=4, max=128, step=4),
            "radius": ScalingToken(scale=0.8, min=0, max=24, step=2),
            "lineHeight": ScalingToken(scale=1.2, min=1, max=2, step=0.1),
            "shadow": ScalingToken(scale=0.8, min=0, max=24, step=1),
            "border": ScalingToken(scale=0.8, min=0, max=8, step=1),
        }
    return ResponsiveConfig(
        base=ViewportSize(1920, 1080),
        breakpoints=breakpoints,
        strategy=ScalingStrategy(
            origin="width",
            mode=mode,
            tokens=tokens,
            accessibility=accessibility or AccessibilityConfig(min_font_size=12, min_tap_target=44),
        ),
    )


def make_usage(component_id="button-1", component_type="Button", position="main",
               font_size=16.0, height=48.0, render_time=12.0, bundle_size=2048.0):
    return ComponentUsageData(
        component_id=component_id,
        component_type=component_type,
        responsive_values=[
            ResponsiveValueUsage(
                property="fontSize",
                base_value=font_size,
                token="fontSize",
                breakpoint_values={"mobile": font_size * 0.875, "tablet": font_size},
            ),
            ResponsiveValueUsage(
                property="height",
                base_value=height,
                token="spacing",
                breakpoint_values={"mobile": height},
            ),
        ],
        performance=PerformanceMetrics(
            render_time=render_time, layout_shift=0.02, memory_usage=1.5, bundle_size=bundle_size
        ),
        interactions=InteractionData(interaction_rate=0.3, view_time=3000, accessibility_score=0.9),
        context=ComponentContext(position=position, importance="primary"),
    )


def make_training_data(n, seed=0, settings=None):
    """Labelled examples whose labels depend on the first feature."""
    settings = settings or Config()
    rng = np.random.default_rng(seed)
    examples = []
    for _ in range(n):
        features = rng.uniform(0.0, 1.0, size=settings.FEATURE_DIMENSION)
        signal = float(features[0])
        labels = ModelLabels(
            optimal_tokens={
                "fontSize": ScalingToken(scale=0.8 + 0.2 * signal, min=12, max=64, step=1),
                "spacing": ScalingToken(scale=0.9, min=4, max=96, step=4),
            },
            performance_scores={"render_time": 10 + 5 * signal, "bundle_size": 40.0},
            satisfaction_ratings=[3.0 + signal, 4.0],
            accessibility_scores={"font_size_compliance": 0.9, "tap_target_compliance": 0.8},
        )
        examples.append(TrainingData(features=features, labels=labels, metadata=TrainingMetadata(source="test")))
    return examples


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def usage_data():
    return [
        make_usage("button-1", "Button", "main", font_size=16, height=48, render_time=12),
        make_usage("card-1", "ProductCard", "sidebar", font_size=14, height=52, render_time=18),
        make_usage("nav-1", "Navigation", "header", font_size=18, height=44, render_time=9),
    ]


@pytest.fixture
def training_data(settings):
    return make_training_data(20, settings=settings)


@pytest.fixture
def config_factory():
    return make_config


@pytest.fixture
def usage_factory():
    return make_usage


@pytest.fixture
def training_data_factory(settings):
    def factory(n, seed=0):
        return make_training_data(n, seed=seed, settings=settings)
    return factory

"""Project configuration, heuristic tables and hyperparameter search spaces."""

from pathlib import Path

import optuna

from responsive_optimizer.models import (
    DeployableModel,
    EnsembleRegressor,
    NeuralNetworkRegressor,
    RandomForestRegressor,
    XGBoostRegressor,
)
from responsive_optimizer.preprocessing import FeatureScaler


def _output_names(tokens, params, performance, accessibility):
    """Names of the 32 output slots, in vector order."""
    names = [f"{token}_{param}" for token in tokens for param in params]
    return names + list(performance) + ["satisfaction_mean", "satisfaction_std"] + list(accessibility)


def _layers_from_string(value):
    """Parses '256-128-64' into (256, 128, 64)."""
    if isinstance(value, str):
        return tuple(int(units) for units in value.split("-"))
    return tuple(value)


class Config:
    """
    Central configuration class for the responsive scaling optimizer.

    This class holds all static configuration values: vector dimensions and
    slot layouts, the context heuristics used by feature extraction, training
    defaults, post-processing limits and hyperparameter search spaces for all
    model families. Components receive an instance through their constructor;
    tests override values by subclassing.
    """

    PROJECT_ROOT = Path(__file__).parent.parent
    ARTIFACTS_DIR = PROJECT_ROOT / "artifacts"
    MODELS_DIR = ARTIFACTS_DIR / "trained_models"
    MODEL_FILENAME = "model.joblib"
    # Optuna studies are kept in memory unless a directory is configured
    OPTUNA_DB_DIR = None

    RANDOM_STATE = 42

    # Vector layout
    FEATURE_DIMENSION = 128
    OUTPUT_DIMENSION = 32
    MAX_BREAKPOINTS = 8
    TOP_VALUES = 10
    ORIGINS = ["width", "height", "min", "max", "diagonal", "area"]
    STAT_NAMES = ["mean", "median", "min", "max", "std"]
    PERFORMANCE_METRICS = ["render_time", "bundle_size", "memory_usage", "layout_shift"]

    TOKEN_NAMES = ["fontSize", "spacing", "radius", "lineHeight", "shadow", "border"]
    TOKEN_PARAMS = ["scale", "min", "max", "step"]
    DEFAULT_TOKEN_LABEL = (0.85, 8.0, 100.0, 1.0)
    ACCESSIBILITY_OUTPUTS = ["font_size_compliance", "tap_target_compliance"]
    DEFAULT_SATISFACTION = 0.5
    PERFORMANCE_OFFSET = 24
    SATISFACTION_OFFSET = 28
    ACCESSIBILITY_OFFSET = 30
    OUTPUT_NAMES = _output_names(TOKEN_NAMES, TOKEN_PARAMS, PERFORMANCE_METRICS, ACCESSIBILITY_OUTPUTS)
    LOWER_IS_BETTER = set(PERFORMANCE_METRICS)

    # Context heuristics
    APPLICATION_TYPE_INDICATORS = {
        "e-commerce": {"ProductCard", "ShoppingCart", "PriceTag"},
        "dashboard": {"Chart", "DataTable", "Widget"},
        "blog": {"Article", "BlogPost", "Comment"},
        "social": {"Post", "Profile", "Feed"},
    }
    DEFAULT_APPLICATION_TYPE = "general"
    # Share of matched components an archetype must exceed when several archetypes match
    APPLICATION_DOMINANCE = 0.5
    APPLICATION_TYPE_CODES = {"e-commerce": 1, "dashboard": 2, "blog": 3, "social": 4, "general": 5}

    DEVICE_BUCKETS = ["desktop", "tablet", "mobile", "other"]
    POSITION_DEVICE_MAP = {
        "main": "desktop",
        "sidebar": "tablet",
        "header": "mobile",
        "footer": "other",
        "modal": "other",
        "other": "other",
    }
    SLOW_VIEW_TIME_MS = 5000

    INDUSTRY_BY_APPLICATION = {
        "e-commerce": "retail",
        "dashboard": "technology",
        "blog": "media",
        "social": "social-media",
    }
    DEFAULT_INDUSTRY = "general"
    INDUSTRY_CODES = {
        "retail": 1,
        "technology": 2,
        "media": 3,
        "social-media": 4,
        "finance": 5,
        "healthcare": 6,
        "education": 7,
        "general": 8,
    }

    # Training
    ARCHITECTURE = "neural-network"
    NORMALIZATION = "standard"
    EPOCHS = 50
    BATCH_SIZE = 32
    VALIDATION_SPLIT = 0.2
    ACCURACY_TOLERANCE = 0.1
    CONFIDENCE_Z_SCORE = 1.96
    CV_SPLITS = 5
    N_TRIALS = 20
    SHOW_PROGRESS = False

    # Prediction and suggestions
    CONFIDENCE_SAMPLES = 10
    CONFIDENCE_NOISE = 0.05
    TOP_FEATURES = 10
    SCALE_RANGE = (0.1, 2.0)
    MAX_PERFORMANCE_GAIN = 0.5
    MAX_PERFORMANCE_REGRESSION = 0.5
    MAX_BREAKPOINT_ADJUSTMENT = 0.5
    CURVE_MODES = ["linear", "exponential", "logarithmic", "golden-ratio", "custom"]
    GOLDEN_RATIO_SCALES = (0.618, 1.618)
    GOLDEN_RATIO_TOLERANCE = 0.03
    EXPONENTIAL_SCALE = 1.25
    LOGARITHMIC_SCALE = 0.6
    SEVERITY_THRESHOLDS = [(40.0, "critical"), (20.0, "high"), (5.0, "medium")]
    FONT_SIZE_PROPERTIES = {"fontSize", "font_size", "font-size"}
    TAP_TARGET_PROPERTIES = {
        "height", "minHeight", "min_height", "min-height",
        "width", "minWidth", "min_width", "min-width",
        "tapTarget", "tap_target",
    }
    ACCESSIBILITY_POINTS_PER_FIX = 5.0
    UX_INTERACTION_WEIGHT = 0.4
    DEVELOPER_EXPERIENCE_WEIGHTS = {
        "code_reduction": 25.0,
        "maintenance_effort": 30.0,
        "debugging_time": 40.0,
    }

    MODEL_FAMILIES = {
        "neural-network": {
            "type": "regression",
            "base_model": "mlp",
            "class": NeuralNetworkRegressor,
        },
        "random-forest": {
            "type": "regression",
            "base_model": "random_forest",
            "class": RandomForestRegressor,
        },
        "gradient-boosting": {
            "type": "regression",
            "base_model": "xgboost",
            "class": XGBoostRegressor,
        },
        "ensemble": {
            "type": "regression",
            "base_model": "nn_rf_xgb_ensemble",
            "class": EnsembleRegressor,
        },
    }

    # Each model family defines ONLY the parameters it actually needs
    HYPERPARAMETER_CONFIGS = {
        "neural-network": {
            "hidden_layers": {
                "choices": ["256-128-64", "128-64", "64-32"],
                "default": "256-128-64",
            },
            "learning_rate_init": {
                "min": 1e-4,
                "max": 1e-2,
                "type": "float",
                "log": True,
                "default": 0.001,
            },
            "alpha": {
                "min": 1e-6,
                "max": 1e-2,
                "type": "float",
                "log": True,
                "default": 1e-4,
            },
        },
        "random-forest": {
            "n_estimators": {"min": 20, "max": 200, "type": "int", "default": 50},
            "max_depth": {"min": 4, "max": 20, "type": "int", "default": 12},
            "min_samples_leaf": {"min": 1, "max": 5, "type": "int", "default": 1},
        },
        "gradient-boosting": {
            "n_estimators": {"min": 20, "max": 200, "type": "int", "default": 50},
            "max_depth": {"min": 2, "max": 8, "type": "int", "default": 4},
            "learning_rate": {
                "min": 0.01,
                "max": 0.3,
                "type": "float",
                "log": True,
                "default": 0.1,
            },
        },
        "ensemble": {
            "nn_hidden_layers": {
                "choices": ["256-128-64", "128-64", "64-32"],
                "default": "128-64",
            },
            "nn_learning_rate_init": {
                "min": 1e-4,
                "max": 1e-2,
                "type": "float",
                "log": True,
                "default": 0.001,
            },
            "rf_n_estimators": {"min": 20, "max": 200, "type": "int", "default": 50},
            "rf_max_depth": {"min": 4, "max": 20, "type": "int", "default": 12},
            "xgb_n_estimators": {"min": 20, "max": 200, "type": "int", "default": 50},
            "xgb_max_depth": {"min": 2, "max": 8, "type": "int", "default": 4},
            "xgb_learning_rate": {
                "min": 0.01,
                "max": 0.3,
                "type": "float",
                "log": True,
                "default": 0.1,
            },
        },
    }

    @staticmethod
    def _suggest_param(trial, param_name, param_config):
        """
        Helper method to generate optuna suggestion based on parameter configuration.

        Args:
            trial: Optuna trial object
            param_name (str): Name of the parameter
            param_config (dict): Configuration for the parameter

        Returns:
            Suggested parameter value
        """
        if "choices" in param_config:
            return trial.suggest_categorical(param_name, param_config["choices"])
        elif param_config.get("type") == "int":
            return trial.suggest_int(
                param_name, param_config["min"], param_config["max"]
            )
        elif param_config.get("type") == "float":
            log = param_config.get("log", False)
            return trial.suggest_float(
                param_name, param_config["min"], param_config["max"], log=log
            )
        else:
            raise ValueError(
                f"Invalid parameter configuration for {param_name}: {param_config}"
            )

    @staticmethod
    def _apply_family_specific_transformations(params, family_name):
        """Converts search-space encodings into constructor arguments."""
        if family_name == "neural-network" and "hidden_layers" in params:
            params["hidden_layer_sizes"] = _layers_from_string(params.pop("hidden_layers"))
        elif family_name == "ensemble" and "nn_hidden_layers" in params:
            params["nn_hidden_layer_sizes"] = _layers_from_string(params.pop("nn_hidden_layers"))
        return params

    @classmethod
    def get_search_space(cls, trial: optuna.trial.Trial, family_name):
        """
        Defines the hyperparameter search space for a given model family.

        Args:
            trial (optuna.trial.Trial): The Optuna trial object.
            family_name (str): The model family name.

        Returns:
            dict: A dictionary of suggested hyperparameters for the trial.
        """
        params = {}
        family_config = cls.HYPERPARAMETER_CONFIGS.get(family_name, {})
        if not family_config:
            raise ValueError(f"No config for model family '{family_name}'")

        for param, config in family_config.items():
            params[param] = Config._suggest_param(trial, param, config)

        return Config._apply_family_specific_transformations(params, family_name)

    @classmethod
    def get_defaults(cls, family_name):
        """
        Get default hyperparameters for a given model family.

        Args:
            family_name (str): The model family name.

        Returns:
            dict: A dictionary of default hyperparameters.
        """
        params = {}
        family_config = cls.HYPERPARAMETER_CONFIGS.get(family_name, {})
        if not family_config:
            raise ValueError(f"No config for model family '{family_name}'")

        for param, config in family_config.items():
            if "default" in config:
                params[param] = config["default"]
            else:
                raise ValueError(f"No default for '{param}' in '{family_name}'")

        return Config._apply_family_specific_transformations(params, family_name)

    def build_model(self, architecture: str | None = None, params: dict | None = None) -> DeployableModel:
        """
        Instantiate an untrained deployable model for an architecture.

        Args:
            architecture: Model family name; defaults to ``ARCHITECTURE``
            params: Constructor parameters; the family defaults when omitted

        Returns:
            DeployableModel wrapping the estimator and a fresh feature scaler
        """
        architecture = architecture or self.ARCHITECTURE
        if architecture not in self.MODEL_FAMILIES:
            raise ValueError(
                f"Unknown architecture '{architecture}'. Expected one of {list(self.MODEL_FAMILIES)}"
            )
        if params is None:
            params = self.get_defaults(architecture)

        model_class = self.MODEL_FAMILIES[architecture]["class"]
        estimator = model_class(**params, random_state=self.RANDOM_STATE)
        return DeployableModel(
            estimator,
            architecture=architecture,
            scaler=FeatureScaler(self.NORMALIZATION),
            metadata={
                "feature_dimension": self.FEATURE_DIMENSION,
                "output_dimension": self.OUTPUT_DIMENSION,
                "hyperparameters": dict(params),
            },
        )

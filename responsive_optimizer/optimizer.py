"""Top-level orchestration: feature extraction, inference, suggestions, training and persistence."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple, Union

import numpy as np

from responsive_optimizer.config import Config
from responsive_optimizer.data_processing import FeatureExtractor
from responsive_optimizer.exceptions import NotInitializedError, ValidationError
from responsive_optimizer.models import DeployableModel, load_model
from responsive_optimizer.prediction import PredictionEngine, SuggestionGenerator
from responsive_optimizer.training import ModelTrainer, OptunaOptimizer
from responsive_optimizer.types import (
    ComponentUsageData,
    CrossValidationResult,
    ModelInfo,
    OptimizationSuggestions,
    PredictionConstraints,
    ResponsiveConfig,
    TokenConstraint,
    TrainingData,
    TrainingMetrics,
)

PathLike = Union[str, Path]


class ScalingOptimizer:
    """
    Suggests better responsive scaling rules from a configuration and its observed usage.

    The optimizer owns one model. It must be initialized (a fresh model or a
    saved one) before it can optimize, train, evaluate or save. Optimization
    only reads the model, so concurrent ``optimize_scaling`` calls are safe;
    training calls are not serialized against each other.

    Example:
        optimizer = ScalingOptimizer()
        await optimizer.initialize()
        suggestions = await optimizer.optimize_scaling(config, usage_data)
    """

    def __init__(
        self,
        settings: Config | None = None,
        architecture: str | None = None,
        logger: logging.Logger | None = None,
    ):
        self.settings = settings or Config()
        self.architecture = architecture or self.settings.ARCHITECTURE
        self.logger = logger or logging.getLogger(__name__)

        self.feature_extractor = FeatureExtractor(self.settings, logger=self.logger)
        self.trainer = ModelTrainer(self.settings, logger=self.logger, feature_extractor=self.feature_extractor)
        self.engine = PredictionEngine(self.settings, logger=self.logger)
        self.suggestion_generator = SuggestionGenerator(self.settings, logger=self.logger)

        self.model: DeployableModel | None = None
        self.is_initialized = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self, model_path: PathLike | None = None) -> None:
        """
        Prepare the optimizer for use.

        With ``model_path`` a saved model is loaded. Otherwise a new model of
        the configured architecture is built and fitted once on a neutral
        example (all-zero features mapped to the default labels), so it can
        answer requests before any real training. The feature scaling
        learned from that example is replaced on the first training batch.
        """
        if model_path is not None:
            await self.load_model(model_path)
            return

        model = self.settings.build_model(self.architecture)
        X_prior = np.zeros((1, self.settings.FEATURE_DIMENSION))
        y_prior = self.trainer.preprocessor.default_label_vector().reshape(1, -1)
        model.fit(X_prior, y_prior, provisional_scaling=True)

        self.model = model
        self.is_initialized = True
        self.logger.info("Initialized %s model with a neutral prior", self.architecture)

    def _require_initialized(self) -> None:
        if not self.is_initialized or self.model is None:
            raise NotInitializedError("Scaling optimizer not initialized. Call initialize() first.")

    # ------------------------------------------------------------------
    # Optimization
    # ------------------------------------------------------------------

    def _validate_request(self, config, usage_data) -> Tuple[ResponsiveConfig, List[ComponentUsageData]]:
        """Check an optimization request and convert JSON-like input into typed records."""
        self._require_initialized()
        if config is None:
            raise ValidationError("Configuration is required for optimization")
        if not isinstance(usage_data, (list, tuple)) or len(usage_data) == 0:
            raise ValidationError("Usage data is required and must be a non-empty array")

        if isinstance(config, dict):
            try:
                config = ResponsiveConfig.from_dict(config)
            except (KeyError, TypeError, ValueError) as e:
                raise ValidationError(f"Invalid configuration: {e}") from e
        if config.strategy is None or not config.strategy.tokens:
            raise ValidationError("Configuration must include strategy with tokens")
        self._check_config_fields(config)

        records = []
        for i, record in enumerate(usage_data):
            if isinstance(record, dict):
                try:
                    record = ComponentUsageData.from_dict(record)
                except (KeyError, TypeError, ValueError) as e:
                    raise ValidationError(f"Invalid usage data at index {i}: {e}") from e
            if record is None or record.responsive_values is None:
                raise ValidationError(f"Invalid usage data at index {i}: responsive_values is required")
            self._check_usage_fields(i, record)
            records.append(record)
        return config, records

    @staticmethod
    def _check_config_fields(config: ResponsiveConfig) -> None:
        if config.base is None:
            raise ValidationError("Invalid configuration: base viewport is required")
        if config.strategy.accessibility is None:
            raise ValidationError("Invalid configuration: strategy accessibility is required")
        for name, token in config.strategy.tokens.items():
            if token is None:
                raise ValidationError(f"Invalid configuration: token '{name}' is required")

    @staticmethod
    def _check_usage_fields(index: int, record: ComponentUsageData) -> None:
        for j, value in enumerate(record.responsive_values):
            if value is None:
                raise ValidationError(f"Invalid usage data at index {index}: responsive_values[{j}] is required")
            if value.property is None:
                raise ValidationError(
                    f"Invalid usage data at index {index}: responsive_values[{j}].property is required"
                )
            if value.breakpoint_values is None:
                raise ValidationError(
                    f"Invalid usage data at index {index}: responsive_values[{j}].breakpoint_values is required"
                )

    def _constraints(self, config: ResponsiveConfig) -> PredictionConstraints:
        """Token ranges from the configuration; performance outputs are kept non-negative."""
        return PredictionConstraints(
            token_constraints={
                name: TokenConstraint(min=token.min, max=token.max, step=token.step)
                for name, token in config.strategy.tokens.items()
            },
            performance_constraints=[(0.0, float("inf"))] * len(self.settings.PERFORMANCE_METRICS),
        )

    def _optimize(self, config: ResponsiveConfig, usage_data: List[ComponentUsageData]) -> OptimizationSuggestions:
        features = self.feature_extractor.extract_features(config, usage_data)
        vector = self.feature_extractor.features_to_vector(features)
        raw = None
        try:
            raw = self.engine.predict(self.model, vector)
            confidence = self.engine.get_prediction_confidence(self.model, vector)
            processed = self.engine.post_process_predictions(raw, self._constraints(config))
            return self.suggestion_generator.generate(config, usage_data, features, processed, confidence)
        finally:
            del vector, raw

    async def optimize_scaling(
        self, config: Union[ResponsiveConfig, Dict[str, Any]], usage_data: Sequence[Any]
    ) -> OptimizationSuggestions:
        """
        Suggest optimized scaling rules for a configuration.

        Args:
            config: Responsive configuration, typed or as a dictionary
            usage_data: Non-empty list of usage records, typed or as dictionaries

        Returns:
            OptimizationSuggestions

        Raises:
            NotInitializedError: If ``initialize`` has not completed
            ValidationError: If the configuration or usage data is malformed
            InferenceError: If the model fails
        """
        config, records = self._validate_request(config, usage_data)
        self.logger.info(
            "Optimizing %s tokens from %s usage records", len(config.strategy.tokens), len(records)
        )
        return self._optimize(config, records)

    async def batch_optimize(self, requests: Sequence[Tuple[Any, Sequence[Any]]]) -> List[OptimizationSuggestions]:
        """
        Optimize several ``(config, usage_data)`` requests.

        Every request is validated before any is run, so one malformed
        request fails the whole batch without partial work.
        """
        validated = [self._validate_request(config, usage) for config, usage in requests]

        async def run(config, records):
            return self._optimize(config, records)

        return list(await asyncio.gather(*(run(config, records) for config, records in validated)))

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    @staticmethod
    def _training_records(training_data) -> List[TrainingData]:
        if not training_data:
            return []
        return [TrainingData.from_dict(d) if isinstance(d, dict) else d for d in training_data]

    async def train_model(self, training_data: Sequence[Any]) -> TrainingMetrics:
        """Continue training the current model; see ``ModelTrainer.train``."""
        self._require_initialized()
        return self.trainer.train(self.model, self._training_records(training_data))

    async def evaluate_model(self, test_data: Sequence[Any]) -> TrainingMetrics:
        """Score the current model without changing it."""
        self._require_initialized()
        return self.trainer.evaluate(self.model, self._training_records(test_data))

    async def cross_validate(self, training_data: Sequence[Any], k: int | None = None) -> CrossValidationResult:
        """K-fold cross-validation of the configured architecture; the current model is untouched."""
        return self.trainer.cross_validate(
            lambda: self.settings.build_model(self.architecture),
            self._training_records(training_data),
            k=k,
        )

    async def tune_hyperparameters(self, training_data: Sequence[Any], n_trials: int | None = None) -> Dict[str, Any]:
        """
        Search hyperparameters for the configured architecture.

        Returns:
            dict with the architecture, the best parameters and their mean
            cross-validated MSE
        """
        search = OptunaOptimizer(
            self.settings,
            self._training_records(training_data),
            model_families=[self.architecture],
            trainer=self.trainer,
            logger=self.logger,
        )
        study = search.run(n_trials)[0]
        self.logger.info("Best %s trial: mse=%.4f params=%s", self.architecture, study.best_value, study.best_params)
        return {
            "architecture": self.architecture,
            "best_params": dict(study.best_params),
            "best_value": float(study.best_value),
        }

    # ------------------------------------------------------------------
    # Persistence and introspection
    # ------------------------------------------------------------------

    def _resolve_path(self, path: PathLike) -> Path:
        path = Path(path)
        if path.is_dir():
            return path / self.settings.MODEL_FILENAME
        return path

    async def save_model(self, path: PathLike) -> Path:
        """
        Save the current model.

        A directory path receives ``MODEL_FILENAME``. File system errors are
        raised unchanged.
        """
        self._require_initialized()
        target = self._resolve_path(path)
        self.model.save(target)
        self.logger.info("Saved %s model to %s", self.model.architecture, target)
        return target

    async def load_model(self, path: PathLike) -> None:
        """
        Replace the current model with a saved one.

        Raises:
            OSError: If the file cannot be read
            PersistenceError: If the file does not hold a saved model
        """
        target = self._resolve_path(path)
        model = load_model(target)
        self.model = model
        self.architecture = model.architecture
        self.is_initialized = True
        self.logger.info("Loaded %s model from %s", model.architecture, target)

    def get_model_info(self) -> ModelInfo:
        """Architecture, parameter count and layer summary; available before initialization."""
        if self.model is None:
            return ModelInfo(
                architecture=self.architecture,
                parameters=0,
                layers=self.settings.build_model(self.architecture).describe_layers(),
                is_initialized=False,
            )
        return ModelInfo(
            architecture=self.model.architecture,
            parameters=self.model.count_parameters(),
            layers=self.model.describe_layers(),
            is_initialized=self.is_initialized,
        )


async def create_optimizer(
    settings: Config | None = None,
    model_path: PathLike | None = None,
    logger: logging.Logger | None = None,
) -> ScalingOptimizer:
    """Build and initialize an optimizer, optionally from a saved model."""
    optimizer = ScalingOptimizer(settings, logger=logger)
    await optimizer.initialize(model_path)
    return optimizer


async def optimize_configuration(
    config: Union[ResponsiveConfig, Dict[str, Any]],
    usage_data: Sequence[Any],
    settings: Config | None = None,
) -> OptimizationSuggestions:
    """One-shot helper: initialize a fresh optimizer and optimize a single configuration."""
    optimizer = await create_optimizer(settings)
    return await optimizer.optimize_scaling(config, usage_data)

"""Inference, confidence estimation, explanation and post-processing of model outputs."""

import logging
import math
from typing import Dict, Mapping, Sequence, Tuple

import numpy as np

from responsive_optimizer.config import Config
from responsive_optimizer.exceptions import (
    ExplanationError,
    InferenceError,
    PostProcessingError,
    PredictionValidationError,
)
from responsive_optimizer.types import (
    FeatureContribution,
    PostProcessedPrediction,
    PredictionComparison,
    PredictionConfidence,
    PredictionConstraints,
    PredictionExplanation,
    PredictionValidation,
    RangeViolation,
    SuggestedToken,
    TokenConstraint,
)

# Guards the relative variance against zero means
_EPSILON = 1e-8


def _check_model(model):
    if model is None or not callable(getattr(model, "predict", None)):
        raise ValueError("Invalid model: missing predict method")


def _as_matrix(features) -> np.ndarray:
    if features is None:
        raise ValueError("Features are required")
    X = np.asarray(features, dtype=float)
    if X.ndim == 1:
        X = X.reshape(1, -1)
    return X


class PredictionEngine:
    """
    Runs a trained model and turns its raw output into usable suggestions.

    The engine holds no model state: every method receives the model to use,
    so one engine can serve concurrent requests against a shared model.
    """

    def __init__(self, settings: Config | None = None, logger: logging.Logger | None = None):
        self.settings = settings or Config()
        self.logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------

    def predict(self, model, features) -> np.ndarray:
        """
        Predict the output vector for a single feature vector.

        Args:
            model: Any object with a ``predict`` method
            features: Feature vector of length FEATURE_DIMENSION

        Returns:
            np.ndarray of shape (n_outputs,)

        Raises:
            InferenceError: If the model or features are unusable or the model fails
        """
        try:
            _check_model(model)
            output = np.asarray(model.predict(_as_matrix(features)), dtype=float)
            return output.reshape(1, -1)[0]
        except Exception as e:
            raise InferenceError(f"Prediction failed: {e}") from e

    def predict_batch(self, model, batch) -> np.ndarray:
        """Predict a (n_samples, n_outputs) matrix for a batch of feature vectors."""
        try:
            _check_model(model)
            X = _as_matrix(batch)
            output = np.asarray(model.predict(X), dtype=float)
            return output.reshape(X.shape[0], -1)
        except Exception as e:
            raise InferenceError(f"Batch prediction failed: {e}") from e

    def get_prediction_confidence(self, model, features, num_samples: int | None = None) -> PredictionConfidence:
        """
        Estimate how stable a prediction is under small input perturbations.

        The features are perturbed ``num_samples`` times with multiplicative
        Gaussian noise and the spread of the outputs is measured. The random
        generator is created per call, so results are reproducible and calls
        do not interfere with each other.

        Args:
            model: Trained model
            features: Feature vector
            num_samples: Number of perturbed samples; CONFIDENCE_SAMPLES by default

        Returns:
            PredictionConfidence with per-output mean and variance and an
            overall confidence in [0, 1]
        """
        num_samples = max(1, num_samples or self.settings.CONFIDENCE_SAMPLES)
        x = _as_matrix(features)[0]
        rng = np.random.default_rng(self.settings.RANDOM_STATE)

        noise = rng.normal(0.0, self.settings.CONFIDENCE_NOISE, size=(num_samples, x.shape[0]))
        samples = self.predict_batch(model, x * (1.0 + noise))

        mean = samples.mean(axis=0)
        variance = samples.var(axis=0)
        relative = np.nan_to_num(variance / (mean ** 2 + _EPSILON), nan=0.0, posinf=1e12)
        confidence = 1.0 / (1.0 + float(np.mean(relative)))
        if not math.isfinite(confidence):
            confidence = 0.0
        return PredictionConfidence(mean=mean, variance=variance, confidence=float(np.clip(confidence, 0.0, 1.0)))

    # ------------------------------------------------------------------
    # Explanation and validation
    # ------------------------------------------------------------------

    def explain_prediction(self, model, features, feature_names: Sequence[str]) -> PredictionExplanation:
        """
        Occlusion-based feature importance for one prediction.

        Each feature is set to zero in turn and the mean absolute change of
        the outputs is recorded. Importances are scaled so the most
        influential feature scores 1.

        Raises:
            ExplanationError: If the model, features or names are unusable
        """
        try:
            _check_model(model)
            x = _as_matrix(features)[0]
            if not feature_names:
                raise ValueError("Feature names are required")

            baseline = self.predict(model, x)
            occluded = np.repeat(x[np.newaxis, :], x.shape[0], axis=0)
            np.fill_diagonal(occluded, 0.0)
            outputs = self.predict_batch(model, occluded)

            deltas = np.nan_to_num(np.abs(outputs - baseline).mean(axis=1))
            top = deltas.max()
            importance = deltas / top if top > 0 else np.zeros_like(deltas)

            names = list(feature_names)
            feature_importance = {
                names[i] if i < len(names) else f"feature_{i}": float(importance[i])
                for i in range(len(importance))
            }
            ranked = sorted(feature_importance.items(), key=lambda item: -item[1])
            return PredictionExplanation(
                feature_importance=feature_importance,
                top_features=[
                    FeatureContribution(name=name, importance=value)
                    for name, value in ranked[: self.settings.TOP_FEATURES]
                ],
            )
        except Exception as e:
            cause = e.__cause__ if isinstance(e, InferenceError) and e.__cause__ else e
            raise ExplanationError(f"Prediction explanation failed: {cause}") from e

    def _output_index(self, name: str, position: int) -> int:
        if name in self.settings.OUTPUT_NAMES:
            return self.settings.OUTPUT_NAMES.index(name)
        return position

    def validate_prediction(self, prediction, expected_ranges: Mapping[str, Tuple[float, float]]) -> PredictionValidation:
        """
        Check predicted outputs against expected ``(low, high)`` ranges.

        Ranges are keyed by output name (e.g. ``fontSize_scale``); unknown
        names are matched by their position in ``expected_ranges``.

        Returns:
            PredictionValidation; ``confidence`` is the share of ranges respected
        """
        try:
            values = np.asarray(prediction, dtype=float).ravel()
            violations = []
            for position, (name, (low, high)) in enumerate(expected_ranges.items()):
                value = float(values[self._output_index(name, position)])
                if not (low <= value <= high):
                    violations.append(RangeViolation(parameter=name, value=value, expected=(low, high)))
        except Exception as e:
            raise PredictionValidationError(f"Prediction validation failed: {e}") from e

        n_ranges = len(expected_ranges)
        confidence = max(0.0, 1.0 - len(violations) / n_ranges) if n_ranges else 1.0
        return PredictionValidation(is_valid=not violations, violations=violations, confidence=confidence)

    def compare_predictions(self, optimized, baseline) -> PredictionComparison:
        """
        Percent change of every named output between two predictions.

        Performance outputs are costs, so a decrease counts as an improvement.
        """
        optimized = np.asarray(optimized, dtype=float).ravel()
        baseline = np.asarray(baseline, dtype=float).ravel()
        improvements: Dict[str, float] = {}
        regressions: Dict[str, float] = {}
        total = 0.0
        for i, name in enumerate(self.settings.OUTPUT_NAMES[: min(len(optimized), len(baseline))]):
            before, after = baseline[i], optimized[i]
            if before == 0 or not np.isfinite(before) or not np.isfinite(after):
                continue
            change = (after - before) / abs(before) * 100.0
            if name in self.settings.LOWER_IS_BETTER:
                change = -change
            if change > 0:
                improvements[name] = float(change)
            elif change < 0:
                regressions[name] = float(-change)
            total += change

        n_outputs = len(self.settings.OUTPUT_NAMES)
        return PredictionComparison(
            improvements=improvements,
            regressions=regressions,
            overall_improvement=float(total / n_outputs) if n_outputs else 0.0,
        )

    # ------------------------------------------------------------------
    # Post-processing
    # ------------------------------------------------------------------

    @staticmethod
    def _on_grid(value: float, low: float, high: float, step: float) -> float:
        """Snap ``value`` to the nearest ``low + k * step`` that lies within ``[low, high]``."""
        snapped = low + round((min(max(value, low), high) - low) / step) * step
        if snapped > high:
            snapped = low + math.floor((high - low) / step + 1e-9) * step
        return snapped

    def _token_from_output(self, raw: np.ndarray, offset: int, constraint: TokenConstraint) -> SuggestedToken:
        low, high = float(constraint.min), float(constraint.max)
        if high < low:
            low, high = high, low
        step = float(constraint.step)
        if not step > 0:
            raise ValueError(f"Constraint step must be positive, got {step}")

        scale, raw_min, raw_max, raw_step = np.nan_to_num(raw[offset: offset + 4], nan=low, posinf=high, neginf=low)
        scale_low, scale_high = self.settings.SCALE_RANGE
        scale = float(np.clip(scale, scale_low, scale_high))

        token_min = self._on_grid(float(raw_min), low, high, step)
        token_max = self._on_grid(float(raw_max), low, high, step)
        if token_min > token_max:
            token_min, token_max = token_max, token_min

        max_multiple = max(1, math.floor((high - low) / step + 1e-9))
        multiple = min(max(1, round(float(raw_step) / step)), max_multiple)

        return SuggestedToken(
            scale=round(scale, 10),
            min=round(token_min, 10),
            max=round(token_max, 10),
            step=round(step * multiple, 10),
        )

    def post_process_predictions(self, raw_output, constraints: PredictionConstraints) -> PostProcessedPrediction:
        """
        Map a raw output vector onto valid token rules and performance values.

        Every constrained token gets a scale within ``SCALE_RANGE``, a
        ``min``/``max`` pair on the constraint grid ``low + k * step`` with
        ``low <= min <= max <= high`` and a step that is a positive multiple
        of the constraint step. Tokens outside the output layout fall back
        to the constraint itself. Performance constraint ``i`` clamps
        performance output ``i``.

        Raises:
            PostProcessingError: If the output or the constraints cannot be read
        """
        s = self.settings
        try:
            raw = np.asarray(raw_output, dtype=float).ravel()
            values = raw.copy()
            tokens: Dict[str, SuggestedToken] = {}

            for name, constraint in constraints.token_constraints.items():
                if name in s.TOKEN_NAMES:
                    offset = s.TOKEN_NAMES.index(name) * len(s.TOKEN_PARAMS)
                    tokens[name] = self._token_from_output(raw, offset, constraint)
                    token = tokens[name]
                    values[offset: offset + 4] = [token.scale, token.min, token.max, token.step]
                else:
                    tokens[name] = self._token_from_output(
                        np.array([1.0, constraint.min, constraint.max, constraint.step]), 0, constraint
                    )

            performance = []
            for i, (low, high) in enumerate(constraints.performance_constraints):
                slot = s.PERFORMANCE_OFFSET + i
                value = float(np.nan_to_num(raw[slot], nan=low, posinf=high, neginf=low))
                values[slot] = float(np.clip(value, low, high))
                performance.append(float(values[slot]))
        except Exception as e:
            raise PostProcessingError(f"Post-processing failed: {e}") from e

        return PostProcessedPrediction(tokens=tokens, performance=performance, values=values)

"""Conversion of labelled training examples into model matrices."""

import logging
from typing import List, Sequence, Tuple

import numpy as np

from responsive_optimizer.config import Config
from responsive_optimizer.data_processing.feature_extractor import FeatureExtractor
from responsive_optimizer.exceptions import ValidationError
from responsive_optimizer.types import ModelFeatures, ModelLabels, TrainingData


class TrainingDataPreprocessor:
    """
    Turns a list of ``TrainingData`` into the ``(X, y)`` pair used by the models.

    Features may arrive as ``ModelFeatures`` records or as already flattened
    vectors; labels as ``ModelLabels`` records or flattened vectors. Anything
    that cannot be laid out in the fixed input/output dimensions is rejected
    with a ``ValidationError`` naming the offending example.
    """

    def __init__(
        self,
        settings: Config | None = None,
        feature_extractor: FeatureExtractor | None = None,
        logger: logging.Logger | None = None,
    ):
        self.settings = settings or Config()
        self.feature_extractor = feature_extractor or FeatureExtractor(self.settings)
        self.logger = logger or logging.getLogger(__name__)

    def default_label_vector(self) -> np.ndarray:
        """The neutral label: default token rules, no performance cost, neutral satisfaction."""
        s = self.settings
        vector = np.zeros(s.OUTPUT_DIMENSION, dtype=float)
        vector[: s.PERFORMANCE_OFFSET] = np.tile(s.DEFAULT_TOKEN_LABEL, len(s.TOKEN_NAMES))
        vector[s.SATISFACTION_OFFSET] = s.DEFAULT_SATISFACTION
        return vector

    def labels_to_vector(self, labels: ModelLabels) -> np.ndarray:
        """
        Flatten a ``ModelLabels`` record into the output layout.

        Tokens absent from ``optimal_tokens`` keep the default rule, missing
        performance and accessibility scores are 0 and an empty rating list
        yields the neutral satisfaction mean with zero spread.
        """
        s = self.settings
        vector = self.default_label_vector()

        for i, name in enumerate(s.TOKEN_NAMES):
            token = labels.optimal_tokens.get(name)
            if token is not None:
                vector[i * 4: i * 4 + 4] = [token.scale, token.min, token.max, token.step]

        for i, metric in enumerate(s.PERFORMANCE_METRICS):
            vector[s.PERFORMANCE_OFFSET + i] = float(labels.performance_scores.get(metric, 0.0))

        ratings = [float(r) for r in labels.satisfaction_ratings if r is not None]
        if ratings:
            vector[s.SATISFACTION_OFFSET] = np.mean(ratings)
            vector[s.SATISFACTION_OFFSET + 1] = np.std(ratings)

        for i, name in enumerate(s.ACCESSIBILITY_OUTPUTS):
            vector[s.ACCESSIBILITY_OFFSET + i] = float(labels.accessibility_scores.get(name, 0.0))

        return np.nan_to_num(vector, nan=0.0, posinf=0.0, neginf=0.0)

    def _feature_vector(self, features) -> np.ndarray:
        if isinstance(features, ModelFeatures):
            return self.feature_extractor.features_to_vector(features)
        vector = np.asarray(features, dtype=float).ravel()
        if vector.shape[0] != self.settings.FEATURE_DIMENSION:
            raise ValueError(
                f"feature vector has {vector.shape[0]} values, expected {self.settings.FEATURE_DIMENSION}"
            )
        return np.nan_to_num(vector, nan=0.0, posinf=0.0, neginf=0.0)

    def _label_vector(self, labels) -> np.ndarray:
        if isinstance(labels, ModelLabels):
            return self.labels_to_vector(labels)
        vector = np.asarray(labels, dtype=float).ravel()
        if vector.shape[0] != self.settings.OUTPUT_DIMENSION:
            raise ValueError(
                f"label vector has {vector.shape[0]} values, expected {self.settings.OUTPUT_DIMENSION}"
            )
        return np.nan_to_num(vector, nan=0.0, posinf=0.0, neginf=0.0)

    def prepare(self, training_data: Sequence[TrainingData]) -> Tuple[np.ndarray, np.ndarray]:
        """
        Build the feature and label matrices for a training set.

        Args:
            training_data: Labelled examples, at least one

        Returns:
            Tuple of ``X`` with shape (n, FEATURE_DIMENSION) and ``y`` with
            shape (n, OUTPUT_DIMENSION)

        Raises:
            ValidationError: If the set is empty or an example is malformed
        """
        if not training_data:
            raise ValidationError("Training data is required and must be a non-empty array")

        rows: List[np.ndarray] = []
        targets: List[np.ndarray] = []
        for i, example in enumerate(training_data):
            if example is None or example.features is None or example.labels is None:
                raise ValidationError(f"Invalid training data at index {i}: features and labels are required")
            try:
                rows.append(self._feature_vector(example.features))
                targets.append(self._label_vector(example.labels))
            except (TypeError, ValueError) as e:
                raise ValidationError(f"Invalid training data at index {i}: {e}") from e

        self.logger.debug("Prepared %s training examples", len(rows))
        return np.vstack(rows), np.vstack(targets)

"""Feature engineering for the responsive scaling optimizer.

The :mod:`data_processing` package turns responsive configurations and
component usage observations into the fixed-length vectors consumed by the
models. It exposes a
:class:`~responsive_optimizer.data_processing.feature_extractor.FeatureExtractor`
for inference inputs and a
:class:`~responsive_optimizer.data_processing.preprocessor.TrainingDataPreprocessor`
that lays out labelled training examples as ``(X, y)`` matrices.
"""

from .feature_extractor import FeatureExtractor
from .preprocessor import TrainingDataPreprocessor

__all__ = ["FeatureExtractor", "TrainingDataPreprocessor"]

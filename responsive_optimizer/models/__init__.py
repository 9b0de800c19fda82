"""Model implementations for the responsive scaling optimizer.

This package contains the trainable regressors used to predict token
parameters, performance and accessibility outputs. All models implement the
BasePredictor interface so the trainer, the prediction engine and the
optimizer can treat every architecture the same way.
"""

from .base import BasePredictor
from .implementations.ensemble import EnsembleRegressor
from .implementations.sklearn_models import NeuralNetworkRegressor, RandomForestRegressor
from .implementations.xgboost_models import XGBoostRegressor
from .unified_wrapper import DeployableModel, load_model

__all__ = [
    "BasePredictor",
    "NeuralNetworkRegressor",
    "RandomForestRegressor",
    "XGBoostRegressor",
    "EnsembleRegressor",
    "DeployableModel",
    "load_model",
]

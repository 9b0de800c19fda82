"""Model implementations for the responsive scaling optimizer."""

from .ensemble import EnsembleRegressor
from .sklearn_models import NeuralNetworkRegressor, RandomForestRegressor
from .xgboost_models import XGBoostRegressor

__all__ = [
    "NeuralNetworkRegressor",
    "RandomForestRegressor",
    "XGBoostRegressor",
    "EnsembleRegressor",
]

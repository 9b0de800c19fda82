import joblib
import numpy as np
import optuna
import pytest

from responsive_optimizer.exceptions import PersistenceError
from responsive_optimizer.models import (
    DeployableModel,
    EnsembleRegressor,
    NeuralNetworkRegressor,
    RandomForestRegressor,
    XGBoostRegressor,
    load_model,
)
from responsive_optimizer.preprocessing import FeatureScaler


@pytest.fixture
def matrices():
    rng = np.random.default_rng(7)
    X = rng.uniform(0.0, 10.0, size=(24, 128))
    y = np.hstack([X[:, :1] * 0.1 + rng.normal(0, 0.01, size=(24, 1)) for _ in range(32)])
    return X, y


class TestModelFamilies:
    """Every family builds from the configuration and trains incrementally."""

    @pytest.mark.parametrize("architecture", ["neural-network", "random-forest", "gradient-boosting", "ensemble"])
    def test_build_train_predict(self, settings, matrices, architecture):
        X, y = matrices
        model = settings.build_model(architecture)
        assert isinstance(model, DeployableModel)
        assert not model.is_fitted

        model.partial_fit(X, y, epochs=2, batch_size=8)
        predictions = model.predict(X)
        assert predictions.shape == (24, 32)
        assert np.all(np.isfinite(predictions))
        assert model.is_fitted
        assert model.count_parameters() > 0
        assert model.describe_layers()

    def test_unknown_architecture_is_rejected(self, settings):
        with pytest.raises(ValueError, match="Unknown architecture"):
            settings.build_model("transformer")

    def test_network_continues_from_current_weights(self, matrices):
        X, y = matrices
        model = NeuralNetworkRegressor(hidden_layer_sizes=(8,), random_state=0)
        model.partial_fit(X, y, epochs=3)
        weights = model.model.coefs_[0].copy()
        model.partial_fit(X, y, epochs=2)
        assert model.n_updates_ == 5
        assert not np.array_equal(weights, model.model.coefs_[0])

    def test_forest_grows_trees_on_each_update(self, matrices):
        X, y = matrices
        model = RandomForestRegressor(n_estimators=3, max_depth=3)
        model.partial_fit(X, y)
        model.partial_fit(X, y)
        assert len(model.model.estimators_) == 6

    def test_boosting_adds_rounds_on_each_update(self, matrices):
        X, y = matrices
        model = XGBoostRegressor(n_estimators=3, max_depth=2)
        model.partial_fit(X, y)
        model.partial_fit(X, y)
        assert model.model.get_booster().num_boosted_rounds() == 6

    def test_ensemble_rejects_unknown_parameters(self):
        EnsembleRegressor(rf_n_estimators=3, xgb_max_depth=2)
        with pytest.raises(TypeError, match="rf_n_estimator"):
            EnsembleRegressor(rf_n_estimator=3)

    def test_predict_before_fit_raises(self, matrices):
        X, _ = matrices
        with pytest.raises(ValueError, match="fitted"):
            NeuralNetworkRegressor(hidden_layer_sizes=(8,)).predict(X)


class TestDeployableModel:
    def test_tracks_updates(self, settings, matrices):
        X, y = matrices
        model = settings.build_model("random-forest")
        model.partial_fit(X[:12], y[:12])
        model.partial_fit(X[12:], y[12:])
        info = model.get_model_info()
        assert info["architecture"] == "random-forest"
        assert info["training_updates"] == 2
        assert info["samples_seen"] == 24
        assert info["num_features"] == 128
        assert info["output_dimension"] == 32

    def test_fit_starts_over(self, settings, matrices):
        X, y = matrices
        model = settings.build_model("random-forest")
        model.partial_fit(X[:12], y[:12])
        model.partial_fit(X[12:], y[12:])
        model.fit(X, y)
        assert model.training_updates == 1
        assert model.samples_seen == 24
        assert len(model.model.model.estimators_) == 5
        assert not model.scaler.is_provisional_

    def test_save_and_load(self, settings, matrices, tmp_path):
        X, y = matrices
        model = settings.build_model("neural-network")
        model.partial_fit(X, y, epochs=2)
        path = tmp_path / "nested" / "model.joblib"
        model.save(path)

        restored = DeployableModel.load(path)
        np.testing.assert_allclose(restored.predict(X), model.predict(X))
        assert restored.architecture == "neural-network"

    def test_load_missing_file_raises_os_error(self, tmp_path):
        with pytest.raises(OSError):
            load_model(tmp_path / "missing.joblib")

    def test_load_foreign_object_raises_persistence_error(self, tmp_path):
        path = tmp_path / "other.joblib"
        joblib.dump({"not": "a model"}, path)
        with pytest.raises(PersistenceError, match="expected DeployableModel"):
            load_model(path)

    def test_load_corrupt_file_raises_persistence_error(self, tmp_path):
        path = tmp_path / "corrupt.joblib"
        path.write_bytes(b"this is not a pickle")
        with pytest.raises(PersistenceError) as exc_info:
            load_model(path)
        assert exc_info.value.__cause__ is not None


class TestFeatureScaler:
    def test_standard_scaling_is_updated_incrementally(self):
        scaler = FeatureScaler("standard")
        scaler.fit(np.zeros((2, 3)))
        scaler.partial_fit(np.full((2, 3), 4.0))
        assert scaler.n_samples_seen_ == 4
        np.testing.assert_allclose(scaler.scaler_.mean_, [2.0, 2.0, 2.0])

    def test_robust_scaling_is_frozen_after_first_fit(self):
        scaler = FeatureScaler("robust")
        scaler.fit(np.arange(12, dtype=float).reshape(4, 3))
        center = scaler.scaler_.center_.copy()
        scaler.partial_fit(np.full((4, 3), 100.0))
        np.testing.assert_array_equal(scaler.scaler_.center_, center)

    def test_provisional_fit_is_replaced_by_the_next_batch(self):
        batch = np.arange(12, dtype=float).reshape(4, 3)
        scaler = FeatureScaler("robust").fit(np.zeros((1, 3)), provisional=True)
        scaler.partial_fit(batch)
        assert not scaler.is_provisional_
        assert scaler.n_samples_seen_ == 4
        np.testing.assert_allclose(scaler.scaler_.center_, [4.5, 5.5, 6.5])

        scaler.partial_fit(np.full((4, 3), 100.0))
        np.testing.assert_allclose(scaler.scaler_.center_, [4.5, 5.5, 6.5])

    def test_provisional_standard_statistics_are_discarded(self):
        scaler = FeatureScaler("standard").fit(np.zeros((1, 3)), provisional=True)
        scaler.partial_fit(np.full((2, 3), 4.0))
        np.testing.assert_allclose(scaler.scaler_.mean_, [4.0, 4.0, 4.0])

    def test_single_vector_and_non_finite_input(self):
        scaler = FeatureScaler("minmax").fit(np.array([[0.0, 0.0], [2.0, 4.0]]))
        transformed = scaler.transform([1.0, np.nan])
        assert transformed.shape == (1, 2)
        np.testing.assert_allclose(transformed, [[0.5, 0.0]])

    def test_dimension_mismatch_and_unknown_method(self):
        scaler = FeatureScaler().fit(np.ones((2, 3)))
        with pytest.raises(ValueError, match="Expected 3 features"):
            scaler.transform(np.ones((1, 4)))
        with pytest.raises(ValueError, match="Unknown normalization method"):
            FeatureScaler("log").fit(np.ones((2, 3)))
        with pytest.raises(ValueError, match="fitted"):
            FeatureScaler().transform(np.ones((1, 3)))


class TestConfiguration:
    def test_output_layout(self, settings):
        assert len(settings.OUTPUT_NAMES) == settings.OUTPUT_DIMENSION == 32
        assert settings.OUTPUT_NAMES[0] == "fontSize_scale"
        assert settings.OUTPUT_NAMES.index("render_time") == settings.PERFORMANCE_OFFSET
        assert settings.OUTPUT_NAMES.index("satisfaction_mean") == settings.SATISFACTION_OFFSET
        assert settings.OUTPUT_NAMES.index("font_size_compliance") == settings.ACCESSIBILITY_OFFSET

    def test_defaults_decode_layer_strings(self, settings):
        assert settings.get_defaults("neural-network")["hidden_layer_sizes"] == (16, 8)
        assert settings.get_defaults("ensemble")["nn_hidden_layer_sizes"] == (8,)
        with pytest.raises(ValueError, match="No config"):
            settings.get_defaults("transformer")

    def test_search_space_uses_trial_suggestions(self, settings):
        trial = optuna.trial.FixedTrial({"hidden_layers": "8", "learning_rate_init": 0.002, "alpha": 0.001})
        params = settings.get_search_space(trial, "neural-network")
        assert params == {"hidden_layer_sizes": (8,), "learning_rate_init": 0.002, "alpha": 0.001}

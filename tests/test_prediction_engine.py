import math

import numpy as np
import pytest

from responsive_optimizer.exceptions import (
    ExplanationError,
    InferenceError,
    PostProcessingError,
    PredictionValidationError,
)
from responsive_optimizer.prediction import PredictionEngine
from responsive_optimizer.types import PredictionConstraints, TokenConstraint


class LinearModel:
    """A stand-in model whose outputs are a fixed linear map of the features."""

    def __init__(self, weights):
        self.weights = np.asarray(weights, dtype=float)

    def predict(self, X):
        return np.asarray(X, dtype=float) @ self.weights


class ConstantModel:
    def predict(self, X):
        return np.ones((len(X), 32))


class FailingModel:
    def predict(self, X):
        raise RuntimeError("backend exploded")


@pytest.fixture
def engine(settings):
    return PredictionEngine(settings)


@pytest.fixture
def features():
    return np.linspace(1.0, 2.0, 128)


class TestInference:
    def test_predict_single_vector(self, engine, features):
        model = LinearModel(np.full((128, 32), 0.01))
        output = engine.predict(model, features)
        assert output.shape == (32,)
        assert output[0] == pytest.approx(features.sum() * 0.01)

    def test_predict_batch(self, engine, features):
        model = LinearModel(np.eye(128)[:, :32])
        output = engine.predict_batch(model, np.vstack([features, features * 2]))
        assert output.shape == (2, 32)
        np.testing.assert_allclose(output[1], features[:32] * 2)

    def test_missing_predict_method(self, engine, features):
        with pytest.raises(InferenceError, match="Prediction failed: Invalid model: missing predict method"):
            engine.predict(object(), features)

    def test_missing_features(self, engine):
        with pytest.raises(InferenceError, match="Prediction failed"):
            engine.predict(ConstantModel(), None)

    def test_model_failure_is_wrapped(self, engine, features):
        with pytest.raises(InferenceError, match="Batch prediction failed: backend exploded") as exc_info:
            engine.predict_batch(FailingModel(), [features])
        assert isinstance(exc_info.value.__cause__, RuntimeError)


class TestConfidence:
    def test_confidence_is_bounded_and_reproducible(self, engine, features):
        model = LinearModel(np.random.default_rng(0).normal(size=(128, 32)))
        first = engine.get_prediction_confidence(model, features)
        second = engine.get_prediction_confidence(model, features)
        assert 0.0 <= first.confidence <= 1.0
        assert first.mean.shape == first.variance.shape == (32,)
        np.testing.assert_array_equal(first.mean, second.mean)
        assert first.confidence == second.confidence

    def test_stable_model_is_fully_confident(self, engine, features):
        result = engine.get_prediction_confidence(ConstantModel(), features, num_samples=5)
        assert result.confidence == pytest.approx(1.0)
        np.testing.assert_allclose(result.variance, 0.0)

    def test_sensitive_model_is_less_confident(self, engine, features):
        stable = LinearModel(np.full((128, 32), 0.01))
        # Outputs near zero with large input weights vary a lot relative to their size
        weights = np.zeros((128, 32))
        weights[0], weights[1] = 100.0, -100.0 * features[0] / features[1]
        sensitive = LinearModel(weights)
        assert (
            engine.get_prediction_confidence(sensitive, features).confidence
            < engine.get_prediction_confidence(stable, features).confidence
        )


class TestExplanation:
    def test_occlusion_finds_the_driving_feature(self, engine, features):
        weights = np.zeros((128, 32))
        weights[3] = 1.0
        weights[10] = 0.5
        names = [f"f{i}" for i in range(128)]
        explanation = engine.explain_prediction(LinearModel(weights), features, names)

        assert explanation.top_features[0].name == "f3"
        assert explanation.top_features[0].importance == pytest.approx(1.0)
        assert explanation.top_features[1].name == "f10"
        assert len(explanation.top_features) == 10
        assert explanation.feature_importance["f0"] == 0.0
        assert all(0.0 <= v <= 1.0 for v in explanation.feature_importance.values())

    def test_model_without_predict(self, engine, features):
        with pytest.raises(
            ExplanationError, match="Prediction explanation failed: Invalid model: missing predict method"
        ):
            engine.explain_prediction(object(), features, ["f"] * 128)

    def test_feature_names_are_required(self, engine, features):
        with pytest.raises(ExplanationError):
            engine.explain_prediction(ConstantModel(), features, [])


class TestValidation:
    def test_violations_by_name(self, engine):
        prediction = np.ones(32)
        prediction[0] = 2.5
        prediction[24] = 5.0
        result = engine.validate_prediction(prediction, {"fontSize_scale": (0.5, 1.5), "render_time": (0.0, 10.0)})
        assert not result.is_valid
        assert [v.parameter for v in result.violations] == ["fontSize_scale"]
        assert result.violations[0].value == 2.5
        assert result.confidence == pytest.approx(0.5)

    def test_unknown_names_fall_back_to_position(self, engine):
        result = engine.validate_prediction([0.2, 9.0], {"first": (0.0, 1.0), "second": (0.0, 1.0)})
        assert [v.parameter for v in result.violations] == ["second"]

    def test_no_ranges_is_valid(self, engine):
        result = engine.validate_prediction(np.zeros(32), {})
        assert result.is_valid
        assert result.confidence == 1.0

    def test_unreadable_prediction(self, engine):
        with pytest.raises(PredictionValidationError, match="Prediction validation failed"):
            engine.validate_prediction([], {"render_time": (0.0, 1.0)})


class TestPostProcessing:
    @pytest.fixture
    def constraints(self):
        return PredictionConstraints(
            token_constraints={
                "fontSize": TokenConstraint(12, 72, 1),
                "spacing": TokenConstraint(4, 128, 4),
                "lineHeight": TokenConstraint(1, 2, 0.1),
            },
            performance_constraints=[(0.0, 100.0), (0.0, 50.0)],
        )

    def _assert_on_grid(self, token, constraint):
        assert constraint.min <= token.min <= token.max <= constraint.max
        for value in (token.min, token.max):
            k = (value - constraint.min) / constraint.step
            assert abs(k - round(k)) < 1e-6
        multiple = token.step / constraint.step
        assert multiple >= 1 - 1e-9
        assert abs(multiple - round(multiple)) < 1e-6
        assert 0.1 <= token.scale <= 2.0

    def test_values_are_clamped_and_quantized(self, engine, constraints):
        raw = np.zeros(32)
        raw[0:4] = [5.0, 3.4, 80.0, 2.6]
        raw[4:8] = [0.01, 9.0, 101.0, 9.0]
        raw[24], raw[25] = 150.0, -3.0
        result = engine.post_process_predictions(raw, constraints)

        font = result.tokens["fontSize"]
        assert (font.scale, font.min, font.max, font.step) == (2.0, 12.0, 72.0, 3.0)
        spacing = result.tokens["spacing"]
        assert (spacing.scale, spacing.min, spacing.max, spacing.step) == (0.1, 8.0, 100.0, 8.0)
        assert result.performance == [100.0, 0.0]
        assert result.values[24] == 100.0
        np.testing.assert_allclose(result.values[0:4], [2.0, 12.0, 72.0, 3.0])

    def test_reversed_range_is_reordered(self, engine, constraints):
        raw = np.zeros(32)
        raw[0:4] = [1.0, 60.0, 20.0, 1.0]
        font = engine.post_process_predictions(raw, constraints).tokens["fontSize"]
        assert (font.min, font.max) == (20.0, 60.0)

    @pytest.mark.parametrize("seed", [0, 1, 2, 3])
    def test_invariants_hold_for_arbitrary_output(self, engine, constraints, seed):
        raw = np.random.default_rng(seed).normal(0.0, 200.0, size=32)
        raw[seed] = [np.nan, np.inf, -np.inf, np.nan][seed]
        result = engine.post_process_predictions(raw, constraints)
        for name, constraint in constraints.token_constraints.items():
            self._assert_on_grid(result.tokens[name], constraint)
        assert all(math.isfinite(v) for v in result.performance)

    def test_token_outside_layout_uses_constraint(self, engine):
        constraints = PredictionConstraints(token_constraints={"letterSpacing": TokenConstraint(0, 10, 1)})
        token = engine.post_process_predictions(np.zeros(32), constraints).tokens["letterSpacing"]
        assert (token.scale, token.min, token.max, token.step) == (1.0, 0.0, 10.0, 1.0)

    def test_unreadable_output(self, engine, constraints):
        with pytest.raises(PostProcessingError, match="Post-processing failed"):
            engine.post_process_predictions("not numbers", constraints)

    def test_invalid_step(self, engine):
        constraints = PredictionConstraints(token_constraints={"fontSize": TokenConstraint(12, 72, 0)})
        with pytest.raises(PostProcessingError, match="step must be positive"):
            engine.post_process_predictions(np.zeros(32), constraints)


class TestComparison:
    def test_performance_outputs_are_lower_is_better(self, engine):
        baseline = np.ones(32)
        optimized = np.ones(32)
        optimized[24] = 0.5
        optimized[0] = 0.5
        comparison = engine.compare_predictions(optimized, baseline)
        assert comparison.improvements == {"render_time": pytest.approx(50.0)}
        assert comparison.regressions == {"fontSize_scale": pytest.approx(50.0)}
        assert comparison.overall_improvement == pytest.approx(0.0)

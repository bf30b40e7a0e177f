"""
Tests for the Grove model layer.

Covers the BaseModel contract and every model family: trees, bagging,
random forests (including out-of-bag prediction), boosting and the linear
baselines. Data sets are small so the whole module runs in seconds.
"""

import pytest
import pandas as pd
import numpy as np
from pathlib import Path
import tempfile

from grove.models import (
    BaseModel,
    BaggingModel,
    BoostingModel,
    DecisionTreeModel,
    LinearBaselineModel,
    RandomForestModel,
    available_models,
    get_model_class,
)


@pytest.fixture
def regression_data():
    """Noisy linear regression problem."""
    np.random.seed(42)
    n_samples = 200

    X = pd.DataFrame({
        'x1': np.random.normal(0, 1, n_samples),
        'x2': np.random.normal(0, 1, n_samples),
        'x3': np.random.uniform(-1, 1, n_samples),
    })
    y = pd.Series(3.0 * X['x1'] - 2.0 * X['x2'] + np.random.normal(0, 0.1, n_samples), name='y')

    return X, y


@pytest.fixture
def classification_data():
    """Two-class problem with text labels."""
    np.random.seed(42)
    n_samples = 200

    X = pd.DataFrame({
        'x1': np.random.normal(0, 1, n_samples),
        'x2': np.random.normal(0, 1, n_samples),
    })
    y = pd.Series(np.where(X['x1'] + X['x2'] > 0, 'yes', 'no'), name='label')

    return X, y


class TestBaseModel:
    """Test BaseModel abstract class."""

    def test_base_model_cannot_be_instantiated(self):
        """BaseModel is abstract."""
        with pytest.raises(TypeError):
            BaseModel()

    def test_invalid_task_rejected(self):
        with pytest.raises(ValueError):
            DecisionTreeModel(task="ranking")

    def test_base_model_validation(self):
        """Test input validation methods."""
        model = DecisionTreeModel(random_state=42)

        X = pd.DataFrame({'feature1': [1, 2, 3], 'feature2': [4, 5, 6]})
        y = pd.Series([0.5, 1.5, 0.0])

        model.validate_inputs(X, y)  # Should not raise

        with pytest.raises(ValueError):
            model.validate_inputs("not_a_dataframe", y)

        with pytest.raises(ValueError):
            model.validate_inputs(X, "not_a_series")

        with pytest.raises(ValueError):
            model.validate_inputs(X, pd.Series([0.0, 1.0]))  # Wrong length

        with pytest.raises(ValueError):
            model.validate_inputs(X, pd.Series([0.0, np.nan, 1.0]))  # Missing label

        with pytest.raises(ValueError):
            model.validate_inputs(X, pd.Series(['a', 'b', 'c']))  # Text label for regression

        with pytest.raises(ValueError):
            model.validate_inputs(pd.DataFrame({'color': ['red', 'blue', 'red']}), y)

    def test_predict_before_fit_raises(self, regression_data):
        X, _ = regression_data
        model = DecisionTreeModel()

        with pytest.raises(ValueError, match="fitted"):
            model.predict(X)

    def test_feature_mismatch_after_fit(self, regression_data):
        X, y = regression_data
        model = DecisionTreeModel(max_depth=2).fit(X, y)

        with pytest.raises(ValueError, match="mismatch"):
            model.predict(X[['x2', 'x1', 'x3']])

    def test_registry(self):
        assert available_models() == ['tree', 'bagging', 'random_forest', 'boosting', 'linear']
        assert get_model_class('random_forest') is RandomForestModel
        assert get_model_class(DecisionTreeModel) is DecisionTreeModel

        with pytest.raises(ValueError, match="Unknown model family"):
            get_model_class('svm')

        with pytest.raises(ValueError):
            get_model_class(dict)


class TestDecisionTreeModel:
    """Test the single decision tree."""

    def test_initialization_defaults(self):
        regressor = DecisionTreeModel()
        classifier = DecisionTreeModel(task="classification")

        assert regressor.model_params['criterion'] == 'squared_error'
        assert classifier.model_params['criterion'] == 'gini'
        assert not regressor.is_fitted
        assert regressor.feature_names is None

    def test_unknown_parameter_rejected_at_construction(self):
        with pytest.raises(TypeError):
            DecisionTreeModel(not_a_param=3)

    def test_fit_predict_regression(self, regression_data):
        X, y = regression_data

        model = DecisionTreeModel(max_depth=3).fit(X, y)

        assert model.is_fitted
        assert model.feature_names == list(X.columns)
        assert set(model.training_metrics) == {'rmse', 'mse', 'r2'}
        assert model.predict(X).shape == (len(X),)
        assert model.n_leaves <= 8

    def test_fit_predict_classification(self, classification_data):
        X, y = classification_data

        model = DecisionTreeModel(task="classification", max_depth=3).fit(X, y)

        y_pred = model.predict(X)
        assert set(y_pred) <= {'yes', 'no'}
        assert model.predict_proba(X).shape == (len(X), 2)
        assert model.training_info['class_distribution'].keys() == {'yes', 'no'}
        assert model.training_metrics['accuracy'] > 0.8

    def test_regression_has_no_probabilities(self, regression_data):
        X, y = regression_data
        model = DecisionTreeModel(max_depth=2).fit(X, y)

        with pytest.raises(ValueError):
            model.predict_proba(X)

    def test_pruning_path(self, regression_data):
        X, y = regression_data

        alphas = DecisionTreeModel().pruning_path(X, y)

        assert alphas[0] == 0.0
        assert alphas == sorted(alphas)
        assert len(alphas) == len(set(alphas))

        # The largest alpha on the path must not collapse the tree to its root
        pruned = DecisionTreeModel(ccp_alpha=alphas[-1]).fit(X, y)
        assert pruned.n_leaves >= 2

    def test_feature_importance(self, regression_data):
        X, y = regression_data
        model = DecisionTreeModel(max_depth=3).fit(X, y)

        importance = model.get_feature_importance()

        assert isinstance(importance, pd.Series)
        assert set(importance.index) == set(X.columns)
        assert importance.index[0] == 'x1'

    def test_save_load(self, classification_data):
        X, y = classification_data
        model = DecisionTreeModel(task="classification", max_depth=3).fit(X, y)

        with tempfile.TemporaryDirectory() as tmp_dir:
            model_path = Path(tmp_dir) / "tree"
            model.save(model_path)

            assert model_path.with_suffix('.pkl').exists()
            assert model_path.with_suffix('.metadata.json').exists()

            loaded = DecisionTreeModel().load(model_path)

            assert loaded.is_fitted
            assert loaded.task == "classification"
            assert loaded.feature_names == model.feature_names
            np.testing.assert_array_equal(loaded.predict(X), model.predict(X))

    def test_save_unfitted_raises(self):
        with pytest.raises(ValueError):
            DecisionTreeModel().save("unused")


class TestRandomForestModel:
    """Test random forests, bagging and out-of-bag prediction."""

    def test_task_defaults(self):
        regressor = RandomForestModel()
        classifier = RandomForestModel(task="classification")

        assert regressor.model_params['n_estimators'] == 500
        assert regressor.model_params['max_features'] == pytest.approx(1.0 / 3.0)
        assert regressor.model_params['min_samples_leaf'] == 5
        assert classifier.model_params['max_features'] == 'sqrt'
        assert classifier.model_params['min_samples_leaf'] == 1
        assert RandomForestModel.supports_oob

    def test_bootstrap_cannot_be_disabled(self):
        with pytest.raises(ValueError):
            RandomForestModel(bootstrap=False)

    def test_oob_masks(self, regression_data):
        X, y = regression_data
        model = RandomForestModel(n_estimators=20).fit(X, y)

        masks = model.oob_masks()

        assert len(masks) == 20
        for mask in masks:
            assert mask.shape == (len(X),)
            # A bootstrap sample of n rows leaves some rows out
            assert 0 < mask.sum() < len(X)

    def test_oob_predict_matches_sklearn(self, regression_data):
        X, y = regression_data
        model = RandomForestModel(n_estimators=50, oob_score=True).fit(X, y)

        predictions, covered = model.oob_predict(X)

        assert covered.all()
        np.testing.assert_array_almost_equal(
            predictions, np.ravel(model.model.oob_prediction_)[covered], decimal=5
        )

    def test_oob_predict_classification(self, classification_data):
        X, y = classification_data
        model = RandomForestModel(task="classification", n_estimators=30).fit(X, y)

        predictions, covered = model.oob_predict(X)

        assert len(predictions) == covered.sum()
        assert set(predictions) <= {'yes', 'no'}
        assert (predictions == y.to_numpy()[covered]).mean() > 0.8

    def test_oob_single_tree_leaves_rows_uncovered(self, regression_data):
        X, y = regression_data
        model = RandomForestModel(n_estimators=1).fit(X, y)

        predictions, covered = model.oob_predict(X)

        assert 0 < covered.sum() < len(X)
        assert len(predictions) == covered.sum()
        np.testing.assert_array_equal(covered, model.oob_masks()[0])

    def test_oob_predict_needs_training_rows(self, regression_data):
        X, y = regression_data
        model = RandomForestModel(n_estimators=5).fit(X, y)

        with pytest.raises(ValueError, match="training rows"):
            model.oob_predict(X.iloc[:10])

    def test_bagging_uses_all_features(self, regression_data):
        X, y = regression_data

        model = BaggingModel(n_estimators=10).fit(X, y)

        assert model.model.max_features == 1.0
        assert BaggingModel.supports_oob
        assert model.get_feature_importance().index[0] == 'x1'

        with pytest.raises(ValueError):
            BaggingModel(max_features=0.5)


class TestBoostingModel:
    """Test LightGBM gradient boosting."""

    def test_initialization(self):
        model = BoostingModel(random_state=42, n_estimators=10)

        assert model.random_state == 42
        assert model.model_params['n_estimators'] == 10
        assert not model.is_fitted
        assert not BoostingModel.supports_oob

    def test_subsample_enables_bagging_frequency(self):
        model = BoostingModel(subsample=0.5)
        assert model.model_params['subsample_freq'] == 1

    def test_fit_predict_regression(self, regression_data):
        X, y = regression_data

        model = BoostingModel(n_estimators=50, max_depth=2).fit(X, y)

        assert model.is_fitted
        assert model.predict(X).shape == (len(X),)
        assert model.training_metrics['r2'] > 0.5

    def test_fit_predict_classification(self, classification_data):
        X, y = classification_data

        model = BoostingModel(task="classification", n_estimators=20).fit(X, y)

        assert set(model.predict(X)) <= {'yes', 'no'}
        assert model.predict_proba(X).shape == (len(X), 2)

    def test_feature_importance(self, regression_data):
        X, y = regression_data
        model = BoostingModel(n_estimators=10).fit(X, y)

        importance = model.get_feature_importance()

        assert isinstance(importance, pd.Series)
        assert set(importance.index) == set(X.columns)

    def test_save_load(self, regression_data):
        X, y = regression_data
        model = BoostingModel(n_estimators=10).fit(X, y)

        with tempfile.TemporaryDirectory() as tmp_dir:
            model_path = Path(tmp_dir) / "test_model"
            model.save(model_path)

            loaded_model = BoostingModel()
            loaded_model.load(model_path)

            assert loaded_model.is_fitted
            assert loaded_model.feature_names == model.feature_names
            np.testing.assert_array_almost_equal(model.predict(X), loaded_model.predict(X), decimal=5)


class TestLinearBaselineModel:
    """Test least squares and logistic regression baselines."""

    def test_regression_recovers_coefficients(self, regression_data):
        X, y = regression_data

        model = LinearBaselineModel().fit(X, y)

        np.testing.assert_array_almost_equal(model.model.coef_, [3.0, -2.0, 0.0], decimal=1)
        assert 'C' not in model.model_params

    def test_logistic_regression(self, classification_data):
        X, y = classification_data

        model = LinearBaselineModel(task="classification", C=10.0).fit(X, y)

        assert model.model_params['C'] == 10.0
        assert model.training_metrics['accuracy'] > 0.9
        assert model.predict_proba(X).shape == (len(X), 2)
        assert set(model.get_feature_importance().index) == {'x1', 'x2'}

    def test_logistic_parameters_rejected_for_regression(self):
        with pytest.raises(ValueError, match="logistic regression"):
            LinearBaselineModel(C=0.1)

        with pytest.raises(ValueError):
            LinearBaselineModel(max_iter=50)

        assert LinearBaselineModel(task="classification").model_params['max_iter'] == 1000

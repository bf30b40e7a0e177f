"""
Tests for the holdout model comparison workflow.
"""

import pytest
import pandas as pd
import numpy as np

from grove.evaluation.comparison import ModelComparison
from grove.evaluation.resampling import KFoldResampling
from grove.exceptions import InvalidGridError, ModelFitError


@pytest.fixture
def train_test():
    """Regression train/test splits with one informative feature."""
    np.random.seed(42)
    n_samples = 160

    data = pd.DataFrame({
        'x1': np.random.uniform(-2, 2, n_samples),
        'x2': np.random.normal(0, 1, n_samples),
    })
    data['y'] = np.sin(2 * data['x1']) + np.random.normal(0, 0.1, n_samples)

    return data.iloc[:100], data.iloc[100:]


class TestModelComparison:
    """Test ModelComparison."""

    def test_run_keeps_insertion_order(self, train_test):
        train, test = train_test

        comparison = ModelComparison(random_state=0)
        comparison.add('tree', 'tree', grid={'max_depth': [2, 4]}, resampling=KFoldResampling(n_splits=3))
        comparison.add('ols', 'linear')

        results = comparison.run(train, test, 'y')

        assert list(results['model']) == ['tree', 'ols']
        assert list(results['family']) == ['tree', 'linear']
        assert list(results['n_configurations']) == [2, 1]
        assert np.isfinite(results.loc[0, 'cv_score'])
        assert np.isnan(results.loc[1, 'cv_score'])
        assert (results['fit_seconds'] >= 0).all()
        assert comparison.metric.name == 'rmse'
        assert comparison.tuning_results['tree'].n_configurations == 2

    def test_best_by_test_score(self, train_test):
        train, test = train_test

        comparison = ModelComparison(random_state=0)
        comparison.add('ols', 'linear')
        comparison.add('tree', 'tree', params={'max_depth': 4})

        comparison.run(train, test, 'y')
        best = comparison.best()

        # sin(2x) is not linear; a depth-4 tree fits it far better
        assert best['model'] == 'tree'
        assert best['test_score'] == comparison.get_results_dataframe()['test_score'].min()

    def test_params_pinned_into_grid(self, train_test):
        train, test = train_test

        comparison = ModelComparison()
        comparison.add('tree', 'tree', params={'min_samples_leaf': 5}, grid={'max_depth': [1, 3]},
                       resampling=KFoldResampling(n_splits=2))
        comparison.run(train, test, 'y')

        params = comparison.results[0]['params']
        assert params['min_samples_leaf'] == 5
        assert params['max_depth'] in (1, 3)

    def test_add_defaults(self):
        np.random.seed(1)
        data = pd.DataFrame({'x1': np.random.normal(size=120), 'x2': np.random.normal(size=120)})
        data['label'] = np.where(data['x1'] > 0, 'pos', 'neg')

        comparison = ModelComparison(random_state=0)
        comparison.add_defaults('classification', families=['tree', 'linear'],
                                resampling=KFoldResampling(n_splits=2, stratify=True))
        results = comparison.run(data.iloc[:80], data.iloc[80:], 'label')

        assert list(results['model']) == ['tree', 'linear']
        assert comparison.metric.name == 'accuracy'
        assert (results['test_score'] > 0.7).all()

    def test_validation(self, train_test):
        train, test = train_test
        comparison = ModelComparison()

        with pytest.raises(ValueError, match="No candidates"):
            comparison.run(train, test, 'y')

        comparison.add('tree', 'tree')
        with pytest.raises(ValueError, match="already added"):
            comparison.add('tree', 'tree')

        with pytest.raises(InvalidGridError):
            comparison.add('empty', 'tree', grid={})

        with pytest.raises(ValueError, match="feature columns"):
            comparison.run(train, test.drop(columns=['x2']), 'y')

        with pytest.raises(ValueError, match="call run"):
            ModelComparison().best()

    def test_fixed_params_fit_failure(self, train_test):
        train, test = train_test

        comparison = ModelComparison()
        comparison.add('bad', 'tree', params={'max_depth': -3})

        with pytest.raises(ModelFitError) as exc_info:
            comparison.run(train, test, 'y')

        assert exc_info.value.stage == 'fit'
        assert exc_info.value.configuration == {'max_depth': -3}

    def test_save_load_results(self, train_test, tmp_path):
        train, test = train_test

        comparison = ModelComparison()
        comparison.add('ols', 'linear')
        comparison.run(train, test, 'y')

        path = tmp_path / "comparison.joblib"
        comparison.save_results(path)

        restored = ModelComparison()
        restored.load_results(path)

        assert restored.metric.name == 'rmse'
        assert restored.results[0]['test_score'] == comparison.results[0]['test_score']
        np.testing.assert_array_almost_equal(
            restored.models['ols'].predict(test[['x1', 'x2']]),
            comparison.models['ols'].predict(test[['x1', 'x2']])
        )

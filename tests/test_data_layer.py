"""
Tests for the Grove data layer: dataset loading, task inference, feature
preparation and train/test splitting.
"""

import pytest
import pandas as pd
import numpy as np

from grove.data.datasets import (
    default_label,
    infer_task,
    load_dataset,
    prepare_features,
    split_features_label,
    train_test_split_frame,
)


class TestLoadDataset:
    """Test built-in and file datasets."""

    def test_builtin_diabetes(self):
        data = load_dataset('diabetes')

        assert data.shape == (442, 11)
        assert default_label('diabetes') == 'progression'
        assert infer_task(data['progression']) == 'regression'

    def test_builtin_breast_cancer(self):
        data = load_dataset('breast_cancer')

        assert 'target' not in data.columns
        assert set(data['diagnosis']) == {'malignant', 'benign'}
        assert infer_task(data['diagnosis']) == 'classification'

    def test_csv_file(self, tmp_path):
        path = tmp_path / "houses.csv"
        pd.DataFrame({'rooms': [3, 4], 'price': [1.5, 2.5]}).to_csv(path, index=False)

        data = load_dataset(str(path))

        assert list(data.columns) == ['rooms', 'price']
        assert default_label(str(path)) is None

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_dataset(tmp_path / "nope.csv")

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "data.xlsx"
        path.write_text("")

        with pytest.raises(ValueError, match="Unsupported"):
            load_dataset(path)


class TestInferTask:
    """Test task inference from label dtype."""

    @pytest.mark.parametrize("values, expected", [
        ([1.5, 2.0, 3.25], "regression"),
        ([0, 1, 1], "classification"),
        ([True, False, True], "classification"),
        (["yes", "no", "yes"], "classification"),
    ])
    def test_infer_task(self, values, expected):
        assert infer_task(pd.Series(values)) == expected

    def test_categorical_label(self):
        assert infer_task(pd.Series(["a", "b"], dtype="category")) == "classification"


class TestFeaturePreparation:
    """Test splitting and encoding."""

    @pytest.fixture
    def raw_data(self):
        return pd.DataFrame({
            'size': [1.0, 2.0, 3.0, 4.0],
            'color': ['red', 'blue', 'red', 'green'],
            'label': [0.1, 0.2, 0.3, 0.4],
        })

    def test_split_features_label(self, raw_data):
        X, y = split_features_label(raw_data, 'label')

        assert list(X.columns) == ['size', 'color']
        assert y.name == 'label'
        assert 'label' in raw_data.columns

    def test_split_errors(self, raw_data):
        with pytest.raises(ValueError, match="not found"):
            split_features_label(raw_data, 'price')

        with pytest.raises(ValueError, match="empty"):
            split_features_label(raw_data.iloc[0:0], 'label')

        with pytest.raises(ValueError, match="no feature columns"):
            split_features_label(raw_data[['label']], 'label')

        with_missing = raw_data.copy()
        with_missing.loc[0, 'label'] = np.nan
        with pytest.raises(ValueError, match="missing"):
            split_features_label(with_missing, 'label')

    def test_prepare_features_one_hot(self, raw_data):
        prepared = prepare_features(raw_data, 'label')

        assert 'color' not in prepared.columns
        assert {'color_red', 'color_blue', 'color_green'} <= set(prepared.columns)
        assert prepared.columns[-1] == 'label'
        assert prepared['color_red'].tolist() == [1.0, 0.0, 1.0, 0.0]
        assert prepared.drop(columns=['label']).dtypes.map(lambda d: d.kind == 'f').all()

    def test_prepare_features_drop_first(self, raw_data):
        prepared = prepare_features(raw_data, 'label', drop_first=True)

        assert len([c for c in prepared.columns if c.startswith('color_')]) == 2

    def test_train_test_split(self):
        data = pd.DataFrame({'x': range(20), 'label': ['a', 'b'] * 10})

        train, test = train_test_split_frame(data, 'label', test_size=0.25, random_state=0, stratify=True)

        assert len(train) == 15
        assert len(test) == 5
        assert set(train.index).isdisjoint(test.index)

        again, _ = train_test_split_frame(data, 'label', test_size=0.25, random_state=0, stratify=True)
        assert list(again.index) == list(train.index)

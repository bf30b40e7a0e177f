"""
Tests for the Grove command-line interface.
"""

import json

import pytest
import pandas as pd
from typer.testing import CliRunner

from grove.cli import app
from grove.cli.tune import parse_param_options, parse_param_value

runner = CliRunner()


class TestParamParsing:
    """Test --param value parsing."""

    @pytest.mark.parametrize("token, expected", [
        ("3", 3),
        ("0.5", 0.5),
        ("null", None),
        ("None", None),
        ("true", True),
        ("sqrt", "sqrt"),
        ('"log2"', "log2"),
    ])
    def test_parse_param_value(self, token, expected):
        assert parse_param_value(token) == expected

    def test_parse_param_options(self):
        grid = parse_param_options(["max_depth=1,2,None", "criterion=gini"])

        assert grid == {'max_depth': [1, 2, None], 'criterion': ['gini']}
        assert list(grid) == ['max_depth', 'criterion']

    def test_parse_param_options_errors(self):
        with pytest.raises(ValueError):
            parse_param_options(["max_depth"])

        with pytest.raises(ValueError):
            parse_param_options(["=1,2"])


class TestCommands:
    """Test CLI commands end to end on built-in data."""

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "Grove v" in result.output

    def test_info(self):
        result = runner.invoke(app, ["info"])

        assert result.exit_code == 0
        assert "random_forest (oob)" in result.output
        assert "diabetes (label: progression)" in result.output

    def test_tune(self, tmp_path):
        result = runner.invoke(app, [
            "tune", "diabetes",
            "--model", "tree",
            "--param", "max_depth=1,2",
            "--param", "min_samples_leaf=5",
            "--folds", "2",
            "--output-dir", str(tmp_path),
        ])

        assert result.exit_code == 0, result.output
        assert "Hyperparameter tuning completed" in result.output

        leaderboard = pd.read_csv(tmp_path / "leaderboard.csv")
        assert list(leaderboard['param_max_depth']) == [1, 2]

        with open(tmp_path / "tuning_results.json") as f:
            summary = json.load(f)
        assert summary['metric'] == 'rmse'
        assert summary['n_configurations'] == 2
        assert summary['label'] == 'progression'

        with open(tmp_path / "best_params.json") as f:
            assert set(json.load(f)) == {'max_depth', 'min_samples_leaf'}

        assert (tmp_path / "best_model.pkl").exists()
        assert (tmp_path / "best_model.metadata.json").exists()

    def test_tune_from_config(self, tmp_path):
        config_path = tmp_path / "tune.yaml"
        config_path.write_text(
            "model: bagging\n"
            "label: progression\n"
            "resampling: oob\n"
            "grid:\n"
            "  n_estimators: [10, 20]\n"
        )

        result = runner.invoke(app, [
            "tune", "diabetes", "--config", str(config_path), "--output-dir", str(tmp_path / "out"),
        ])

        assert result.exit_code == 0, result.output
        with open(tmp_path / "out" / "tuning_results.json") as f:
            summary = json.load(f)
        assert summary['model_family'] == 'bagging'
        assert summary['resampling'] == {'method': 'oob'}

    def test_tune_oob_unsupported(self, tmp_path):
        result = runner.invoke(app, [
            "tune", "diabetes",
            "--model", "tree",
            "--param", "max_depth=1,2",
            "--resampling", "oob",
            "--output-dir", str(tmp_path),
        ])

        assert result.exit_code == 1
        assert "Hyperparameter tuning failed" in result.output
        assert not (tmp_path / "leaderboard.csv").exists()

    def test_tune_csv_needs_label(self, tmp_path):
        path = tmp_path / "data.csv"
        pd.DataFrame({'x': [1.0, 2.0, 3.0, 4.0], 'y': [0.5, 1.0, 1.5, 2.0]}).to_csv(path, index=False)

        result = runner.invoke(app, ["tune", str(path), "--model", "tree", "--param", "max_depth=1"])

        assert result.exit_code == 1
        assert "--label" in result.output

    def test_compare(self, tmp_path):
        result = runner.invoke(app, [
            "compare", "breast_cancer",
            "--family", "tree",
            "--family", "linear",
            "--folds", "2",
            "--output-dir", str(tmp_path),
        ])

        assert result.exit_code == 0, result.output

        comparison = pd.read_csv(tmp_path / "comparison.csv")
        assert list(comparison['model']) == ['tree', 'linear']
        assert (comparison['test_score'] > 0.8).all()

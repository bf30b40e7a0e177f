"""
CLI commands for Grove tuning and model comparison.

Provides the command-line workflows for grid-search tuning of one model
family and for the train/test comparison of all families.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
import typer

from ..config import TuningConfig, load_grid, load_tuning_config
from ..data.datasets import (
    default_label,
    infer_task,
    load_dataset,
    prepare_features,
    train_test_split_frame,
)
from ..evaluation.comparison import ModelComparison
from ..evaluation.resampling import KFoldResampling
from ..tuning.grid import default_grid
from ..tuning.grid_tuner import GridSearchTuner
from ..utils.logging import LoggingMixin

app = typer.Typer(help="Grove - grid-search tuning CLI")


def parse_param_value(token: str) -> Any:
    """Parse one candidate value: JSON scalars where possible, else the raw string."""
    token = token.strip()
    if token in ("None", "none"):
        return None
    try:
        return json.loads(token)
    except json.JSONDecodeError:
        return token


def parse_param_options(options: Optional[List[str]]) -> Dict[str, List[Any]]:
    """
    Turn repeated ``name=v1,v2`` options into a grid mapping.

    Raises:
        ValueError: If an option has no '=' or no name
    """
    grid: Dict[str, List[Any]] = {}
    for option in options or []:
        name, sep, values = option.partition("=")
        name = name.strip()
        if not sep or not name:
            raise ValueError(f"Expected --param name=v1,v2, got {option!r}")
        grid[name] = [parse_param_value(v) for v in values.split(",") if v.strip()]
    return grid


class TuningPipeline(LoggingMixin):
    """Orchestrates data loading, tuning and result persistence."""

    def __init__(self, random_state: int = 42):
        self.random_state = random_state
        self.log_info(f"Initialized tuning pipeline with random_state={random_state}")

    def load(self, data_source: str, label: Optional[str]) -> tuple:
        label = label or default_label(data_source)
        if not label:
            raise ValueError("--label is required for data files")

        data = prepare_features(load_dataset(data_source), label)
        return data, label

    def tune(
        self,
        data_source: str,
        config: TuningConfig,
        output_dir: str = "models"
    ) -> Dict[str, Any]:
        """Run one grid search and write its artifacts to ``output_dir``."""
        data, label = self.load(data_source, config.label)
        task = config.task or infer_task(data[label])

        grid = config.grid
        if not grid:
            default = default_grid(config.model, task)
            if default is None:
                raise ValueError(f"No default grid for model {config.model!r}; pass --param or --grid-file")
            grid = default.param_grid
            self.log_info(f"Using default {config.model} grid: {grid}")

        tuner = GridSearchTuner(
            random_state=config.random_state,
            n_jobs=config.n_jobs,
            show_progress=True,
            mlflow_experiment_name=config.mlflow_experiment_name,
            mlflow_tracking_uri=config.mlflow_tracking_uri
        )
        result = tuner.tune(
            data, label, config.model, grid,
            resampling=config.to_resampling(),
            metric=config.metric,
            task=task
        )

        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)

        result.final_model.save(output_path / "best_model")

        with open(output_path / "best_params.json", 'w') as f:
            json.dump(result.best_params, f, indent=2, default=str)

        result.leaderboard_frame().to_csv(output_path / "leaderboard.csv", index=False)

        summary = result.summary()
        summary['data'] = data_source
        summary['label'] = label
        with open(output_path / "tuning_results.json", 'w') as f:
            json.dump(summary, f, indent=2, default=str)

        self.log_info(f"Tuning completed. Best {result.metric.name}: {result.best_score:.4f}")
        return summary

    def compare(
        self,
        data_source: str,
        label: Optional[str] = None,
        test_size: float = 0.5,
        n_splits: int = 5,
        metric: Optional[str] = None,
        task: Optional[str] = None,
        families: Optional[List[str]] = None,
        n_jobs: int = 1,
        output_dir: str = "comparison"
    ) -> pd.DataFrame:
        """Tune every family on a train split and score it on the test split."""
        data, label = self.load(data_source, label)
        task = task or infer_task(data[label])
        stratify = task == "classification"

        train, test = train_test_split_frame(
            data, label, test_size=test_size, random_state=self.random_state, stratify=stratify
        )

        comparison = ModelComparison(random_state=self.random_state, n_jobs=n_jobs)
        comparison.add_defaults(
            task,
            families=families,
            resampling=KFoldResampling(n_splits=n_splits, stratify=stratify)
        )
        results = comparison.run(train, test, label, metric=metric, task=task)

        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)
        results.to_csv(output_path / "comparison.csv", index=False)

        self.log_info(f"Comparison completed. Best: {comparison.best()['model']}")
        return results


@app.command("tune")
def tune_hyperparameters(
    data: str = typer.Argument(..., help="Built-in dataset (diabetes, breast_cancer) or .csv/.parquet path"),
    label: Optional[str] = typer.Option(None, "--label", "-l", help="Label column"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model family (default random_forest)"),
    param: Optional[List[str]] = typer.Option(None, "--param", "-p", help="Grid entry as name=v1,v2 (repeatable)"),
    grid_file: Optional[str] = typer.Option(None, "--grid-file", help="YAML/JSON file with the grid"),
    resampling: Optional[str] = typer.Option(None, help="Resampling: kfold or oob"),
    folds: Optional[int] = typer.Option(None, help="Number of k-fold splits"),
    stratify: bool = typer.Option(False, "--stratify/--no-stratify", help="Stratified k-fold"),
    metric: Optional[str] = typer.Option(None, help="Metric name (default rmse / accuracy)"),
    task: Optional[str] = typer.Option(None, help="Force regression or classification"),
    n_jobs: Optional[int] = typer.Option(None, help="Parallel jobs across folds"),
    random_state: Optional[int] = typer.Option(None, help="Random state for reproducibility"),
    output_dir: str = typer.Option("models", help="Output directory for results"),
    experiment_name: Optional[str] = typer.Option(None, help="MLflow experiment name (enables tracking)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML/JSON tuning config")
):
    """Grid-search one model family with k-fold or out-of-bag scoring."""
    try:
        if config:
            tuning_config = load_tuning_config(config)
        else:
            tuning_config = TuningConfig(model=model or "random_forest", label=label or "")

        # Command-line options win over the config file
        overrides = {
            'model': model,
            'label': label,
            'resampling': resampling,
            'n_splits': folds,
            'metric': metric,
            'task': task,
            'n_jobs': n_jobs,
            'random_state': random_state,
            'mlflow_experiment_name': experiment_name,
        }
        for key, value in overrides.items():
            if value is not None:
                setattr(tuning_config, key, value)
        if stratify:
            tuning_config.stratify = True

        grid = dict(tuning_config.grid)
        if grid_file:
            grid.update(load_grid(grid_file))
        grid.update(parse_param_options(param))
        tuning_config.grid = grid

        pipeline = TuningPipeline(random_state=tuning_config.random_state)
        summary = pipeline.tune(data, tuning_config, output_dir=output_dir)

        typer.echo("✅ Hyperparameter tuning completed")
        typer.echo(f"Best params: {summary['best_params']}")
        typer.echo(f"Best {summary['metric']}: {summary['best_score']:.4f}")
        typer.echo(f"Results saved to: {output_dir}")

    except Exception as e:
        typer.echo(f"❌ Hyperparameter tuning failed: {e}", err=True)
        raise typer.Exit(1)


@app.command("compare")
def compare_models(
    data: str = typer.Argument(..., help="Built-in dataset (diabetes, breast_cancer) or .csv/.parquet path"),
    label: Optional[str] = typer.Option(None, "--label", "-l", help="Label column"),
    test_size: float = typer.Option(0.5, help="Fraction of rows held out for testing"),
    folds: int = typer.Option(5, help="k-fold splits used when tuning"),
    metric: Optional[str] = typer.Option(None, help="Metric name (default rmse / accuracy)"),
    task: Optional[str] = typer.Option(None, help="Force regression or classification"),
    family: Optional[List[str]] = typer.Option(None, "--family", "-f", help="Model family to include (repeatable)"),
    n_jobs: int = typer.Option(1, help="Parallel jobs across folds"),
    random_state: int = typer.Option(42, help="Random state for reproducibility"),
    output_dir: str = typer.Option("comparison", help="Output directory for results")
):
    """Tune all model families on a train split and compare them on the test split."""
    try:
        pipeline = TuningPipeline(random_state=random_state)
        results = pipeline.compare(
            data,
            label=label,
            test_size=test_size,
            n_splits=folds,
            metric=metric,
            task=task,
            families=family or None,
            n_jobs=n_jobs,
            output_dir=output_dir
        )

        typer.echo("✅ Model comparison completed")
        typer.echo(results[['model', 'test_score', 'cv_score', 'n_configurations']].to_string(index=False))
        typer.echo(f"Results saved to: {output_dir}")

    except Exception as e:
        typer.echo(f"❌ Model comparison failed: {e}", err=True)
        raise typer.Exit(1)


if __name__ == "__main__":
    app()

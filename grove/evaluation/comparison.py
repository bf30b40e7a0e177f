"""
Holdout comparison of model families.

Fits or tunes every candidate on a training split and scores it on a held
out test split with one metric, so single trees, bagging, random forests,
boosting and linear baselines can be compared side by side.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Type, Union
import time

import joblib
import numpy as np
import pandas as pd

from ..data.datasets import infer_task, split_features_label
from ..exceptions import ModelFitError
from ..models import available_models, get_model_class
from ..models.base_model import BaseModel
from ..tuning.grid import ParameterGrid, default_grid
from ..tuning.grid_tuner import GridSearchTuner, TuningResult
from ..utils.logging import LoggingMixin
from .metrics import Metric, default_metric, get_metric
from .resampling import KFoldResampling, ResamplingPlan


class ModelComparison(LoggingMixin):
    """
    Train/test comparison of several model candidates.

    Candidates with a grid are tuned on the training split first (the
    refit best model is what gets tested); candidates without one are fit
    with fixed parameters. Results keep the order candidates were added.
    """

    def __init__(
        self,
        random_state: Optional[int] = 42,
        n_jobs: int = 1,
        show_progress: bool = False
    ) -> None:
        self.random_state = random_state
        self.n_jobs = n_jobs
        self.show_progress = show_progress

        self.candidates: List[Dict[str, Any]] = []
        self.results: List[Dict[str, Any]] = []
        self.models: Dict[str, BaseModel] = {}
        self.tuning_results: Dict[str, TuningResult] = {}
        self.metric: Optional[Metric] = None

    def add(
        self,
        name: str,
        model_family: Union[str, Type[BaseModel]],
        params: Optional[Mapping[str, Any]] = None,
        grid: Optional[Union[Mapping[str, Any], ParameterGrid]] = None,
        resampling: Optional[ResamplingPlan] = None
    ) -> 'ModelComparison':
        """
        Register a candidate.

        Args:
            name: Unique label for the candidate
            model_family: Family name or BaseModel subclass
            params: Fixed hyperparameters (pinned into the grid when both are given)
            grid: Hyperparameter grid to tune over on the training split
            resampling: Resampling plan for tuning (default 5-fold)

        Returns:
            Self for chaining
        """
        if any(c['name'] == name for c in self.candidates):
            raise ValueError(f"Candidate {name!r} already added")

        model_class = get_model_class(model_family)
        params = dict(params or {})

        param_grid = None
        if grid is not None:
            grid_values = grid.param_grid if isinstance(grid, ParameterGrid) else dict(grid)
            param_grid = ParameterGrid({**{k: [v] for k, v in params.items()}, **grid_values})

        self.candidates.append({
            'name': name,
            'model_class': model_class,
            'params': params,
            'grid': param_grid,
            'resampling': resampling,
        })
        return self

    def add_defaults(
        self,
        task: str,
        families: Optional[Iterable[str]] = None,
        resampling: Optional[ResamplingPlan] = None
    ) -> 'ModelComparison':
        """Add every family (or the given ones) with its default grid for ``task``."""
        for family in families or available_models():
            self.add(family, family, grid=default_grid(family, task), resampling=resampling)
        return self

    def run(
        self,
        train: pd.DataFrame,
        test: pd.DataFrame,
        label_column: str,
        metric: Optional[Union[str, Metric]] = None,
        task: Optional[str] = None
    ) -> pd.DataFrame:
        """
        Fit or tune each candidate on ``train`` and score it on ``test``.

        Args:
            train: Training split
            test: Test split
            label_column: Name of the label column
            metric: Metric or metric name (default rmse / accuracy by task)
            task: Override the task inferred from the training label

        Returns:
            DataFrame with one row per candidate, in insertion order
        """
        if not self.candidates:
            raise ValueError("No candidates to compare; call add() first")

        X_train, y_train = split_features_label(train, label_column)
        X_test, y_test = split_features_label(test, label_column)

        if list(X_train.columns) != list(X_test.columns):
            raise ValueError("Train and test splits must have the same feature columns")

        task = task or infer_task(y_train)
        metric = get_metric(metric) if metric is not None else default_metric(task)
        metric.check_task(task)
        self.metric = metric

        self.log_info(
            f"Comparing {len(self.candidates)} candidates on {len(X_train)} train / "
            f"{len(X_test)} test rows, metric={metric.name}"
        )

        self.results = []
        self.models = {}
        self.tuning_results = {}

        for candidate in self.candidates:
            start = time.perf_counter()
            result = self._evaluate_candidate(
                candidate, train, label_column, X_train, y_train, X_test, y_test, metric, task
            )
            result['fit_seconds'] = time.perf_counter() - start
            self.results.append(result)

            self.log_info(
                f"{result['model']}: test {metric.name}={result['test_score']:.4f}"
                + (f", cv {metric.name}={result['cv_score']:.4f}" if not np.isnan(result['cv_score']) else "")
            )

        return self.get_results_dataframe()

    def _evaluate_candidate(
        self,
        candidate: Dict[str, Any],
        train: pd.DataFrame,
        label_column: str,
        X_train: pd.DataFrame,
        y_train: pd.Series,
        X_test: pd.DataFrame,
        y_test: pd.Series,
        metric: Metric,
        task: str
    ) -> Dict[str, Any]:
        name = candidate['name']
        model_class = candidate['model_class']

        if candidate['grid'] is not None:
            tuner = GridSearchTuner(
                random_state=self.random_state,
                n_jobs=self.n_jobs,
                show_progress=self.show_progress
            )
            tuning = tuner.tune(
                train, label_column, model_class, candidate['grid'],
                resampling=candidate['resampling'] or KFoldResampling(),
                metric=metric,
                task=task
            )
            self.tuning_results[name] = tuning
            model = tuning.final_model
            params = tuning.best_params
            cv_score = tuning.best_score
            n_configurations = tuning.n_configurations
        else:
            params = candidate['params']
            try:
                model = model_class(task=task, random_state=self.random_state, **params)
                model.fit(X_train, y_train)
            except Exception as e:
                raise ModelFitError(
                    f"{type(e).__name__}: {e}", configuration=params, stage="fit"
                ) from e
            cv_score = float('nan')
            n_configurations = 1

        self.models[name] = model
        test_score = metric(y_test.to_numpy(), model.predict(X_test))

        return {
            'model': name,
            'family': getattr(model_class, 'name', model_class.__name__),
            'params': params,
            'test_score': test_score,
            'cv_score': cv_score,
            'n_configurations': n_configurations,
        }

    def get_results_dataframe(self) -> pd.DataFrame:
        if not self.results:
            return pd.DataFrame()
        return pd.DataFrame(self.results)

    def best(self) -> pd.Series:
        """Row of the best candidate by test score; the earliest one wins ties."""
        if not self.results or self.metric is None:
            raise ValueError("No results yet; call run() first")

        best = self.results[0]
        for result in self.results[1:]:
            if self.metric.is_better(result['test_score'], best['test_score']):
                best = result
        return pd.Series(best)

    def save_results(self, filepath: str) -> None:
        """Save comparison results and fitted models to disk."""
        joblib.dump(
            {
                'results': self.results,
                'models': self.models,
                'metric': self.metric.name if self.metric else None,
                'config': {'random_state': self.random_state},
            },
            filepath
        )
        self.log_info(f"Results saved to {filepath}")

    def load_results(self, filepath: str) -> None:
        """Load comparison results saved with save_results."""
        data = joblib.load(filepath)
        self.results = data['results']
        self.models = data['models']
        self.metric = get_metric(data['metric']) if data['metric'] else None
        self.log_info(f"Results loaded from {filepath}")

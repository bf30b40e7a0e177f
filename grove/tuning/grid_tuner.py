"""
Exhaustive grid-search tuning for Grove model families.

Every configuration of the grid is scored with either k-fold
cross-validation or the model's own out-of-bag estimate. The best
configuration is then refit once on the full training data. The complete
leaderboard comes back in grid order, with optional MLflow tracking.
"""

from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Type, Union
import threading
import time

import joblib
import mlflow
import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

from ..data.datasets import infer_task, split_features_label
from ..evaluation.metrics import Metric, default_metric, get_metric
from ..evaluation.resampling import KFoldResampling, OutOfBagResampling, ResamplingPlan
from ..exceptions import InvalidGridError, InvalidResamplingError, ModelFitError
from ..models import get_model_class
from ..models.base_model import BaseModel
from ..utils.logging import LoggingMixin, log_duration
from .grid import ParameterGrid


@dataclass
class ScoredConfiguration:
    """
    One evaluated grid configuration.

    Attributes:
        index: Position in the grid enumeration
        params: Hyperparameter values
        score: Resampling estimate (mean over folds, or the OOB score)
        fold_scores: Per-fold scores (k-fold only)
        std_score: Standard deviation of the fold scores (k-fold only)
        n_scored_rows: Rows that contributed to the score
        fit_seconds: Wall time spent evaluating the configuration
    """

    index: int
    params: Dict[str, Any]
    score: float
    fold_scores: List[float] = field(default_factory=list)
    std_score: Optional[float] = None
    n_scored_rows: int = 0
    fit_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TuningResult:
    """
    Outcome of a tuning run.

    Unpacks as ``(best_configuration, final_model, leaderboard)``.
    A cancelled run has ``partial=True`` and no final model.
    """

    best_configuration: Optional[ScoredConfiguration]
    final_model: Optional[BaseModel]
    leaderboard: List[ScoredConfiguration]
    metric: Metric
    model_family: str
    task: str
    resampling: Dict[str, Any]
    n_configurations: int
    partial: bool = False

    def __iter__(self) -> Iterator[Any]:
        return iter((self.best_configuration, self.final_model, self.leaderboard))

    @property
    def best_params(self) -> Optional[Dict[str, Any]]:
        return dict(self.best_configuration.params) if self.best_configuration else None

    @property
    def best_score(self) -> Optional[float]:
        return self.best_configuration.score if self.best_configuration else None

    def leaderboard_frame(self) -> pd.DataFrame:
        """
        Leaderboard as a DataFrame, one row per configuration in grid order.

        Hyperparameters become ``param_<name>`` columns.
        """
        if not self.leaderboard:
            return pd.DataFrame()

        rows = []
        for entry in self.leaderboard:
            row = {
                'index': entry.index,
                'score': entry.score,
                'std_score': entry.std_score,
                'n_scored_rows': entry.n_scored_rows,
                'fit_seconds': entry.fit_seconds,
                'is_best': self.best_configuration is not None and entry.index == self.best_configuration.index,
            }
            row.update({f'param_{name}': value for name, value in entry.params.items()})
            for fold, fold_score in enumerate(entry.fold_scores):
                row[f'fold_{fold}_score'] = fold_score
            rows.append(row)

        return pd.DataFrame(rows)

    def summary(self) -> Dict[str, Any]:
        """JSON-friendly summary of the run."""
        return {
            'model_family': self.model_family,
            'task': self.task,
            'metric': self.metric.name,
            'direction': self.metric.direction,
            'resampling': self.resampling,
            'n_configurations': self.n_configurations,
            'n_evaluated': len(self.leaderboard),
            'partial': self.partial,
            'best_params': self.best_params,
            'best_score': self.best_score,
            'best_index': self.best_configuration.index if self.best_configuration else None,
        }

    def save(self, filepath: Union[str, Path]) -> None:
        """Save the run (leaderboard, summary and final model) with joblib."""
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(
            {
                'summary': self.summary(),
                'leaderboard': [entry.to_dict() for entry in self.leaderboard],
                'final_model': self.final_model,
                'saved_at': datetime.now().isoformat(),
            },
            filepath
        )


class CancellationToken:
    """
    Cooperative cancellation for a tuning run.

    The tuner checks the token between configurations, never in the middle
    of one, so every leaderboard entry it returns is complete.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def _build_model(
    model_class: Type[BaseModel],
    task: str,
    params: Mapping[str, Any],
    random_state: Optional[int]
) -> BaseModel:
    return model_class(task=task, random_state=random_state, **params)


def _fit_and_score_fold(
    model_class: Type[BaseModel],
    task: str,
    params: Dict[str, Any],
    random_state: Optional[int],
    X: pd.DataFrame,
    y: pd.Series,
    train_idx: np.ndarray,
    val_idx: np.ndarray,
    metric: Metric,
    fold: int
) -> float:
    """Fit on the other folds and score the held-out one. Runs in joblib workers."""
    try:
        model = _build_model(model_class, task, params, random_state)
        model.fit(X.iloc[train_idx], y.iloc[train_idx])
        y_pred = model.predict(X.iloc[val_idx])
        return metric(y.iloc[val_idx].to_numpy(), y_pred)
    except Exception as e:
        raise ModelFitError(
            f"{type(e).__name__}: {e}", configuration=params, fold=fold, stage="cv"
        ) from e


class GridSearchTuner(LoggingMixin):
    """
    Grid-search tuner over a single model family.

    Features:
    - Ordered cross-product enumeration of the grid
    - k-fold or out-of-bag scoring
    - Deterministic tie-breaking (first configuration wins)
    - Refit of the best configuration on all training rows
    - Optional fold-level parallelism and MLflow tracking
    """

    def __init__(
        self,
        random_state: Optional[int] = 42,
        n_jobs: int = 1,
        show_progress: bool = False,
        mlflow_experiment_name: Optional[str] = None,
        mlflow_tracking_uri: Optional[str] = None
    ) -> None:
        """
        Initialize the tuner.

        Args:
            random_state: Seed for fold assignment and for every model built
            n_jobs: Parallel jobs across the folds of one configuration
            show_progress: Show a progress bar over configurations
            mlflow_experiment_name: MLflow experiment to log to (None disables tracking)
            mlflow_tracking_uri: MLflow tracking URI (None for local)
        """
        self.random_state = random_state
        self.n_jobs = n_jobs
        self.show_progress = show_progress
        self.mlflow_experiment_name = mlflow_experiment_name
        self._tracking = False

        if mlflow_experiment_name:
            self._tracking = self._setup_mlflow(mlflow_experiment_name, mlflow_tracking_uri)

        self.log_debug(f"Initialized GridSearchTuner(random_state={random_state}, n_jobs={n_jobs})")

    def _setup_mlflow(self, experiment_name: str, tracking_uri: Optional[str]) -> bool:
        try:
            if tracking_uri:
                mlflow.set_tracking_uri(tracking_uri)

            experiment = mlflow.get_experiment_by_name(experiment_name)
            if experiment is None:
                experiment_id = mlflow.create_experiment(experiment_name)
                self.log_info(f"Created MLflow experiment: {experiment_name}")
            else:
                experiment_id = experiment.experiment_id
                self.log_info(f"Using existing MLflow experiment: {experiment_name}")

            mlflow.set_experiment(experiment_id=experiment_id)
            return True

        except Exception as e:
            self.log_warning(f"MLflow setup failed, tracking disabled: {e}")
            return False

    def tune(
        self,
        data: pd.DataFrame,
        label_column: str,
        model_family: Union[str, Type[BaseModel]],
        grid: Union[Mapping[str, Any], ParameterGrid],
        resampling: Optional[ResamplingPlan] = None,
        metric: Optional[Union[str, Metric]] = None,
        task: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> TuningResult:
        """
        Score every grid configuration and refit the best one.

        Args:
            data: Training table with feature columns and the label column
            label_column: Name of the label column
            model_family: Family name ('tree', 'bagging', 'random_forest',
                'boosting', 'linear') or a BaseModel subclass
            grid: Mapping of hyperparameter name -> candidate values
            resampling: KFoldResampling or OutOfBagResampling (default 5-fold)
            metric: Metric or metric name (default rmse / accuracy by task)
            task: Override the task inferred from the label dtype
            cancel_token: Checked between configurations

        Returns:
            TuningResult with the best configuration, the refit model and the
            leaderboard in grid order

        Raises:
            InvalidGridError: Empty grid, a name without candidates, or a
                configuration the model family rejects
            UnsupportedResamplingError: OOB requested for a family without bagging
            InvalidResamplingError: More folds than rows
            IncompatibleMetricError: Metric task differs from the label's task
            ModelFitError: A fit, predict or score failed; the run is aborted
        """
        # Everything that can be checked is checked before the first fit
        model_class = get_model_class(model_family)
        param_grid = ParameterGrid(grid)
        resampling = resampling if resampling is not None else KFoldResampling()

        X, y = split_features_label(data, label_column)
        task = task or infer_task(y)
        metric = get_metric(metric) if metric is not None else default_metric(task)
        metric.check_task(task)
        if not isinstance(resampling, (KFoldResampling, OutOfBagResampling)):
            raise InvalidResamplingError(f"Unsupported resampling plan: {resampling!r}")
        resampling.validate(model_class, len(X))
        self._check_configurations(model_class, task, param_grid)

        family_name = getattr(model_class, 'name', model_class.__name__)
        n_configurations = len(param_grid)

        self.log_info(
            f"Tuning {family_name} ({task}) over {n_configurations} configurations "
            f"with {resampling!r}, metric={metric.name} ({metric.direction})"
        )

        folds = None
        if isinstance(resampling, KFoldResampling):
            folds = resampling.split(len(X), y=y, random_state=self.random_state)

        leaderboard: List[ScoredConfiguration] = []
        partial = False

        with self._tracking_run(f"{family_name}_grid_{datetime.now().strftime('%Y%m%d_%H%M%S')}"):
            configurations = tqdm(
                enumerate(param_grid),
                total=n_configurations,
                desc=f"Tuning {family_name}",
                disable=not self.show_progress
            )

            for index, params in configurations:
                if cancel_token is not None and cancel_token.cancelled:
                    self.log_warning(
                        f"Tuning cancelled after {len(leaderboard)}/{n_configurations} configurations"
                    )
                    partial = True
                    break

                start = time.perf_counter()
                with log_duration(self.logger, f"Configuration {index}"):
                    if folds is not None:
                        entry = self._evaluate_kfold(model_class, task, params, X, y, folds, metric, index)
                    else:
                        entry = self._evaluate_oob(model_class, task, params, X, y, metric, index)
                entry.fit_seconds = time.perf_counter() - start

                leaderboard.append(entry)
                self._log_configuration(entry, metric)

            best = self._select_best(leaderboard, metric)

            final_model = None
            if best is not None and not partial:
                final_model = self._refit(model_class, task, best.params, X, y)

            result = TuningResult(
                best_configuration=best,
                final_model=final_model,
                leaderboard=leaderboard,
                metric=metric,
                model_family=family_name,
                task=task,
                resampling=resampling.describe(),
                n_configurations=n_configurations,
                partial=partial
            )
            self._log_final_results(result)

        if best is not None:
            self.log_info(
                f"Best {family_name} configuration #{best.index}: {best.params} "
                f"({metric.name}={best.score:.4f})"
            )

        return result

    def _check_configurations(
        self,
        model_class: Type[BaseModel],
        task: str,
        param_grid: ParameterGrid
    ) -> None:
        """Construct (without fitting) one model per configuration to catch bad names and values."""
        for index, params in enumerate(param_grid):
            try:
                _build_model(model_class, task, params, self.random_state)
            except (TypeError, ValueError) as e:
                raise InvalidGridError(
                    f"Configuration #{index} {params} is not valid for "
                    f"{model_class.__name__}: {e}"
                ) from e

    def _evaluate_kfold(
        self,
        model_class: Type[BaseModel],
        task: str,
        params: Dict[str, Any],
        X: pd.DataFrame,
        y: pd.Series,
        folds: List,
        metric: Metric,
        index: int
    ) -> ScoredConfiguration:
        args = [
            (model_class, task, params, self.random_state, X, y, train_idx, val_idx, metric, fold)
            for fold, (train_idx, val_idx) in enumerate(folds)
        ]

        try:
            if self.n_jobs == 1:
                fold_scores = [_fit_and_score_fold(*fold_args) for fold_args in args]
            else:
                # Parallel returns in submission order, so fold order is preserved
                fold_scores = Parallel(n_jobs=self.n_jobs)(
                    delayed(_fit_and_score_fold)(*fold_args) for fold_args in args
                )
        except ModelFitError as e:
            self.log_error(f"Configuration #{index} failed: {e}")
            raise

        for fold, fold_score in enumerate(fold_scores):
            self.log_debug(f"Configuration #{index} fold {fold}: {metric.name}={fold_score:.4f}")

        return ScoredConfiguration(
            index=index,
            params=dict(params),
            score=float(np.mean(fold_scores)),
            fold_scores=[float(s) for s in fold_scores],
            std_score=float(np.std(fold_scores)),
            n_scored_rows=len(X)
        )

    def _evaluate_oob(
        self,
        model_class: Type[BaseModel],
        task: str,
        params: Dict[str, Any],
        X: pd.DataFrame,
        y: pd.Series,
        metric: Metric,
        index: int
    ) -> ScoredConfiguration:
        try:
            model = _build_model(model_class, task, params, self.random_state)
            model.fit(X, y)
            y_pred, covered = model.oob_predict(X)

            n_covered = int(covered.sum())
            if n_covered == 0:
                self.log_warning(
                    f"Configuration #{index}: every row was in every bootstrap sample, OOB score undefined"
                )
                score = float('nan')
            else:
                score = metric(y.to_numpy()[covered], y_pred)

        except Exception as e:
            error = ModelFitError(f"{type(e).__name__}: {e}", configuration=params, stage="oob")
            self.log_error(f"Configuration #{index} failed: {error}")
            raise error from e

        if n_covered < len(X):
            self.log_debug(f"Configuration #{index}: {len(X) - n_covered} rows had no OOB prediction")

        return ScoredConfiguration(
            index=index,
            params=dict(params),
            score=score,
            n_scored_rows=n_covered
        )

    @staticmethod
    def _select_best(
        leaderboard: List[ScoredConfiguration],
        metric: Metric
    ) -> Optional[ScoredConfiguration]:
        """First configuration with the optimal score; NaN scores never win."""
        best = None
        for entry in leaderboard:
            if best is None or metric.is_better(entry.score, best.score):
                best = entry
        return best

    def _refit(
        self,
        model_class: Type[BaseModel],
        task: str,
        params: Dict[str, Any],
        X: pd.DataFrame,
        y: pd.Series
    ) -> BaseModel:
        self.log_info(f"Refitting best configuration on all {len(X)} training rows")

        try:
            model = _build_model(model_class, task, params, self.random_state)
            return model.fit(X, y)
        except Exception as e:
            error = ModelFitError(f"{type(e).__name__}: {e}", configuration=params, stage="refit")
            self.log_error(f"Final refit failed: {error}")
            raise error from e

    @contextmanager
    def _tracking_run(self, run_name: str) -> Iterator[None]:
        if not self._tracking:
            yield
            return

        with mlflow.start_run(run_name=run_name):
            yield

    def _log_configuration(self, entry: ScoredConfiguration, metric: Metric) -> None:
        score_text = f"{entry.score:.4f}"
        if entry.std_score is not None:
            score_text += f"±{entry.std_score:.4f}"
        self.log_info(f"Configuration #{entry.index} {entry.params}: {metric.name}={score_text}")

        if not self._tracking:
            return

        try:
            with mlflow.start_run(run_name=f"configuration_{entry.index}", nested=True):
                mlflow.log_params(entry.params)
                mlflow.log_metric(metric.name, entry.score)
                if entry.std_score is not None:
                    mlflow.log_metric(f"{metric.name}_std", entry.std_score)
                for fold, fold_score in enumerate(entry.fold_scores):
                    mlflow.log_metric(f"{metric.name}_fold", fold_score, step=fold)
        except Exception as e:
            self.log_warning(f"MLflow logging failed for configuration #{entry.index}: {e}")

    def _log_final_results(self, result: TuningResult) -> None:
        if not self._tracking or result.best_configuration is None:
            return

        try:
            mlflow.log_params({f"best_{k}": v for k, v in result.best_params.items()})
            mlflow.log_metric(f"best_{result.metric.name}", result.best_score)
            mlflow.log_metric("n_configurations", result.n_configurations)
            mlflow.log_metric("n_evaluated", len(result.leaderboard))
        except Exception as e:
            self.log_warning(f"MLflow logging of final results failed: {e}")


def tune(
    data: pd.DataFrame,
    label_column: str,
    model_family: Union[str, Type[BaseModel]],
    grid: Union[Mapping[str, Any], ParameterGrid],
    resampling: Optional[ResamplingPlan] = None,
    metric: Optional[Union[str, Metric]] = None,
    task: Optional[str] = None,
    random_state: Optional[int] = 42,
    n_jobs: int = 1,
    cancel_token: Optional[CancellationToken] = None
) -> TuningResult:
    """
    Convenience function for a one-off grid search.

    Args:
        data: Training table with feature columns and the label column
        label_column: Name of the label column
        model_family: Family name or BaseModel subclass
        grid: Mapping of hyperparameter name -> candidate values
        resampling: KFoldResampling or OutOfBagResampling (default 5-fold)
        metric: Metric or metric name (default by task)
        task: Override the task inferred from the label dtype
        random_state: Seed for folds and models
        n_jobs: Parallel jobs across folds
        cancel_token: Checked between configurations

    Returns:
        TuningResult, which unpacks as (best_configuration, final_model, leaderboard)
    """
    tuner = GridSearchTuner(random_state=random_state, n_jobs=n_jobs)
    return tuner.tune(
        data, label_column, model_family, grid,
        resampling=resampling,
        metric=metric,
        task=task,
        cancel_token=cancel_token
    )

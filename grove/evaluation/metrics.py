"""
Scoring metrics for Grove.

A Metric pairs a scoring function with the task it applies to and the
direction in which it improves. The tuner only ever compares scores through
``Metric.is_better`` so error and accuracy measures can be mixed freely.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Union

import numpy as np
from sklearn.metrics import (
    accuracy_score,
    balanced_accuracy_score,
    mean_absolute_error,
    mean_squared_error,
    r2_score,
)

from ..exceptions import IncompatibleMetricError


@dataclass(frozen=True)
class Metric:
    """
    A scoring function with its task and optimization direction.

    Attributes:
        name: Identifier used in logs and leaderboards
        func: Callable (y_true, y_pred) -> float
        task: 'regression' or 'classification'
        greater_is_better: True for accuracy-type scores, False for errors
    """

    name: str
    func: Callable[[np.ndarray, np.ndarray], float]
    task: str
    greater_is_better: bool = False

    def __call__(self, y_true, y_pred) -> float:
        return float(self.func(np.asarray(y_true), np.asarray(y_pred)))

    @property
    def direction(self) -> str:
        return "maximize" if self.greater_is_better else "minimize"

    def is_better(self, candidate: float, incumbent: float) -> bool:
        """
        True if ``candidate`` strictly improves on ``incumbent``.

        NaN never improves on anything, and anything finite improves on NaN.
        Equal scores are not an improvement, so the earlier one is kept.
        """
        if np.isnan(candidate):
            return False
        if np.isnan(incumbent):
            return True
        if self.greater_is_better:
            return candidate > incumbent
        return candidate < incumbent

    def check_task(self, task: str) -> None:
        if task != self.task:
            raise IncompatibleMetricError(
                f"Metric {self.name!r} scores {self.task} models but the label "
                f"implies {task}"
            )


def rmse(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    return float(np.sqrt(mean_squared_error(y_true, y_pred)))


def error_rate(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    return 1.0 - float(accuracy_score(y_true, y_pred))


METRICS: Dict[str, Metric] = {
    m.name: m
    for m in (
        Metric("rmse", rmse, "regression"),
        Metric("mse", mean_squared_error, "regression"),
        Metric("mae", mean_absolute_error, "regression"),
        Metric("r2", r2_score, "regression", greater_is_better=True),
        Metric("accuracy", accuracy_score, "classification", greater_is_better=True),
        Metric("balanced_accuracy", balanced_accuracy_score, "classification", greater_is_better=True),
        Metric("error_rate", error_rate, "classification"),
    )
}

DEFAULT_METRICS = {"regression": "rmse", "classification": "accuracy"}


def available_metrics() -> List[str]:
    return list(METRICS)


def get_metric(metric: Union[str, Metric]) -> Metric:
    """
    Resolve a metric name to a Metric; Metric instances pass through.

    Raises:
        ValueError: If the name is unknown
    """
    if isinstance(metric, Metric):
        return metric

    try:
        return METRICS[metric]
    except KeyError:
        raise ValueError(
            f"Unknown metric {metric!r}. Available: {available_metrics()}"
        ) from None


def default_metric(task: str) -> Metric:
    return METRICS[DEFAULT_METRICS[task]]

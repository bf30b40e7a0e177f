"""
Linear baselines for Grove: least squares for regression, logistic
regression for classification.
"""

from typing import Any, Optional

import pandas as pd
from sklearn.linear_model import LinearRegression, LogisticRegression

from .base_model import SklearnModel


class LinearBaselineModel(SklearnModel):
    """Ordinary least squares or logistic regression, depending on the task."""

    name = "linear"

    def __init__(
        self,
        task: str = "regression",
        random_state: Optional[int] = 42,
        fit_intercept: bool = True,
        C: Optional[float] = None,
        max_iter: Optional[int] = None,
        **kwargs: Any
    ) -> None:
        """
        Args:
            task: 'regression' or 'classification'
            random_state: Seed used by the logistic solver
            fit_intercept: Whether to fit an intercept
            C: Inverse regularization strength, logistic regression only
                (default 1.0)
            max_iter: Solver iteration cap, logistic regression only
                (default 1000)
            **kwargs: Additional estimator parameters
        """
        if task == "classification":
            kwargs.update(
                C=1.0 if C is None else C,
                max_iter=1000 if max_iter is None else max_iter
            )
        elif C is not None or max_iter is not None:
            raise ValueError("C and max_iter only apply to logistic regression (task='classification')")

        super().__init__(
            task=task,
            random_state=random_state,
            fit_intercept=fit_intercept,
            **kwargs
        )

    def _create_model(self):
        if self.is_classifier:
            return LogisticRegression(random_state=self.random_state, **self.model_params)
        return LinearRegression(**self.model_params)

    def get_feature_importance(self) -> Optional[pd.Series]:
        """Absolute coefficients (averaged over classes for multinomial fits)."""
        if not self.is_fitted or self.feature_names is None:
            self.log_warning("Model not fitted, cannot get feature importance")
            return None

        coefs = abs(self.model.coef_)
        if coefs.ndim == 2:
            coefs = coefs.mean(axis=0)

        return pd.Series(
            data=coefs,
            index=self.feature_names,
            name='importance'
        ).sort_values(ascending=False)

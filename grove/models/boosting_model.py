"""
Gradient boosting for Grove.

Wraps lightgbm.LGBMRegressor / lightgbm.LGBMClassifier with the BaseModel
interface. Boosting fits trees sequentially on the residuals of the current
ensemble, so it has no out-of-bag estimate and is tuned with k-fold
resampling.
"""

from typing import Any, Dict, Optional, Union

import lightgbm as lgb
import pandas as pd

from .base_model import SklearnModel


class BoostingModel(SklearnModel):
    """
    LightGBM gradient-boosted trees for regression or classification.

    ``max_depth`` plays the role of the interaction depth and
    ``learning_rate`` the shrinkage of classic gbm.
    """

    name = "boosting"

    def __init__(
        self,
        task: str = "regression",
        random_state: Optional[int] = 42,
        n_estimators: int = 100,
        max_depth: int = -1,
        learning_rate: float = 0.1,
        num_leaves: int = 31,
        min_child_samples: int = 20,
        subsample: float = 1.0,
        subsample_freq: int = 0,
        colsample_bytree: float = 1.0,
        reg_alpha: float = 0.0,
        reg_lambda: float = 0.0,
        class_weight: Optional[Union[str, Dict]] = None,
        **kwargs: Any
    ) -> None:
        """
        Initialize LightGBM model.

        Args:
            task: 'regression' or 'classification'
            random_state: Random seed for reproducibility
            n_estimators: Number of boosting rounds
            max_depth: Maximum tree depth (-1 for no limit)
            learning_rate: Boosting learning rate (shrinkage)
            num_leaves: Maximum number of leaves in one tree
            min_child_samples: Minimum number of data points in a leaf
            subsample: Subsample ratio of training rows per round
            subsample_freq: Frequency of subsample (0 = disabled)
            colsample_bytree: Subsample ratio of columns per tree
            reg_alpha: L1 regularization term
            reg_lambda: L2 regularization term
            class_weight: Class weights ('balanced' or dict), classification only
            **kwargs: Additional LightGBM parameters
        """
        # subsample only takes effect when a frequency is set
        if subsample < 1.0 and subsample_freq == 0:
            subsample_freq = 1

        super().__init__(
            task=task,
            random_state=random_state,
            n_estimators=n_estimators,
            max_depth=max_depth,
            learning_rate=learning_rate,
            num_leaves=num_leaves,
            min_child_samples=min_child_samples,
            subsample=subsample,
            subsample_freq=subsample_freq,
            colsample_bytree=colsample_bytree,
            reg_alpha=reg_alpha,
            reg_lambda=reg_lambda,
            class_weight=class_weight,
            **kwargs
        )

    def _create_model(self):
        lgb_params = self.model_params.copy()
        lgb_params['random_state'] = self.random_state
        lgb_params.setdefault('verbose', -1)

        if self.is_classifier:
            return lgb.LGBMClassifier(**lgb_params)

        lgb_params.pop('class_weight', None)
        return lgb.LGBMRegressor(**lgb_params)

    def get_feature_importance(self) -> Optional[pd.Series]:
        """
        Split-count feature importance from the trained booster.

        Returns:
            Series with feature names as index and importance scores as values
        """
        if not self.is_fitted or self.model is None:
            self.log_warning("Model not fitted, cannot get feature importance")
            return None

        # The booster's own order is authoritative
        feature_names = self.model.booster_.feature_name()
        return pd.Series(
            data=self.model.feature_importances_,
            index=feature_names,
            name='importance'
        ).sort_values(ascending=False)

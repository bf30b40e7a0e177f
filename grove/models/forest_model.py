"""
Random forest and bagging for Grove.

Both families fit many trees on bootstrap resamples of the training rows.
Bagging considers every feature at each split; a random forest draws a
random subset (``max_features``) per split. Because each tree skips the rows
missing from its bootstrap sample, these models can score themselves on
out-of-bag rows without a separate validation set.
"""

from typing import Any, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from sklearn.ensemble import RandomForestClassifier, RandomForestRegressor

from .base_model import SklearnModel


class RandomForestModel(SklearnModel):
    """
    Bootstrap-aggregated trees with per-split feature subsampling.

    Defaults follow the usual textbook settings: 500 trees, p/3 features
    per split with leaves of at least 5 rows for regression, sqrt(p)
    features with leaves of 1 row for classification.
    """

    name = "random_forest"
    supports_oob = True

    def __init__(
        self,
        task: str = "regression",
        random_state: Optional[int] = 42,
        n_estimators: int = 500,
        max_features: Optional[Union[int, float, str]] = None,
        min_samples_leaf: Optional[int] = None,
        max_depth: Optional[int] = None,
        n_jobs: Optional[int] = None,
        **kwargs: Any
    ) -> None:
        """
        Args:
            task: 'regression' or 'classification'
            random_state: Seed for bootstrap sampling and feature draws
            n_estimators: Number of trees
            max_features: Features tried per split (int count, float
                fraction, 'sqrt' or 'log2'); None picks the task default
            min_samples_leaf: Minimum rows in a leaf; None picks the task default
            max_depth: Maximum tree depth (None for fully grown trees)
            n_jobs: Parallel jobs used by the forest itself
            **kwargs: Additional RandomForest* parameters
        """
        if kwargs.pop('bootstrap', True) is not True:
            raise ValueError(f"{self.__class__.__name__} always fits on bootstrap samples")

        if max_features is None:
            max_features = "sqrt" if task == "classification" else 1.0 / 3.0
        if min_samples_leaf is None:
            min_samples_leaf = 1 if task == "classification" else 5

        super().__init__(
            task=task,
            random_state=random_state,
            n_estimators=n_estimators,
            max_features=max_features,
            min_samples_leaf=min_samples_leaf,
            max_depth=max_depth,
            n_jobs=n_jobs,
            **kwargs
        )

    def _create_model(self):
        estimator_cls = RandomForestClassifier if self.is_classifier else RandomForestRegressor
        return estimator_cls(
            bootstrap=True,
            random_state=self.random_state,
            **self.model_params
        )

    def oob_masks(self) -> List[np.ndarray]:
        """
        Out-of-bag rows of each member tree.

        Returns:
            One boolean array per tree over the training rows, True where
            the row was left out of that tree's bootstrap sample
        """
        self._check_fitted()
        n_samples = self.training_info['n_samples']

        masks = []
        for in_bag in self.model.estimators_samples_:
            mask = np.ones(n_samples, dtype=bool)
            mask[in_bag] = False
            masks.append(mask)
        return masks

    def oob_predict(self, X: pd.DataFrame) -> Tuple[np.ndarray, np.ndarray]:
        """
        Predict every training row using only the trees that never saw it.

        Args:
            X: The training features the model was fitted on, in the same order

        Returns:
            Tuple of (predictions for covered rows, coverage mask). Rows that
            were in every tree's bootstrap sample are not covered and get no
            prediction.
        """
        self._check_fitted()
        self.validate_inputs(X)

        n_samples = self.training_info['n_samples']
        if len(X) != n_samples:
            raise ValueError(
                f"OOB prediction needs the {n_samples} training rows, got {len(X)}"
            )

        # Member trees were fitted on float32 arrays without column names
        X_arr = np.asarray(X, dtype=np.float32)
        counts = np.zeros(n_samples, dtype=int)

        if self.is_classifier:
            sums = np.zeros((n_samples, len(self.model.classes_)))
        else:
            sums = np.zeros(n_samples)

        for tree, mask in zip(self.model.estimators_, self.oob_masks()):
            if not mask.any():
                continue
            if self.is_classifier:
                sums[mask] += tree.predict_proba(X_arr[mask])
            else:
                sums[mask] += tree.predict(X_arr[mask])
            counts[mask] += 1

        covered = counts > 0
        n_uncovered = int((~covered).sum())
        if n_uncovered:
            self.log_debug(f"{n_uncovered} rows were in every bootstrap sample, no OOB prediction")

        if self.is_classifier:
            predictions = self.model.classes_[np.argmax(sums[covered], axis=1)]
        else:
            predictions = sums[covered] / counts[covered]

        return predictions, covered

    def get_feature_importance(self) -> Optional[pd.Series]:
        if not self.is_fitted or self.feature_names is None:
            self.log_warning("Model not fitted, cannot get feature importance")
            return None

        return pd.Series(
            data=self.model.feature_importances_,
            index=self.feature_names,
            name='importance'
        ).sort_values(ascending=False)


class BaggingModel(RandomForestModel):
    """Bagged trees: a random forest that tries every feature at each split."""

    name = "bagging"

    def __init__(
        self,
        task: str = "regression",
        random_state: Optional[int] = 42,
        n_estimators: int = 500,
        min_samples_leaf: Optional[int] = None,
        max_depth: Optional[int] = None,
        n_jobs: Optional[int] = None,
        **kwargs: Any
    ) -> None:
        if kwargs.get('max_features', 1.0) not in (1.0, None):
            raise ValueError("BaggingModel uses all features at every split; use RandomForestModel")
        kwargs['max_features'] = 1.0

        super().__init__(
            task=task,
            random_state=random_state,
            n_estimators=n_estimators,
            min_samples_leaf=min_samples_leaf,
            max_depth=max_depth,
            n_jobs=n_jobs,
            **kwargs
        )

"""
Abstract base model for Grove.

Defines the trainer interface every model family implements: fitting,
prediction, persistence and introspection, for both regression and
classification labels.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union
from pathlib import Path
from datetime import datetime
import json

import joblib
import numpy as np
import pandas as pd
from pandas.api.types import is_numeric_dtype

from ..utils.logging import LoggingMixin

TASKS = ("regression", "classification")


class BaseModel(ABC, LoggingMixin):
    """
    Abstract base class for all Grove model families.

    Subclasses declare ``supports_oob`` when their fit performs internal
    bootstrap resampling and can report out-of-bag predictions.
    """

    name: str = "base"
    supports_oob: bool = False

    def __init__(
        self,
        task: str = "regression",
        random_state: Optional[int] = 42,
        **kwargs: Any
    ) -> None:
        """
        Initialize base model.

        Args:
            task: 'regression' or 'classification'
            random_state: Random seed for reproducibility
            **kwargs: Model-specific hyperparameters
        """
        if task not in TASKS:
            raise ValueError(f"task must be one of {TASKS}, got: {task!r}")

        self.task = task
        self.random_state = random_state
        self.model_params: Dict[str, Any] = kwargs
        self.is_fitted = False
        self.feature_names: Optional[List[str]] = None
        self.training_info: Dict[str, Any] = {}
        self.training_metrics: Dict[str, float] = {}

        self.log_debug(
            f"Initialized {self.__class__.__name__} ({task}) with params={kwargs}"
        )

    @property
    def is_classifier(self) -> bool:
        return self.task == "classification"

    @abstractmethod
    def fit(self, X: pd.DataFrame, y: pd.Series, **kwargs: Any) -> 'BaseModel':
        """
        Train the model on the provided data.

        Args:
            X: Training features
            y: Training labels
            **kwargs: Additional fit parameters

        Returns:
            Self for method chaining
        """
        pass

    @abstractmethod
    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """
        Predict labels (classification) or values (regression).

        Args:
            X: Features for prediction

        Returns:
            Array of shape (n_samples,)
        """
        pass

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        """
        Predict class probabilities.

        Args:
            X: Features for prediction

        Returns:
            Array of shape (n_samples, n_classes)
        """
        raise ValueError(f"{self.__class__.__name__} does not provide class probabilities")

    @abstractmethod
    def save(self, filepath: Union[str, Path]) -> None:
        """Save the trained model to disk."""
        pass

    @abstractmethod
    def load(self, filepath: Union[str, Path]) -> 'BaseModel':
        """Load a trained model from disk."""
        pass

    def get_feature_importance(self) -> Optional[pd.Series]:
        """
        Get feature importance scores (if supported by the model).

        Returns:
            Series indexed by feature name, or None if not supported
        """
        return None

    def get_model_params(self) -> Dict[str, Any]:
        return self.model_params.copy()

    def validate_inputs(self, X: pd.DataFrame, y: Optional[pd.Series] = None) -> None:
        """
        Validate input data format and consistency.

        Args:
            X: Feature matrix
            y: Optional label vector

        Raises:
            ValueError: If inputs are invalid
        """
        if not isinstance(X, pd.DataFrame):
            raise ValueError("X must be a pandas DataFrame")

        if X.empty:
            raise ValueError("X cannot be empty")

        non_numeric = [col for col in X.columns if not is_numeric_dtype(X[col])]
        if non_numeric:
            raise ValueError(
                f"Features must be numeric, encode these columns first: {non_numeric}"
            )

        if y is not None:
            if not isinstance(y, pd.Series):
                raise ValueError("y must be a pandas Series")

            if len(X) != len(y):
                raise ValueError(f"X and y must have same length: {len(X)} vs {len(y)}")

            if y.isnull().any():
                raise ValueError(f"y contains {int(y.isnull().sum())} missing values")

            if self.task == "regression" and not is_numeric_dtype(y):
                raise ValueError(f"Regression labels must be numeric, got dtype {y.dtype}")

        if X.isnull().any().any():
            n_missing = X.isnull().sum().sum()
            self.log_warning(f"Found {n_missing} missing values in features")

        # Training fixes the feature layout; later calls must match it
        if y is not None and not self.is_fitted:
            self.feature_names = list(X.columns)
        elif self.feature_names is not None and list(X.columns) != self.feature_names:
            raise ValueError(
                f"Feature names mismatch. Expected: {self.feature_names}, "
                f"got: {list(X.columns)}"
            )

    def _save_metadata(self, filepath: Path) -> None:
        metadata = {
            'model_class': self.__class__.__name__,
            'task': self.task,
            'random_state': self.random_state,
            'model_params': self.model_params,
            'feature_names': self.feature_names,
            'training_info': self.training_info,
            'training_metrics': self.training_metrics,
            'is_fitted': self.is_fitted,
            'saved_at': datetime.now().isoformat()
        }

        metadata_path = filepath.with_suffix('.metadata.json')
        with open(metadata_path, 'w') as f:
            json.dump(metadata, f, indent=2, default=str)

        self.log_info(f"Saved metadata to {metadata_path}")

    def _load_metadata(self, filepath: Path) -> Dict[str, Any]:
        metadata_path = filepath.with_suffix('.metadata.json')

        if not metadata_path.exists():
            self.log_warning(f"Metadata file not found: {metadata_path}")
            return {}

        with open(metadata_path, 'r') as f:
            metadata = json.load(f)

        self.task = metadata.get('task', self.task)
        self.random_state = metadata.get('random_state', self.random_state)
        self.model_params = metadata.get('model_params', {})
        self.feature_names = metadata.get('feature_names')
        self.training_info = metadata.get('training_info', {})
        self.training_metrics = metadata.get('training_metrics', {})
        self.is_fitted = metadata.get('is_fitted', False)

        self.log_info(f"Loaded metadata from {metadata_path}")
        return metadata

    def get_training_summary(self) -> Dict[str, Any]:
        return {
            'model_class': self.__class__.__name__,
            'task': self.task,
            'is_fitted': self.is_fitted,
            'feature_count': len(self.feature_names) if self.feature_names else 0,
            'feature_names': self.feature_names,
            'model_params': self.get_model_params(),
            'training_metrics': self.training_metrics,
            'training_info': self.training_info,
            'random_state': self.random_state
        }

    def __str__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"task={self.task}, "
            f"fitted={self.is_fitted}, "
            f"features={len(self.feature_names) if self.feature_names else 0}, "
            f"random_state={self.random_state})"
        )

    def __repr__(self) -> str:
        return self.__str__()


class SklearnModel(BaseModel):
    """
    BaseModel backed by a single scikit-learn compatible estimator.

    Subclasses only build the estimator in ``_create_model``; fitting,
    prediction, metrics and persistence are shared.
    """

    def __init__(
        self,
        task: str = "regression",
        random_state: Optional[int] = 42,
        **kwargs: Any
    ) -> None:
        super().__init__(task=task, random_state=random_state, **kwargs)
        self.model: Any = None
        self.model = self._create_model()

    @abstractmethod
    def _create_model(self) -> Any:
        """Build an unfitted estimator from task, random_state and model_params."""
        pass

    def fit(self, X: pd.DataFrame, y: pd.Series, **kwargs: Any) -> 'SklearnModel':
        """
        Fit the wrapped estimator.

        Args:
            X: Training features (numeric)
            y: Training labels
            **kwargs: Passed through to the estimator's fit

        Returns:
            Self for method chaining
        """
        self.log_debug(f"Training {self.__class__.__name__} on {len(X)} samples")

        # Refitting starts from a fresh estimator and feature layout
        self.is_fitted = False
        self.feature_names = None
        self.model = self._create_model()

        self.validate_inputs(X, y)

        self.model.fit(X, y, **kwargs)
        self.is_fitted = True

        self.training_info = {
            'n_samples': len(X),
            'n_features': len(X.columns),
            'feature_names': list(X.columns),
        }
        if self.is_classifier:
            self.training_info['class_distribution'] = {
                str(label): int(count) for label, count in y.value_counts().items()
            }
        else:
            self.training_info['label_mean'] = float(y.mean())
            self.training_info['label_std'] = float(y.std())

        self.training_metrics = self._calculate_metrics(y, self.predict(X))

        return self

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        self._check_fitted()
        self.validate_inputs(X)
        return np.asarray(self.model.predict(X))

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        if not self.is_classifier:
            return super().predict_proba(X)

        self._check_fitted()
        self.validate_inputs(X)
        return self.model.predict_proba(X)

    @property
    def classes_(self) -> Optional[np.ndarray]:
        return getattr(self.model, 'classes_', None)

    def _check_fitted(self) -> None:
        if not self.is_fitted or self.model is None:
            raise ValueError("Model must be fitted before prediction")

    def _calculate_metrics(self, y_true: pd.Series, y_pred: np.ndarray) -> Dict[str, float]:
        """Training-set metrics matching the task."""
        from sklearn.metrics import accuracy_score, mean_squared_error, r2_score

        if self.is_classifier:
            accuracy = float(accuracy_score(y_true, y_pred))
            return {'accuracy': accuracy, 'error_rate': 1.0 - accuracy}

        mse = float(mean_squared_error(y_true, y_pred))
        return {'rmse': float(np.sqrt(mse)), 'mse': mse, 'r2': float(r2_score(y_true, y_pred))}

    def save(self, filepath: Union[str, Path]) -> None:
        """
        Save the fitted estimator and its metadata.

        Args:
            filepath: Path to save the model (extension is replaced)
        """
        if not self.is_fitted:
            raise ValueError("Cannot save unfitted model")

        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        model_path = filepath.with_suffix('.pkl')
        joblib.dump(self.model, model_path)
        self._save_metadata(filepath)

        self.log_info(f"Model saved to {model_path}")

    def load(self, filepath: Union[str, Path]) -> 'SklearnModel':
        """
        Load a fitted estimator and its metadata.

        Args:
            filepath: Path the model was saved to

        Returns:
            Self for method chaining
        """
        filepath = Path(filepath)
        model_path = filepath.with_suffix('.pkl')

        if not model_path.exists():
            raise FileNotFoundError(f"Model file not found: {model_path}")

        self.model = joblib.load(model_path)
        self._load_metadata(filepath)

        self.log_info(f"Model loaded from {model_path}")
        return self

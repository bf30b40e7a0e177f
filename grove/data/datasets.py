"""
Tabular dataset loading and preparation for Grove.

Covers the steps before any model is fitted: reading a table, one-hot
encoding categorical features, deciding whether the label calls for
regression or classification, and holding out a test split.
"""

from pathlib import Path
from typing import Callable, Dict, Optional, Tuple, Union

import pandas as pd
from pandas.api.types import is_bool_dtype, is_float_dtype, is_numeric_dtype
from sklearn.datasets import load_breast_cancer, load_diabetes
from sklearn.model_selection import train_test_split

from ..utils.logging import get_logger

logger = get_logger("datasets")


def _diabetes() -> pd.DataFrame:
    frame = load_diabetes(as_frame=True).frame
    return frame.rename(columns={'target': 'progression'}).astype({'progression': float})


def _breast_cancer() -> pd.DataFrame:
    bunch = load_breast_cancer(as_frame=True)
    frame = bunch.frame.copy()
    # Text labels keep the task unambiguous
    frame['diagnosis'] = bunch.target.map(dict(enumerate(bunch.target_names)))
    return frame.drop(columns=['target'])


# name -> (loader, label column)
BUILTIN_DATASETS: Dict[str, Tuple[Callable[[], pd.DataFrame], str]] = {
    'diabetes': (_diabetes, 'progression'),
    'breast_cancer': (_breast_cancer, 'diagnosis'),
}


def load_dataset(source: Union[str, Path]) -> pd.DataFrame:
    """
    Load a built-in dataset by name, or a CSV / parquet file by path.

    Args:
        source: 'diabetes', 'breast_cancer', or a path ending in .csv/.parquet

    Returns:
        DataFrame with features and label

    Raises:
        FileNotFoundError: If a path is given and does not exist
        ValueError: If the name or file type is not recognized
    """
    if isinstance(source, str) and source in BUILTIN_DATASETS:
        loader, _ = BUILTIN_DATASETS[source]
        data = loader()
        logger.info(f"Loaded built-in dataset {source!r}: {data.shape[0]} rows, {data.shape[1]} columns")
        return data

    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(
            f"Data file not found: {path} (built-in datasets: {list(BUILTIN_DATASETS)})"
        )

    suffix = path.suffix.lower()
    if suffix == '.csv':
        data = pd.read_csv(path)
    elif suffix in ('.parquet', '.pq'):
        data = pd.read_parquet(path)
    else:
        raise ValueError(f"Unsupported data file type {suffix!r}; use .csv or .parquet")

    logger.info(f"Loaded {path}: {data.shape[0]} rows, {data.shape[1]} columns")
    return data


def default_label(name: str) -> Optional[str]:
    """Label column of a built-in dataset, or None for anything else."""
    entry = BUILTIN_DATASETS.get(name)
    return entry[1] if entry else None


def infer_task(y: pd.Series) -> str:
    """
    Decide the learning task from the label's dtype.

    Float labels are treated as continuous (regression). Boolean, integer,
    categorical and text labels are treated as classes (classification).
    """
    if is_bool_dtype(y) or not is_numeric_dtype(y):
        return "classification"
    if is_float_dtype(y):
        return "regression"
    return "classification"


def split_features_label(data: pd.DataFrame, label_column: str) -> Tuple[pd.DataFrame, pd.Series]:
    """
    Separate the label column from the feature columns.

    The input frame is left untouched.

    Raises:
        ValueError: If the frame is empty, the label is missing or no
            feature columns remain
    """
    if not isinstance(data, pd.DataFrame):
        raise ValueError("data must be a pandas DataFrame")

    if data.empty:
        raise ValueError("Data cannot be empty")

    if label_column not in data.columns:
        raise ValueError(f"Label column '{label_column}' not found in data")

    X = data.drop(columns=[label_column])
    if X.shape[1] == 0:
        raise ValueError("Data has no feature columns besides the label")

    y = data[label_column]
    if y.isnull().any():
        raise ValueError(f"Label column '{label_column}' has {int(y.isnull().sum())} missing values")

    return X, y


def prepare_features(data: pd.DataFrame, label_column: str, drop_first: bool = False) -> pd.DataFrame:
    """
    One-hot encode non-numeric feature columns; the label is kept as is.

    Args:
        data: Raw table
        label_column: Column to leave unencoded
        drop_first: Drop the first level of each encoded column

    Returns:
        New DataFrame with numeric features plus the label column
    """
    X, y = split_features_label(data, label_column)

    categorical = [col for col in X.columns if not is_numeric_dtype(X[col]) or is_bool_dtype(X[col])]
    if categorical:
        logger.info(f"One-hot encoding {len(categorical)} feature columns: {categorical}")
        X = pd.get_dummies(X, columns=categorical, drop_first=drop_first, dtype=float)

    prepared = X.copy()
    prepared[label_column] = y.values
    return prepared


def train_test_split_frame(
    data: pd.DataFrame,
    label_column: str,
    test_size: float = 0.5,
    random_state: Optional[int] = 42,
    stratify: bool = False
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Random train/test split of a table.

    Args:
        data: Table with features and label
        label_column: Label column (used for stratification)
        test_size: Fraction of rows held out for testing
        random_state: Seed for the split
        stratify: Keep label proportions in both splits

    Returns:
        Tuple of (train, test) DataFrames
    """
    if label_column not in data.columns:
        raise ValueError(f"Label column '{label_column}' not found in data")

    train, test = train_test_split(
        data,
        test_size=test_size,
        random_state=random_state,
        stratify=data[label_column] if stratify else None
    )
    logger.info(f"Split {len(data)} rows into {len(train)} train / {len(test)} test")
    return train, test

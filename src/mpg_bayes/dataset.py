"""
Fuel-economy dataset loading and model-input preparation.

Supports:
- The UCI auto-mpg file fetched over HTTP(S)
- Any local or remote file in the same whitespace-delimited layout

Example record (auto-mpg layout):
    18.0   8   307.0      130.0      3504.      12.0   70  1	"chevrolet chevelle malibu"

Missing values are written as '?' (horsepower has a handful of them).
"""
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.preprocessing import StandardScaler

from .config import AUTO_MPG_URI, AUTO_MPG_COLUMNS
from .errors import LoadError
from .splitting import Split, ID_COLUMN


def load_dataset(uri: str = AUTO_MPG_URI,
                 column_names: Optional[Sequence[str]] = None,
                 verbose: bool = True) -> pd.DataFrame:
    """Load a whitespace-delimited table and assign a stable identifier per row.

    Args:
        uri: URL or filesystem path of the data file
        column_names: Names for the columns, in file order (defaults to auto-mpg)
        verbose: Print a short summary of what was loaded

    Returns:
        DataFrame with an ``id`` column (0..n-1 in load order) followed by the
        named columns

    Raises:
        LoadError: source unreachable or unparsable, or column count mismatch
    """
    column_names = list(column_names or AUTO_MPG_COLUMNS)
    if ID_COLUMN in column_names:
        raise ValueError(f"'{ID_COLUMN}' is reserved for the row identifier")

    try:
        df = pd.read_csv(str(uri), sep=r'\s+', header=None,
                         na_values='?', quotechar='"')
    except (OSError, UnicodeDecodeError,
            pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise LoadError(f"Could not read dataset from {uri}: {exc}") from exc

    if df.shape[1] != len(column_names):
        raise LoadError(
            f"Column count mismatch for {uri}: file has {df.shape[1]} columns, "
            f"expected {len(column_names)} ({column_names})"
        )

    df.columns = column_names
    df.insert(0, ID_COLUMN, np.arange(len(df), dtype=np.int64))

    if verbose:
        n_missing = int(df.isna().any(axis=1).sum())
        print(f"[Data] Loaded {len(df)} records, {len(column_names)} columns from {uri}")
        if n_missing:
            print(f"  Records with missing values: {n_missing}")

    return df


@dataclass
class DesignData:
    """Numeric model inputs derived from a Split.

    ``y_train`` is on the model scale (standardized when ``y_scaler`` is set);
    ``y_test`` always stays in the original units so metrics are comparable
    across model families.
    """
    predictors: List[str]
    target: str
    x_train: np.ndarray
    y_train: np.ndarray
    x_test: np.ndarray
    y_test: np.ndarray
    train_ids: np.ndarray
    test_ids: np.ndarray
    x_scaler: Optional[StandardScaler] = None
    y_scaler: Optional[StandardScaler] = None

    @property
    def n_train(self) -> int:
        return len(self.y_train)

    @property
    def n_test(self) -> int:
        return len(self.y_test)

    def inverse_target(self, values: np.ndarray) -> np.ndarray:
        """Map model-scale target values (any shape) back to original units."""
        values = np.asarray(values, dtype=np.float64)
        if self.y_scaler is None:
            return values
        return values * self.y_scaler.scale_[0] + self.y_scaler.mean_[0]

    def observed_test(self) -> pd.Series:
        """Held-out targets in original units, indexed by record id."""
        return pd.Series(self.y_test, index=pd.Index(self.test_ids, name=ID_COLUMN),
                         name=self.target)

    def model_data(self) -> Dict[str, np.ndarray]:
        """Values for the data slots every model specification declares."""
        return {'x': self.x_train, 'y': self.y_train, 'x_test': self.x_test}


def prepare_design(split: Split,
                   predictors: Sequence[str],
                   target: str,
                   standardize: bool = True,
                   scale_target: bool = False) -> DesignData:
    """Build model matrices from a train/test split.

    Scalers are fitted on the training side only and applied to both sides.

    Args:
        split: Train/test partition from ``train_test_split``
        predictors: Predictor column names
        target: Target column name
        standardize: Z-score the predictors
        scale_target: Z-score the training target as well (needed by models
            whose priors assume a unit-scale response, e.g. the GP)
    """
    predictors = list(predictors)
    columns = predictors + [target]

    missing = [c for c in columns if c not in split.train.columns]
    if missing:
        raise ValueError(f"Columns {missing} not found in dataset")

    train = split.train.dropna(subset=columns)
    test = split.test.dropna(subset=columns)
    n_dropped = (len(split.train) - len(train)) + (len(split.test) - len(test))
    if n_dropped:
        warnings.warn(f"Dropped {n_dropped} records with missing values in {columns}")

    if len(train) == 0 or len(test) == 0:
        raise ValueError("Train and test sets must both contain complete records")

    x_train = train[predictors].to_numpy(dtype=np.float64)
    x_test = test[predictors].to_numpy(dtype=np.float64)
    y_train = train[target].to_numpy(dtype=np.float64)
    y_test = test[target].to_numpy(dtype=np.float64)

    x_scaler = None
    if standardize:
        x_scaler = StandardScaler().fit(x_train)
        x_train = x_scaler.transform(x_train)
        x_test = x_scaler.transform(x_test)

    y_scaler = None
    if scale_target:
        y_scaler = StandardScaler().fit(y_train.reshape(-1, 1))
        y_train = y_scaler.transform(y_train.reshape(-1, 1)).ravel()

    return DesignData(
        predictors=predictors,
        target=target,
        x_train=x_train,
        y_train=y_train,
        x_test=x_test,
        y_test=y_test,
        train_ids=train[ID_COLUMN].to_numpy(),
        test_ids=test[ID_COLUMN].to_numpy(),
        x_scaler=x_scaler,
        y_scaler=y_scaler,
    )


def write_sample_dataset(filepath: str,
                         n_records: int = 60,
                         seed: int = 0,
                         missing_every: int = 0) -> Path:
    """Write a synthetic data file in the auto-mpg layout.

    Args:
        filepath: Output file
        n_records: Number of rows
        seed: Random seed
        missing_every: If > 0, every n-th horsepower value is written as '?'

    Returns:
        Path of the written file
    """
    rng = np.random.default_rng(seed)
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)

    displacement = rng.uniform(70.0, 455.0, n_records)
    cylinders = np.select([displacement < 150, displacement < 260], [4, 6], default=8)
    horsepower = 0.35 * displacement + 40.0 + rng.normal(0, 8.0, n_records)
    weight = 1600.0 + 6.5 * displacement + rng.normal(0, 150.0, n_records)
    acceleration = 20.0 - 0.015 * displacement + rng.normal(0, 1.0, n_records)
    model_year = rng.integers(70, 83, n_records)
    origin = np.where(cylinders == 4, rng.integers(1, 4, n_records), 1)
    mpg = 46.0 - 0.02 * displacement - 0.0045 * weight + rng.normal(0, 2.0, n_records)
    mpg = np.clip(mpg, 9.0, None)

    with open(path, 'w') as f:
        for i in range(n_records):
            hp = '?' if missing_every and (i + 1) % missing_every == 0 else f"{horsepower[i]:.1f}"
            f.write(
                f"{mpg[i]:.1f}   {cylinders[i]:d}   {displacement[i]:.1f}      {hp}      "
                f"{weight[i]:.0f}.      {acceleration[i]:.1f}   {model_year[i]:d}  "
                f"{origin[i]:d}\t\"sample car {i + 1}\"\n"
            )

    return path

"""
Train/test partitioning of a loaded dataset.

The training side is a simple random sample without replacement; the test
side is whatever is left, found by set difference on the ``id`` column, so
every record ends up on exactly one side.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd


ID_COLUMN = 'id'


@dataclass(frozen=True)
class Split:
    """Disjoint train/test partition of one dataset."""
    train: pd.DataFrame
    test: pd.DataFrame

    @property
    def train_ids(self) -> np.ndarray:
        return self.train[ID_COLUMN].to_numpy()

    @property
    def test_ids(self) -> np.ndarray:
        return self.test[ID_COLUMN].to_numpy()

    def __len__(self) -> int:
        return len(self.train) + len(self.test)


def train_test_split(dataset: pd.DataFrame,
                     train_frac: float = 0.7,
                     seed: Optional[int] = None,
                     verbose: bool = False) -> Split:
    """Partition ``dataset`` into train and test sets.

    Args:
        dataset: DataFrame with a unique integer ``id`` column
        train_frac: Fraction of records sampled into the training set, in (0, 1)
        seed: Random seed for a reproducible split

    Returns:
        Split with ``round(train_frac * len(dataset))`` training records
    """
    if not 0.0 < train_frac < 1.0:
        raise ValueError(f"train_frac must lie in (0, 1), got {train_frac}")
    if ID_COLUMN not in dataset.columns:
        raise ValueError(f"Dataset has no '{ID_COLUMN}' column")
    if not dataset[ID_COLUMN].is_unique:
        raise ValueError(f"Dataset identifiers in '{ID_COLUMN}' are not unique")

    train = dataset.sample(frac=train_frac, replace=False, random_state=seed)
    test = dataset[~dataset[ID_COLUMN].isin(train[ID_COLUMN])]

    # Keep both sides in load order
    train = train.sort_values(ID_COLUMN).reset_index(drop=True)
    test = test.reset_index(drop=True)

    if verbose:
        print(f"[Split] {len(train)} train / {len(test)} test records "
              f"(train_frac={train_frac}, seed={seed})")

    return Split(train=train, test=test)

"""
Train/Test Splitting Module for Cross-City Flood Transfer
==========================================================

Reproducible random partitions of a labeled city: a single
training/holdout split and k disjoint cross-validation folds.
"""

from typing import Iterator, Tuple

import numpy as np
from sklearn.model_selection import KFold, train_test_split

from .config import SPLIT
from .dataset import GridDataset
from .exceptions import DegenerateSplitError
from .utils import setup_logging

# Setup logger
logger = setup_logging()


class TrainTestSplitter:
    """
    Random (non-stratified) partitioning of grid cells.

    The same (dataset, label_field, train_fraction, seed) always yields
    the same partitions. Partitions are disjoint and together recover
    every row exactly once.
    """

    def split(
        self,
        dataset: GridDataset,
        label_field: str,
        train_fraction: float = SPLIT["train_fraction"],
        seed: int = SPLIT["split_seed"]
    ) -> Tuple[GridDataset, GridDataset]:
        """
        Split a labeled dataset into training and holdout partitions.

        Parameters
        ----------
        dataset : GridDataset
            Labeled city
        label_field : str
            Binary outcome column
        train_fraction : float
            Share of rows in the training partition, in (0, 1)
        seed : int
            Random seed

        Returns
        -------
        tuple
            (train, test) datasets

        Raises
        ------
        DegenerateSplitError
            If the training partition would be empty, or either
            partition lacks positive or negative rows
        """
        if not 0.0 < train_fraction < 1.0:
            raise ValueError(f"train_fraction must be in (0, 1), got {train_fraction}")

        dataset.require_fields([label_field])

        n_train = int(np.floor(train_fraction * len(dataset)))
        if n_train == 0:
            raise DegenerateSplitError(
                f"{dataset.name}: training partition would be empty "
                f"({len(dataset)} rows, train_fraction={train_fraction})"
            )

        positions = np.arange(len(dataset))
        train_pos, test_pos = train_test_split(
            positions,
            train_size=train_fraction,
            shuffle=True,
            random_state=seed
        )

        index = dataset.index
        train = dataset.subset(index[np.sort(train_pos)])
        test = dataset.subset(index[np.sort(test_pos)])

        for partition, label in ((train, "training"), (test, "holdout")):
            y = partition.column(label_field)
            n_pos = int(np.sum(y == 1))
            if n_pos == 0 or n_pos == len(y):
                missing = "positive" if n_pos == 0 else "negative"
                raise DegenerateSplitError(
                    f"{dataset.name}: {label} partition ({len(y)} rows) has no {missing} "
                    f"'{label_field}' rows (train_fraction={train_fraction}, seed={seed})"
                )

        logger.info(
            f"Split '{dataset.name}': {len(train):,} training / {len(test):,} holdout "
            f"(train_fraction={train_fraction}, seed={seed})"
        )

        return train, test

    def kfold(
        self,
        dataset: GridDataset,
        k: int,
        seed: int
    ) -> Iterator[Tuple[GridDataset, GridDataset]]:
        """
        Yield (train, held_out) pairs for k shuffled, near-equal folds.

        Parameters
        ----------
        dataset : GridDataset
            Labeled city
        k : int
            Number of folds, 2 <= k <= len(dataset)
        seed : int
            Random seed

        Yields
        ------
        tuple
            (remaining k-1 folds, held-out fold)
        """
        if k < 2 or k > len(dataset):
            raise ValueError(f"k must be in [2, {len(dataset)}], got {k}")

        index = dataset.index
        folds = KFold(n_splits=k, shuffle=True, random_state=seed)

        for train_pos, held_pos in folds.split(np.arange(len(dataset))):
            yield dataset.subset(index[train_pos]), dataset.subset(index[held_pos])

import numpy as np
import pandas as pd
import pytest

from flood_transfer import DegenerateSplitError, GridDataset, TrainTestSplitter


@pytest.mark.parametrize("train_fraction", [0.3, 0.5, 0.7, 0.9])
@pytest.mark.parametrize("seed", [0, 1, 42])
def test_partitions_disjoint_and_complete(training_dataset, train_fraction, seed):
    """Union of partitions equals the input, with no duplicates."""
    train, test = TrainTestSplitter().split(training_dataset, "inundated", train_fraction, seed)

    train_ids, test_ids = set(train.index), set(test.index)
    assert not train_ids & test_ids
    assert train_ids | test_ids == set(training_dataset.index)
    assert len(train) + len(test) == len(training_dataset)


def test_train_fraction_respected(training_dataset):
    train, test = TrainTestSplitter().split(training_dataset, "inundated", 0.7, 3)
    assert len(train) == 700
    assert len(test) == 300


def test_split_is_reproducible(training_dataset):
    splitter = TrainTestSplitter()
    first = splitter.split(training_dataset, "inundated", 0.7, 11)
    second = splitter.split(training_dataset, "inundated", 0.7, 11)
    assert list(first[0].index) == list(second[0].index)
    assert list(first[1].index) == list(second[1].index)


def test_different_seeds_differ(training_dataset):
    splitter = TrainTestSplitter()
    a, _ = splitter.split(training_dataset, "inundated", 0.7, 1)
    b, _ = splitter.split(training_dataset, "inundated", 0.7, 2)
    assert set(a.index) != set(b.index)


@pytest.mark.parametrize("fraction", [0.0, 1.0, -0.2, 1.5])
def test_invalid_fraction(training_dataset, fraction):
    with pytest.raises(ValueError):
        TrainTestSplitter().split(training_dataset, "inundated", fraction, 0)


def test_partition_without_positives_is_degenerate(training_frame):
    """A single flooded cell cannot land in both partitions."""
    training_frame["inundated"] = 0
    training_frame.loc[0, "inundated"] = 1
    dataset = GridDataset(training_frame)
    with pytest.raises(DegenerateSplitError):
        TrainTestSplitter().split(dataset, "inundated", 0.7, 0)


def test_kfold_partitions(training_dataset):
    """Held-out folds are disjoint, near-equal and cover every row."""
    folds = list(TrainTestSplitter().kfold(training_dataset, 3, 5))
    assert len(folds) == 3

    held_ids = [set(held.index) for _, held in folds]
    sizes = [len(ids) for ids in held_ids]
    assert max(sizes) - min(sizes) <= 1
    assert set().union(*held_ids) == set(training_dataset.index)
    assert sum(sizes) == len(training_dataset)

    for train, held in folds:
        assert not set(train.index) & set(held.index)
        assert len(train) + len(held) == len(training_dataset)


def test_kfold_reproducible(training_dataset):
    splitter = TrainTestSplitter()
    first = [list(h.index) for _, h in splitter.kfold(training_dataset, 5, 9)]
    second = [list(h.index) for _, h in splitter.kfold(training_dataset, 5, 9)]
    assert first == second


def test_kfold_invalid_k(training_dataset):
    with pytest.raises(ValueError):
        list(TrainTestSplitter().kfold(training_dataset, 1, 0))


def _balanced_dataset(n):
    frame = pd.DataFrame({
        "elevation": np.linspace(0, 50, n),
        "slope": np.ones(n),
        "flow_accumulation": np.arange(1, n + 1, dtype=float),
        "distance_to_river": np.zeros(n),
        "developed": np.zeros(n),
        "forest": np.zeros(n),
        "grassland": np.zeros(n),
        "inundated": np.arange(n) % 2,
    })
    return GridDataset(frame, name="tiny")


def test_empty_training_partition_is_degenerate():
    """A valid fraction that rounds the training partition down to zero rows."""
    with pytest.raises(DegenerateSplitError, match="empty"):
        TrainTestSplitter().split(_balanced_dataset(10), "inundated", 0.05, 0)


def test_smallest_training_partition_checked_for_classes():
    """One training row can never hold both classes."""
    with pytest.raises(DegenerateSplitError, match="training partition"):
        TrainTestSplitter().split(_balanced_dataset(10), "inundated", 0.1, 0)

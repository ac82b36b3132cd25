import numpy as np
import pandas as pd
import pytest

from flood_transfer import FeatureNormalizer, GridDataset
from flood_transfer.synthetic import make_city_pair

TRUE_LOGIT = {
    "intercept": 1.0,
    "normalized_elevation": -0.012,
    "slope": -0.03,
    "normalized_flow_accumulation": 0.0003,
    "distance_to_river": -0.001,
    "developed": 0.8,
    "forest": -0.5,
    "grassland": 0.0,
}


def _minmax(values, lo, hi):
    return (values - values.min()) / (values.max() - values.min()) * (hi - lo) + lo


def linear_logit_frame(n=1000, seed=0, labeled=True, elevation_offset=0.0):
    """Independent predictors with a known linear-in-logit inundation model."""
    rng = np.random.default_rng(seed)
    elevation = elevation_offset + rng.uniform(100, 400, n)
    slope = rng.uniform(0, 30, n)
    flow = rng.gamma(2.0, 500.0, n)
    distance = rng.uniform(0, 2000, n)
    cover = rng.choice(4, size=n, p=[0.3, 0.3, 0.25, 0.15])

    frame = pd.DataFrame({
        "cell_id": np.arange(n),
        "elevation": elevation,
        "slope": slope,
        "flow_accumulation": flow,
        "distance_to_river": distance,
        "developed": (cover == 0).astype(float),
        "forest": (cover == 1).astype(float),
        "grassland": (cover == 2).astype(float),
    })

    if labeled:
        logit = (
            TRUE_LOGIT["intercept"]
            + TRUE_LOGIT["normalized_elevation"] * _minmax(elevation, 0, 300)
            + TRUE_LOGIT["normalized_flow_accumulation"] * _minmax(flow, 0, 10000)
            + TRUE_LOGIT["slope"] * slope
            + TRUE_LOGIT["distance_to_river"] * distance
            + TRUE_LOGIT["developed"] * frame["developed"]
            + TRUE_LOGIT["forest"] * frame["forest"]
        )
        p = 1.0 / (1.0 + np.exp(-logit))
        frame["inundated"] = (rng.random(n) < p).astype(int)

    return frame


@pytest.fixture
def training_frame():
    return linear_logit_frame(n=1000, seed=0)


@pytest.fixture
def training_dataset(training_frame):
    return GridDataset(training_frame, name="Calgary")


@pytest.fixture
def normalized_training(training_dataset):
    return FeatureNormalizer().normalize_city(training_dataset)


@pytest.fixture
def target_dataset():
    """Unlabeled city with elevations an order of magnitude higher."""
    frame = linear_logit_frame(n=400, seed=1, labeled=False, elevation_offset=2000.0)
    return GridDataset(frame, name="Portland")


@pytest.fixture
def small_frame():
    return pd.DataFrame({
        "cell_id": [10, 11, 12, 13, 14, 15],
        "elevation": [5.0, 10.0, 15.0, 20.0, 25.0, 30.0],
        "slope": [1.0, 2.0, 3.0, 4.0, 5.0, 6.0],
        "flow_accumulation": [100.0, 50.0, 20.0, 10.0, 5.0, 1.0],
        "distance_to_river": [0.0, 30.0, 60.0, 90.0, 120.0, 150.0],
        "developed": [1.0, 0.0, 0.0, 0.5, 0.0, 0.0],
        "forest": [0.0, 1.0, 0.0, 0.5, 0.0, 0.0],
        "grassland": [0.0, 0.0, 1.0, 0.0, 0.0, 0.0],
        "inundated": [1, 1, 0, np.nan, 0, 0],
    })


@pytest.fixture
def city_pair():
    training, target = make_city_pair(shape=(30, 40), seed=7)
    return GridDataset(training, name="Calgary"), GridDataset(target, name="Portland")

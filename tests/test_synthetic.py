import numpy as np

from flood_transfer import GridDataset
from flood_transfer.config import FIELDS, PREDICTOR_FIELDS
from flood_transfer.synthetic import CITY_PROFILES, make_city, make_city_pair


def test_make_city_columns():
    frame = make_city("Test", shape=(10, 12), seed=3)
    assert len(frame) == 120
    for field in PREDICTOR_FIELDS + ["cell_id", "row", "col", "inundated"]:
        assert field in frame.columns
    assert frame["cell_id"].is_unique


def test_make_city_land_cover_exclusive():
    frame = make_city("Test", shape=(20, 20), seed=4)
    total = frame[FIELDS["land_cover"]].sum(axis=1)
    assert total.max() <= 1.0
    assert (total == 0).any()


def test_make_city_reproducible():
    first = make_city("Test", shape=(8, 8), seed=9)
    second = make_city("Test", shape=(8, 8), seed=9)
    assert first.equals(second)


def test_missing_coverage_labels_load_as_dry():
    frame = make_city("Test", shape=(20, 20), missing_coverage=0.2, seed=5)
    assert frame["inundated"].isna().any()

    dataset = GridDataset(frame, name="Test")
    labels = dataset.column("inundated")
    assert set(np.unique(labels)) <= {0, 1}
    assert len(dataset) == 400


def test_city_pair_elevation_scales():
    training, target = make_city_pair(shape=(15, 15), seed=1)
    assert "inundated" in training.columns
    assert "inundated" not in target.columns

    calgary = CITY_PROFILES["Calgary"]
    assert training["elevation"].min() >= calgary["base_elevation"] - 1e-6
    assert target["elevation"].max() < training["elevation"].min()

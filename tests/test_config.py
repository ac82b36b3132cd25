import pytest

from flood_transfer.config import (
    CV_THRESHOLD, DEFAULT_OPTIONS, FEATURE_FIELDS, OPERATIONAL_THRESHOLD,
    get_config, normalization_ranges,
)


def test_defaults():
    options = get_config()
    assert options == DEFAULT_OPTIONS
    assert options["train_fraction"] == 0.7
    assert options["split_seed"] == 42
    assert options["cv_folds"] == 5
    assert options["risk_bins"] == 5
    assert options["elevation_normalize_range"] == (0.0, 300.0)
    assert options["flow_accum_normalize_range"] == (0.0, 10000.0)


def test_two_thresholds_are_separate_options():
    options = get_config(operational_threshold=0.3)
    assert options["operational_threshold"] == 0.3
    assert options["cv_threshold"] == CV_THRESHOLD == 0.5
    assert OPERATIONAL_THRESHOLD != CV_THRESHOLD


def test_cv_threshold_is_fixed():
    with pytest.raises(ValueError, match="cv_threshold"):
        get_config(cv_threshold=0.2)
    assert get_config(cv_threshold=0.5)["cv_threshold"] == 0.5


def test_unknown_option():
    with pytest.raises(ValueError, match="Unknown"):
        get_config(thresold=0.2)


@pytest.mark.parametrize("overrides", [
    {"train_fraction": 0.0},
    {"train_fraction": 1.0},
    {"operational_threshold": 1.5},
    {"elevation_normalize_range": (300, 0)},
    {"flow_accum_normalize_range": (5, 5)},
])
def test_invalid_values(overrides):
    with pytest.raises(ValueError):
        get_config(**overrides)


def test_normalization_ranges():
    options = get_config(elevation_normalize_range=[0, 100])
    assert normalization_ranges(options) == {
        "elevation": (0.0, 100.0),
        "flow_accumulation": (0.0, 10000.0),
    }


def test_feature_order():
    assert FEATURE_FIELDS[0] == "normalized_elevation"
    assert "elevation" not in FEATURE_FIELDS
    assert "flow_accumulation" not in FEATURE_FIELDS


def test_print_config(capsys):
    from flood_transfer.config import print_config

    print_config()
    out = capsys.readouterr().out
    assert "Operational: 0.2" in out
    assert "Cross-validation: 0.5" in out

"""
Configuration Parameters for Cross-City Flood Transfer Modelling
=================================================================

A logistic model is trained on the flood-mapped city and transferred to
an unmapped city. Everything that is a modelling choice rather than a
law of nature lives here.
"""

from pathlib import Path
from typing import Any, Dict

# =============================================================================
# PROJECT PATHS
# =============================================================================

BASE_DIR = Path(__file__).parent.parent.absolute()

OUTPUT_DIR = BASE_DIR / "outputs"
SCORED_DIR = OUTPUT_DIR / "scored"
MODELS_DIR = OUTPUT_DIR / "models"
METRICS_DIR = OUTPUT_DIR / "metrics"

# =============================================================================
# GRID CELL FIELDS
# =============================================================================

FIELDS = {
    "continuous": ["elevation", "slope", "flow_accumulation", "distance_to_river"],
    # One-hot membership; cells outside all three are "unclassified"
    "land_cover": ["developed", "forest", "grassland"],
    "label": "inundated",
    "cell_id": "cell_id",
}

PREDICTOR_FIELDS = FIELDS["continuous"] + FIELDS["land_cover"]
LABEL_FIELD = FIELDS["label"]

# Columns written by the pipeline, never accepted as input
DERIVED_FIELDS = {
    "normalized_elevation": "normalized_elevation",
    "normalized_flow_accumulation": "normalized_flow_accumulation",
    "predicted_probability": "predicted_probability",
    "predicted_class": "predicted_class",
    "risk_quantile": "risk_quantile",
    "risk_label": "risk_label",
    "confusion_type": "confusion_type",
}

# Fixed order used at fit time and at every predict call
FEATURE_FIELDS = [
    "normalized_elevation",
    "slope",
    "normalized_flow_accumulation",
    "distance_to_river",
    "developed",
    "forest",
    "grassland",
]

# =============================================================================
# CROSS-CITY NORMALIZATION
# =============================================================================

# Each city is rescaled with its own min/max into these target ranges.
# The bounds approximate each variable's cross-city dynamic range.
NORMALIZATION = {
    "elevation": {
        "output_field": "normalized_elevation",
        "range": (0.0, 300.0),
        "unit": "m (rescaled)",
    },
    "flow_accumulation": {
        "output_field": "normalized_flow_accumulation",
        "range": (0.0, 10000.0),
        "unit": "cells (rescaled)",
    },
}

# =============================================================================
# TRAIN / TEST SPLIT
# =============================================================================

SPLIT = {
    "train_fraction": 0.70,
    "split_seed": 42,
    "stratify": False,
}

# =============================================================================
# DECISION THRESHOLDS
# =============================================================================

# Operational cutoff favours sensitivity: a missed flood zone costs more
# than a false alarm.
OPERATIONAL_THRESHOLD = 0.2

# Conventional cutoff used only for cross-validation reporting.
CV_THRESHOLD = 0.5

THRESHOLDS = {
    "operational_threshold": OPERATIONAL_THRESHOLD,
    "cv_threshold": CV_THRESHOLD,
}

# =============================================================================
# LOGISTIC MODEL CONFIGURATION
# =============================================================================

MODEL_CONFIG = {
    "algorithm": "LogisticRegression",
    "link": "logit",
    "solver": "IRLS (statsmodels GLM)",
    "params": {
        "max_iter": 50,
        # Absolute change in deviance between IRLS iterations
        "tol": 1e-8,
        # Fitted probabilities this close to 0 or 1 indicate separation
        "separation_eps": 1e-14,
        # Largest |y - p| at which a fit on both classes counts as perfect prediction
        "separation_residual": 1e-6,
    },
}

# =============================================================================
# VALIDATION
# =============================================================================

CROSS_VALIDATION = {
    "cv_folds": 5,
    "cv_seed": 42,
    "n_jobs": 1,
}

EVALUATION = {
    # Uniform cut-point grid for the plotting ROC curve (includes 0 and 1)
    "roc_resolution": 101,
}

# =============================================================================
# RISK CLASSIFICATION
# =============================================================================

RISK_CLASSES = {
    "method": "quantile",
    "risk_bins": 5,
    "class_names": ["Very Low", "Low", "Moderate", "High", "Very High"],
    "confusion_labels": {
        (True, True): "True Positive",
        (False, False): "True Negative",
        (True, False): "False Positive",
        (False, True): "False Negative",
    },
}

# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

LOGGING = {
    "level": "INFO",
    "format": "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    "file": OUTPUT_DIR / "flood_transfer.log",
}

# =============================================================================
# RECOGNIZED OPTIONS
# =============================================================================

DEFAULT_OPTIONS = {
    "train_fraction": SPLIT["train_fraction"],
    "split_seed": SPLIT["split_seed"],
    "operational_threshold": OPERATIONAL_THRESHOLD,
    "cv_threshold": CV_THRESHOLD,
    "cv_folds": CROSS_VALIDATION["cv_folds"],
    "cv_seed": CROSS_VALIDATION["cv_seed"],
    "n_jobs": CROSS_VALIDATION["n_jobs"],
    "elevation_normalize_range": NORMALIZATION["elevation"]["range"],
    "flow_accum_normalize_range": NORMALIZATION["flow_accumulation"]["range"],
    "risk_bins": RISK_CLASSES["risk_bins"],
    "max_iter": MODEL_CONFIG["params"]["max_iter"],
    "tol": MODEL_CONFIG["params"]["tol"],
    "roc_resolution": EVALUATION["roc_resolution"],
}


def get_config(**overrides: Any) -> Dict[str, Any]:
    """
    Return the recognized option set with overrides applied.

    Parameters
    ----------
    **overrides
        Any key of ``DEFAULT_OPTIONS``

    Returns
    -------
    dict
        Flat option dictionary

    Raises
    ------
    ValueError
        On an unknown option, or an attempt to move the fixed
        cross-validation threshold
    """
    unknown = sorted(set(overrides) - set(DEFAULT_OPTIONS))
    if unknown:
        raise ValueError(f"Unknown configuration option(s): {unknown}")

    if "cv_threshold" in overrides and overrides["cv_threshold"] != CV_THRESHOLD:
        raise ValueError(
            f"cv_threshold is fixed at {CV_THRESHOLD}; "
            "tune operational_threshold instead"
        )

    options = dict(DEFAULT_OPTIONS)
    options.update(overrides)

    if not 0.0 < options["train_fraction"] < 1.0:
        raise ValueError(f"train_fraction must be in (0, 1), got {options['train_fraction']}")
    if not 0.0 <= options["operational_threshold"] <= 1.0:
        raise ValueError(
            f"operational_threshold must be in [0, 1], got {options['operational_threshold']}"
        )
    for key in ("elevation_normalize_range", "flow_accum_normalize_range"):
        lo, hi = options[key]
        if lo >= hi:
            raise ValueError(f"{key} must satisfy min < max, got {options[key]}")
        options[key] = (float(lo), float(hi))

    return options


def normalization_ranges(options: Dict[str, Any]) -> Dict[str, tuple]:
    """Map source field -> target range from a flat option set."""
    return {
        "elevation": options["elevation_normalize_range"],
        "flow_accumulation": options["flow_accum_normalize_range"],
    }


# =============================================================================
# PRINT CONFIGURATION SUMMARY
# =============================================================================

def print_config():
    """Print configuration summary."""
    print("=" * 60)
    print("CROSS-CITY FLOOD TRANSFER - CONFIGURATION")
    print("=" * 60)
    print(f"\nModel: {MODEL_CONFIG['algorithm']} ({MODEL_CONFIG['link']} link, {MODEL_CONFIG['solver']})")
    print(f"   Max iterations: {MODEL_CONFIG['params']['max_iter']}")
    print(f"   Features: {', '.join(FEATURE_FIELDS)}")
    print(f"\nNormalization (per city):")
    for field, settings in NORMALIZATION.items():
        print(f"   {field}: {settings['range']}")
    print(f"\nThresholds:")
    print(f"   Operational: {OPERATIONAL_THRESHOLD}")
    print(f"   Cross-validation: {CV_THRESHOLD}")
    print(f"   CV Folds: {CROSS_VALIDATION['cv_folds']}")
    print(f"\nDirectories:")
    print(f"   Output: {OUTPUT_DIR}")
    print("=" * 60)


if __name__ == "__main__":
    print_config()

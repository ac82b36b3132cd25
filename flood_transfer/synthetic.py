"""
Synthetic Study Areas for Cross-City Flood Transfer
====================================================

Generates gridded cities with plausible terrain for demonstrations and
tests when no pre-processed GIS table is at hand:
- DEM with a carved river valley
- Slope (percent) from Sobel gradients
- Flow accumulation proxy
- Euclidean distance to the river channel
- Land cover indicators (with unclassified cells)
- Optional inundation label drawn from a known logit
"""

from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd
from scipy import ndimage
from scipy.special import expit

from .config import FIELDS, LABEL_FIELD, NORMALIZATION
from .utils import setup_logging

# Setup logger
logger = setup_logging()

# Logit coefficients on the normalized feature scale
TRUE_COEFFICIENTS = {
    "intercept": 2.0,
    "normalized_elevation": -0.015,
    "slope": -0.01,
    "normalized_flow_accumulation": 0.0002,
    "distance_to_river": -0.003,
    "developed": 0.4,
    "forest": -0.4,
    "grassland": 0.0,
}

CITY_PROFILES = {
    # Foothill city: high base elevation, modest relief
    "Calgary": {"base_elevation": 1030.0, "relief": 270.0, "flow_scale": 40.0},
    # Coastal city: near sea level
    "Portland": {"base_elevation": 2.0, "relief": 28.0, "flow_scale": 900.0},
}


def _minmax(values: np.ndarray, target: Tuple[float, float]) -> np.ndarray:
    lo, hi = target
    span = values.max() - values.min()
    if span == 0:
        return np.full_like(values, (lo + hi) / 2.0)
    return (values - values.min()) / span * (hi - lo) + lo


def make_city(
    name: str,
    shape: Tuple[int, int] = (40, 50),
    base_elevation: float = 0.0,
    relief: float = 100.0,
    flow_scale: float = 100.0,
    cell_size: float = 30.0,
    labeled: bool = True,
    coefficients: Optional[Dict[str, float]] = None,
    missing_coverage: float = 0.0,
    seed: int = 42
) -> pd.DataFrame:
    """
    Build one synthetic city as a grid-cell table.

    Parameters
    ----------
    name : str
        City name (logging only)
    shape : tuple
        Grid (rows, cols)
    base_elevation, relief : float
        Elevation floor and range in meters
    flow_scale : float
        Multiplier on the flow accumulation proxy
    cell_size : float
        Cell size in meters
    labeled : bool
        Draw an ``inundated`` column
    coefficients : dict, optional
        Logit coefficients, default ``TRUE_COEFFICIENTS``
    missing_coverage : float
        Share of labels set to NaN (cells outside flood raster coverage)
    seed : int
        Random seed

    Returns
    -------
    pd.DataFrame
        One row per cell with ``cell_id``, ``row``, ``col`` and predictors
    """
    rng = np.random.default_rng(seed)
    coefficients = coefficients or TRUE_COEFFICIENTS
    rows, cols = shape

    # DEM: sloping surface, smoothed noise, carved valley
    x, y = np.meshgrid(np.linspace(0, 1, cols), np.linspace(0, 1, rows))
    noise = ndimage.gaussian_filter(rng.normal(0, 1, shape), sigma=2)
    dem = (1 - y) ** 0.5 + 0.15 * noise
    valley = 0.5 + 0.1 * np.sin(y * np.pi * 3)
    dem -= np.exp(-(x - valley) ** 2 / 0.02) * 0.5
    dem = base_elevation + relief * (dem - dem.min()) / (dem.max() - dem.min())

    # Slope (percent rise) from Sobel gradients
    kernel_x = np.array([[-1, 0, 1], [-2, 0, 2], [-1, 0, 1]]) / (8 * cell_size)
    kernel_y = np.array([[-1, -2, -1], [0, 0, 0], [1, 2, 1]]) / (8 * cell_size)
    dz_dx = ndimage.convolve(dem, kernel_x, mode='reflect')
    dz_dy = ndimage.convolve(dem, kernel_y, mode='reflect')
    slope = 100.0 * np.sqrt(dz_dx ** 2 + dz_dy ** 2)

    # Flow accumulation proxy: low, enclosed cells collect more upstream area
    flow_acc = (dem.max() - ndimage.uniform_filter(dem, 5)) / max(relief, 1e-9)
    flow_acc = np.round(flow_scale * (1 + 20 * flow_acc ** 2))

    # River channel: lowest 5% of cells
    river_mask = dem <= np.percentile(dem, 5)
    dist_river = ndimage.distance_transform_edt(~river_mask) * cell_size

    # Land cover: exclusive indicators, some cells unclassified
    draw = rng.random(shape)
    developed = (dem < np.percentile(dem, 45)) & (draw < 0.6) & ~river_mask
    forest = ~developed & (slope > np.percentile(slope, 50)) & (draw < 0.8) & ~river_mask
    grassland = ~developed & ~forest & ~river_mask & (draw < 0.85)

    frame = pd.DataFrame({
        "cell_id": np.arange(rows * cols),
        "row": np.repeat(np.arange(rows), cols),
        "col": np.tile(np.arange(cols), rows),
        "elevation": dem.ravel(),
        "slope": slope.ravel(),
        "flow_accumulation": flow_acc.ravel(),
        "distance_to_river": dist_river.ravel(),
        "developed": developed.ravel().astype(float),
        "forest": forest.ravel().astype(float),
        "grassland": grassland.ravel().astype(float),
    })

    if labeled:
        elevation_range = NORMALIZATION["elevation"]["range"]
        flow_range = NORMALIZATION["flow_accumulation"]["range"]
        logit = (
            coefficients["intercept"]
            + coefficients["normalized_elevation"] * _minmax(frame["elevation"].to_numpy(), elevation_range)
            + coefficients["normalized_flow_accumulation"] * _minmax(frame["flow_accumulation"].to_numpy(), flow_range)
            + sum(
                coefficients[field] * frame[field].to_numpy()
                for field in ["slope", "distance_to_river"] + FIELDS["land_cover"]
            )
        )
        labels = (rng.random(len(frame)) < expit(logit)).astype(float)

        if missing_coverage > 0:
            labels[rng.random(len(frame)) < missing_coverage] = np.nan

        frame[LABEL_FIELD] = labels
        logger.info(
            f"Synthetic '{name}': {len(frame):,} cells, "
            f"{int(np.nansum(labels)):,} inundated"
        )
    else:
        logger.info(f"Synthetic '{name}': {len(frame):,} cells, unlabeled")

    return frame


def make_city_pair(
    shape: Tuple[int, int] = (40, 50),
    seed: int = 42
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Labeled training city and unlabeled target city whose absolute
    elevation ranges differ by an order of magnitude.
    """
    training = make_city("Calgary", shape=shape, labeled=True, seed=seed, **CITY_PROFILES["Calgary"])
    target = make_city("Portland", shape=shape, labeled=False, seed=seed + 1, **CITY_PROFILES["Portland"])
    return training, target

"""
Feature Normalization Module for Cross-City Flood Transfer
===========================================================

Rescales continuous predictors onto a shared range, one city at a time.

Elevation in one city may span 40 m and in another 900 m. Rescaling each
city with its OWN min/max into the same target interval lets a single
set of coefficients be read on both. Ranges are never pooled across
cities.
"""

import warnings
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd

from .config import NORMALIZATION
from .dataset import GridDataset
from .exceptions import ConstantFieldWarning, DatasetValidationError
from .utils import setup_logging

# Setup logger
logger = setup_logging()


class FeatureNormalizer:
    """
    Per-city min-max rescaling of continuous predictors.

    Attributes
    ----------
    ranges : dict
        {source_field: (target_min, target_max)} applied by normalize_city
    fitted_ranges : dict
        {(city, field): (observed_min, observed_max)} seen so far

    Example
    -------
    >>> normalizer = FeatureNormalizer()
    >>> calgary = normalizer.normalize_city(calgary)
    >>> portland = normalizer.normalize_city(portland)
    """

    def __init__(self, ranges: Optional[Dict[str, Tuple[float, float]]] = None):
        if ranges is None:
            ranges = {field: settings["range"] for field, settings in NORMALIZATION.items()}
        self.ranges = dict(ranges)
        self.fitted_ranges: Dict[Tuple[str, str], Tuple[float, float]] = {}

    @staticmethod
    def output_field(field: str) -> str:
        """Name of the derived column for ``field``."""
        if field in NORMALIZATION:
            return NORMALIZATION[field]["output_field"]
        return f"normalized_{field}"

    def normalize(
        self,
        dataset: GridDataset,
        field: str,
        target_min: float,
        target_max: float,
        output_field: Optional[str] = None
    ) -> GridDataset:
        """
        Linearly rescale ``field`` from its observed range in ``dataset``.

        Parameters
        ----------
        dataset : GridDataset
            One city
        field : str
            Numeric source column (left unmodified)
        target_min, target_max : float
            Output interval
        output_field : str, optional
            Derived column name, default ``normalized_<field>``

        Returns
        -------
        GridDataset
            New dataset with exactly one added column. A constant field
            maps every row to the midpoint of the target interval.
        """
        if target_min >= target_max:
            raise ValueError(
                f"target range must satisfy min < max, got ({target_min}, {target_max})"
            )

        dataset.require_fields([field])
        values = dataset.column(field)
        if not pd.api.types.is_numeric_dtype(values.dtype):
            raise DatasetValidationError(f"{dataset.name}: '{field}' is not numeric")
        values = values.astype(float)

        output_field = output_field or self.output_field(field)
        min_val = float(np.min(values))
        max_val = float(np.max(values))

        previous = self.fitted_ranges.get((dataset.name, field))
        if previous is not None and previous != (min_val, max_val):
            logger.warning(
                f"Replacing recorded '{field}' range {previous} for '{dataset.name}' "
                f"with {(min_val, max_val)}; give each city a distinct name"
            )
        self.fitted_ranges[(dataset.name, field)] = (min_val, max_val)

        if max_val - min_val > 0:
            scaled = (values - min_val) / (max_val - min_val)
            normalized = np.clip(scaled * (target_max - target_min) + target_min, target_min, target_max)
            # Pin the extremes so min/max of the output equal the bounds exactly
            normalized[values == min_val] = target_min
            normalized[values == max_val] = target_max
        else:
            midpoint = (target_min + target_max) / 2.0
            message = (
                f"{dataset.name}: '{field}' is constant ({min_val}); "
                f"'{output_field}' set to midpoint {midpoint}"
            )
            logger.warning(message)
            warnings.warn(message, ConstantFieldWarning, stacklevel=2)
            normalized = np.full_like(values, midpoint)

        logger.info(
            f"  {dataset.name}: {field} [{min_val:.2f}, {max_val:.2f}] -> "
            f"{output_field} [{target_min:g}, {target_max:g}]"
        )

        return dataset.with_column(output_field, normalized)

    def normalize_city(
        self,
        dataset: GridDataset,
        ranges: Optional[Dict[str, Tuple[float, float]]] = None
    ) -> GridDataset:
        """
        Apply every configured rescale to one city using its own ranges.

        Parameters
        ----------
        dataset : GridDataset
            One city
        ranges : dict, optional
            Override of ``self.ranges``

        Returns
        -------
        GridDataset
        """
        ranges = ranges or self.ranges

        logger.info(f"Normalizing '{dataset.name}' on its own observed ranges")

        for field, (target_min, target_max) in ranges.items():
            dataset = self.normalize(dataset, field, target_min, target_max)

        return dataset

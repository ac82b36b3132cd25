"""
Risk Classification Module for Cross-City Flood Transfer
=========================================================

Turns predicted probabilities into categorical outputs for mapping:
- Binary inundation class at a decision threshold
- Equal-count quantile risk bins, computed per city
- Confusion type per cell for the labeled city
"""

from typing import Dict, List, Optional, Union

import numpy as np
import pandas as pd

from .config import DERIVED_FIELDS, OPERATIONAL_THRESHOLD, RISK_CLASSES
from .dataset import GridDataset
from .utils import setup_logging

# Setup logger
logger = setup_logging()


def risk_labels(num_bins: int) -> List[str]:
    """Ordinal labels, lowest risk first."""
    if num_bins == len(RISK_CLASSES["class_names"]):
        return list(RISK_CLASSES["class_names"])
    return [f"Quantile {i}" for i in range(1, num_bins + 1)]


class RiskClassifier:
    """
    Threshold and quantile classification of inundation probabilities.

    Two thresholds exist on purpose: ``OPERATIONAL_THRESHOLD`` (0.2) for
    mapped outputs and ``CV_THRESHOLD`` (0.5) for cross-validation
    reporting. They are not interchangeable.

    Example
    -------
    >>> classifier = RiskClassifier()
    >>> portland = classifier.classify_dataset(portland)
    >>> portland = classifier.quantile_risk(portland, "predicted_probability")
    """

    def __init__(self, threshold: float = OPERATIONAL_THRESHOLD):
        self.threshold = threshold

    @staticmethod
    def classify(
        probability: Union[float, np.ndarray],
        threshold: float
    ) -> Union[bool, np.ndarray]:
        """True where ``probability > threshold``."""
        if np.ndim(probability) == 0:
            return bool(probability > threshold)
        return np.asarray(probability) > threshold

    def classify_dataset(
        self,
        dataset: GridDataset,
        probability_field: str = DERIVED_FIELDS["predicted_probability"],
        threshold: Optional[float] = None
    ) -> GridDataset:
        """Append ``predicted_class`` using ``threshold`` (default: operational)."""
        threshold = self.threshold if threshold is None else threshold
        predicted = self.classify(dataset.column(probability_field), threshold)

        logger.info(
            f"'{dataset.name}': {int(predicted.sum()):,} of {len(dataset):,} cells "
            f"above threshold {threshold}"
        )

        return dataset.with_column(DERIVED_FIELDS["predicted_class"], predicted)

    def quantile_risk(
        self,
        dataset: GridDataset,
        probability_field: str = DERIVED_FIELDS["predicted_probability"],
        num_bins: int = RISK_CLASSES["risk_bins"]
    ) -> GridDataset:
        """
        Assign equal-count ordinal risk bins within one dataset.

        Rows are ranked by probability with ties kept in input order,
        then cut into ``num_bins`` groups whose sizes differ by at most
        one. Always call once per city: bins are relative to that city's
        own probability distribution.

        Returns
        -------
        GridDataset
            With ``risk_quantile`` (1 = lowest) and ``risk_label`` added
        """
        if num_bins < 1:
            raise ValueError(f"num_bins must be at least 1, got {num_bins}")

        probabilities = dataset.column(probability_field)
        n = len(probabilities)

        order = np.argsort(probabilities, kind="stable")
        ranks = np.empty(n, dtype=int)
        ranks[order] = np.arange(n)
        quantiles = ranks * num_bins // n + 1

        labels = np.array(risk_labels(num_bins), dtype=object)[quantiles - 1]

        dataset = dataset.with_columns({
            DERIVED_FIELDS["risk_quantile"]: quantiles,
            DERIVED_FIELDS["risk_label"]: labels,
        })
        self.class_distribution(dataset)
        return dataset

    @staticmethod
    def class_distribution(dataset: GridDataset) -> Dict[str, float]:
        """Log and return the percentage of cells per risk label."""
        labels = pd.Series(dataset.column(DERIVED_FIELDS["risk_label"]))
        quantiles = pd.Series(dataset.column(DERIVED_FIELDS["risk_quantile"]))

        distribution = {}
        for quantile in sorted(quantiles.unique()):
            label = labels[quantiles == quantile].iloc[0]
            pct = float((quantiles == quantile).mean() * 100)
            distribution[label] = pct
            logger.info(f"  {dataset.name} class {quantile} ({label}): {pct:.1f}%")

        return distribution

    @staticmethod
    def confusion_type(predicted_class, observed) -> np.ndarray:
        """
        Per-cell confusion label.

        Returns
        -------
        np.ndarray
            One of True Positive, True Negative, False Positive,
            False Negative per cell
        """
        predicted_class = np.asarray(predicted_class).astype(bool)
        observed = np.asarray(observed).astype(bool)
        if len(predicted_class) != len(observed):
            raise ValueError(
                f"{len(predicted_class)} predictions for {len(observed)} observations"
            )

        lookup = RISK_CLASSES["confusion_labels"]
        return np.array(
            [lookup[(bool(p), bool(o))] for p, o in zip(predicted_class, observed)],
            dtype=object
        )

"""
Model Evaluation Module for Cross-City Flood Transfer
======================================================

Validation statistics for predicted inundation probabilities:
- Confusion matrix at a decision threshold
- Accuracy, sensitivity, specificity and Cohen's kappa
- ROC curve and AUC (trapezoidal and Mann-Whitney forms)
- k-fold cross-validated accuracy and kappa

Rate metrics with a zero denominator are reported as NaN together with
an UndefinedMetricWarning; callers detect them with ``math.isnan``.
"""

import math
import warnings
from dataclasses import asdict, dataclass, replace
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from joblib import Parallel, delayed
from scipy.stats import rankdata
from sklearn.metrics import auc as trapezoid_auc
from sklearn.metrics import roc_curve

from .config import (
    CROSS_VALIDATION, CV_THRESHOLD, EVALUATION, FEATURE_FIELDS,
    LABEL_FIELD, OPERATIONAL_THRESHOLD,
)
from .dataset import GridDataset
from .exceptions import UndefinedMetricWarning
from .model import LogisticRiskModel, TrainedModel
from .splitting import TrainTestSplitter
from .utils import setup_logging, timer

# Setup logger
logger = setup_logging()

NAN = float("nan")


@dataclass(frozen=True)
class CrossValidationSummary:
    """Per-fold and averaged accuracy / kappa at a fixed threshold."""

    k: int
    threshold: float
    mean_accuracy: float
    mean_kappa: float
    fold_accuracies: Tuple[float, ...]
    fold_kappas: Tuple[float, ...]


@dataclass(frozen=True)
class EvaluationReport:
    """
    Evaluation of one set of predictions. Immutable.

    ``roc_curve`` holds (fpr, tpr) pairs on the plotting grid; ``auc`` is
    always computed on the full-resolution curve.
    """

    threshold: float
    tp: int
    fp: int
    tn: int
    fn: int
    accuracy: float
    sensitivity: float
    specificity: float
    kappa: float
    roc_curve: Tuple[Tuple[float, float], ...] = ()
    auc: float = NAN
    cross_validation: Optional[CrossValidationSummary] = None

    @property
    def n(self) -> int:
        return self.tp + self.fp + self.tn + self.fn

    @property
    def confusion_matrix(self) -> List[List[int]]:
        """[[TN, FP], [FN, TP]] with observed classes as rows."""
        return [[self.tn, self.fp], [self.fn, self.tp]]

    def with_roc(self, curve: Sequence[Tuple[float, float]], auc: float) -> 'EvaluationReport':
        return replace(self, roc_curve=tuple(tuple(p) for p in curve), auc=auc)

    def with_cross_validation(self, summary: CrossValidationSummary) -> 'EvaluationReport':
        return replace(self, cross_validation=summary)

    def to_dict(self) -> Dict:
        result = asdict(self)
        result['n'] = self.n
        result['confusion_matrix'] = self.confusion_matrix
        result['roc_curve'] = {
            'fpr': [p[0] for p in self.roc_curve],
            'tpr': [p[1] for p in self.roc_curve],
        }
        # JSON has no NaN; undefined metrics become null
        return _nan_to_none(result)


def _nan_to_none(value):
    if isinstance(value, dict):
        return {k: _nan_to_none(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_nan_to_none(v) for v in value]
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def _undefined(metric: str, reason: str) -> float:
    message = f"{metric} is undefined ({reason}); reported as NaN"
    logger.warning(message)
    warnings.warn(message, UndefinedMetricWarning, stacklevel=3)
    return NAN


def _rate(numerator: int, denominator: int, metric: str, reason: str) -> float:
    if denominator == 0:
        return _undefined(metric, reason)
    return numerator / denominator


def _evaluate_fold(
    risk_model: LogisticRiskModel,
    evaluator: 'Evaluator',
    train: GridDataset,
    held_out: GridDataset,
    feature_fields: Sequence[str],
    label_field: str,
    threshold: float
) -> Tuple[float, float]:
    model = risk_model.fit(train, feature_fields, label_field, verbose=False)
    predictions = risk_model.predict(model, held_out)
    report = evaluator.confusion(predictions, held_out.column(label_field), threshold)
    return report.accuracy, report.kappa


class Evaluator:
    """
    Validation metrics for the logistic risk model.

    Attributes
    ----------
    roc_resolution : int
        Number of uniform cut points on the plotting ROC grid
    risk_model : LogisticRiskModel
        Used to fit and predict inside cross-validation

    Example
    -------
    >>> evaluator = Evaluator()
    >>> report = evaluator.evaluate(model, holdout, "inundated", threshold=0.2)
    >>> summary = evaluator.cross_validate(calgary, FEATURE_FIELDS, "inundated", k=5, seed=42)
    """

    def __init__(
        self,
        roc_resolution: int = EVALUATION["roc_resolution"],
        risk_model: Optional[LogisticRiskModel] = None
    ):
        if roc_resolution < 2:
            raise ValueError(f"roc_resolution must be at least 2, got {roc_resolution}")
        self.roc_resolution = roc_resolution
        self.risk_model = risk_model or LogisticRiskModel()

    @staticmethod
    def _prepare(predictions, observed) -> Tuple[np.ndarray, np.ndarray]:
        predictions = np.asarray(predictions, dtype=float).ravel()
        observed = np.asarray(observed).ravel()

        if len(predictions) != len(observed):
            raise ValueError(
                f"{len(predictions)} predictions for {len(observed)} observations"
            )
        if not np.isin(observed, [0, 1]).all():
            raise ValueError("observed outcomes must be binary (0/1 or bool)")

        return predictions, observed.astype(bool)

    # =========================================================================
    # CONFUSION MATRIX
    # =========================================================================

    def confusion(self, predictions, observed, threshold: float) -> EvaluationReport:
        """
        Tabulate predictions against observations at ``threshold``.

        A prediction is positive when ``probability > threshold``.

        Returns
        -------
        EvaluationReport
            Counts and derived rates; undefined rates are NaN.
        """
        predictions, observed = self._prepare(predictions, observed)
        predicted = predictions > threshold

        tp = int(np.sum(predicted & observed))
        fp = int(np.sum(predicted & ~observed))
        tn = int(np.sum(~predicted & ~observed))
        fn = int(np.sum(~predicted & observed))
        n = tp + fp + tn + fn

        accuracy = _rate(tp + tn, n, "accuracy", "no observations")
        sensitivity = _rate(tp, tp + fn, "sensitivity", "no positive observations")
        specificity = _rate(tn, tn + fp, "specificity", "no negative observations")

        if n == 0:
            kappa = _undefined("kappa", "no observations")
        else:
            observed_agreement = (tp + tn) / n
            expected_agreement = (
                (tp + fp) * (tp + fn) + (fn + tn) * (fp + tn)
            ) / (n * n)
            if expected_agreement == 1.0:
                kappa = _undefined("kappa", "expected agreement is 1")
            else:
                kappa = (observed_agreement - expected_agreement) / (1.0 - expected_agreement)

        return EvaluationReport(
            threshold=threshold,
            tp=tp, fp=fp, tn=tn, fn=fn,
            accuracy=accuracy,
            sensitivity=sensitivity,
            specificity=specificity,
            kappa=kappa,
        )

    # =========================================================================
    # ROC / AUC
    # =========================================================================

    def roc(
        self,
        predictions,
        observed,
        n_thresholds: Optional[int] = None
    ) -> List[Tuple[float, float]]:
        """
        ROC curve as (fpr, tpr) pairs sorted by fpr then tpr.

        Parameters
        ----------
        predictions, observed : array-like
            Scores and binary outcomes
        n_thresholds : int, optional
            None for the full-resolution curve (one point per distinct
            score plus both endpoints); otherwise the number of uniform
            cut points on [0, 1], boundaries included.

        Returns
        -------
        list
            Empty if either class is absent from ``observed``.
        """
        predictions, observed = self._prepare(predictions, observed)
        n_pos = int(observed.sum())
        n_neg = len(observed) - n_pos

        if n_pos == 0 or n_neg == 0:
            _undefined("ROC curve", "observations contain a single class")
            return []

        if n_thresholds is None:
            fpr, tpr, _ = roc_curve(observed.astype(int), predictions, drop_intermediate=False)
        else:
            if n_thresholds < 2:
                raise ValueError(f"n_thresholds must be at least 2, got {n_thresholds}")
            cuts = np.linspace(0.0, 1.0, n_thresholds)
            predicted = predictions[None, :] > cuts[:, None]
            tpr = (predicted & observed).sum(axis=1) / n_pos
            fpr = (predicted & ~observed).sum(axis=1) / n_neg

        order = np.lexsort((tpr, fpr))
        return [(float(fpr[i]), float(tpr[i])) for i in order]

    def auc(self, predictions, observed) -> float:
        """Area under the full-resolution ROC curve by the trapezoidal rule."""
        curve = self.roc(predictions, observed)
        if not curve:
            return NAN
        fpr, tpr = zip(*curve)
        return float(trapezoid_auc(fpr, tpr))

    def auc_mann_whitney(self, predictions, observed) -> float:
        """
        AUC as P(score of a random positive > score of a random negative),
        ties counted as one half.
        """
        predictions, observed = self._prepare(predictions, observed)
        n_pos = int(observed.sum())
        n_neg = len(observed) - n_pos
        if n_pos == 0 or n_neg == 0:
            return _undefined("AUC", "observations contain a single class")

        ranks = rankdata(predictions)
        u_statistic = ranks[observed].sum() - n_pos * (n_pos + 1) / 2.0
        return float(u_statistic / (n_pos * n_neg))

    # =========================================================================
    # CROSS-VALIDATION
    # =========================================================================

    @timer
    def cross_validate(
        self,
        dataset: GridDataset,
        feature_fields: Sequence[str] = FEATURE_FIELDS,
        label_field: str = LABEL_FIELD,
        k: int = CROSS_VALIDATION["cv_folds"],
        seed: int = CROSS_VALIDATION["cv_seed"],
        threshold: float = CV_THRESHOLD,
        n_jobs: int = CROSS_VALIDATION["n_jobs"]
    ) -> CrossValidationSummary:
        """
        k-fold cross-validated accuracy and kappa.

        Each fold is held out once while the model is refit on the other
        k-1 folds. Folds are independent and may run in parallel
        (``n_jobs``); averaging ignores folds whose metric is undefined.

        Returns
        -------
        CrossValidationSummary
        """
        dataset.require_fields(tuple(feature_fields) + (label_field,))

        logger.info("=" * 60)
        logger.info(f"{k}-FOLD CROSS-VALIDATION (threshold {threshold})")
        logger.info("=" * 60)

        folds = TrainTestSplitter().kfold(dataset, k, seed)
        results = Parallel(n_jobs=n_jobs)(
            delayed(_evaluate_fold)(
                self.risk_model, self, train, held_out, feature_fields, label_field, threshold
            )
            for train, held_out in folds
        )

        accuracies = tuple(float(a) for a, _ in results)
        kappas = tuple(float(kp) for _, kp in results)

        for i, (acc, kp) in enumerate(results, start=1):
            logger.info(f"  Fold {i}: accuracy={acc:.3f}, kappa={kp:.3f}")

        summary = CrossValidationSummary(
            k=k,
            threshold=threshold,
            mean_accuracy=self._mean(accuracies, "mean accuracy"),
            mean_kappa=self._mean(kappas, "mean kappa"),
            fold_accuracies=accuracies,
            fold_kappas=kappas,
        )

        logger.info(f"  Mean accuracy: {summary.mean_accuracy:.3f}")
        logger.info(f"  Mean kappa:    {summary.mean_kappa:.3f}")

        return summary

    @staticmethod
    def _mean(values: Sequence[float], metric: str) -> float:
        defined = [v for v in values if not math.isnan(v)]
        if not defined:
            return _undefined(metric, "undefined in every fold")
        return float(np.mean(defined))

    # =========================================================================
    # HOLDOUT EVALUATION
    # =========================================================================

    def evaluate(
        self,
        model: TrainedModel,
        dataset: GridDataset,
        label_field: str = LABEL_FIELD,
        threshold: float = OPERATIONAL_THRESHOLD
    ) -> EvaluationReport:
        """
        Predict ``dataset`` and report confusion statistics, ROC and AUC.

        Raises
        ------
        SchemaMismatchError
            If the label or any model feature is absent
        """
        dataset.require_fields([label_field])
        predictions = self.risk_model.predict(model, dataset)
        observed = dataset.column(label_field)

        report = self.confusion(predictions, observed, threshold)
        report = report.with_roc(
            self.roc(predictions, observed, n_thresholds=self.roc_resolution),
            self.auc(predictions, observed),
        )

        self.log_report(report, title=f"EVALUATION ON '{dataset.name}'")
        return report

    @staticmethod
    def log_report(report: EvaluationReport, title: str = "EVALUATION"):
        logger.info("=" * 60)
        logger.info(title)
        logger.info("=" * 60)
        logger.info(f"  Threshold:   {report.threshold}")
        logger.info(f"  AUC-ROC:     {report.auc:.3f}")
        logger.info(f"  Accuracy:    {report.accuracy:.3f}")
        logger.info(f"  Sensitivity: {report.sensitivity:.3f}")
        logger.info(f"  Specificity: {report.specificity:.3f}")
        logger.info(f"  Kappa:       {report.kappa:.3f}")
        logger.info("\nConfusion Matrix:")
        logger.info(f"  TN: {report.tn}, FP: {report.fp}")
        logger.info(f"  FN: {report.fn}, TP: {report.tp}")

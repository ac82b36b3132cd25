"""
Cross-City Flood Inundation Transfer Package
============================================

This package contains modules for:
- Grid-cell datasets for one city
- Per-city feature normalization
- Train/holdout splitting
- Logistic regression risk model
- Evaluation (confusion matrix, ROC/AUC, cross-validation)
- Threshold and quantile risk classification
"""

__version__ = "1.0.0"

from .dataset import GridDataset
from .normalization import FeatureNormalizer
from .splitting import TrainTestSplitter
from .model import LogisticRiskModel, TrainedModel
from .evaluation import CrossValidationSummary, EvaluationReport, Evaluator
from .classification import RiskClassifier
from .pipeline import PipelineResult, TransferPipeline
from .exceptions import (
    DatasetValidationError, DegenerateSplitError, NonConvergenceWarning,
    SchemaMismatchError, SeparationWarning, UndefinedMetricWarning,
    ConstantFieldWarning,
)
from .utils import setup_logging, timer

__all__ = [
    "GridDataset",
    "FeatureNormalizer",
    "TrainTestSplitter",
    "LogisticRiskModel",
    "TrainedModel",
    "Evaluator",
    "EvaluationReport",
    "CrossValidationSummary",
    "RiskClassifier",
    "TransferPipeline",
    "PipelineResult",
    "SchemaMismatchError",
    "DatasetValidationError",
    "DegenerateSplitError",
    "NonConvergenceWarning",
    "SeparationWarning",
    "UndefinedMetricWarning",
    "ConstantFieldWarning",
    "setup_logging",
    "timer",
]

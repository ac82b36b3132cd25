"""
Transfer Pipeline for Cross-City Flood Inundation Modelling
============================================================

Runs the full train-on-one-city, predict-on-another workflow:

1. Normalize the training city on its own ranges
2. Split into training and holdout partitions
3. Fit the logistic model on the training partition
4. Evaluate on the holdout at the operational threshold
5. Cross-validate on the whole training city at the CV threshold
6. Normalize the target city on ITS own ranges and score both cities
7. Classify, quantile-bin each city separately, tag confusion types
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .classification import RiskClassifier
from .config import DERIVED_FIELDS, FEATURE_FIELDS, LABEL_FIELD, get_config, normalization_ranges
from .dataset import GridDataset
from .evaluation import EvaluationReport, Evaluator
from .model import LogisticRiskModel, TrainedModel
from .normalization import FeatureNormalizer
from .splitting import TrainTestSplitter
from .utils import ensure_dir, get_timestamp, setup_logging, timer

# Setup logger
logger = setup_logging()


@dataclass(frozen=True)
class PipelineResult:
    """Artifacts of one transfer run."""

    model: TrainedModel
    report: EvaluationReport
    scored_training: GridDataset
    scored_target: Optional[GridDataset] = None


class TransferPipeline:
    """
    Train on a flood-mapped city, transfer to an unmapped one.

    Attributes
    ----------
    options : dict
        Recognized configuration options (see ``config.get_config``)

    Example
    -------
    >>> pipeline = TransferPipeline(train_fraction=0.7, split_seed=1)
    >>> result = pipeline.run(calgary, portland)
    >>> pipeline.save_outputs(result, "outputs")
    """

    def __init__(self, feature_fields=FEATURE_FIELDS, label_field: str = LABEL_FIELD, **options: Any):
        self.options = get_config(**options)
        self.feature_fields = tuple(feature_fields)
        self.label_field = label_field

        self.normalizer = FeatureNormalizer(normalization_ranges(self.options))
        self.splitter = TrainTestSplitter()
        self.risk_model = LogisticRiskModel(
            max_iter=self.options["max_iter"],
            tol=self.options["tol"]
        )
        self.evaluator = Evaluator(
            roc_resolution=self.options["roc_resolution"],
            risk_model=self.risk_model
        )
        self.classifier = RiskClassifier(threshold=self.options["operational_threshold"])

    @timer
    def run(
        self,
        training: GridDataset,
        target: Optional[GridDataset] = None
    ) -> PipelineResult:
        """
        Execute the full workflow.

        Parameters
        ----------
        training : GridDataset
            Labeled city, raw predictors
        target : GridDataset, optional
            Unlabeled city, raw predictors

        Returns
        -------
        PipelineResult
        """
        options = self.options
        training.require_fields([self.label_field])

        logger.info("=" * 60)
        logger.info(f"STEP 1: NORMALIZING TRAINING CITY '{training.name}'")
        logger.info("=" * 60)
        training = self.normalizer.normalize_city(training)

        logger.info("=" * 60)
        logger.info("STEP 2: TRAIN / HOLDOUT SPLIT")
        logger.info("=" * 60)
        train, holdout = self.splitter.split(
            training, self.label_field, options["train_fraction"], options["split_seed"]
        )

        logger.info("=" * 60)
        logger.info("STEP 3: FITTING LOGISTIC MODEL")
        logger.info("=" * 60)
        model = self.risk_model.fit(train, self.feature_fields, self.label_field)

        logger.info("=" * 60)
        logger.info("STEP 4: HOLDOUT EVALUATION")
        logger.info("=" * 60)
        report = self.evaluator.evaluate(
            model, holdout, self.label_field, options["operational_threshold"]
        )

        logger.info("=" * 60)
        logger.info("STEP 5: CROSS-VALIDATION")
        logger.info("=" * 60)
        cv_summary = self.evaluator.cross_validate(
            training,
            self.feature_fields,
            self.label_field,
            k=options["cv_folds"],
            seed=options["cv_seed"],
            threshold=options["cv_threshold"],
            n_jobs=options["n_jobs"],
        )
        report = report.with_cross_validation(cv_summary)

        logger.info("=" * 60)
        logger.info("STEP 6: SCORING")
        logger.info("=" * 60)
        scored_training = self._score(model, training)

        predicted = scored_training.column(DERIVED_FIELDS["predicted_class"])
        observed = scored_training.column(self.label_field)
        scored_training = scored_training.with_column(
            DERIVED_FIELDS["confusion_type"],
            self.classifier.confusion_type(predicted, observed)
        )

        scored_target = None
        if target is not None:
            logger.info(f"Normalizing target city '{target.name}' on its own ranges")
            target = self.normalizer.normalize_city(target)
            scored_target = self._score(model, target)

        logger.info("=" * 60)
        logger.info("PIPELINE COMPLETE")
        logger.info("=" * 60)

        return PipelineResult(
            model=model,
            report=report,
            scored_training=scored_training,
            scored_target=scored_target,
        )

    def _score(self, model: TrainedModel, dataset: GridDataset) -> GridDataset:
        dataset = self.risk_model.score(model, dataset)
        dataset = self.classifier.classify_dataset(dataset)
        return self.classifier.quantile_risk(
            dataset,
            DERIVED_FIELDS["predicted_probability"],
            num_bins=self.options["risk_bins"]
        )

    # =========================================================================
    # OUTPUTS
    # =========================================================================

    def save_outputs(self, result: PipelineResult, output_dir: Union[str, Path]) -> Dict[str, Path]:
        """
        Write scored tables, the model and metrics.

        Returns
        -------
        dict
            Paths to saved files
        """
        output_dir = ensure_dir(output_dir)
        scored_dir = ensure_dir(output_dir / "scored")

        paths = {}

        training = result.scored_training
        paths['scored_training'] = scored_dir / f"{_slug(training.name)}_scored.csv"
        training.to_frame().to_csv(paths['scored_training'])

        if result.scored_target is not None:
            target = result.scored_target
            paths['scored_target'] = scored_dir / f"{_slug(target.name)}_scored.csv"
            target.to_frame().to_csv(paths['scored_target'])

        model_paths = self.risk_model.save_model(result.model, output_dir / "models")
        paths.update({f"model_{k}": v for k, v in model_paths.items()})

        metrics_path = ensure_dir(output_dir / "metrics") / "evaluation.json"
        with open(metrics_path, 'w') as f:
            json.dump(
                {
                    "generated": get_timestamp(),
                    "options": _jsonable(self.options),
                    "evaluation": result.report.to_dict(),
                },
                f,
                indent=2
            )
        paths['metrics'] = metrics_path

        for name, path in paths.items():
            logger.info(f"  {name}: {path}")

        return paths


def _slug(name: str) -> str:
    return "".join(c.lower() if c.isalnum() else "_" for c in name).strip("_") or "city"


def _jsonable(options: Dict[str, Any]) -> Dict[str, Any]:
    return {k: list(v) if isinstance(v, tuple) else v for k, v in options.items()}

"""
Logistic Risk Model Module for Cross-City Flood Transfer
=========================================================

Implements a binomial logistic regression (logit link) for inundation:
- Maximum-likelihood fitting with a statsmodels binomial GLM (IRLS)
- Convergence and separation diagnostics
- Wald z-tests on coefficients
- Probability prediction on any city with matching feature fields
- Model persistence

The fitted TrainedModel is the artifact shared between the holdout
evaluation on the training city and prediction on the target city.
"""

import json
import warnings
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import joblib
import statsmodels.api as sm
from scipy.special import expit
from statsmodels.tools.sm_exceptions import ConvergenceWarning, PerfectSeparationWarning

from .config import DERIVED_FIELDS, FEATURE_FIELDS, LABEL_FIELD, MODEL_CONFIG
from .dataset import GridDataset
from .exceptions import NonConvergenceWarning, SeparationWarning
from .utils import ensure_dir, setup_logging

# Setup logger
logger = setup_logging()

# Largest / smallest doubles strictly inside (0, 1)
PROB_FLOOR = np.nextafter(0.0, 1.0)
PROB_CEIL = np.nextafter(1.0, 0.0)


@dataclass(frozen=True)
class TrainedModel:
    """
    Fitted logistic regression parameters. Read-only after fit.

    Attributes
    ----------
    feature_names : tuple
        Feature fields in the order used at fit time
    coefficients : tuple
        Intercept followed by one weight per feature
    std_errors : tuple
        Standard errors aligned with ``coefficients``
    p_values : tuple
        Two-tailed Wald p-values aligned with ``coefficients``
    n_samples, n_positive : int
        Training rows and inundated training rows
    converged : bool
        False if the iteration cap was reached
    n_iterations : int
        IRLS iterations performed
    log_likelihood, null_log_likelihood : float
        Fitted and intercept-only log-likelihoods
    aic : float
        Akaike information criterion of the fit
    separation_detected : bool
        Fitted probabilities were numerically 0 or 1
    link : str
        Link function
    """

    feature_names: Tuple[str, ...]
    coefficients: Tuple[float, ...]
    std_errors: Tuple[float, ...]
    p_values: Tuple[float, ...]
    n_samples: int
    n_positive: int
    converged: bool
    n_iterations: int
    log_likelihood: float
    null_log_likelihood: float
    aic: float
    separation_detected: bool = False
    link: str = "logit"

    @property
    def intercept(self) -> float:
        return self.coefficients[0]

    @property
    def weights(self) -> np.ndarray:
        return np.array(self.coefficients[1:])

    @property
    def terms(self) -> Tuple[str, ...]:
        return ("(Intercept)",) + tuple(self.feature_names)

    @property
    def deviance(self) -> float:
        return -2.0 * self.log_likelihood

    @property
    def null_deviance(self) -> float:
        return -2.0 * self.null_log_likelihood

    @property
    def pseudo_r2(self) -> float:
        """McFadden's pseudo R-squared (NaN when the null model is perfect)."""
        if self.null_log_likelihood == 0:
            return float("nan")
        return 1.0 - self.log_likelihood / self.null_log_likelihood

    @property
    def z_values(self) -> np.ndarray:
        with np.errstate(divide="ignore", invalid="ignore"):
            return np.array(self.coefficients) / np.array(self.std_errors)

    @property
    def odds_ratios(self) -> np.ndarray:
        with np.errstate(over="ignore"):
            return np.exp(np.array(self.coefficients))

    def coefficient_table(self) -> pd.DataFrame:
        """Estimate, std. error, z value, p-value and odds ratio per term."""
        return pd.DataFrame({
            'term': self.terms,
            'estimate': self.coefficients,
            'std_error': self.std_errors,
            'z_value': self.z_values,
            'p_value': self.p_values,
            'odds_ratio': self.odds_ratios,
        })

    def to_dict(self) -> Dict:
        result = asdict(self)
        result['feature_names'] = list(self.feature_names)
        result['coefficients'] = dict(zip(self.terms, self.coefficients))
        result['std_errors'] = dict(zip(self.terms, self.std_errors))
        result['p_values'] = dict(zip(self.terms, self.p_values))
        result['pseudo_r2'] = self.pseudo_r2
        return result


class LogisticRiskModel:
    """
    Binomial logistic regression fitted by IRLS.

    Attributes
    ----------
    max_iter : int
        Iteration cap; guarantees termination on non-convergent input
    tol : float
        Change in deviance between iterations that counts as converged
    separation_eps : float
        Distance from 0 or 1 at which a fitted probability flags separation

    Example
    -------
    >>> risk_model = LogisticRiskModel()
    >>> model = risk_model.fit(train, FEATURE_FIELDS, "inundated")
    >>> probabilities = risk_model.predict(model, portland)
    """

    def __init__(
        self,
        max_iter: int = MODEL_CONFIG["params"]["max_iter"],
        tol: float = MODEL_CONFIG["params"]["tol"],
        separation_eps: float = MODEL_CONFIG["params"]["separation_eps"]
    ):
        if max_iter < 1:
            raise ValueError(f"max_iter must be positive, got {max_iter}")
        self.max_iter = max_iter
        self.tol = tol
        self.separation_eps = separation_eps

    # =========================================================================
    # MODEL FITTING
    # =========================================================================

    def fit(
        self,
        train_dataset: GridDataset,
        feature_fields: Sequence[str] = FEATURE_FIELDS,
        label_field: str = LABEL_FIELD,
        verbose: bool = True
    ) -> TrainedModel:
        """
        Fit the model by maximum likelihood.

        Parameters
        ----------
        train_dataset : GridDataset
            Labeled, normalized training cells
        feature_fields : sequence of str
            Predictors, in the order stored in the model
        label_field : str
            Binary outcome column
        verbose : bool
            Log the coefficient table

        Returns
        -------
        TrainedModel
            Returned even when not converged; check ``converged`` and
            ``separation_detected``.
        """
        feature_fields = tuple(feature_fields)
        train_dataset.require_fields(feature_fields + (label_field,))

        # Intercept column is added even if a feature happens to be constant
        X = sm.add_constant(train_dataset.matrix(feature_fields), has_constant="add")
        y = train_dataset.column(label_field).astype(float)
        n_samples = len(y)
        n_positive = int(y.sum())

        glm = sm.GLM(y, X, family=sm.families.Binomial())
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            results = glm.fit(method="IRLS", maxiter=self.max_iter, tol=self.tol)
            null_ll = float(results.llnull)

        perfect_prediction = False
        for record in caught:
            if issubclass(record.category, PerfectSeparationWarning):
                perfect_prediction = True
            elif not issubclass(record.category, ConvergenceWarning):
                warnings.warn_explicit(
                    record.message, record.category, record.filename, record.lineno
                )

        converged = bool(results.converged)
        mu = np.asarray(results.mu)
        near_bounds = np.any((mu < self.separation_eps) | (mu > 1.0 - self.separation_eps))
        single_class = n_positive in (0, n_samples)
        if not single_class:
            perfect_prediction = perfect_prediction or bool(
                np.max(np.abs(y - mu)) < MODEL_CONFIG["params"]["separation_residual"]
            )
        separation = bool(near_bounds or (perfect_prediction and not single_class))

        if perfect_prediction and single_class:
            logger.info(
                f"'{train_dataset.name}': every training cell has the same label; "
                "the intercept absorbs the outcome"
            )

        model = TrainedModel(
            feature_names=feature_fields,
            coefficients=tuple(float(b) for b in results.params),
            std_errors=tuple(float(s) for s in results.bse),
            p_values=tuple(float(p) for p in results.pvalues),
            n_samples=n_samples,
            n_positive=n_positive,
            converged=converged,
            n_iterations=int(results.fit_history["iteration"]),
            log_likelihood=float(results.llf),
            null_log_likelihood=null_ll,
            aic=float(results.aic),
            separation_detected=separation,
            link=MODEL_CONFIG["link"],
        )

        if not converged:
            message = (
                f"Logistic fit on '{train_dataset.name}' did not converge in "
                f"{self.max_iter} iterations; coefficients may be unreliable"
            )
            logger.warning(message)
            warnings.warn(message, NonConvergenceWarning, stacklevel=2)

        if separation:
            message = (
                f"Fitted probabilities numerically 0 or 1 on '{train_dataset.name}'; "
                "a predictor may perfectly separate the classes"
            )
            logger.warning(message)
            warnings.warn(message, SeparationWarning, stacklevel=2)

        if verbose:
            self._log_fit(model)

        return model

    def _log_fit(self, model: TrainedModel):
        logger.info(
            f"Logistic fit: n={model.n_samples:,}, positives={model.n_positive:,}, "
            f"iterations={model.n_iterations}, converged={model.converged}"
        )
        logger.info("Coefficients:")
        logger.info("-" * 60)
        for _, row in model.coefficient_table().iterrows():
            logger.info(
                f"  {row['term']:<30} {row['estimate']:>10.4f} "
                f"(SE {row['std_error']:.4f}, p={row['p_value']:.4f})"
            )
        logger.info(f"  AIC: {model.aic:.2f}, McFadden R2: {model.pseudo_r2:.3f}")

    # =========================================================================
    # PREDICTION
    # =========================================================================

    def predict(self, model: TrainedModel, dataset: GridDataset) -> np.ndarray:
        """
        Predicted inundation probability for every row of ``dataset``.

        ``dataset`` may be a different city, provided its feature fields
        carry the same names and were normalized into the same target
        ranges.

        Raises
        ------
        SchemaMismatchError
            If any feature field used at fit time is absent
        """
        dataset.require_fields(model.feature_names)
        X = dataset.matrix(model.feature_names)

        eta = model.intercept + X @ model.weights
        return np.clip(expit(eta), PROB_FLOOR, PROB_CEIL)

    def score(
        self,
        model: TrainedModel,
        dataset: GridDataset,
        output_field: str = DERIVED_FIELDS["predicted_probability"]
    ) -> GridDataset:
        """Return ``dataset`` with a predicted probability column appended."""
        probabilities = self.predict(model, dataset)
        logger.info(
            f"Scored '{dataset.name}': {len(dataset):,} cells, "
            f"mean probability {probabilities.mean():.3f}"
        )
        return dataset.with_column(output_field, probabilities)

    # =========================================================================
    # SAVE / LOAD MODEL
    # =========================================================================

    @staticmethod
    def save_model(model: TrainedModel, output_dir: Union[str, Path]) -> Dict[str, Path]:
        """
        Save a trained model and its coefficient summary.

        Returns
        -------
        dict
            Paths to saved files
        """
        output_dir = ensure_dir(output_dir)
        paths = {}

        model_path = output_dir / "logistic_model.joblib"
        joblib.dump(model, model_path)
        paths['model'] = model_path
        logger.info(f"  Model saved: {model_path}")

        summary_path = output_dir / "model_summary.json"
        with open(summary_path, 'w') as f:
            json.dump(model.to_dict(), f, indent=2)
        paths['summary'] = summary_path

        table_path = output_dir / "coefficients.csv"
        model.coefficient_table().to_csv(table_path, index=False)
        paths['coefficients'] = table_path

        return paths

    @staticmethod
    def load_model(model_dir: Union[str, Path]) -> TrainedModel:
        """Load a model written by ``save_model``."""
        model_dir = Path(model_dir)
        model = joblib.load(model_dir / "logistic_model.joblib")
        logger.info(f"Model loaded from: {model_dir}")
        return model

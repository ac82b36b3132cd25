"""
Errors and warnings raised by the flood transfer pipeline.

Errors are fatal and surfaced to the caller. Warnings flag a result the
caller may still use (the model is returned, the metric is NaN).
"""


class FloodTransferError(Exception):
    """Base class for pipeline errors."""


class SchemaMismatchError(FloodTransferError, KeyError):
    """A required field is absent from a dataset."""

    def __init__(self, missing, dataset_name=None):
        self.missing = list(missing)
        self.dataset_name = dataset_name
        where = f" in dataset '{dataset_name}'" if dataset_name else ""
        super().__init__(f"Missing required field(s){where}: {self.missing}")

    def __str__(self):
        return self.args[0]


class DatasetValidationError(FloodTransferError, ValueError):
    """Input grid cells violate the data model."""


class DegenerateSplitError(FloodTransferError):
    """A partition has no positive-label rows; re-split with another seed or fraction."""


class NonConvergenceWarning(UserWarning):
    """Model fitting hit the iteration cap before converging."""


class SeparationWarning(UserWarning):
    """Fitted probabilities are numerically 0 or 1; coefficients are diverging."""


class UndefinedMetricWarning(UserWarning):
    """A rate metric had a zero denominator and is reported as NaN."""


class ConstantFieldWarning(UserWarning):
    """A field has zero observed range; normalized to the target midpoint."""

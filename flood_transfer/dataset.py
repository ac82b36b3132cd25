"""
Grid Dataset Module for Cross-City Flood Transfer
==================================================

Typed container of per-cell predictor and label records for one city.

One row is one grid cell. Input columns come from the GIS pre-processing
step and are never modified; the pipeline only appends derived columns
(normalized predictors, predictions, risk bins), each append producing a
new dataset.

Modelling conventions applied at load time:
- Cells with a missing predictor value (typically outside the city
  boundary) are excluded.
- A missing ``inundated`` value means the flood raster did not cover the
  cell centroid; it is read as 0 (not inundated). This is an assumption,
  not a measurement.
"""

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .config import DERIVED_FIELDS, FIELDS, LABEL_FIELD, PREDICTOR_FIELDS
from .exceptions import DatasetValidationError, SchemaMismatchError
from .utils import calculate_statistics, setup_logging

# Setup logger
logger = setup_logging()

LAND_COVER_TOLERANCE = 1e-9


class GridDataset:
    """
    Grid cells of one study area.

    Attributes
    ----------
    name : str
        City / study area name
    label_field : str
        Name of the observed inundation column

    Example
    -------
    >>> calgary = GridDataset(frame, name="Calgary")
    >>> calgary.has_label
    True
    >>> calgary = calgary.with_column("normalized_elevation", values)
    """

    def __init__(
        self,
        data: pd.DataFrame,
        name: str = "city",
        predictor_fields: Sequence[str] = PREDICTOR_FIELDS,
        label_field: str = LABEL_FIELD
    ):
        """
        Validate and load grid cells.

        Parameters
        ----------
        data : pd.DataFrame
            One row per grid cell. A ``cell_id`` column, if present,
            becomes the row identity; otherwise the index is used.
        name : str
            City / study area name used in logs and errors
        predictor_fields : sequence of str
            Required predictor columns
        label_field : str
            Observed inundation column (optional in ``data``)
        """
        self.name = name
        self.label_field = label_field
        self.predictor_fields = list(predictor_fields)

        frame = self._validate(data.copy())

        self._frame = frame
        self._input_columns = frozenset(frame.columns)

        logger.info(
            f"GridDataset '{name}' loaded: {len(frame):,} cells"
            + (f", {int(frame[label_field].sum()):,} inundated" if self.has_label else ", unlabeled")
        )

    @classmethod
    def _from_frame(
        cls,
        frame: pd.DataFrame,
        name: str,
        predictor_fields: List[str],
        label_field: str,
        input_columns: frozenset
    ) -> 'GridDataset':
        """Build a dataset from an already validated frame."""
        instance = cls.__new__(cls)
        instance.name = name
        instance.label_field = label_field
        instance.predictor_fields = list(predictor_fields)
        instance._frame = frame
        instance._input_columns = input_columns
        return instance

    @classmethod
    def from_csv(
        cls,
        path: Union[str, Path],
        name: Optional[str] = None,
        **kwargs
    ) -> 'GridDataset':
        """
        Load grid cells from a CSV table.

        Parameters
        ----------
        path : str or Path
            CSV with one row per grid cell
        name : str, optional
            City name; defaults to the file stem
        **kwargs
            Passed to the GridDataset constructor

        Returns
        -------
        GridDataset
        """
        path = Path(path)
        logger.info(f"Reading grid cells: {path}")
        return cls(pd.read_csv(path), name=name or path.stem, **kwargs)

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def _validate(self, frame: pd.DataFrame) -> pd.DataFrame:
        cell_id = FIELDS["cell_id"]
        if cell_id in frame.columns:
            frame = frame.set_index(cell_id)
        if not frame.index.is_unique:
            raise DatasetValidationError(f"{self.name}: grid cell identities are not unique")

        missing = [f for f in self.predictor_fields if f not in frame.columns]
        if missing:
            raise SchemaMismatchError(missing, self.name)

        derived = [f for f in DERIVED_FIELDS.values() if f in frame.columns]
        if derived:
            raise DatasetValidationError(
                f"{self.name}: derived field(s) {derived} cannot be supplied as input"
            )

        for field in self.predictor_fields:
            if not pd.api.types.is_numeric_dtype(frame[field]):
                raise DatasetValidationError(
                    f"{self.name}: predictor '{field}' must be numeric, got {frame[field].dtype}"
                )
            frame[field] = frame[field].astype(float)

        # Missing predictors: exclude the cell
        incomplete = frame[self.predictor_fields].isna().any(axis=1)
        if incomplete.any():
            logger.warning(
                f"{self.name}: excluding {int(incomplete.sum()):,} cells with missing predictor values"
            )
            frame = frame.loc[~incomplete]

        if len(frame) == 0:
            raise DatasetValidationError(f"{self.name}: no complete grid cells")

        self._validate_land_cover(frame)

        if self.label_field in frame.columns:
            frame[self.label_field] = self._validate_label(frame[self.label_field])

        return frame

    def _validate_land_cover(self, frame: pd.DataFrame):
        land_cover = [f for f in FIELDS["land_cover"] if f in self.predictor_fields]
        if not land_cover:
            return

        values = frame[land_cover]
        if ((values < 0) | (values > 1)).any().any():
            raise DatasetValidationError(
                f"{self.name}: land cover memberships must lie in [0, 1]"
            )

        over = values.sum(axis=1) > 1 + LAND_COVER_TOLERANCE
        if over.any():
            raise DatasetValidationError(
                f"{self.name}: land cover memberships sum above 1 for {int(over.sum())} cells"
            )

    def _validate_label(self, labels: pd.Series) -> pd.Series:
        n_missing = int(labels.isna().sum())
        if n_missing:
            logger.info(
                f"{self.name}: {n_missing:,} cells without flood coverage treated as not inundated"
            )
            labels = labels.fillna(0)

        if not labels.isin([0, 1]).all():
            raise DatasetValidationError(
                f"{self.name}: '{self.label_field}' must be binary (0/1)"
            )

        return labels.astype(int)

    # =========================================================================
    # ACCESS
    # =========================================================================

    @property
    def has_label(self) -> bool:
        return self.label_field in self._frame.columns

    @property
    def index(self) -> pd.Index:
        return self._frame.index.copy()

    @property
    def columns(self) -> List[str]:
        return list(self._frame.columns)

    def __len__(self) -> int:
        return len(self._frame)

    def __contains__(self, field: str) -> bool:
        return field in self._frame.columns

    def __repr__(self) -> str:
        return (
            f"GridDataset(name={self.name!r}, cells={len(self)}, "
            f"labeled={self.has_label}, columns={len(self.columns)})"
        )

    def require_fields(self, fields: Iterable[str]):
        """Raise SchemaMismatchError if any of ``fields`` is absent."""
        missing = [f for f in fields if f not in self._frame.columns]
        if missing:
            raise SchemaMismatchError(missing, self.name)

    def column(self, field: str) -> np.ndarray:
        """Return a copy of one column as a numpy array."""
        self.require_fields([field])
        return self._frame[field].to_numpy(copy=True)

    def matrix(self, fields: Sequence[str]) -> np.ndarray:
        """Return the given columns, in order, as a float matrix."""
        self.require_fields(fields)
        return self._frame[list(fields)].to_numpy(dtype=float, copy=True)

    def to_frame(self) -> pd.DataFrame:
        """Return a copy of the underlying table."""
        return self._frame.copy()

    # =========================================================================
    # DERIVATION
    # =========================================================================

    def with_column(self, field: str, values) -> 'GridDataset':
        """
        Return a new dataset with one derived column appended.

        Parameters
        ----------
        field : str
            Name of the derived column
        values : array-like
            One value per row, in row order

        Returns
        -------
        GridDataset
            New dataset; this one is left untouched
        """
        if field in self._input_columns:
            raise DatasetValidationError(
                f"{self.name}: refusing to overwrite input field '{field}'"
            )

        values = np.asarray(values)
        if len(values) != len(self._frame):
            raise ValueError(
                f"{self.name}: '{field}' has {len(values)} values for {len(self._frame)} cells"
            )

        frame = self._frame.copy()
        frame[field] = values
        return self._derive(frame)

    def with_columns(self, columns: Dict[str, np.ndarray]) -> 'GridDataset':
        """Append several derived columns at once."""
        dataset = self
        for field, values in columns.items():
            dataset = dataset.with_column(field, values)
        return dataset

    def subset(self, index: Iterable) -> 'GridDataset':
        """Return the rows with the given identities, in the given order."""
        return self._derive(self._frame.loc[list(index)].copy())

    def _derive(self, frame: pd.DataFrame) -> 'GridDataset':
        return GridDataset._from_frame(
            frame, self.name, self.predictor_fields, self.label_field, self._input_columns
        )

    # =========================================================================
    # SUMMARY
    # =========================================================================

    def summary(self) -> Dict[str, dict]:
        """Log and return basic statistics for every predictor."""
        logger.info(f"Predictor summary for '{self.name}':")
        stats = {}
        for field in self.predictor_fields:
            stats[field] = calculate_statistics(self._frame[field].to_numpy())
            logger.info(
                f"  {field}: {stats[field]['min']:.2f} - {stats[field]['max']:.2f} "
                f"(mean {stats[field]['mean']:.2f})"
            )
        return stats

"""
Explicit table schemas for turning a clean DataFrame into model inputs.

Column roles (response, numeric, categorical) are declared by the caller;
nothing here inspects dtypes to guess whether a column is categorical.
Missing values are rejected rather than imputed.
"""

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np
import pandas as pd
from pydantic import BaseModel

from reportmath.exceptions import InvalidInputError
from reportmath.utils.general import read_only


class TableSchema(BaseModel):
    """Roles of the columns used to build a design matrix."""

    response: str
    numeric: List[str] = []
    categorical: List[str] = []
    squared: List[str] = []
    intercept: bool = True
    drop_first: bool = True

    def columns(self) -> List[str]:
        """All columns referenced by the schema, response first."""
        seen = []
        for name in [self.response] + self.numeric + self.categorical + self.squared:
            if name not in seen:
                seen.append(name)
        return seen


@dataclass
class DesignMatrix:
    """Design matrix with its column names and aligned response."""

    values: np.ndarray
    names: List[str]
    response: np.ndarray
    response_name: str

    @property
    def n_obs(self) -> int:
        return self.values.shape[0]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.values, columns=self.names)


def _require_columns(frame: pd.DataFrame, columns: Sequence[str]) -> None:
    missing = [c for c in columns if c not in frame.columns]
    if missing:
        raise InvalidInputError(f"Columns not found: {', '.join(missing)}")

    has_na = [c for c in columns if frame[c].isna().any()]
    if has_na:
        raise InvalidInputError(f"Columns contain missing values: {', '.join(has_na)}")


def _numeric_column(frame: pd.DataFrame, name: str) -> np.ndarray:
    try:
        return pd.to_numeric(frame[name]).to_numpy(dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Column '{name}' is declared numeric but is not: {e}")


def build_design_matrix(frame: pd.DataFrame, schema: TableSchema) -> DesignMatrix:
    """
    Build a design matrix and response vector from a clean table.

    Columns appear as: intercept, numeric columns, squared terms, then the
    indicator columns of each categorical column.

    Args:
        frame: Table with one row per observation
        schema: Column roles

    Returns:
        DesignMatrix
    """
    _require_columns(frame, schema.columns())

    parts = []
    names = []

    if schema.intercept:
        parts.append(np.ones(len(frame)))
        names.append('intercept')

    for name in schema.numeric:
        parts.append(_numeric_column(frame, name))
        names.append(name)

    for name in schema.squared:
        parts.append(_numeric_column(frame, name) ** 2)
        names.append(f"{name}_sq")

    for name in schema.categorical:
        categories = sorted(frame[name].astype(str).unique())
        values = pd.Categorical(frame[name].astype(str), categories=categories)
        dummies = pd.get_dummies(values, prefix=name, drop_first=schema.drop_first, dtype=float)
        for column in dummies.columns:
            parts.append(dummies[column].to_numpy())
            names.append(str(column))

    if not parts:
        raise InvalidInputError("Schema selects no covariates")

    return DesignMatrix(
        values=read_only(np.column_stack(parts)),
        names=names,
        response=read_only(_numeric_column(frame, schema.response)),
        response_name=schema.response
    )


def point_set(frame: pd.DataFrame, columns: Sequence[str], standardize: bool = False) -> np.ndarray:
    """
    Extract a point set for clustering.

    Args:
        frame: Table with one row per point
        columns: Feature columns
        standardize: Scale each column to zero mean and unit variance

    Returns:
        Read-only 2D array (n_points x n_features)
    """
    columns = list(columns)
    if not columns:
        raise InvalidInputError("At least one feature column is required")

    _require_columns(frame, columns)
    data = np.column_stack([_numeric_column(frame, name) for name in columns])

    if standardize:
        std = data.std(axis=0)
        std[std == 0] = 1.0
        data = (data - data.mean(axis=0)) / std

    return read_only(data)


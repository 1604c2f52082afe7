"""
General utility functions for the reportmath package.

Validation helpers shared by the clustering and regression modules.
"""

import numpy as np
from typing import Any, Optional, Sequence

from reportmath.exceptions import InvalidInputError

# Matrices worse conditioned than this are treated as singular
MAX_CONDITION = 1.0 / (1e4 * np.finfo(float).eps)


def as_matrix(data: Any, name: str = "data") -> np.ndarray:
    """
    Convert input to a finite 2D float array.
    
    Args:
        data: Array-like input
        name: Name used in error messages
        
    Returns:
        2D float array (a copy, never a view of the caller's data)
    """
    try:
        matrix = np.array(data, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"{name} must be numeric: {e}")
    
    if matrix.ndim != 2:
        raise InvalidInputError(f"{name} must be 2-dimensional, got {matrix.ndim} dimension(s)")
    
    if not np.all(np.isfinite(matrix)):
        raise InvalidInputError(f"{name} contains non-finite values")
    
    return matrix


def as_vector(data: Any, name: str = "vector") -> np.ndarray:
    """
    Convert input to a finite 1D float array.
    
    Args:
        data: Array-like input
        name: Name used in error messages
        
    Returns:
        1D float array
    """
    try:
        vector = np.array(data, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"{name} must be numeric: {e}")
    
    if vector.ndim != 1:
        raise InvalidInputError(f"{name} must be 1-dimensional, got {vector.ndim} dimension(s)")
    
    if not np.all(np.isfinite(vector)):
        raise InvalidInputError(f"{name} contains non-finite values")
    
    return vector


def as_count_vector(data: Any, name: str = "y") -> np.ndarray:
    """
    Convert input to a vector of non-negative integer counts.
    
    Counts are kept as floats so they can be used directly in
    likelihood computations.
    """
    vector = as_vector(data, name)
    
    if np.any(vector < 0):
        raise InvalidInputError(f"{name} contains negative values")
    
    if not np.all(vector == np.floor(vector)):
        raise InvalidInputError(f"{name} must contain integer counts")
    
    return vector


def check_rows(X: np.ndarray, y: np.ndarray) -> None:
    """Check that a design matrix and response vector are aligned by row."""
    if X.shape[0] != y.shape[0]:
        raise InvalidInputError(
            f"Row count mismatch: design matrix has {X.shape[0]} rows, "
            f"response has {y.shape[0]} entries"
        )
    
    if X.shape[0] == 0:
        raise InvalidInputError("No observations")


def column_names(names: Optional[Sequence[str]], n_cols: int, prefix: str = "x") -> list:
    """
    Resolve column names for a matrix, generating defaults if needed.
    
    Args:
        names: Optional provided names
        n_cols: Number of columns
        prefix: Prefix for generated names
        
    Returns:
        List of column names
    """
    if names is None:
        return [f"{prefix}{i}" for i in range(n_cols)]
    
    names = list(names)
    if len(names) != n_cols:
        raise InvalidInputError(f"Expected {n_cols} names, got {len(names)}")
    
    return names


def read_only(array: np.ndarray) -> np.ndarray:
    """Mark an array as read-only and return it."""
    array.setflags(write=False)
    return array

"""
Model selection heuristics for K-means.

Each candidate k is an independent clustering run using the same seed,
so the curves here are reproducible for a given point set.
"""

import logging
from typing import Any, Iterable, List, Optional

import numpy as np
import pandas as pd

from reportmath.exceptions import InvalidKError
from reportmath.math.clusters import kmeans, silhouette, validate_k
from reportmath.utils.general import as_matrix

# Set up logging
logger = logging.getLogger(__name__)


def _k_values(k_values: Iterable[int], n_points: Optional[int] = None) -> List[int]:
    values = sorted(set(int(k) for k in k_values))
    if not values:
        raise InvalidKError("At least one candidate k is required")
    if n_points is not None:
        # Every candidate is checked before any clustering runs
        values = [validate_k(k, n_points) for k in values]
    return values


def sweep_k(data: Any, k_values: Iterable[int], seed: int = 42, **kmeans_kwargs) -> pd.DataFrame:
    """
    Cluster the data once per candidate k and collect diagnostics.

    Args:
        data: Point set
        k_values: Candidate cluster counts
        seed: Seed used for every run
        **kmeans_kwargs: Passed through to kmeans

    Returns:
        DataFrame indexed by k with columns wcss, silhouette, state, iterations.
        The silhouette of k=1 is NaN.
    """
    data = as_matrix(data, "data")
    rows = []

    for k in _k_values(k_values, data.shape[0]):
        result = kmeans(data, k, seed=seed, **kmeans_kwargs)

        # k=1, or a run whose points collapsed into one cluster, has no silhouette
        if k > 1 and len(np.unique(result.labels)) > 1:
            score = silhouette(data, result.labels)
        else:
            score = np.nan

        rows.append({
            'k': k,
            'wcss': result.wcss,
            'silhouette': score,
            'state': result.state.value,
            'iterations': result.iterations
        })
        logger.debug(f"k={k}: WCSS={result.wcss:.4f}, silhouette={score:.4f}")

    return pd.DataFrame(rows).set_index('k')


def wcss_curve(data: Any, k_values: Iterable[int], seed: int = 42, **kmeans_kwargs) -> pd.Series:
    """WCSS indexed by k, for elbow plots."""
    return sweep_k(data, k_values, seed, **kmeans_kwargs)['wcss']


def silhouette_curve(data: Any, k_values: Iterable[int], seed: int = 42, **kmeans_kwargs) -> pd.Series:
    """Mean silhouette indexed by k; k=1 is excluded."""
    k_values = [k for k in _k_values(k_values) if k > 1]
    return sweep_k(data, k_values, seed, **kmeans_kwargs)['silhouette']


def best_k_by_silhouette(sweep: pd.DataFrame) -> int:
    """
    Candidate k with the highest mean silhouette.

    Args:
        sweep: Output of sweep_k

    Returns:
        Selected k
    """
    scores = sweep['silhouette'].dropna()
    if scores.empty:
        raise InvalidKError("No candidate k with a defined silhouette")
    return int(scores.idxmax())


def elbow_k(sweep: pd.DataFrame) -> int:
    """
    Candidate k at the sharpest bend of the WCSS curve.

    The bend is where the second difference of WCSS is largest, which needs
    at least three consecutive candidates.

    Args:
        sweep: Output of sweep_k

    Returns:
        Selected k

    Raises:
        InvalidKError: Fewer than three candidates, or gaps between them
    """
    curve = sweep['wcss'].sort_index()
    if len(curve) < 3:
        raise InvalidKError("Elbow detection needs at least 3 candidate k values")

    # Second differences assume unit spacing in k
    if np.any(np.diff(curve.index.to_numpy()) != 1):
        raise InvalidKError(f"Elbow detection needs consecutive k values, got {list(curve.index)}")

    second_diff = curve.diff().diff().shift(-1)
    return int(second_diff.idxmax())

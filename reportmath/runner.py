"""
Config-driven entry points for the reporting layer.

These functions pull their tuning parameters from Config, hand explicit
arrays to the numerical core, and log what was run. They hold no state
between calls.
"""

import logging
from typing import Any, Dict, Iterable, Optional, Sequence

import pandas as pd

from reportmath.components.config import Config, ConfigManager
from reportmath.math.clusters import KMeansResult, kmeans
from reportmath.math.design import TableSchema, build_design_matrix, point_set
from reportmath.math.linear import OLSFit, fit_ols
from reportmath.math.poisson import PoissonFit, estimate
from reportmath.math.selection import sweep_k

# Set up logging
logger = logging.getLogger(__name__)


def kmeans_options(config: Config) -> Dict[str, Any]:
    """
    K-means keyword arguments taken from configuration.

    Args:
        config: Configuration

    Returns:
        Keyword arguments for kmeans()
    """
    return {
        'max_iter': config.get('kmeans.max-iter'),
        'tol': config.get('kmeans.tol'),
        'n_init': config.get('kmeans.n-init'),
        'empty_cluster': config.get('kmeans.empty-cluster')
    }


def poisson_options(config: Config) -> Dict[str, Any]:
    """
    Poisson estimator keyword arguments taken from configuration.

    Args:
        config: Configuration

    Returns:
        Keyword arguments for estimate()
    """
    return {
        'method': config.get('poisson.method'),
        'tol': config.get('poisson.tol'),
        'max_iter': config.get('poisson.max-iter'),
        'hessian_method': config.get('poisson.hessian')
    }


def run_clustering(frame: pd.DataFrame,
                   columns: Sequence[str],
                   k: int,
                   config: Optional[Config] = None,
                   standardize: bool = False,
                   track_history: bool = False) -> KMeansResult:
    """
    Cluster the rows of a table on the given feature columns.

    Args:
        frame: Clean table
        columns: Feature columns
        k: Number of clusters
        config: Configuration (defaults to the shared instance)
        standardize: Z-score the features before clustering
        track_history: Keep per-iteration snapshots

    Returns:
        KMeansResult
    """
    config = config or ConfigManager.get_config()
    data = point_set(frame, columns, standardize)

    logger.info(f"Clustering {data.shape[0]} points on {list(columns)} with k={k}")

    return kmeans(
        data,
        k,
        seed=config.get('random-seed'),
        track_history=track_history,
        **kmeans_options(config)
    )


def run_k_sweep(frame: pd.DataFrame,
                columns: Sequence[str],
                k_values: Optional[Iterable[int]] = None,
                config: Optional[Config] = None,
                standardize: bool = False) -> pd.DataFrame:
    """
    WCSS and silhouette for a range of k.

    Args:
        frame: Clean table
        columns: Feature columns
        k_values: Candidate k (defaults to kmeans.k-min..kmeans.k-max, capped
            at the number of points)
        config: Configuration (defaults to the shared instance)
        standardize: Z-score the features before clustering

    Returns:
        DataFrame indexed by k

    Raises:
        InvalidKError: An explicit candidate exceeds the number of points
    """
    config = config or ConfigManager.get_config()
    data = point_set(frame, columns, standardize)

    if k_values is None:
        k_max = min(config.get('kmeans.k-max'), data.shape[0])
        k_values = list(range(config.get('kmeans.k-min'), k_max + 1))
    else:
        k_values = list(k_values)

    logger.info(f"Sweeping k over {k_values} for {data.shape[0]} points")

    return sweep_k(data, k_values, seed=config.get('random-seed'), **kmeans_options(config))


def run_poisson(frame: pd.DataFrame,
                schema: TableSchema,
                config: Optional[Config] = None) -> PoissonFit:
    """
    Fit a Poisson regression described by a table schema.

    Args:
        frame: Clean table
        schema: Column roles
        config: Configuration (defaults to the shared instance)

    Returns:
        PoissonFit
    """
    config = config or ConfigManager.get_config()
    design = build_design_matrix(frame, schema)

    logger.info(
        f"Fitting Poisson regression of {design.response_name} on "
        f"{len(design.names)} covariates ({design.n_obs} observations)"
    )

    return estimate(design.values, design.response, names=design.names, **poisson_options(config))


def run_ols(frame: pd.DataFrame, schema: TableSchema) -> OLSFit:
    """
    Fit a linear regression described by a table schema.

    Args:
        frame: Clean table
        schema: Column roles

    Returns:
        OLSFit
    """
    design = build_design_matrix(frame, schema)

    logger.info(f"Fitting OLS of {design.response_name} on {len(design.names)} covariates")

    return fit_ols(design.values, design.response, names=design.names)

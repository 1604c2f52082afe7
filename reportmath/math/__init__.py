"""
Numerical core: K-means clustering, model selection across k,
Poisson maximum likelihood and least squares.
"""

from reportmath.math.clusters import Cluster, KMeansResult, KMeansState, kmeans, silhouette, wcss
from reportmath.math.selection import sweep_k, wcss_curve, silhouette_curve
from reportmath.math.poisson import PoissonFit, estimate, rate_mle
from reportmath.math.linear import OLSFit, fit_ols
from reportmath.math.design import DesignMatrix, TableSchema, build_design_matrix, point_set

__all__ = [
    'Cluster',
    'KMeansResult',
    'KMeansState',
    'kmeans',
    'silhouette',
    'wcss',
    'sweep_k',
    'wcss_curve',
    'silhouette_curve',
    'PoissonFit',
    'estimate',
    'rate_mle',
    'OLSFit',
    'fit_ols',
    'DesignMatrix',
    'TableSchema',
    'build_design_matrix',
    'point_set',
]

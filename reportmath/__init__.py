"""
Reportmath package for educational data-analysis reports.

This is the numerical core behind the reports: a hand-written K-means
clusterer with model-selection diagnostics, and a hand-written Poisson
maximum likelihood estimator.
"""

__version__ = '0.1.0'

from reportmath.components.config import Config, ConfigManager
from reportmath.exceptions import (
    ReportMathError, InvalidInputError, InvalidKError, EmptyClusterError,
    NonConvergenceError, SingularHessianError
)

"""
Ordinary least squares in closed form.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

import numpy as np
import pandas as pd
from scipy import stats

from reportmath.exceptions import InvalidInputError, SingularHessianError
from reportmath.utils.general import MAX_CONDITION, as_matrix, as_vector, check_rows, column_names

# Set up logging
logger = logging.getLogger(__name__)


@dataclass
class OLSFit:
    """Estimated linear regression."""

    coefficients: np.ndarray
    standard_errors: np.ndarray
    covariance: np.ndarray
    names: List[str]
    residual_variance: float
    r_squared: float
    df_resid: int

    def summary(self) -> pd.DataFrame:
        """
        Coefficient table, one row per covariate.

        Returns:
            DataFrame with columns coef, std_err, t, p_value
        """
        t = self.coefficients / self.standard_errors
        return pd.DataFrame({
            'coef': self.coefficients,
            'std_err': self.standard_errors,
            't': t,
            'p_value': 2 * stats.t.sf(np.abs(t), self.df_resid)
        }, index=pd.Index(self.names, name='covariate'))


def fit_ols(X: Any, y: Any, names: Optional[Sequence[str]] = None) -> OLSFit:
    """
    Fit y = X beta + e by least squares.

    Args:
        X: Design matrix, including any intercept column
        y: Response vector
        names: Covariate names for the summary table

    Returns:
        OLSFit with coefficients and classical standard errors
    """
    X = as_matrix(X, "X")
    y = as_vector(y, "y")
    check_rows(X, y)

    n_obs, n_coef = X.shape
    if n_obs <= n_coef:
        raise InvalidInputError(
            f"Need more observations ({n_obs}) than coefficients ({n_coef})"
        )

    names = column_names(names, n_coef)

    beta, _, rank, _ = np.linalg.lstsq(X, y, rcond=None)
    if rank < n_coef or np.linalg.cond(X.T @ X) > MAX_CONDITION:
        raise SingularHessianError("X^T X is singular; check for collinear covariates")

    residuals = y - X @ beta
    df_resid = n_obs - n_coef
    sigma2 = float(residuals @ residuals) / df_resid

    covariance = sigma2 * np.linalg.inv(X.T @ X)
    standard_errors = np.sqrt(np.diag(covariance))

    total = float(np.sum((y - np.mean(y)) ** 2))
    r_squared = 1.0 - float(residuals @ residuals) / total if total > 0 else 0.0

    logger.info(f"OLS fit with {n_coef} coefficients, R^2={r_squared:.4f}")

    return OLSFit(
        coefficients=beta,
        standard_errors=standard_errors,
        covariance=covariance,
        names=names,
        residual_variance=sigma2,
        r_squared=r_squared,
        df_resid=df_resid
    )

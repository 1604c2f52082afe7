"""
Poisson regression by maximum likelihood.

This module builds the Poisson log-likelihood for a design matrix and a
vector of counts, maximizes it numerically, and derives standard errors
from the inverse of the observed information (the negative Hessian) at
the optimum.

For the single-parameter case the maximizer has a closed form, the sample
mean; the rate helpers at the bottom of the module cover that case.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import optimize, stats
from scipy.special import gammaln

from reportmath.exceptions import InvalidInputError, NonConvergenceError, SingularHessianError
from reportmath.utils.general import (
    MAX_CONDITION, as_count_vector, as_matrix, as_vector, check_rows, column_names
)

# Set up logging
logger = logging.getLogger(__name__)

# exp() overflows just above 709
MAX_ETA = 700.0

# Largest mean score per observation accepted when the optimizer stops early
GRADIENT_TOL = 1e-4

# Fitted rates below this for zero counts mean the optimum lies at infinity
MIN_RATE = 1e-8

# scipy methods that accept an explicit Hessian
HESSIAN_METHODS = {'newton-cg', 'dogleg', 'trust-ncg', 'trust-krylov', 'trust-exact', 'trust-constr'}


def linear_predictor(beta: np.ndarray, X: np.ndarray) -> np.ndarray:
    """Linear predictor X @ beta, clipped so exp() stays finite."""
    return np.clip(X @ beta, -MAX_ETA, MAX_ETA)


def log_likelihood(beta: np.ndarray,
                   X: np.ndarray,
                   y: np.ndarray,
                   include_constant: bool = True) -> float:
    """
    Poisson log-likelihood of a coefficient vector.

    Args:
        beta: Coefficient vector
        X: Design matrix
        y: Observed counts
        include_constant: Include the -log(y!) term, which does not depend on beta

    Returns:
        Sum over observations of y * eta - exp(eta) - log(y!)
    """
    eta = linear_predictor(beta, X)
    ll = np.sum(y * eta - np.exp(eta))
    if include_constant:
        ll -= np.sum(gammaln(y + 1))
    return float(ll)


def negative_log_likelihood(beta: np.ndarray, X: np.ndarray, y: np.ndarray) -> float:
    """Objective minimized by the optimizer (constant term dropped)."""
    return -log_likelihood(beta, X, y, include_constant=False)


def score(beta: np.ndarray, X: np.ndarray, y: np.ndarray) -> np.ndarray:
    """
    Gradient of the log-likelihood, X^T (y - lambda).
    """
    rates = np.exp(linear_predictor(beta, X))
    return X.T @ (y - rates)


def hessian(beta: np.ndarray, X: np.ndarray, y: np.ndarray) -> np.ndarray:
    """
    Analytic Hessian of the log-likelihood, -X^T diag(lambda) X.

    The Poisson Hessian does not depend on y; the argument is kept so all
    derivative functions share one signature.
    """
    rates = np.exp(linear_predictor(beta, X))
    return -(X.T * rates) @ X


def numerical_hessian(beta: np.ndarray,
                      X: np.ndarray,
                      y: np.ndarray,
                      epsilon: Optional[float] = None) -> np.ndarray:
    """
    Finite-difference Hessian built from the analytic score.

    Args:
        beta: Point at which to evaluate
        X: Design matrix
        y: Observed counts
        epsilon: Step size (defaults to sqrt of machine epsilon)

    Returns:
        Symmetrized Hessian estimate
    """
    if epsilon is None:
        epsilon = np.sqrt(np.finfo(float).eps)

    beta = np.asarray(beta, dtype=float)
    rows = [
        optimize.approx_fprime(beta, lambda b, i=i: score(b, X, y)[i], epsilon)
        for i in range(beta.shape[0])
    ]
    H = np.array(rows)
    return (H + H.T) / 2


def _neg_score(beta, X, y):
    return -score(beta, X, y)


def _neg_hessian(beta, X, y):
    return -hessian(beta, X, y)


def invert_information(information: np.ndarray) -> np.ndarray:
    """
    Invert the observed information matrix.

    Args:
        information: Negative Hessian at the optimum

    Returns:
        Covariance matrix of the estimates
    """
    if not np.all(np.isfinite(information)) or np.linalg.cond(information) > MAX_CONDITION:
        raise SingularHessianError(
            "Information matrix is singular; check for collinear covariates"
        )

    try:
        covariance = np.linalg.inv(information)
    except np.linalg.LinAlgError as e:
        raise SingularHessianError(f"Information matrix cannot be inverted: {e}") from e

    if np.any(np.diag(covariance) <= 0):
        raise SingularHessianError(
            "Inverse information has non-positive variances; the optimum is not a maximum"
        )

    return covariance


@dataclass
class PoissonFit:
    """Estimated Poisson regression."""

    coefficients: np.ndarray
    standard_errors: np.ndarray
    covariance: np.ndarray
    names: List[str]
    log_likelihood: float
    iterations: int
    converged: bool
    message: str
    rates: np.ndarray

    def summary(self) -> pd.DataFrame:
        """
        Coefficient table, one row per covariate.

        Returns:
            DataFrame with columns coef, std_err, z, p_value
        """
        z = self.coefficients / self.standard_errors
        return pd.DataFrame({
            'coef': self.coefficients,
            'std_err': self.standard_errors,
            'z': z,
            'p_value': 2 * stats.norm.sf(np.abs(z))
        }, index=pd.Index(self.names, name='covariate'))

    def rate_ratios(self) -> pd.Series:
        """Multiplicative effect of a unit change in each covariate."""
        return pd.Series(np.exp(self.coefficients), index=self.names, name='rate_ratio')

    def predict(self, X: Any) -> np.ndarray:
        """Expected counts for new rows of the design matrix."""
        X = as_matrix(X, "X")
        if X.shape[1] != self.coefficients.shape[0]:
            raise InvalidInputError(
                f"Expected {self.coefficients.shape[0]} columns, got {X.shape[1]}"
            )
        return np.exp(linear_predictor(self.coefficients, X))


def estimate(X: Any,
             y: Any,
             initial: Optional[Any] = None,
             names: Optional[Sequence[str]] = None,
             method: str = 'BFGS',
             tol: float = 1e-8,
             max_iter: int = 1000,
             hessian_method: str = 'analytic') -> PoissonFit:
    """
    Fit a Poisson regression by maximum likelihood.

    Args:
        X: Design matrix (n_obs x n_coef), including any intercept column
        y: Observed counts, aligned with the rows of X
        initial: Starting coefficients (defaults to zeros)
        names: Covariate names for the summary table
        method: scipy.optimize.minimize method
        tol: Optimizer tolerance
        max_iter: Optimizer iteration budget
        hessian_method: 'analytic' or 'numerical'

    Returns:
        PoissonFit with coefficients and standard errors

    Raises:
        InvalidInputError: Malformed or mismatched inputs
        NonConvergenceError: The optimizer did not reach the optimum
        SingularHessianError: Standard errors cannot be computed
    """
    X = as_matrix(X, "X")
    y = as_count_vector(y, "y")
    check_rows(X, y)

    n_coef = X.shape[1]
    if n_coef == 0:
        raise InvalidInputError("Design matrix has no columns")

    if not np.any(y > 0):
        raise InvalidInputError("All counts are zero; the rates have no finite maximum likelihood estimate")

    names = column_names(names, n_coef)

    if initial is None:
        beta0 = np.zeros(n_coef)
    else:
        beta0 = as_vector(initial, "initial")
        if beta0.shape[0] != n_coef:
            raise InvalidInputError(
                f"initial has {beta0.shape[0]} entries, design matrix has {n_coef} columns"
            )

    if hessian_method not in ('analytic', 'numerical'):
        raise InvalidInputError(f"Unknown hessian method: {hessian_method}")

    kwargs = {
        'fun': negative_log_likelihood,
        'x0': beta0,
        'args': (X, y),
        'jac': _neg_score,
        'method': method,
        'tol': tol,
        'options': {'maxiter': max_iter}
    }
    if method.lower() in HESSIAN_METHODS:
        kwargs['hess'] = _neg_hessian

    result = optimize.minimize(**kwargs)
    iterations = int(getattr(result, 'nit', 0))
    beta = result.x

    mean_score = np.max(np.abs(score(beta, X, y))) / X.shape[0]

    if not result.success:
        if iterations >= max_iter or mean_score > GRADIENT_TOL:
            raise NonConvergenceError(
                f"Optimizer stopped after {iterations} iterations: {result.message}",
                iterations
            )
        logger.warning(
            f"Optimizer reported '{result.message}' with score {mean_score:.2e} per observation; "
            f"accepting the estimate"
        )

    rates = np.exp(linear_predictor(beta, X))
    vanishing = (y == 0) & (rates < MIN_RATE)
    if np.any(vanishing):
        raise NonConvergenceError(
            f"Fitted rates of {int(np.sum(vanishing))} zero-count observations collapse to zero; "
            f"the covariates separate them and the estimate diverges",
            iterations
        )

    if hessian_method == 'analytic':
        H = hessian(beta, X, y)
    else:
        H = numerical_hessian(beta, X, y)

    covariance = invert_information(-H)
    standard_errors = np.sqrt(np.diag(covariance))

    ll = log_likelihood(beta, X, y)
    logger.info(f"Poisson fit finished after {iterations} iterations, log-likelihood {ll:.4f}")

    return PoissonFit(
        coefficients=beta,
        standard_errors=standard_errors,
        covariance=covariance,
        names=names,
        log_likelihood=ll,
        iterations=iterations,
        converged=bool(result.success),
        message=str(result.message),
        rates=rates
    )


def rate_mle(y: Any) -> float:
    """
    Closed-form maximum likelihood rate of a Poisson sample.

    Args:
        y: Observed counts

    Returns:
        The sample mean
    """
    y = as_count_vector(y, "y")
    if y.shape[0] == 0:
        raise InvalidInputError("No observations")
    return float(np.mean(y))


def rate_log_likelihood(rate: float, y: Any) -> float:
    """
    Log-likelihood of a single Poisson rate.

    Args:
        rate: Candidate rate (non-negative)
        y: Observed counts

    Returns:
        Sum of log-probabilities of the counts
    """
    if not np.isfinite(rate) or rate < 0:
        raise InvalidInputError(f"Rate must be a non-negative finite number, got {rate}")
    y = as_count_vector(y, "y")
    return float(np.sum(stats.poisson.logpmf(y, rate)))


def likelihood_profile(y: Any, rates: Sequence[float]) -> pd.Series:
    """
    Log-likelihood evaluated over a grid of candidate rates.

    Args:
        y: Observed counts
        rates: Candidate rates

    Returns:
        Series of log-likelihood values indexed by rate
    """
    y = as_count_vector(y, "y")
    rates = as_vector(rates, "rates")
    values = [rate_log_likelihood(rate, y) for rate in rates]
    return pd.Series(values, index=pd.Index(rates, name='rate'), name='log_likelihood')


def rate_mle_numeric(y: Any, bounds: Optional[Tuple[float, float]] = None) -> float:
    """
    Maximum likelihood rate found by bounded scalar optimization.

    Agrees with rate_mle up to optimizer tolerance.

    Args:
        y: Observed counts
        bounds: Search interval (defaults to (1e-10, max(y) + 1))

    Returns:
        Estimated rate
    """
    y = as_count_vector(y, "y")
    if y.shape[0] == 0:
        raise InvalidInputError("No observations")

    if bounds is None:
        bounds = (1e-10, float(np.max(y)) + 1.0)

    result = optimize.minimize_scalar(
        lambda rate: -rate_log_likelihood(rate, y),
        bounds=bounds,
        method='bounded',
        options={'xatol': 1e-10}
    )

    if not result.success:
        raise NonConvergenceError(f"Rate optimization failed: {result.message}")

    return float(result.x)

"""
Tests for the least squares module.
"""

import pytest
import numpy as np
import sys
import os

# Add the parent directory to the path to import the module
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from reportmath.exceptions import InvalidInputError, SingularHessianError
from reportmath.math.linear import fit_ols


@pytest.fixture
def linear_data():
    rng = np.random.RandomState(6)
    n = 200
    x = rng.uniform(0, 10, n)
    X = np.column_stack([np.ones(n), x])
    y = 1.5 + 2.0 * x + rng.randn(n)
    return X, y


class TestOLS:
    """Tests for fit_ols."""

    def test_matches_polyfit(self, linear_data):
        """Coefficients agree with numpy's polynomial fit."""
        X, y = linear_data

        fit = fit_ols(X, y)
        slope, intercept = np.polyfit(X[:, 1], y, 1)

        assert np.allclose(fit.coefficients, [intercept, slope])
        assert 0.9 < fit.r_squared <= 1.0
        assert fit.df_resid == 198

    def test_standard_errors(self, linear_data):
        """Standard errors follow sigma^2 (X^T X)^-1."""
        X, y = linear_data

        fit = fit_ols(X, y)
        residuals = y - X @ fit.coefficients
        sigma2 = residuals @ residuals / (len(y) - 2)
        expected = np.sqrt(np.diag(sigma2 * np.linalg.inv(X.T @ X)))

        assert np.allclose(fit.standard_errors, expected)

    def test_matches_statsmodels(self, linear_data):
        """Results agree with the statsmodels OLS reference."""
        sm = pytest.importorskip("statsmodels.api")
        X, y = linear_data

        fit = fit_ols(X, y)
        reference = sm.OLS(y, X).fit()

        assert np.allclose(fit.coefficients, reference.params)
        assert np.allclose(fit.standard_errors, reference.bse)
        assert fit.r_squared == pytest.approx(reference.rsquared)

    def test_summary(self, linear_data):
        """The summary has one row per covariate."""
        X, y = linear_data

        table = fit_ols(X, y, names=['intercept', 'x']).summary()

        assert list(table.index) == ['intercept', 'x']
        assert list(table.columns) == ['coef', 'std_err', 't', 'p_value']
        assert table.loc['x', 'p_value'] < 1e-6

    def test_invalid_input(self, linear_data):
        """Malformed or degenerate inputs fail."""
        X, y = linear_data

        with pytest.raises(InvalidInputError):
            fit_ols(X, y[:-1])

        with pytest.raises(InvalidInputError):
            fit_ols(X[:2], y[:2])

        with pytest.raises(SingularHessianError):
            fit_ols(np.column_stack([X, 2 * X[:, 1]]), y)

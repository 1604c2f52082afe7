"""
Tests for the config-driven runners and the command line entry point.
"""

import pytest
import json
import numpy as np
import pandas as pd
import sys
import os

# Add the parent directory to the path to import the module
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from reportmath.__main__ import main, split_columns
from reportmath.components.config import Config, ConfigManager
from reportmath.exceptions import InvalidKError
from reportmath.math.clusters import KMeansState
from reportmath.math.design import TableSchema
from reportmath.runner import run_clustering, run_k_sweep, run_ols, run_poisson


@pytest.fixture(autouse=True)
def shared_config():
    ConfigManager.reset()
    yield
    ConfigManager.reset()


@pytest.fixture
def flowers():
    """Two groups of flowers that differ in petal size."""
    rng = np.random.RandomState(0)
    small = rng.normal([1.5, 0.3], 0.1, size=(15, 2))
    large = rng.normal([5.5, 2.0], 0.1, size=(15, 2))
    data = np.vstack([small, large])
    return pd.DataFrame({'petal_length': data[:, 0], 'petal_width': data[:, 1]})


@pytest.fixture
def firms():
    """Patent counts for firms in three regions."""
    rng = np.random.RandomState(1)
    n = 300
    age = rng.uniform(-1.5, 1.5, n)
    region = rng.choice(['East', 'North', 'West'], size=n)
    customer = (rng.rand(n) < 0.3).astype(int)
    rate = np.exp(1.0 + 0.2 * age - 0.1 * age ** 2 + 0.3 * customer + 0.1 * (region == 'West'))
    return pd.DataFrame({
        'patents': rng.poisson(rate),
        'age': age,
        'region': region,
        'customer': customer
    })


class TestRunners:
    """Tests for the runner functions."""

    def test_run_clustering(self, flowers):
        """Clustering uses the configured seed and options."""
        config = Config({'random-seed': 3})

        result = run_clustering(flowers, ['petal_length', 'petal_width'], 2, config, track_history=True)

        assert result.state is KMeansState.CONVERGED
        assert sorted(result.cluster_sizes().tolist()) == [15, 15]
        assert len(result.history) == result.iterations

    def test_run_clustering_reproducible(self, flowers):
        """The configured seed makes runs repeatable."""
        config = Config({'random-seed': 5, 'kmeans': {'n-init': 1}})

        first = run_clustering(flowers, ['petal_length', 'petal_width'], 3, config)
        second = run_clustering(flowers, ['petal_length', 'petal_width'], 3, config)

        assert np.array_equal(first.centers, second.centers)
        assert np.array_equal(first.labels, second.labels)

    def test_run_k_sweep_default_range(self, flowers):
        """The default range comes from configuration."""
        config = Config({'kmeans': {'k-min': 1, 'k-max': 4}})

        sweep = run_k_sweep(flowers, ['petal_length', 'petal_width'], config=config)

        assert list(sweep.index) == [1, 2, 3, 4]
        assert sweep['silhouette'].idxmax() == 2

    def test_run_k_sweep_caps_default_range(self, flowers):
        """The configured range stops at the number of points."""
        small = flowers.iloc[:3]

        sweep = run_k_sweep(small, ['petal_length'], config=Config({'kmeans': {'k-max': 7}}))

        assert list(sweep.index) == [1, 2, 3]

    def test_run_k_sweep_rejects_explicit_k(self, flowers):
        """Explicit candidates larger than the point count are errors, not skipped."""
        small = flowers.iloc[:3]

        with pytest.raises(InvalidKError):
            run_k_sweep(small, ['petal_length'], k_values=[2, 5], config=Config())

    def test_run_poisson(self, firms):
        """The Poisson runner fits the schema's design matrix."""
        schema = TableSchema(
            response='patents',
            numeric=['age', 'customer'],
            squared=['age'],
            categorical=['region']
        )

        fit = run_poisson(firms, schema, Config())
        table = fit.summary()

        assert list(table.index) == ['intercept', 'age', 'customer', 'age_sq', 'region_North', 'region_West']
        assert table.loc['intercept', 'coef'] == pytest.approx(1.0, abs=0.25)
        assert (table['std_err'] > 0).all()

    def test_run_ols(self, firms):
        """The OLS runner fits the schema's design matrix."""
        schema = TableSchema(response='patents', numeric=['age', 'customer'])

        fit = run_ols(firms, schema)

        assert fit.names == ['intercept', 'age', 'customer']
        assert fit.coefficients[2] > 0


class TestCommandLine:
    """Tests for the command line entry point."""

    def test_split_columns(self):
        assert split_columns('a, b,,c') == ['a', 'b', 'c']
        assert split_columns(None) == []

    def test_kmeans_command(self, flowers, tmp_path, capsys):
        """The kmeans command prints clusters as JSON."""
        path = str(tmp_path / 'flowers.csv')
        flowers.to_csv(path, index=False)

        main(['--seed', '1', 'kmeans', path, '--columns', 'petal_length,petal_width', '--k', '2'])

        output = json.loads(capsys.readouterr().out)
        assert output['state'] == 'converged'
        assert len(output['clusters']) == 2
        members = sorted(m for cluster in output['clusters'] for m in cluster['members'])
        assert members == list(range(30))

    def test_sweep_command(self, flowers, tmp_path, capsys):
        """The sweep command prints one record per k."""
        path = str(tmp_path / 'flowers.csv')
        flowers.to_csv(path, index=False)

        main(['sweep', path, '--columns', 'petal_length,petal_width', '--k-min', '1', '--k-max', '3'])

        output = json.loads(capsys.readouterr().out)
        assert [row['k'] for row in output['sweep']] == [1, 2, 3]
        assert output['sweep'][0]['silhouette'] is None

    def test_poisson_command(self, firms, tmp_path, capsys):
        """The poisson command prints the coefficient table."""
        path = str(tmp_path / 'firms.csv')
        firms.to_csv(path, index=False)

        main(['poisson', path, '--response', 'patents', '--numeric', 'age,customer',
              '--categorical', 'region'])

        output = json.loads(capsys.readouterr().out)
        names = [row['covariate'] for row in output['coefficients']]
        assert names == ['intercept', 'age', 'customer', 'region_North', 'region_West']
        assert output['log_likelihood'] < 0

    def test_ols_command(self, firms, tmp_path, capsys):
        """The ols command prints the coefficient table."""
        path = str(tmp_path / 'firms.csv')
        firms.to_csv(path, index=False)

        main(['ols', path, '--response', 'patents', '--numeric', 'age'])

        output = json.loads(capsys.readouterr().out)
        assert [row['covariate'] for row in output['coefficients']] == ['intercept', 'age']
        assert 0 <= output['r_squared'] <= 1

    def test_errors_exit_with_status_1(self, flowers, tmp_path):
        """Core errors are logged and turned into a failing exit code."""
        path = str(tmp_path / 'flowers.csv')
        flowers.iloc[:4].to_csv(path, index=False)

        with pytest.raises(SystemExit) as excinfo:
            main(['kmeans', path, '--columns', 'petal_length', '--k', '5'])

        assert excinfo.value.code == 1

    def test_log_level_from_config(self, flowers, tmp_path, monkeypatch):
        """Without --log-level the configured level is used."""
        levels = []
        monkeypatch.setattr('reportmath.__main__.setup_logging', levels.append)
        monkeypatch.setenv('LOG_LEVEL', 'DEBUG')
        path = str(tmp_path / 'flowers.csv')
        flowers.to_csv(path, index=False)

        main(['kmeans', path, '--columns', 'petal_length', '--k', '2'])

        assert levels == ['debug']

    def test_log_level_flag_wins(self, flowers, tmp_path, monkeypatch):
        """--log-level overrides the configured level."""
        levels = []
        monkeypatch.setattr('reportmath.__main__.setup_logging', levels.append)
        monkeypatch.setenv('LOG_LEVEL', 'debug')
        path = str(tmp_path / 'flowers.csv')
        flowers.to_csv(path, index=False)

        main(['--log-level', 'ERROR', 'kmeans', path, '--columns', 'petal_length', '--k', '2'])

        assert levels == ['error']

    def test_missing_csv_exits_with_status_1(self, tmp_path):
        """A missing input file is reported, not raised."""
        with pytest.raises(SystemExit) as excinfo:
            main(['kmeans', str(tmp_path / 'missing.csv'), '--columns', 'x', '--k', '2'])

        assert excinfo.value.code == 1

    def test_invalid_config_exits_with_status_1(self, flowers, tmp_path):
        """Out-of-range configuration values are reported, not raised."""
        config_path = str(tmp_path / 'config.yaml')
        with open(config_path, 'w') as f:
            f.write("kmeans:\n  max-iter: 0\n")
        path = str(tmp_path / 'flowers.csv')
        flowers.to_csv(path, index=False)

        with pytest.raises(SystemExit) as excinfo:
            main(['--config', config_path, 'kmeans', path, '--columns', 'petal_length', '--k', '2'])

        assert excinfo.value.code == 1

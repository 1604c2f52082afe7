"""
Tests for the configuration module.
"""

import pytest
import json
import sys
import os
import yaml

# Add the parent directory to the path to import the module
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from reportmath.components.config import Config, ConfigManager, to_int, to_float, load_file


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep configuration environment variables out of the tests."""
    for name in ['RANDOM_SEED', 'KMEANS_MAX_ITER', 'KMEANS_TOL', 'KMEANS_N_INIT',
                 'KMEANS_EMPTY_CLUSTER', 'KMEANS_K_MIN', 'KMEANS_K_MAX', 'POISSON_METHOD',
                 'POISSON_MAX_ITER', 'POISSON_TOL', 'POISSON_HESSIAN', 'LOG_LEVEL']:
        monkeypatch.delenv(name, raising=False)
    ConfigManager.reset()
    yield
    ConfigManager.reset()


class TestConverters:
    """Tests for value conversion helpers."""

    def test_to_int(self):
        assert to_int("5") == 5
        assert to_int(None) is None
        assert to_int("five") is None

    def test_to_float(self):
        assert to_float("1e-3") == 0.001
        assert to_float(None) is None
        assert to_float("small") is None


class TestConfig:
    """Tests for the Config class."""

    def test_defaults(self):
        """Test default values."""
        config = Config()

        assert config.get('random-seed') == 42
        assert config.get('kmeans.max-iter') == 100
        assert config.get('kmeans.tol') == 1e-4
        assert config.get('kmeans.empty-cluster') == 'retain'
        assert config.get('poisson.method') == 'BFGS'
        assert config.get('poisson.hessian') == 'analytic'
        assert config.get('missing.path', 'fallback') == 'fallback'

    def test_env_vars(self, monkeypatch):
        """Environment variables override defaults."""
        monkeypatch.setenv('RANDOM_SEED', '7')
        monkeypatch.setenv('KMEANS_MAX_ITER', '250')
        monkeypatch.setenv('KMEANS_EMPTY_CLUSTER', 'ERROR')
        monkeypatch.setenv('POISSON_TOL', '1e-6')

        config = Config()

        assert config.get('random-seed') == 7
        assert config.get('kmeans.max-iter') == 250
        assert config.get('kmeans.empty-cluster') == 'error'
        assert config.get('poisson.tol') == 1e-6

    def test_overrides(self):
        """Overrides are merged into nested sections."""
        config = Config({'kmeans': {'n-init': 3}})

        assert config.get('kmeans.n-init') == 3
        assert config.get('kmeans.max-iter') == 100

    def test_invalid_values(self, monkeypatch):
        """Unparseable or out-of-range values are rejected."""
        with pytest.raises(ValueError):
            Config({'kmeans': {'max-iter': 0}})

        with pytest.raises(ValueError):
            Config({'kmeans': {'empty-cluster': 'drop'}})

        with pytest.raises(ValueError):
            Config({'kmeans': {'k-min': 5, 'k-max': 2}})

        with pytest.raises(ValueError):
            Config({'poisson': {'hessian': 'exact'}})

        with pytest.raises(ValueError):
            Config({'logging': {'level': 'loud'}})

        monkeypatch.setenv('KMEANS_N_INIT', 'many')
        with pytest.raises(ValueError):
            Config()

    def test_get_and_set(self):
        """Test dot-path access."""
        config = Config()

        config.set('kmeans.tol', 1e-6)
        config.set('report.title', 'Iris')

        assert config.get('kmeans.tol') == 1e-6
        assert config.get('report.title') == 'Iris'
        assert config.to_dict()['report'] == {'title': 'Iris'}

    def test_files(self, tmp_path):
        """Configuration round-trips through YAML and JSON files."""
        yaml_path = str(tmp_path / 'config.yaml')
        with open(yaml_path, 'w') as f:
            yaml.dump({'random-seed': 3, 'kmeans': {'k-max': 4}}, f)

        config = Config()
        config.load_from_file(yaml_path)

        assert config.get('random-seed') == 3
        assert config.get('kmeans.k-max') == 4

        json_path = str(tmp_path / 'saved.json')
        config.save_to_file(json_path)
        with open(json_path) as f:
            assert json.load(f)['kmeans']['k-max'] == 4

        assert load_file(json_path)['random-seed'] == 3

        with pytest.raises(ValueError):
            load_file(str(tmp_path / 'config.ini'))


class TestConfigManager:
    """Tests for the shared configuration instance."""

    def test_singleton(self):
        first = ConfigManager.get_config()
        second = ConfigManager.get_config()

        assert first is second

    def test_overrides_reload(self):
        config = ConfigManager.get_config()
        ConfigManager.get_config({'random-seed': 9})

        assert config.get('random-seed') == 9

    def test_reset(self):
        first = ConfigManager.get_config()
        ConfigManager.reset()

        assert ConfigManager.get_config() is not first

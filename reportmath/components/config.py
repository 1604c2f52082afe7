"""
Configuration for reportmath.

Values are layered: built-in defaults, then environment variables, then
explicit overrides (a dict, or a JSON/YAML file). Sections are addressed
with dot paths such as ``kmeans.max-iter``.
"""

import os
import json
import logging
import threading
from typing import Any, Dict, Optional
from copy import deepcopy
import yaml

# Set up logging
logger = logging.getLogger(__name__)


def to_int(value: Any) -> Optional[int]:
    """Parse an integer, returning None when the value is missing or malformed."""
    try:
        return None if value is None else int(value)
    except (TypeError, ValueError):
        return None


def to_float(value: Any) -> Optional[float]:
    """Parse a float, returning None when the value is missing or malformed."""
    try:
        return None if value is None else float(value)
    except (TypeError, ValueError):
        return None


def to_lower(value: Any) -> str:
    return str(value).lower()


DEFAULTS = {
    # Seed for centroid initialization
    'random-seed': 42,

    'kmeans': {
        'max-iter': 100,
        'tol': 1e-4,
        'n-init': 10,
        'empty-cluster': 'retain',  # retain | error
        'k-min': 1,
        'k-max': 7
    },

    # Poisson maximum likelihood
    'poisson': {
        'method': 'BFGS',
        'max-iter': 1000,
        'tol': 1e-8,
        'hessian': 'analytic'  # analytic | numerical
    },

    'logging': {
        'level': 'warn'
    }
}

# Environment variable -> (config path, parser)
ENV_VARS: Dict[str, tuple] = {
    'RANDOM_SEED': ('random-seed', to_int),
    'KMEANS_MAX_ITER': ('kmeans.max-iter', to_int),
    'KMEANS_TOL': ('kmeans.tol', to_float),
    'KMEANS_N_INIT': ('kmeans.n-init', to_int),
    'KMEANS_EMPTY_CLUSTER': ('kmeans.empty-cluster', to_lower),
    'KMEANS_K_MIN': ('kmeans.k-min', to_int),
    'KMEANS_K_MAX': ('kmeans.k-max', to_int),
    'POISSON_METHOD': ('poisson.method', str),
    'POISSON_MAX_ITER': ('poisson.max-iter', to_int),
    'POISSON_TOL': ('poisson.tol', to_float),
    'POISSON_HESSIAN': ('poisson.hessian', to_lower),
    'LOG_LEVEL': ('logging.level', to_lower),
}

POSITIVE_INTS = ['kmeans.max-iter', 'kmeans.n-init', 'kmeans.k-min', 'kmeans.k-max', 'poisson.max-iter']

CHOICES = {
    'kmeans.empty-cluster': ('retain', 'error'),
    'poisson.hessian': ('analytic', 'numerical'),
    'logging.level': ('debug', 'info', 'warn', 'warning', 'error', 'critical'),
}


def load_file(filepath: str) -> Dict[str, Any]:
    """
    Read a configuration dictionary from a JSON or YAML file.

    Args:
        filepath: Path ending in .json, .yaml or .yml

    Returns:
        Configuration dictionary
    """
    with open(_check_format(filepath), 'r') as f:
        if filepath.endswith('.json'):
            return json.load(f)
        return yaml.safe_load(f) or {}


def dump_file(data: Dict[str, Any], filepath: str) -> None:
    """Write a configuration dictionary as JSON or YAML, chosen by extension."""
    with open(_check_format(filepath), 'w') as f:
        if filepath.endswith('.json'):
            json.dump(data, f, indent=2)
        else:
            yaml.safe_dump(data, f, default_flow_style=False)


def _check_format(filepath: str) -> str:
    if not filepath.endswith(('.json', '.yaml', '.yml')):
        raise ValueError(f"Unsupported configuration file format: {filepath}")
    return filepath


def merge(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge updates into a copy of base."""
    merged = deepcopy(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def lookup(tree: Dict[str, Any], path: str, default: Any = None) -> Any:
    node = tree
    for part in path.split('.'):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node


def assign(tree: Dict[str, Any], path: str, value: Any) -> None:
    *parents, leaf = path.split('.')
    node = tree
    for part in parents:
        node = node.setdefault(part, {})
    node[leaf] = value


class Config:
    """
    Layered configuration for the clustering and regression runners.

    Thread-safe: loading and setting values hold a re-entrant lock.
    """

    def __init__(self, overrides: Optional[Dict[str, Any]] = None):
        self._lock = threading.RLock()
        self._config: Dict[str, Any] = {}
        self.load_config(overrides)

    def load_config(self, overrides: Optional[Dict[str, Any]] = None) -> None:
        """
        Rebuild the configuration from defaults, environment and overrides.

        Args:
            overrides: Nested dictionary merged last

        Raises:
            ValueError: A value could not be parsed or is out of range
        """
        config = merge(DEFAULTS, self._from_environment())
        if overrides:
            config = merge(config, overrides)

        self._validate(config)

        with self._lock:
            self._config = config

        logger.info("Configuration loaded")

    @staticmethod
    def _from_environment() -> Dict[str, Any]:
        found: Dict[str, Any] = {}
        for name, (path, parse) in ENV_VARS.items():
            if name in os.environ:
                assign(found, path, parse(os.environ[name]))
        return found

    @staticmethod
    def _validate(config: Dict[str, Any]) -> None:
        for path in POSITIVE_INTS:
            value = lookup(config, path)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"{path} must be a positive integer, got {value!r}")

        for path in ('kmeans.tol', 'poisson.tol'):
            value = lookup(config, path)
            if not isinstance(value, (int, float)) or value <= 0:
                raise ValueError(f"{path} must be positive, got {value!r}")

        if lookup(config, 'kmeans.k-min') > lookup(config, 'kmeans.k-max'):
            raise ValueError("kmeans.k-min must not exceed kmeans.k-max")

        for path, allowed in CHOICES.items():
            if lookup(config, path) not in allowed:
                raise ValueError(f"{path} must be one of {allowed}, got {lookup(config, path)!r}")

    def get(self, path: str, default: Any = None) -> Any:
        """
        Get a value by dot path.

        Args:
            path: Dot-separated path, e.g. 'poisson.tol'
            default: Returned when the path does not exist

        Returns:
            The configured value or default
        """
        return lookup(self._config, path, default)

    def set(self, path: str, value: Any) -> None:
        """Set a value by dot path, creating intermediate sections."""
        with self._lock:
            assign(self._config, path, value)

    def to_dict(self) -> Dict[str, Any]:
        return deepcopy(self._config)

    def save_to_file(self, filepath: str) -> None:
        dump_file(self.to_dict(), filepath)

    def load_from_file(self, filepath: str) -> None:
        """Reload with the contents of a JSON or YAML file as overrides."""
        self.load_config(load_file(filepath))


class ConfigManager:
    """
    Holds the process-wide Config instance.
    """

    _instance: Optional[Config] = None
    _lock = threading.RLock()

    @classmethod
    def get_config(cls, overrides: Optional[Dict[str, Any]] = None) -> Config:
        """
        Return the shared Config, creating it on first use.

        Passing overrides reloads the existing instance with them.
        """
        with cls._lock:
            if cls._instance is None:
                cls._instance = Config(overrides)
            elif overrides:
                cls._instance.load_config(overrides)
            return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the shared instance so the next call rebuilds it."""
        with cls._lock:
            cls._instance = None

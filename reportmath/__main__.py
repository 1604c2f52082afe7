"""
Main entry point for reportmath.

Runs one analysis on a clean CSV table and prints the result as JSON.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

import numpy as np
import pandas as pd
import yaml

from reportmath.components.config import Config, ConfigManager, load_file
from reportmath.exceptions import ReportMathError
from reportmath.math.design import TableSchema
from reportmath.runner import run_clustering, run_k_sweep, run_ols, run_poisson

logger = logging.getLogger('reportmath')


def setup_logging(level: str = 'INFO') -> None:
    """
    Set up logging.

    Args:
        level: Logging level
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler()
        ]
    )


def split_columns(value: Optional[str]) -> List[str]:
    """Split a comma-separated column list."""
    if not value:
        return []
    return [item.strip() for item in value.split(',') if item.strip()]


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(description='K-means and Poisson regression for analysis reports')

    parser.add_argument(
        '--config',
        help='Path to configuration file (JSON or YAML)'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Logging level (defaults to logging.level from configuration)'
    )

    parser.add_argument(
        '--seed',
        type=int,
        help='Random seed for centroid initialization'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    kmeans_parser = subparsers.add_parser('kmeans', help='Cluster rows with K-means')
    kmeans_parser.add_argument('csv', help='Clean CSV table')
    kmeans_parser.add_argument('--columns', required=True, help='Comma-separated feature columns')
    kmeans_parser.add_argument('--k', type=int, required=True, help='Number of clusters')
    kmeans_parser.add_argument('--standardize', action='store_true', help='Z-score features first')

    sweep_parser = subparsers.add_parser('sweep', help='WCSS and silhouette across k')
    sweep_parser.add_argument('csv', help='Clean CSV table')
    sweep_parser.add_argument('--columns', required=True, help='Comma-separated feature columns')
    sweep_parser.add_argument('--k-min', type=int, help='Smallest k')
    sweep_parser.add_argument('--k-max', type=int, help='Largest k')
    sweep_parser.add_argument('--standardize', action='store_true', help='Z-score features first')

    for name, help_text in [('poisson', 'Poisson regression by maximum likelihood'),
                            ('ols', 'Linear regression by least squares')]:
        model_parser = subparsers.add_parser(name, help=help_text)
        model_parser.add_argument('csv', help='Clean CSV table')
        model_parser.add_argument('--response', required=True, help='Response column')
        model_parser.add_argument('--numeric', help='Comma-separated numeric covariates')
        model_parser.add_argument('--categorical', help='Comma-separated categorical covariates')
        model_parser.add_argument('--squared', help='Comma-separated columns to add squared terms for')
        model_parser.add_argument('--no-intercept', action='store_true', help='Omit the intercept column')

    return parser.parse_args(argv)


def build_overrides(args: argparse.Namespace) -> dict:
    """
    Configuration overrides from the config file and command line.

    Args:
        args: Parsed arguments

    Returns:
        Overrides dictionary
    """
    overrides = {}

    # Load configuration from file if provided
    if args.config:
        overrides.update(load_file(args.config))

    # Override with command line arguments
    if args.seed is not None:
        overrides['random-seed'] = args.seed

    if args.log_level is not None:
        overrides.setdefault('logging', {})['level'] = args.log_level.lower()

    if getattr(args, 'k_min', None) is not None:
        overrides.setdefault('kmeans', {})['k-min'] = args.k_min

    if getattr(args, 'k_max', None) is not None:
        overrides.setdefault('kmeans', {})['k-max'] = args.k_max

    return overrides


def schema_from_args(args: argparse.Namespace) -> TableSchema:
    return TableSchema(
        response=args.response,
        numeric=split_columns(args.numeric),
        categorical=split_columns(args.categorical),
        squared=split_columns(args.squared),
        intercept=not args.no_intercept
    )


def table_to_records(table: pd.DataFrame) -> list:
    """Convert a result table to JSON-safe records, mapping NaN to None."""
    table = table.reset_index().astype(object)
    return table.where(pd.notna(table), None).to_dict(orient='records')


def run(args: argparse.Namespace, config: Config) -> dict:
    """
    Execute the selected command.

    Args:
        args: Parsed arguments
        config: Loaded configuration

    Returns:
        JSON-serializable result
    """
    frame = pd.read_csv(args.csv)

    if args.command == 'kmeans':
        result = run_clustering(frame, split_columns(args.columns), args.k, config, args.standardize)
        return result.to_dict(frame.index.tolist())

    if args.command == 'sweep':
        sweep = run_k_sweep(frame, split_columns(args.columns), config=config, standardize=args.standardize)
        return {'sweep': table_to_records(sweep)}

    schema = schema_from_args(args)

    if args.command == 'poisson':
        fit = run_poisson(frame, schema, config)
        return {
            'log_likelihood': fit.log_likelihood,
            'iterations': fit.iterations,
            'coefficients': table_to_records(fit.summary())
        }

    fit = run_ols(frame, schema)
    return {
        'r_squared': fit.r_squared,
        'coefficients': table_to_records(fit.summary())
    }


def _json_default(value):
    if isinstance(value, np.generic):
        return value.item()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def main(argv: Optional[List[str]] = None) -> None:
    """
    Main entry point.
    """
    # Parse arguments
    args = parse_args(argv)

    try:
        config = ConfigManager.get_config(build_overrides(args))
    except (OSError, ValueError, yaml.YAMLError) as e:
        setup_logging()
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    # Set up logging
    setup_logging(config.get('logging.level'))

    try:
        output = run(args, config)
    except (ReportMathError, OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        sys.exit(1)

    json.dump(output, sys.stdout, indent=2, default=_json_default)
    sys.stdout.write('\n')


if __name__ == '__main__':
    main()

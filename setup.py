"""
Setup script for reportmath package.
"""

from setuptools import setup, find_packages

setup(
    name="reportmath",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        # Core numerical dependencies
        "numpy>=1.20.0",
        "pandas>=1.3.0",
        "scipy>=1.7.0",
        
        # Schemas
        "pydantic>=2.0.0",
        
        # Utilities
        "pyyaml>=6.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=6.0.0",
            # Reference implementations for differential tests
            "scikit-learn>=1.0.0",
            "statsmodels>=0.13.0",
        ],
    },
    entry_points={
        'console_scripts': [
            'reportmath=reportmath.__main__:main',
        ],
    },
    description="K-means clustering and Poisson maximum likelihood for educational data-analysis reports",
    keywords="kmeans, clustering, poisson regression, maximum likelihood",
    python_requires=">=3.8",
)

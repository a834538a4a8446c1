"""
Setup script for Stream Scoring
Version 1.0.0
"""

from setuptools import setup, find_packages
from pathlib import Path

from dependency_manifest import (
    get_core_dependencies,
    get_base_extras,
    get_aggregated_extras,
)

# Read the contents of README.md
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text() if (this_directory / "README.md").exists() else ""

version = "1.0.0"

install_requires = get_core_dependencies()

extras_require = get_base_extras()
extras_require.update(get_aggregated_extras())

setup(
    # Package metadata
    name="stream-scoring",
    version=version,
    author="Stream Scoring Team",
    description="Apply trained classifiers, regressors and clusterers to streams of rows",
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="MIT",

    # Package configuration
    packages=find_packages(
        include=["stream_scoring", "stream_scoring.*"],
        exclude=["tests", "tests.*"]
    ),
    include_package_data=True,

    # Dependencies
    python_requires=">=3.9",
    install_requires=install_requires,
    extras_require=extras_require,

    # Entry points
    entry_points={
        "console_scripts": [
            "stream-score=stream_scoring.cli:main",
        ],
    },

    # Classifiers
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
        "Environment :: Console",
    ],

    keywords=[
        "machine-learning",
        "scoring",
        "streaming",
        "scikit-learn",
        "incremental-learning",
    ],

    # Additional options
    zip_safe=False,
    platforms="any",
)

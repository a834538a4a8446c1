"""Centralized dependency manifest for stream-scoring packaging.

setup.py and any requirement file generators read the dependency
definitions from here so that install metadata and documentation share a
single source of truth.
"""
from __future__ import annotations

from collections import OrderedDict
from typing import List, Mapping, MutableMapping, Sequence

# Ordered groups of core dependencies; setup.py flattens them into
# install_requires.
CORE_DEPENDENCY_GROUPS: "OrderedDict[str, List[str]]" = OrderedDict(
    [
        (
            "Core ML libraries",
            [
                "pandas>=2.0.0",
                "numpy>=1.24.0",
                "scikit-learn>=1.3.0",
                "joblib>=1.3.0",
            ],
        ),
        (
            "Configuration",
            [
                "pyyaml>=6.0.1",
            ],
        ),
        (
            "Command line",
            [
                "tabulate>=0.9.0",
            ],
        ),
        (
            "Observability",
            [
                "prometheus-client>=0.19.0",
            ],
        ),
    ]
)


def get_core_dependencies() -> List[str]:
    """Return the flattened list of core dependencies preserving order."""
    return [pkg for group in CORE_DEPENDENCY_GROUPS.values() for pkg in group]


# Feature-oriented install extras.
BASE_EXTRAS: "OrderedDict[str, List[str]]" = OrderedDict(
    [
        (
            "parquet",
            [
                "pyarrow>=14.0.0",
            ],
        ),
        (
            "tests",
            [
                "pytest>=8.0.0",
                "pytest-cov>=4.1.0",
                "hypothesis>=6.98.0",
            ],
        ),
        (
            "dev",
            [
                "black>=24.0.0",
                "ruff>=0.2.0",
                "mypy>=1.8.0",
            ],
        ),
    ]
)

# Aggregated extras only reference other extras by name.
AGGREGATED_EXTRAS: "OrderedDict[str, Sequence[str]]" = OrderedDict(
    [
        ("all", tuple(BASE_EXTRAS.keys())),
    ]
)

def resolve_extra(
    name: str,
    base_extras: Mapping[str, Sequence[str]] | None = None,
    aggregated: Mapping[str, Sequence[str]] | None = None,
    _stack: MutableMapping[str, bool] | None = None,
) -> List[str]:
    """Resolve an extra into a deduplicated list of dependency strings."""

    base_extras = base_extras or BASE_EXTRAS
    aggregated = aggregated or AGGREGATED_EXTRAS
    stack = _stack or {}

    if name in stack:
        raise ValueError(f"Circular extra dependency detected: {' -> '.join(list(stack) + [name])}")
    stack[name] = True

    ordered: List[str] = []

    if name in base_extras:
        ordered.extend(base_extras[name])

    if name in aggregated:
        for child in aggregated[name]:
            ordered.extend(resolve_extra(child, base_extras, aggregated, stack))

    deduped = list(dict.fromkeys(ordered))

    stack.pop(name, None)
    return deduped


def get_base_extras() -> "OrderedDict[str, List[str]]":
    """Return a copy of the base extras mapping."""
    return OrderedDict((name, list(pkgs)) for name, pkgs in BASE_EXTRAS.items())


def get_aggregated_extras() -> "OrderedDict[str, List[str]]":
    """Return the computed aggregated extras mapping."""
    result: "OrderedDict[str, List[str]]" = OrderedDict()
    for name in AGGREGATED_EXTRAS.keys():
        result[name] = resolve_extra(name)
    return result


def validate_manifest() -> None:
    """Basic sanity checks for the manifest definitions."""
    for name, children in AGGREGATED_EXTRAS.items():
        for child in children:
            if child not in BASE_EXTRAS and child not in AGGREGATED_EXTRAS:
                raise ValueError(f"Aggregated extra '{name}' references unknown extra '{child}'")

    for name, packages in BASE_EXTRAS.items():
        if len(packages) != len(set(packages)):
            raise ValueError(f"Duplicate package detected in base extra '{name}'")


# Execute validations on import to catch manifest drift early.
validate_manifest()

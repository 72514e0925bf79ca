"""Project metadata shared by the runtime and the packaging files."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping


@dataclass(frozen=True)
class Author:
    name: str
    email: str | None = None


PROJECT_METADATA: Mapping[str, object] = {
    "name": "dd-sketch",
    "version": "1.0.0",
    "summary": "DDSketch relative-error quantile sketch (mergeable, bounded memory, zero deps)",
    "requires_python": ">=3.9",
    "license": {
        "text": "Apache-2.0",
    },
    "authors": [
        Author(name="dd-sketch contributors"),
    ],
    "keywords": [
        "quantiles",
        "percentiles",
        "sketch",
        "streaming",
        "ddsketch",
        "telemetry",
    ],
    "optional-dependencies": {
        "bench": [
            "numpy>=1.22",
            "pandas>=2.0",
            "pytest-benchmark>=4.0",
        ],
        "test": [
            "pytest>=7.4",
            "hypothesis>=6.88",
            "pytest-cov>=4.1",
        ],
    },
}

SUPPORTED_PYTHON_VERSIONS: List[str] = ["3.9", "3.10", "3.11", "3.12"]
SUPPORTED_PLATFORMS: List[str] = ["Linux", "macOS", "Windows"]

__version__ = PROJECT_METADATA["version"]  # type: ignore[index]

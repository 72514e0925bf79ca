"""Error types raised by :mod:`dd_sketch`."""

from __future__ import annotations

QUANTILE = "quantile"
MERGE = "merge"


class DDSketchError(Exception):
    """Base class for sketch errors; ``kind`` tells the variants apart."""

    kind: str = ""


class QuantileError(DDSketchError, ValueError):
    """Invalid quantile argument.

    Finite quantiles outside ``[0, 1]`` are not errors: they resolve to the
    exact minimum or maximum.
    """

    kind = QUANTILE

    def __init__(self, message: str = "invalid quantile") -> None:
        super().__init__(message)


class MergeError(DDSketchError, ValueError):
    """Raised when merging sketches built with different configurations."""

    kind = MERGE

    def __init__(self, message: str = "cannot merge sketches with different configs") -> None:
        super().__init__(message)

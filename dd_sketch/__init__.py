"""dd_sketch package public API."""
from ._metadata import __version__
from .config import Config
from .dd_sketch import DDSketch
from .exceptions import DDSketchError, MergeError, QuantileError
from .store import Store

__all__ = [
    "Config",
    "DDSketch",
    "DDSketchError",
    "MergeError",
    "QuantileError",
    "Store",
    "__version__",
]

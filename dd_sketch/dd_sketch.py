# DDSketch: relative-error quantile sketch (Python)
# - Logarithmic key mapping with a guaranteed relative accuracy (alpha)
# - Dense bucket store bounded by max_num_bins (collapses lowest keys)
# - Exact min / max / sum / count alongside approximate bucket counts
# - Merge across sketches sharing a configuration + versioned wire envelope
# Python 3.9+

from __future__ import annotations

import logging
import math
import struct
from typing import Iterable, List, Optional

from .config import Config
from .exceptions import MergeError, QuantileError
from .store import Store

log = logging.getLogger(__name__)

SERIAL_FORMAT_MAGIC = b"DDS1"
SERIAL_FORMAT_VERSION = 1

_HEADER = struct.Struct(">dIdQdddI")
_BIN = struct.Struct(">iQ")


class DDSketch:
    """
    Quantile sketch with relative-error guarantees.

    Paper:
      - Masson, Charles, Jee E. Rim, and Homin K. Lee. "DDSketch: A fast and
        fully-mergeable quantile sketch with relative-error guarantees."
        VLDB 2019.

    Strategy (high level):
      - Map each sample to the bucket ``key(v)`` of a logarithmic grid whose
        buckets span a factor ``gamma = (1+alpha)/(1-alpha)``.
      - Count samples per bucket in a :class:`~dd_sketch.store.Store`; when
        more than ``max_num_bins`` buckets would be needed the lowest buckets
        collapse, trading low-end resolution for bounded memory.
      - Answer ``quantile(q)`` with the representative value of the bucket
        holding rank ``floor(q*(n-1)) + 1``, clamped into ``[min, max]``.
        While the bucket has not collapsed the answer is within a relative
        error of ``alpha`` of the true order statistic.

    Min, max, sum and count are exact regardless of collapsing.

    Not thread-safe: callers serialize access to one sketch, or keep one
    sketch per writer and :meth:`merge` them.

    Public API:
      add(v), add_n(v, n), add_key_n(k, n), extend(vs), quantile(q),
      quantiles_at(qs), quantiles(m), median(), min(), max(), sum(), count(),
      length(), is_empty(), merge(other), copy(), to_bytes(), from_bytes()
    """

    __slots__ = ("_config", "_store", "_min", "_max", "_sum")

    def __init__(self, config: Optional[Config] = None):
        if config is None:
            config = Config.defaults()
        if not isinstance(config, Config):
            raise TypeError("config must be a Config")
        self._config = config
        self._store = Store(config.max_num_bins)
        self._min = math.inf
        self._max = -math.inf
        self._sum = 0.0

    def __repr__(self) -> str:
        return (
            f"DDSketch(config={self._config!r}, count={self.count()}, "
            f"min={self.min()}, max={self.max()}, sum={self.sum()})"
        )

    @property
    def config(self) -> Config:
        return self._config

    # ------------------------------- Ingestion ---------------------------------
    def add(self, v: float) -> None:
        """Add one sample."""
        self.add_n(v, 1)

    def add_n(self, v: float, n: int) -> None:
        """Add the sample ``v`` ``n`` times.

        Unlike the agent's sketch, NaN and infinite samples are rejected with
        ``ValueError`` instead of being bucketed.
        """
        xv = float(v)
        if math.isnan(xv) or math.isinf(xv):
            raise ValueError("v must be finite")
        weight = _check_weight(n)

        self._store.add(self._config.key(xv), weight)
        if xv < self._min:
            self._min = xv
        if xv > self._max:
            self._max = xv
        self._sum += xv * weight

    def add_key_n(self, k: int, n: int) -> None:
        """Add ``n`` samples directly to bucket ``k``.

        Only useful when the caller already holds bucket keys, e.g. rebuilding
        a sketch from pre-aggregated bucket data. The original values are not
        known, so min/max/sum are updated with the bucket's lower bound.
        """
        key = int(k)
        weight = _check_weight(n)
        lower_bound = self._config.lower_bound(key)

        self._store.add(key, weight)
        if lower_bound < self._min:
            self._min = lower_bound
        if lower_bound > self._max:
            self._max = lower_bound
        self._sum += lower_bound * weight

    def extend(self, vs: Iterable[float]) -> None:
        for v in vs:
            self.add(v)

    # -------------------------------- Queries ----------------------------------
    def quantile(self, q: float) -> Optional[float]:
        """Approximate value at quantile ``q``, or ``None`` if the sketch is empty.

        ``q <= 0`` returns the exact minimum and ``q >= 1`` the exact maximum.
        A NaN ``q`` resolves to the lowest bucket.
        """
        if self.is_empty():
            return None
        qf = float(q)
        if qf <= 0.0:
            return self._min
        if qf >= 1.0:
            return self._max

        rank = 1 if math.isnan(qf) else int(qf * (self.count() - 1)) + 1
        key = self._store.key_at_rank(rank)
        estimate = self._config.representative(key)

        # Bound by the observed extremes.
        if estimate < self._min:
            return self._min
        if estimate > self._max:
            return self._max
        return estimate

    def quantiles_at(self, probabilities: Iterable[float]) -> List[Optional[float]]:
        return [self.quantile(q) for q in probabilities]

    def quantiles(self, m: int) -> List[Optional[float]]:
        """Return the ``m - 1`` cut points splitting the data into ``m`` equal-mass parts.

        ``m == 1`` yields the median for convenience.
        """
        if m <= 0:
            raise QuantileError("m must be positive")
        if m == 1:
            return [self.median()]
        step = 1.0 / m
        return self.quantiles_at(step * i for i in range(1, m))

    def median(self) -> Optional[float]:
        return self.quantile(0.5)

    def min(self) -> Optional[float]:
        """Exact minimum, or ``None`` if the sketch is empty."""
        return None if self.is_empty() else self._min

    def max(self) -> Optional[float]:
        """Exact maximum, or ``None`` if the sketch is empty."""
        return None if self.is_empty() else self._max

    def sum(self) -> Optional[float]:
        """Exact sum, or ``None`` if the sketch is empty."""
        return None if self.is_empty() else self._sum

    def count(self) -> int:
        return self._store.count()

    def length(self) -> int:
        """Number of bins the store has materialized so far."""
        return self._store.length()

    def is_empty(self) -> bool:
        return self.count() == 0

    # ------------------------------- Combination -------------------------------
    def merge(self, other: "DDSketch") -> None:
        """Merge ``other`` into this sketch; ``other`` is left unchanged.

        Raises :class:`~dd_sketch.exceptions.MergeError` (with no effect on
        either sketch) when the configurations differ.
        """
        if not isinstance(other, DDSketch):
            raise TypeError("merge expects DDSketch")
        if self._config != other._config:
            log.debug("Refusing merge: %r != %r", self._config, other._config)
            raise MergeError()

        was_empty = self.is_empty()
        other_empty = other.is_empty()
        other_min, other_max, other_sum = other._min, other._max, other._sum

        self._store.merge(other._store)

        # An empty side must not leak its +/-inf sentinels.
        if was_empty:
            self._min = other_min
            self._max = other_max
        elif not other_empty:
            if other_min < self._min:
                self._min = other_min
            if other_max > self._max:
                self._max = other_max
        self._sum += other_sum

    def copy(self) -> "DDSketch":
        clone = DDSketch(self._config)
        clone._store = self._store.copy()
        clone._min = self._min
        clone._max = self._max
        clone._sum = self._sum
        return clone

    # ------------------------------ Serialization ------------------------------
    def to_bytes(self) -> bytes:
        """
        Serialize the sketch into the versioned ``DDS1`` binary envelope.

        The layout is:
          magic 'DDS1' (4B), alpha(double), max_num_bins(uint32),
          min_value(double), count(uint64), min(double), max(double),
          sum(double), nbins(uint32), then nbins x (key(int32), count(uint64))
          for the non-empty buckets in ascending key order.

        Configuration, bucket counts and the exact statistics are preserved,
        which is all a receiver needs to merge or query the sketch.
        """
        bins = list(self._store.items())
        out = bytearray()
        out += SERIAL_FORMAT_MAGIC
        out += _HEADER.pack(
            self._config.alpha,
            self._config.max_num_bins,
            self._config.min_value,
            self.count(),
            self._min,
            self._max,
            self._sum,
            len(bins),
        )
        for key, c in bins:
            out += _BIN.pack(key, c)
        return bytes(out)

    @classmethod
    def from_bytes(cls, b: bytes) -> "DDSketch":
        """Rehydrate a :class:`DDSketch` from :meth:`to_bytes` output."""
        mv = memoryview(b)
        if mv[:4].tobytes() != SERIAL_FORMAT_MAGIC:
            raise ValueError(
                "Unsupported serialization header. This reader only understands "
                f"{SERIAL_FORMAT_MAGIC!r}."
            )
        off = 4
        alpha, max_num_bins, min_value, count, vmin, vmax, vsum, nbins = _HEADER.unpack_from(mv, off)
        off += _HEADER.size
        if len(mv) != off + nbins * _BIN.size:
            raise ValueError("truncated or oversized payload")

        self = cls(Config(alpha, max_num_bins, min_value))
        for _ in range(nbins):
            key, c = _BIN.unpack_from(mv, off)
            off += _BIN.size
            self.add_key_n(key, c)
        if self.count() != count:
            raise ValueError("bucket counts do not add up to the recorded count")

        # Bucket lower bounds only approximate the statistics; restore them.
        self._min = vmin
        self._max = vmax
        self._sum = vsum
        return self


def _check_weight(n: int) -> int:
    if isinstance(n, int) and not isinstance(n, bool):
        if n < 1:
            raise ValueError("n must be >= 1")
        return n
    # Integral floats (e.g. NumPy scalars) are accepted too.
    wv = float(n)
    if math.isnan(wv) or math.isinf(wv):
        raise ValueError("n must be finite")
    rounded = int(round(wv))
    if abs(wv - rounded) > 1e-9:
        raise ValueError("n must be an integer")
    if rounded < 1:
        raise ValueError("n must be >= 1")
    return rounded

"""Logarithmic value-to-key mapping for :class:`~dd_sketch.DDSketch`.

A value ``v`` with ``|v| > min_value`` lands in bucket
``ceil(log_gamma(|v|)) + offset`` (negated for negative values); every value
inside a bucket lies within a factor ``gamma`` of its neighbours, which is
what bounds the relative error of the bucket's representative value by
``alpha``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

DEFAULT_MAX_BINS: int = 2048
DEFAULT_ALPHA: float = 0.01
DEFAULT_MIN_VALUE: float = 1.0e-9

# Parameters used by the Datadog Agent. Sketches built with these assign the
# same keys as the agent, so bucket data can be exchanged with it.
AGENT_DEFAULT_MAX_BINS: int = 4096
AGENT_DEFAULT_ALPHA: float = 1.0 / 128.0
AGENT_DEFAULT_MIN_VALUE: float = 1.0e-9

# Sentinel key for the unbounded top bucket.
MAX_KEY: int = 2**31 - 1


@dataclass(frozen=True)
class Config:
    """Immutable sketch parameters.

    Args:
        alpha: target relative accuracy, ``0 < alpha < 1``.
        max_num_bins: hard cap on materialized buckets. The store grows towards
            this limit in steps of 128 bins.
        min_value: smallest magnitude distinguished from zero.

    Two sketches can be merged only when their configs compare equal.
    """

    alpha: float = DEFAULT_ALPHA
    max_num_bins: int = DEFAULT_MAX_BINS
    min_value: float = DEFAULT_MIN_VALUE
    gamma: float = field(init=False)
    gamma_ln: float = field(init=False, repr=False)
    offset: int = field(init=False)

    def __post_init__(self) -> None:
        alpha = float(self.alpha)
        if math.isnan(alpha) or not (0.0 < alpha < 1.0):
            raise ValueError("alpha must be in (0, 1)")
        min_value = float(self.min_value)
        if math.isnan(min_value) or math.isinf(min_value) or min_value <= 0.0:
            raise ValueError("min_value must be positive and finite")
        bins = self.max_num_bins
        if not math.isfinite(bins) or int(bins) != bins or bins < 1:
            raise ValueError("max_num_bins must be a positive integer")

        mantissa = (2.0 * alpha) / (1.0 - alpha)
        gamma_ln = math.log1p(mantissa)
        object.__setattr__(self, "alpha", alpha)
        object.__setattr__(self, "min_value", min_value)
        object.__setattr__(self, "max_num_bins", int(self.max_num_bins))
        object.__setattr__(self, "gamma", 1.0 + mantissa)
        object.__setattr__(self, "gamma_ln", gamma_ln)
        # int() truncates toward zero; key 1 then starts right above min_value.
        object.__setattr__(self, "offset", 1 - int(math.log(min_value) / gamma_ln))

    # ------------------------------- Presets ----------------------------------
    @classmethod
    def defaults(cls) -> "Config":
        """General-purpose parameters (1% accuracy, 2048 bins)."""
        return cls(DEFAULT_ALPHA, DEFAULT_MAX_BINS, DEFAULT_MIN_VALUE)

    @classmethod
    def agent_defaults(cls) -> "Config":
        """Parameters matching the bucket assignment of the Datadog Agent.

        These differ slightly from the ones suggested by the DDSketch paper;
        use them when sketches are exchanged with the agent.
        """
        return cls(AGENT_DEFAULT_ALPHA, AGENT_DEFAULT_MAX_BINS, AGENT_DEFAULT_MIN_VALUE)

    # ------------------------------- Mapping ----------------------------------
    def key(self, v: float) -> int:
        if v > self.min_value:
            return self._magnitude_key(v)
        if v < -self.min_value:
            return -self._magnitude_key(-v)
        return 0

    def _magnitude_key(self, magnitude: float) -> int:
        return math.ceil(self.log_gamma(magnitude)) + self.offset

    def min_key(self) -> int:
        return self.key(self.min_value)

    def lower_bound(self, key: int) -> float:
        """Boundary value ``gamma**(key - offset)`` of bucket ``key`` (``+inf`` for :data:`MAX_KEY`)."""
        if key < 0:
            return -self.lower_bound(-key)
        if key == MAX_KEY:
            return math.inf
        if key == 0:
            return 0.0
        return self.pow_gamma(key - self.offset)

    def representative(self, key: int) -> float:
        """Point estimate reported for samples in bucket ``key``.

        This is the value whose relative distance to both bucket boundaries is
        equal, so any sample in the bucket is within ``alpha`` of it.
        """
        if key < 0:
            return -self.representative(-key)
        if key == 0:
            return 0.0
        return 2.0 * self.pow_gamma(key - self.offset) / (1.0 + self.gamma)

    def log_gamma(self, value: float) -> float:
        return math.log(value) / self.gamma_ln

    def pow_gamma(self, k: int) -> float:
        try:
            return math.exp(k * self.gamma_ln)
        except OverflowError:
            return math.inf

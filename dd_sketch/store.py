"""Capacity-bounded dense bucket store with lowest-key collapsing."""

from __future__ import annotations

import logging
from typing import Iterator, List, Tuple

log = logging.getLogger(__name__)

# The bin array grows in multiples of this many slots, up to the bin limit.
CHUNK_SIZE: int = 128


class Store:
    """
    Counts per integer key over a contiguous key interval.

    Layout:
      - ``_bins[i]`` holds the count of key ``i + _offset``.
      - Only keys in ``[_min_key, _max_key]`` may be non-zero; slots outside
        that interval are spare capacity used when the interval grows.
      - ``len(_bins)`` never exceeds ``bin_limit``.

    Collapsing:
      When covering a new key would need more than ``bin_limit`` slots, the
      lowest keys are folded into the lowest surviving bucket and ``_min_key``
      is pinned at ``_max_key - bin_limit + 1``. From then on any key below
      ``_min_key`` is counted in that bucket. Resolution is lost at the low
      end only, and never regained; counts are never dropped.
    """

    __slots__ = ("_bins", "_count", "_min_key", "_max_key", "_offset", "_bin_limit", "_is_collapsed")

    def __init__(self, bin_limit: int):
        if int(bin_limit) < 1:
            raise ValueError("bin_limit must be >= 1")
        self._bin_limit = int(bin_limit)
        self._bins: List[int] = []
        self._count = 0
        self._min_key = 0
        self._max_key = 0
        self._offset = 0
        self._is_collapsed = False

    def __repr__(self) -> str:
        return (
            f"Store(count={self._count}, keys=[{self._min_key}, {self._max_key}], "
            f"length={len(self._bins)}, bin_limit={self._bin_limit}, collapsed={self._is_collapsed})"
        )

    # ------------------------------- Public API --------------------------------
    def add(self, key: int, n: int = 1) -> None:
        if n < 1:
            raise ValueError("n must be >= 1")
        idx = self._index(key)
        self._bins[idx] += n
        self._count += n

    def key_at_rank(self, rank: int) -> int:
        """Smallest key whose cumulative count reaches the 1-indexed ``rank``."""
        if rank < 1:
            raise ValueError("rank must be >= 1")
        cum = 0
        for i, c in enumerate(self._bins):
            cum += c
            if cum >= rank:
                return i + self._offset
        return self._max_key

    def merge(self, other: "Store") -> None:
        """Fold ``other``'s counts into this store; ``other`` is not modified.

        The result keeps this store's ``bin_limit``, collapsing if ``other``
        spans more keys than it allows.
        """
        if not isinstance(other, Store):
            raise TypeError("Can only merge another Store")
        if other._count == 0:
            return
        if self._count == 0:
            if other._bin_limit <= self._bin_limit:
                self._copy_from(other)
                return
            # Materialize the top key first so the range below grows as in ``add``.
            self._extend_range(other._max_key, other._max_key)

        if other._min_key < self._min_key or other._max_key > self._max_key:
            self._extend_range(other._min_key, other._max_key)

        # Keys of ``other`` below our (possibly collapsed) floor go to bin 0.
        start = other._min_key - other._offset
        end = min(self._min_key, other._max_key + 1) - other._offset
        if end > start:
            self._bins[0] += sum(other._bins[start:end])
        else:
            end = start

        for key in range(end + other._offset, other._max_key + 1):
            self._bins[key - self._offset] += other._bins[key - other._offset]
        self._count += other._count

    def items(self) -> Iterator[Tuple[int, int]]:
        """Yield ``(key, count)`` for non-empty buckets in ascending key order."""
        for i, c in enumerate(self._bins):
            if c:
                yield i + self._offset, c

    def copy(self) -> "Store":
        clone = Store(self._bin_limit)
        clone._copy_from(self)
        return clone

    def count(self) -> int:
        return self._count

    def length(self) -> int:
        """Number of materialized bins (grows in chunks, bounded by ``bin_limit``)."""
        return len(self._bins)

    def is_empty(self) -> bool:
        return self._count == 0

    def is_collapsed(self) -> bool:
        return self._is_collapsed

    def min_key(self) -> int:
        return self._min_key

    def max_key(self) -> int:
        return self._max_key

    @property
    def bin_limit(self) -> int:
        return self._bin_limit

    # ------------------------------- Internals ---------------------------------
    def _copy_from(self, other: "Store") -> None:
        self._bins = list(other._bins)
        self._count = other._count
        self._min_key = other._min_key
        self._max_key = other._max_key
        self._offset = other._offset
        self._is_collapsed = other._is_collapsed

    def _index(self, key: int) -> int:
        if not self._bins:
            self._extend_range(key, key)
        elif key < self._min_key:
            if self._is_collapsed:
                return 0
            self._extend_range(key, key)
            if self._is_collapsed:
                return 0
        elif key > self._max_key:
            self._extend_range(key, key)
        return key - self._offset

    def _new_length(self, new_min_key: int, new_max_key: int) -> int:
        desired = new_max_key - new_min_key + 1
        chunks = -(-desired // CHUNK_SIZE)
        return min(CHUNK_SIZE * chunks, self._bin_limit)

    def _extend_range(self, key: int, second_key: int) -> None:
        if not self._bins:
            new_min_key, new_max_key = min(key, second_key), max(key, second_key)
            self._bins = [0] * self._new_length(new_min_key, new_max_key)
            self._offset = new_min_key
            self._adjust(new_min_key, new_max_key)
            return

        new_min_key = min(key, second_key, self._min_key)
        new_max_key = max(key, second_key, self._max_key)
        if new_min_key >= self._min_key and new_max_key < self._offset + len(self._bins):
            # Still inside the spare capacity above ``_max_key``.
            self._min_key = new_min_key
            self._max_key = new_max_key
            return

        new_length = self._new_length(new_min_key, new_max_key)
        if new_length > len(self._bins):
            self._bins.extend([0] * (new_length - len(self._bins)))
        self._adjust(new_min_key, new_max_key)

    def _adjust(self, new_min_key: int, new_max_key: int) -> None:
        """Fit ``[new_min_key, new_max_key]`` into the bins, collapsing if it cannot."""
        length = len(self._bins)
        if new_max_key - new_min_key + 1 <= length:
            self._center_bins(new_min_key, new_max_key)
            self._min_key = new_min_key
            self._max_key = new_max_key
            return

        new_min_key = new_max_key - length + 1
        if new_min_key >= self._max_key:
            # Every existing key falls below the new floor.
            self._bins = [0] * length
            self._bins[0] = self._count
            self._offset = new_min_key
            self._min_key = new_min_key
        else:
            shift = self._offset - new_min_key
            if shift < 0:
                start = self._min_key - self._offset
                end = new_min_key - self._offset
                collapsed = sum(self._bins[start:end])
                self._bins[start:end] = [0] * max(0, end - start)
                self._bins[end] += collapsed
            self._min_key = new_min_key
            self._shift_bins(shift)
        self._max_key = new_max_key

        if not self._is_collapsed:
            log.debug(
                "Store reached its limit of %d bins; collapsing keys below %d",
                self._bin_limit,
                new_min_key,
            )
        self._is_collapsed = True

    def _center_bins(self, new_min_key: int, new_max_key: int) -> None:
        middle_key = new_min_key + (new_max_key - new_min_key + 1) // 2
        self._shift_bins(self._offset + len(self._bins) // 2 - middle_key)

    def _shift_bins(self, shift: int) -> None:
        # Rotate right by ``shift`` (left when negative); the keys stay put.
        k = shift % len(self._bins)
        if k:
            self._bins = self._bins[-k:] + self._bins[:-k]
        self._offset -= shift

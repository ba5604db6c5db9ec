"""
Weighted discrete sampling by cumulative-weight inversion.

One implementation serves every weighted draw in the package:
    - points of SourceMultiplePositions
    - cells of the density-grid sources
    - sources of a SourceList

A uniform value u in [0, total) is compared against the running prefix
sums of the weights; the selected entry is the first one whose prefix sum
exceeds u. Entries with zero weight share the prefix sum of their
predecessor and can therefore never be selected.
"""

import threading

import numpy as np
import numba
from typing import Any, Iterable, List, Optional, Union

from emission_mc.core.errors import DegenerateWeightsError


RngLike = Union[None, int, np.random.Generator]

_thread_state = threading.local()


def get_rng(rng: RngLike = None) -> np.random.Generator:
    """
    Resolve the random generator used for a draw.

    Parameters:
        rng: A numpy Generator (returned as is), an integer seed (a new
             Generator is built from it) or None for the generator of the
             calling thread

    Returns:
        numpy.random.Generator
    """
    if isinstance(rng, np.random.Generator):
        return rng
    if rng is not None:
        return np.random.default_rng(rng)

    generator = getattr(_thread_state, 'rng', None)
    if generator is None:
        generator = np.random.default_rng()
        _thread_state.rng = generator
    return generator


def seed_default_rng(seed: Optional[int]) -> np.random.Generator:
    """Reseed the default generator of the calling thread."""
    _thread_state.rng = np.random.default_rng(seed)
    return _thread_state.rng


# ============================================================================
# Numba kernels
# ============================================================================

@numba.njit(cache=True)
def invert_cdf(cdf: np.ndarray, u: float) -> int:
    """
    Binary search for the first prefix sum strictly greater than u.

    Parameters:
        cdf: Non-decreasing prefix sums of the weights
        u: Uniform draw in [0, cdf[-1])

    Returns:
        Index of the selected entry
    """
    n = len(cdf)
    lo = 0
    hi = n
    while lo < hi:
        mid = (lo + hi) // 2
        if cdf[mid] > u:
            hi = mid
        else:
            lo = mid + 1

    if lo >= n:
        # u was rounded up to the total: take the last entry with weight
        lo = n - 1
        while lo > 0 and cdf[lo] == cdf[lo - 1]:
            lo -= 1

    return lo


@numba.njit(cache=True)
def invert_cdf_many(cdf: np.ndarray, u: np.ndarray) -> np.ndarray:
    """Apply invert_cdf to an array of uniform draws."""
    out = np.empty(len(u), dtype=np.int64)
    for i in range(len(u)):
        out[i] = invert_cdf(cdf, u[i])
    return out


def _check_weight(weight: float) -> float:
    weight = float(weight)
    if not np.isfinite(weight) or weight < 0.0:
        raise ValueError(f"Weight must be finite and >= 0, got {weight}")
    return weight


class CumulativeWeights:
    """
    Append-only weighted collection with inversion sampling.

    Example:
        weights = CumulativeWeights()
        weights.add('a', 0.25)
        weights.add('b', 0.75)
        item = weights.sample(rng)
    """

    def __init__(self):
        self._items: Optional[List[Any]] = []
        self._weights: List[float] = []
        self._prefix: List[float] = []
        self._cdf: Optional[np.ndarray] = None

    @classmethod
    def from_weights(cls, weights: Iterable[float]) -> 'CumulativeWeights':
        """
        Build an index-only instance from an array of weights.

        sample() then returns the index of the selected weight.

        Parameters:
            weights: Non-negative weights (flattened in C order)
        """
        array = np.asarray(weights, dtype=np.float64).ravel()
        if not np.all(np.isfinite(array)) or np.any(array < 0.0):
            raise ValueError("Weights must be finite and >= 0")

        instance = cls()
        instance._items = None
        instance._weights = array.tolist()
        instance._cdf = np.cumsum(array)
        instance._prefix = instance._cdf.tolist()
        return instance

    def add(self, item: Any, weight: float = 1.0):
        """
        Append an entry.

        Parameters:
            item: Object returned when this entry is selected
            weight: Relative selection weight (>= 0)
        """
        if self._items is None:
            raise TypeError("Cannot add items to an index-only CumulativeWeights")

        weight = _check_weight(weight)
        previous = self._prefix[-1] if self._prefix else 0.0
        self._items.append(item)
        self._weights.append(weight)
        self._prefix.append(previous + weight)
        self._cdf = None

    def __len__(self) -> int:
        return len(self._prefix)

    @property
    def total(self) -> float:
        """Sum of all weights."""
        return self._prefix[-1] if self._prefix else 0.0

    @property
    def items(self) -> List[Any]:
        if self._items is None:
            return list(range(len(self._prefix)))
        return list(self._items)

    @property
    def weights(self) -> np.ndarray:
        """Weights as added."""
        return np.array(self._weights, dtype=np.float64)

    @property
    def cdf(self) -> np.ndarray:
        """Prefix sums as a float64 array."""
        if self._cdf is None:
            self._cdf = np.array(self._prefix, dtype=np.float64)
        return self._cdf

    def _check_total(self):
        if not self.total > 0.0:
            raise DegenerateWeightsError(
                f"Cannot sample from {len(self)} entries with zero total weight"
            )

    def sample_index(self, rng: RngLike = None) -> int:
        """Draw one index with probability weight_i / total."""
        self._check_total()
        u = get_rng(rng).random() * self.total
        return int(invert_cdf(self.cdf, u))

    def sample_indices(self, n: int, rng: RngLike = None) -> np.ndarray:
        """Draw n indices with the same kernel as sample_index."""
        self._check_total()
        u = get_rng(rng).random(n) * self.total
        return invert_cdf_many(self.cdf, u)

    def sample(self, rng: RngLike = None) -> Any:
        """Draw one item (or index for index-only instances)."""
        index = self.sample_index(rng)
        if self._items is None:
            return index
        return self._items[index]

    def __repr__(self) -> str:
        return f"CumulativeWeights(n={len(self)}, total={self.total:g})"

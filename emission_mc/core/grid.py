"""
Regular scalar grid used as a density field by the grid sources.

Cell (ix, iy, iz) covers origin + index * spacing to
origin + (index + 1) * spacing on each axis.
"""

import numpy as np
from typing import Optional, Sequence, Tuple, Union


Triple = Union[float, int, Sequence[float]]


def _triple(value: Triple, dtype) -> np.ndarray:
    array = np.array(value, dtype=dtype).reshape(-1)
    if array.size == 1:
        array = np.repeat(array, 3)
    if array.shape != (3,):
        raise ValueError(f"Expected a scalar or 3 components, got {value!r}")
    return array


class ScalarGrid:
    """
    Lattice of scalar cell values with origin and per-axis spacing.

    Example:
        grid = ScalarGrid(origin=(0, 0, 0), counts=10, spacing=1.0)
        grid.set(1, 2, 3, 5.0)
        grid.get(1, 2, 3)
    """

    def __init__(self, origin: Sequence[float], counts: Triple, spacing: Triple,
                 values: Optional[np.ndarray] = None):
        """
        Initialize grid.

        Parameters:
            origin: Lower corner of cell (0, 0, 0)
            counts: Number of cells per axis (scalar or (nx, ny, nz))
            spacing: Cell size per axis (scalar or (dx, dy, dz))
            values: Optional initial cell values of shape (nx, ny, nz)
        """
        self.origin = _triple(origin, np.float64)
        self.counts = _triple(counts, np.int64)
        self.spacing = _triple(spacing, np.float64)

        if np.any(self.counts < 1):
            raise ValueError(f"Cell counts must be >= 1, got {self.counts.tolist()}")
        if np.any(self.spacing <= 0.0):
            raise ValueError(f"Spacing must be > 0, got {self.spacing.tolist()}")

        shape = tuple(int(n) for n in self.counts)
        if values is None:
            self._values = np.zeros(shape, dtype=np.float64)
        else:
            self._values = np.array(values, dtype=np.float64).reshape(shape)

    @classmethod
    def one_dimensional(cls, origin: Sequence[float], n_cells: int,
                        spacing: float,
                        values: Optional[np.ndarray] = None) -> 'ScalarGrid':
        """Build a grid of n_cells along x with a single cell in y and z."""
        return cls(origin, (n_cells, 1, 1), spacing, values)

    @property
    def values(self) -> np.ndarray:
        """Read-only view of the cell values."""
        view = self._values.view()
        view.flags.writeable = False
        return view

    @property
    def shape(self) -> Tuple[int, int, int]:
        return self._values.shape

    def get(self, ix: int, iy: int = 0, iz: int = 0) -> float:
        return float(self._values[ix, iy, iz])

    def set(self, ix: int, iy: int, iz: int, value: float):
        self._values[ix, iy, iz] = value

    def fill(self, value: float):
        self._values.fill(value)

    @property
    def lower(self) -> np.ndarray:
        """Lower corner of the grid volume."""
        return self.origin.copy()

    @property
    def upper(self) -> np.ndarray:
        """Upper corner of the grid volume."""
        return self.origin + self.counts * self.spacing

    def cell_bounds(self, ix: int, iy: int = 0, iz: int = 0) -> Tuple[np.ndarray, np.ndarray]:
        """Return (lower, upper) corners of cell (ix, iy, iz)."""
        index = np.array([ix, iy, iz], dtype=np.float64)
        low = self.origin + index * self.spacing
        return low, low + self.spacing

    def __repr__(self) -> str:
        nx, ny, nz = self.shape
        return (f"ScalarGrid({nx}x{ny}x{nz}, origin={self.origin.tolist()}, "
                f"spacing={self.spacing.tolist()})")

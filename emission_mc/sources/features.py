"""
Source features: single property-setting rules applied to a ParticleState.

Position features:
    SourcePosition, SourceMultiplePositions, SourceUniformBox,
    SourceUniformSphere, SourceUniformShell, SourceUniformCylinder,
    SourceDensityGrid, SourceDensityGrid1D

Other properties:
    SourceDirection, SourceIsotropicEmission, SourceFrequency,
    SourceUniformFrequency, SourceAmplitude

Every feature draws from the numpy Generator handed to prepare_particle
(or the thread default, see emission_mc.core.sampling.get_rng).
"""

import math
from abc import ABC, abstractmethod

import numpy as np
import numba
from typing import Sequence

from emission_mc.core.grid import ScalarGrid
from emission_mc.core.particle import ParticleState, as_vector
from emission_mc.core.sampling import CumulativeWeights, RngLike, get_rng


@numba.njit(cache=True)
def cell_position(flat_index: int, counts: np.ndarray, origin: np.ndarray,
                  spacing: np.ndarray, u: np.ndarray) -> np.ndarray:
    """
    Uniform position inside a grid cell given by its C-order flat index.

    Parameters:
        flat_index: Cell index in C order (iz fastest)
        counts: Cells per axis (nx, ny, nz)
        origin: Lower corner of cell (0, 0, 0)
        spacing: Cell size per axis
        u: Three uniform draws in [0, 1)

    Returns:
        Position [x, y, z]
    """
    ny = counts[1]
    nz = counts[2]
    ix = flat_index // (ny * nz)
    iy = (flat_index // nz) % ny
    iz = flat_index % nz

    pos = np.empty(3, dtype=np.float64)
    pos[0] = origin[0] + (ix + u[0]) * spacing[0]
    pos[1] = origin[1] + (iy + u[1]) * spacing[1]
    pos[2] = origin[2] + (iz + u[2]) * spacing[2]
    return pos


def random_unit_vector(rng: np.random.Generator) -> np.ndarray:
    """Isotropic unit vector: cos(theta) uniform in [-1, 1], phi in [0, 2pi)."""
    mu = 2.0 * rng.random() - 1.0
    phi = 2.0 * math.pi * rng.random()
    sin_theta = math.sqrt(max(0.0, 1.0 - mu * mu))
    return np.array([sin_theta * math.cos(phi), sin_theta * math.sin(phi), mu])


def _format_vector(vector: np.ndarray) -> str:
    return "(" + ", ".join(f"{v:g}" for v in vector) + ")"


class SourceFeature(ABC):
    """Sets one property of a particle state."""

    @abstractmethod
    def prepare_particle(self, state: ParticleState, rng: RngLike = None):
        """Apply this feature to state in place."""

    def get_description(self) -> str:
        return type(self).__name__

    def __repr__(self) -> str:
        return self.get_description()


# ============================================================================
# Position features
# ============================================================================

class SourcePosition(SourceFeature):
    """Fixed emission point."""

    def __init__(self, position: Sequence[float]):
        self.position = as_vector(position)

    def prepare_particle(self, state: ParticleState, rng: RngLike = None):
        state.position = self.position

    def get_description(self) -> str:
        return f"SourcePosition: {_format_vector(self.position)}"


class SourceMultiplePositions(SourceFeature):
    """
    Discrete set of emission points with relative weights.

    The selected point is used exactly, without jitter.
    """

    def __init__(self):
        self._points = CumulativeWeights()

    def add(self, position: Sequence[float], weight: float = 1.0):
        """
        Add an emission point.

        Parameters:
            position: (x, y, z) of the point
            weight: Relative probability of the point (>= 0)
        """
        self._points.add(as_vector(position), weight)

    def __len__(self) -> int:
        return len(self._points)

    @property
    def total_weight(self) -> float:
        return self._points.total

    def prepare_particle(self, state: ParticleState, rng: RngLike = None):
        state.position = self._points.sample(rng)

    def get_description(self) -> str:
        return f"SourceMultiplePositions: {len(self)} positions"


class SourceUniformBox(SourceFeature):
    """Uniform distribution in the box [origin, origin + size)."""

    def __init__(self, origin: Sequence[float], size: Sequence[float]):
        self.origin = as_vector(origin)
        self.size = as_vector(size)
        if np.any(self.size < 0.0):
            raise ValueError(f"Box size must be >= 0, got {self.size.tolist()}")

    def prepare_particle(self, state: ParticleState, rng: RngLike = None):
        u = get_rng(rng).random(3)
        state.position = self.origin + u * self.size

    def get_description(self) -> str:
        return (f"SourceUniformBox: origin {_format_vector(self.origin)}, "
                f"size {_format_vector(self.size)}")


class SourceUniformSphere(SourceFeature):
    """Uniform distribution by volume inside a ball."""

    def __init__(self, center: Sequence[float], radius: float):
        self.center = as_vector(center)
        self.radius = float(radius)
        if self.radius < 0.0:
            raise ValueError(f"Radius must be >= 0, got {self.radius}")

    def prepare_particle(self, state: ParticleState, rng: RngLike = None):
        rng = get_rng(rng)
        # P(r < x) ~ x^3 inside the ball
        r = self.radius * rng.random() ** (1.0 / 3.0)
        state.position = self.center + r * random_unit_vector(rng)

    def get_description(self) -> str:
        return (f"SourceUniformSphere: center {_format_vector(self.center)}, "
                f"radius {self.radius:g}")


class SourceUniformShell(SourceFeature):
    """Uniform distribution on the surface of a sphere."""

    def __init__(self, center: Sequence[float], radius: float):
        self.center = as_vector(center)
        self.radius = float(radius)
        if self.radius < 0.0:
            raise ValueError(f"Radius must be >= 0, got {self.radius}")

    def prepare_particle(self, state: ParticleState, rng: RngLike = None):
        state.position = self.center + self.radius * random_unit_vector(get_rng(rng))

    def get_description(self) -> str:
        return (f"SourceUniformShell: center {_format_vector(self.center)}, "
                f"radius {self.radius:g}")


class SourceUniformCylinder(SourceFeature):
    """
    Uniform distribution inside a z-aligned cylinder around center.

    x, y are area-uniform in the disk (r = R * sqrt(u)), z is uniform in
    [-height/2, height/2].
    """

    def __init__(self, center: Sequence[float], height: float, radius: float):
        self.center = as_vector(center)
        self.height = float(height)
        self.radius = float(radius)
        if self.height < 0.0 or self.radius < 0.0:
            raise ValueError("Cylinder height and radius must be >= 0")

    def prepare_particle(self, state: ParticleState, rng: RngLike = None):
        rng = get_rng(rng)
        r = self.radius * math.sqrt(rng.random())
        phi = 2.0 * math.pi * rng.random()
        z = self.height * (rng.random() - 0.5)
        offset = np.array([r * math.cos(phi), r * math.sin(phi), z])
        state.position = self.center + offset

    def get_description(self) -> str:
        return (f"SourceUniformCylinder: center {_format_vector(self.center)}, "
                f"height {self.height:g}, radius {self.radius:g}")


class SourceDensityGrid(SourceFeature):
    """
    Positions distributed according to the cell values of a 3D grid.

    A cell is chosen with probability value / sum(values); the position is
    then uniform inside that cell. The cell weights are read once, at
    construction.
    """

    def __init__(self, grid: ScalarGrid):
        self.grid = grid
        self._cells = CumulativeWeights.from_weights(grid.values)
        self._counts = np.array(grid.shape, dtype=np.int64)

    @property
    def total_weight(self) -> float:
        return self._cells.total

    def prepare_particle(self, state: ParticleState, rng: RngLike = None):
        rng = get_rng(rng)
        index = self._cells.sample_index(rng)
        state.position = cell_position(index, self._counts, self.grid.origin,
                                       self.grid.spacing, rng.random(3))

    def get_description(self) -> str:
        return f"SourceDensityGrid: {self.grid}"


class SourceDensityGrid1D(SourceFeature):
    """
    Positions along x distributed according to a one-dimensional grid.

    The grid must have a single cell in y and z; y and z of the produced
    position are those of the grid origin.
    """

    def __init__(self, grid: ScalarGrid):
        nx, ny, nz = grid.shape
        if ny != 1 or nz != 1:
            raise ValueError(
                f"SourceDensityGrid1D needs a grid of shape (n, 1, 1), got {grid.shape}"
            )
        self.grid = grid
        self._cells = CumulativeWeights.from_weights(grid.values[:, 0, 0])

    @property
    def total_weight(self) -> float:
        return self._cells.total

    def prepare_particle(self, state: ParticleState, rng: RngLike = None):
        rng = get_rng(rng)
        index = self._cells.sample_index(rng)
        origin = self.grid.origin
        x = origin[0] + (index + rng.random()) * self.grid.spacing[0]
        state.position = (x, origin[1], origin[2])

    def get_description(self) -> str:
        return f"SourceDensityGrid1D: {self.grid}"


# ============================================================================
# Direction, frequency and amplitude features
# ============================================================================

class SourceDirection(SourceFeature):
    """Fixed emission direction."""

    def __init__(self, direction: Sequence[float] = (-1.0, 0.0, 0.0)):
        direction = as_vector(direction)
        norm = np.linalg.norm(direction)
        if norm == 0.0:
            raise ValueError("Direction must be a non-zero vector")
        self.direction = direction / norm

    def prepare_particle(self, state: ParticleState, rng: RngLike = None):
        state.direction = self.direction

    def get_description(self) -> str:
        return f"SourceDirection: {_format_vector(self.direction)}"


class SourceIsotropicEmission(SourceFeature):
    """Isotropic emission direction."""

    def prepare_particle(self, state: ParticleState, rng: RngLike = None):
        state.direction = random_unit_vector(get_rng(rng))


class SourceFrequency(SourceFeature):
    """Fixed emission frequency."""

    def __init__(self, frequency: float):
        self.frequency = float(frequency)

    def prepare_particle(self, state: ParticleState, rng: RngLike = None):
        state.frequency = self.frequency

    def get_description(self) -> str:
        return f"SourceFrequency: {self.frequency:g}"


class SourceUniformFrequency(SourceFeature):
    """Frequency uniform in [fmin, fmax)."""

    def __init__(self, fmin: float, fmax: float):
        if fmax < fmin:
            raise ValueError(f"fmax ({fmax}) must be >= fmin ({fmin})")
        self.fmin = float(fmin)
        self.fmax = float(fmax)

    def prepare_particle(self, state: ParticleState, rng: RngLike = None):
        state.frequency = self.fmin + (self.fmax - self.fmin) * get_rng(rng).random()

    def get_description(self) -> str:
        return f"SourceUniformFrequency: [{self.fmin:g}, {self.fmax:g})"


class SourceAmplitude(SourceFeature):
    """Fixed emission amplitude."""

    def __init__(self, amplitude: float):
        self.amplitude = float(amplitude)

    def prepare_particle(self, state: ParticleState, rng: RngLike = None):
        state.amplitude = self.amplitude

    def get_description(self) -> str:
        return f"SourceAmplitude: {self.amplitude:g}"

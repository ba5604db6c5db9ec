"""
Particle state records produced by the sources.

ParticleState holds the emitted properties of one particle, Candidate
bundles the created/previous/current snapshots handed to the propagation
code, and ParticleArray packs many created states into a NumPy structured
array for vectorised consumers.
"""

import itertools

import numpy as np
from typing import Iterable, Optional, Sequence


# Structured dtype for batches of created states
PARTICLE_DTYPE = np.dtype([
    ('position', np.float64, 3),      # x, y, z
    ('direction', np.float64, 3),     # unit vector
    ('frequency', np.float64),        # emission frequency
    ('amplitude', np.float64),        # field amplitude
    ('weight', np.float64),           # statistical weight
    ('active', np.bool_)              # is candidate still propagating?
])

_serial_numbers = itertools.count(1)


def as_vector(value: Sequence[float]) -> np.ndarray:
    vector = np.array(value, dtype=np.float64).reshape(-1)
    if vector.shape != (3,):
        raise ValueError(f"Expected a 3-component vector, got shape {vector.shape}")
    return vector


class ParticleState:
    """Emitted properties of a single particle."""

    def __init__(self, position: Sequence[float] = (0.0, 0.0, 0.0),
                 direction: Sequence[float] = (-1.0, 0.0, 0.0),
                 frequency: float = 0.0, amplitude: float = 1.0):
        """
        Initialize a particle state.

        Parameters:
            position: (x, y, z) position
            direction: (dx, dy, dz) direction (normalized internally)
            frequency: Frequency of the emitted wave
            amplitude: Amplitude of the emitted wave
        """
        self._position = np.zeros(3)
        self._direction = np.array([-1.0, 0.0, 0.0])
        self.position = position
        self.direction = direction
        self.frequency = float(frequency)
        self.amplitude = float(amplitude)

    @property
    def position(self) -> np.ndarray:
        return self._position

    @position.setter
    def position(self, value: Sequence[float]):
        self._position = as_vector(value)

    @property
    def direction(self) -> np.ndarray:
        return self._direction

    @direction.setter
    def direction(self, value: Sequence[float]):
        vector = as_vector(value)
        norm = np.linalg.norm(vector)
        if norm == 0.0:
            raise ValueError("Direction must be a non-zero vector")
        self._direction = vector / norm

    def copy(self) -> 'ParticleState':
        """Return an independent snapshot of this state."""
        state = ParticleState.__new__(ParticleState)
        state._position = self._position.copy()
        state._direction = self._direction.copy()
        state.frequency = self.frequency
        state.amplitude = self.amplitude
        return state

    def __eq__(self, other) -> bool:
        if not isinstance(other, ParticleState):
            return NotImplemented
        return (np.array_equal(self._position, other._position)
                and np.array_equal(self._direction, other._direction)
                and self.frequency == other.frequency
                and self.amplitude == other.amplitude)

    def to_structured_array(self, weight: float = 1.0,
                            active: bool = True) -> np.ndarray:
        """Convert to structured array format."""
        particle_array = np.zeros(1, dtype=PARTICLE_DTYPE)
        particle_array['position'][0] = self._position
        particle_array['direction'][0] = self._direction
        particle_array['frequency'][0] = self.frequency
        particle_array['amplitude'][0] = self.amplitude
        particle_array['weight'][0] = weight
        particle_array['active'][0] = active
        return particle_array

    def __repr__(self) -> str:
        x, y, z = self._position
        return (f"ParticleState(position=({x:g}, {y:g}, {z:g}), "
                f"f={self.frequency:g}, A={self.amplitude:g})")


class Candidate:
    """
    One simulated particle event.

    created holds the state at emission; previous and current start out as
    copies of it and are advanced by the propagation code.
    """

    def __init__(self, state: Optional[ParticleState] = None):
        """
        Initialize a candidate.

        Parameters:
            state: Initial state copied into created, previous and current
                   (a default ParticleState if None)
        """
        if state is None:
            state = ParticleState()

        self.created = state.copy()
        self.previous = state.copy()
        self.current = state.copy()

        self.weight = 1.0
        self.trajectory_length = 0.0
        self.active = True
        self.serial_number = next(_serial_numbers)

    @classmethod
    def from_state(cls, state: ParticleState) -> 'Candidate':
        return cls(state)

    def __repr__(self) -> str:
        return f"Candidate(#{self.serial_number}, created={self.created})"


class ParticleArray:
    """Batch of created states in a structured array."""

    def __init__(self, n_particles: int):
        """
        Initialize particle array.

        Parameters:
            n_particles: Number of particles to allocate
        """
        self.particles = np.zeros(n_particles, dtype=PARTICLE_DTYPE)
        self.particles['direction'][:, 0] = -1.0
        self.particles['amplitude'] = 1.0
        self.particles['weight'] = 1.0
        self.n_particles = n_particles

    @classmethod
    def from_candidates(cls, candidates: Iterable[Candidate]) -> 'ParticleArray':
        """Pack the created states of candidates into a ParticleArray."""
        candidates = list(candidates)
        batch = cls(len(candidates))
        for i, candidate in enumerate(candidates):
            batch.particles[i] = candidate.created.to_structured_array(
                weight=candidate.weight, active=candidate.active
            )[0]
        return batch

    @property
    def n_active(self) -> int:
        """Get number of active particles."""
        return int(np.sum(self.particles['active']))

    def get_statistics(self) -> dict:
        """Get statistics about particle array."""
        positions = self.particles['position']
        frequencies = self.particles['frequency']
        empty = self.n_particles == 0

        return {
            'n_total': self.n_particles,
            'n_active': self.n_active,
            'mean_position': np.zeros(3) if empty else positions.mean(axis=0),
            'min_position': np.zeros(3) if empty else positions.min(axis=0),
            'max_position': np.zeros(3) if empty else positions.max(axis=0),
            'mean_frequency': 0.0 if empty else float(np.mean(frequencies)),
        }

    def __repr__(self) -> str:
        stats = self.get_statistics()
        return (f"ParticleArray(n={stats['n_total']}, "
                f"active={stats['n_active']}, "
                f"<f>={stats['mean_frequency']:.3g})")

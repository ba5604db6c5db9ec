"""Core module: Particle state, grids and weighted sampling."""

from emission_mc.core.particle import ParticleState, Candidate, ParticleArray
from emission_mc.core.grid import ScalarGrid
from emission_mc.core.sampling import CumulativeWeights

__all__ = ["ParticleState", "Candidate", "ParticleArray", "ScalarGrid", "CumulativeWeights"]

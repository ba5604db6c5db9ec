"""
EMISSION_MC: Particle source sampling for Monte Carlo propagation

Generates the initial state of simulated particles by combining spatial
distributions with weighted ensembles of emission sources.

Modules:
    core: Particle state, candidates, scalar grids, weighted sampling
    sources: Source features, composite sources, source lists, YAML config
"""

__version__ = "0.1.0"
__author__ = "EMISSION_MC developers"

from emission_mc.core.errors import DegenerateWeightsError, NoSourceError
from emission_mc.core.grid import ScalarGrid
from emission_mc.core.particle import Candidate, ParticleArray, ParticleState
from emission_mc.core.sampling import CumulativeWeights, get_rng, seed_default_rng
from emission_mc.sources.features import (
    SourceAmplitude,
    SourceDensityGrid,
    SourceDensityGrid1D,
    SourceDirection,
    SourceFeature,
    SourceFrequency,
    SourceIsotropicEmission,
    SourceMultiplePositions,
    SourcePosition,
    SourceUniformBox,
    SourceUniformCylinder,
    SourceUniformFrequency,
    SourceUniformShell,
    SourceUniformSphere,
)
from emission_mc.sources.source import Source, SourceList, generate_candidates
from emission_mc.sources.config import load_source_list

__all__ = [
    "ParticleState",
    "Candidate",
    "ParticleArray",
    "ScalarGrid",
    "CumulativeWeights",
    "get_rng",
    "seed_default_rng",
    "NoSourceError",
    "DegenerateWeightsError",
    "SourceFeature",
    "SourcePosition",
    "SourceMultiplePositions",
    "SourceUniformBox",
    "SourceUniformSphere",
    "SourceUniformShell",
    "SourceUniformCylinder",
    "SourceDensityGrid",
    "SourceDensityGrid1D",
    "SourceDirection",
    "SourceIsotropicEmission",
    "SourceFrequency",
    "SourceUniformFrequency",
    "SourceAmplitude",
    "Source",
    "SourceList",
    "generate_candidates",
    "load_source_list",
]

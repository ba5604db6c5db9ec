"""
Composite sources and weighted source lists.

A Source applies its features in insertion order to populate one
ParticleState; a SourceList picks one Source per candidate with
probability proportional to its weight (luminosity).
"""

from typing import List, Tuple, Union

from tqdm import tqdm

from emission_mc.core.errors import NoSourceError
from emission_mc.core.particle import Candidate, ParticleState
from emission_mc.core.sampling import CumulativeWeights, RngLike, get_rng
from emission_mc.sources.features import SourceFeature


class Source:
    """
    Ordered list of source features.

    Later features overwrite properties set by earlier ones.

    Example:
        source = Source()
        source.add(SourceUniformSphere((0, 0, 0), 10.0))
        source.add(SourceFrequency(1e9))
        candidate = source.prepare_candidate(rng)
    """

    def __init__(self):
        self.features: List[SourceFeature] = []

    def add(self, feature: SourceFeature):
        """Append a feature."""
        if not isinstance(feature, SourceFeature):
            raise TypeError(f"Expected a SourceFeature, got {type(feature).__name__}")
        self.features.append(feature)

    def prepare_particle(self, state: ParticleState, rng: RngLike = None):
        """
        Apply all features to state.

        Parameters:
            state: Particle state, modified in place
            rng: Random generator shared by all features of this draw
        """
        rng = get_rng(rng)
        for feature in self.features:
            feature.prepare_particle(state, rng)

    def prepare_candidate(self, rng: RngLike = None) -> Candidate:
        """Create a candidate whose created, previous and current states are equal."""
        state = ParticleState()
        self.prepare_particle(state, rng)
        return Candidate(state)

    def get_description(self) -> str:
        lines = ["Source"]
        lines.extend(f"  {feature.get_description()}" for feature in self.features)
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.features)

    def __repr__(self) -> str:
        return f"Source(n_features={len(self.features)})"


class SourceList:
    """
    Weighted collection of sources.

    Sources may appear in several lists (or several times in one list);
    they are only read while sampling.
    """

    def __init__(self):
        self._sources = CumulativeWeights()

    def add(self, source: Source, weight: float = 1.0):
        """
        Add a source.

        Parameters:
            source: Source to draw candidates from
            weight: Luminosity of the source (>= 0, 0 makes it unreachable)
        """
        self._sources.add(source, weight)

    def __len__(self) -> int:
        return len(self._sources)

    @property
    def total_weight(self) -> float:
        return self._sources.total

    @property
    def entries(self) -> List[Tuple[Source, float]]:
        """(source, weight) pairs in insertion order."""
        return list(zip(self._sources.items, self._sources.weights.tolist()))

    def select_source(self, rng: RngLike = None) -> Source:
        """Draw one source with probability weight / total_weight."""
        if len(self._sources) == 0:
            raise NoSourceError("No source in source list")
        return self._sources.sample(rng)

    def prepare_particle(self, state: ParticleState, rng: RngLike = None):
        rng = get_rng(rng)
        self.select_source(rng).prepare_particle(state, rng)

    def get_candidate(self, rng: RngLike = None) -> Candidate:
        """
        Draw a source and create a candidate from it.

        Raises:
            NoSourceError: the list is empty
            DegenerateWeightsError: all weights are zero
        """
        rng = get_rng(rng)
        return self.select_source(rng).prepare_candidate(rng)

    def get_description(self) -> str:
        lines = [f"SourceList: {len(self)} sources, total weight {self.total_weight:g}"]
        for source, weight in self.entries:
            lines.append(f"  weight {weight:g}")
            lines.extend(f"  {line}" for line in source.get_description().splitlines())
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"SourceList(n={len(self)}, total_weight={self.total_weight:g})"


def generate_candidates(source: Union[Source, SourceList], n: int,
                        rng: RngLike = None, progress: bool = False,
                        verbose: bool = False) -> List[Candidate]:
    """
    Draw n candidates.

    Parameters:
        source: Source or SourceList to draw from
        n: Number of candidates
        rng: Random generator (seed or Generator) used for all draws
        progress: Show a tqdm progress bar
        verbose: Print a summary when done

    Returns:
        List of new candidates
    """
    rng = get_rng(rng)

    if isinstance(source, SourceList):
        draw = source.get_candidate
    else:
        draw = source.prepare_candidate

    candidates = [draw(rng) for _ in tqdm(range(n), desc="Sampling candidates",
                                          disable=not progress)]

    if verbose:
        print(f"\nGenerated {len(candidates)} candidates")
        if isinstance(source, SourceList):
            print(f"  Sources: {len(source)}")
            print(f"  Total weight: {source.total_weight:g}")

    return candidates


# ============================================================================
# Example Usage
# ============================================================================

if __name__ == "__main__":
    import numpy as np

    from emission_mc.sources.features import SourceFrequency, SourceUniformSphere

    print("\n" + "="*70)
    print("Source List Test")
    print("="*70)

    bright = Source()
    bright.add(SourceUniformSphere((0, 0, 0), 10.0))
    bright.add(SourceFrequency(100.0))

    faint = Source()
    faint.add(SourceUniformSphere((50, 0, 0), 5.0))
    faint.add(SourceFrequency(0.0))

    source_list = SourceList()
    source_list.add(bright, 80)
    source_list.add(faint, 20)
    print(f"\n{source_list.get_description()}")

    candidates = generate_candidates(source_list, 1000, rng=1, verbose=True)
    mean_frequency = np.mean([c.created.frequency for c in candidates])

    print(f"\nMean frequency: {mean_frequency:.2f} (expected 80)")
    print("\n" + "="*70)
    print("Test complete!")
    print("="*70 + "\n")

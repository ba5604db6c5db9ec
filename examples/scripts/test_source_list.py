"""
Tests for composite sources, source lists and YAML configuration.
"""

import sys
from pathlib import Path

import numpy as np
import pytest
import yaml

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from emission_mc.core.errors import DegenerateWeightsError, NoSourceError
from emission_mc.core.particle import Candidate, ParticleArray, ParticleState
from emission_mc.sources.config import build_feature, build_source_list, load_source_list
from emission_mc.sources.features import (
    SourceDensityGrid,
    SourceFrequency,
    SourceMultiplePositions,
    SourcePosition,
    SourceUniformSphere,
)
from emission_mc.sources.source import Source, SourceList, generate_candidates


@pytest.fixture
def rng():
    return np.random.default_rng(8675309)


def frequency_source(frequency):
    source = Source()
    source.add(SourceFrequency(frequency))
    return source


# ============================================================================
# Source
# ============================================================================

def test_source_applies_features_in_order(rng):
    source = Source()
    source.add(SourcePosition((1, 0, 0)))
    source.add(SourceFrequency(42.0))
    source.add(SourcePosition((2, 0, 0)))

    state = ParticleState()
    source.prepare_particle(state, rng)

    np.testing.assert_array_equal(state.position, (2, 0, 0))
    assert state.frequency == 42.0
    assert len(source) == 3


def test_source_rejects_non_feature():
    with pytest.raises(TypeError):
        Source().add("not a feature")


def test_failing_feature_stops_sequence(rng):
    source = Source()
    source.add(SourceMultiplePositions())    # empty: cannot be sampled
    source.add(SourceFrequency(7.0))

    state = ParticleState()
    with pytest.raises(DegenerateWeightsError):
        source.prepare_particle(state, rng)

    assert state.frequency == 0.0


# ============================================================================
# SourceList
# ============================================================================

def test_source_list_single_source():
    source = Source()
    source.add(SourcePosition((10, 0, 0)))
    source_list = SourceList()
    source_list.add(source)

    candidate = source_list.get_candidate()

    np.testing.assert_array_equal(candidate.created.position, (10, 0, 0))
    np.testing.assert_array_equal(candidate.previous.position, (10, 0, 0))
    np.testing.assert_array_equal(candidate.current.position, (10, 0, 0))


def test_candidate_states_are_independent(rng):
    source = Source()
    source.add(SourcePosition((10, 0, 0)))

    candidate = source.prepare_candidate(rng)
    candidate.current.position = (11, 0, 0)

    np.testing.assert_array_equal(candidate.created.position, (10, 0, 0))
    np.testing.assert_array_equal(candidate.previous.position, (10, 0, 0))
    assert candidate.created == candidate.previous


def test_no_source():
    with pytest.raises(NoSourceError):
        SourceList().get_candidate()


def test_no_source_is_runtime_error():
    with pytest.raises(RuntimeError):
        SourceList().get_candidate()


def test_luminosity(rng):
    source_list = SourceList()
    source_list.add(frequency_source(100.0), 80)
    source_list.add(frequency_source(0.0), 20)

    mean_frequency = np.mean([source_list.get_candidate(rng).created.frequency
                              for _ in range(1000)])

    print(f"  Mean frequency: {mean_frequency:.2f} (expected 80)")
    assert mean_frequency == pytest.approx(80.0, abs=4.0)


def test_zero_weight_source_unreachable(rng):
    source_list = SourceList()
    source_list.add(frequency_source(1.0), 1.0)
    source_list.add(frequency_source(2.0), 0.0)

    frequencies = {source_list.get_candidate(rng).created.frequency for _ in range(500)}

    assert frequencies == {1.0}


def test_all_zero_weights_raise(rng):
    source_list = SourceList()
    source_list.add(frequency_source(1.0), 0.0)

    with pytest.raises(DegenerateWeightsError):
        source_list.get_candidate(rng)


def test_negative_weight_rejected():
    with pytest.raises(ValueError):
        SourceList().add(Source(), -1.0)


def test_shared_source(rng):
    """One source may back several entries."""
    shared = frequency_source(3.0)
    source_list = SourceList()
    source_list.add(shared, 1.0)
    source_list.add(shared, 2.0)

    assert source_list.total_weight == 3.0
    assert [weight for _, weight in source_list.entries] == [1.0, 2.0]
    assert source_list.get_candidate(rng).created.frequency == 3.0


def test_entries_keep_exact_weights():
    source_list = SourceList()
    source_list.add(Source(), 0.1)
    source_list.add(Source(), 0.2)

    assert [weight for _, weight in source_list.entries] == [0.1, 0.2]


def test_reproducible_with_seed():
    source = Source()
    source.add(SourceUniformSphere((0, 0, 0), 1.0))
    source_list = SourceList()
    source_list.add(source)

    first = [c.created.position for c in generate_candidates(source_list, 20, rng=11)]
    second = [c.created.position for c in generate_candidates(source_list, 20, rng=11)]

    np.testing.assert_array_equal(first, second)


def test_generate_candidates(capsys):
    source_list = SourceList()
    source_list.add(frequency_source(5.0), 2.0)

    candidates = generate_candidates(source_list, 50, rng=1, verbose=True)

    assert len(candidates) == 50
    assert all(isinstance(c, Candidate) for c in candidates)
    assert len({c.serial_number for c in candidates}) == 50
    assert "Generated 50 candidates" in capsys.readouterr().out


def test_particle_array_from_candidates(rng):
    source = Source()
    source.add(SourcePosition((1, 2, 3)))
    source.add(SourceFrequency(9.0))

    batch = ParticleArray.from_candidates(generate_candidates(source, 10, rng=rng))
    stats = batch.get_statistics()

    assert batch.n_particles == 10
    assert batch.n_active == 10
    np.testing.assert_array_equal(stats['mean_position'], (1, 2, 3))
    assert stats['mean_frequency'] == 9.0


def test_description():
    source_list = SourceList()
    source_list.add(frequency_source(5.0), 2.0)

    description = source_list.get_description()

    assert "SourceList: 1 sources" in description
    assert "SourceFrequency: 5" in description


# ============================================================================
# Configuration
# ============================================================================

def test_build_source_list_from_dict(rng):
    spec = {
        'sources': [
            {'weight': 80, 'features': [{'type': 'position', 'position': [10, 0, 0]},
                                        {'type': 'frequency', 'frequency': 100}]},
            {'weight': 20, 'features': [{'type': 'frequency', 'frequency': 0}]},
        ]
    }
    source_list = build_source_list(spec)

    assert len(source_list) == 2
    assert source_list.total_weight == 100.0
    mean_frequency = np.mean([source_list.get_candidate(rng).created.frequency
                              for _ in range(1000)])
    assert mean_frequency == pytest.approx(80.0, abs=4.0)


def test_build_multiple_positions(rng):
    feature = build_feature({
        'type': 'multiple_positions',
        'positions': [{'position': [1, 0, 0], 'weight': 0.0},
                      [2, 0, 0]],
    })
    state = ParticleState()
    feature.prepare_particle(state, rng)

    np.testing.assert_array_equal(state.position, (2, 0, 0))


def test_multiple_positions_entry_without_position():
    with pytest.raises(ValueError, match="position"):
        build_feature({'type': 'multiple_positions',
                       'positions': [{'weight': 2.0}]})


def test_feature_description_must_be_mapping():
    with pytest.raises(ValueError, match="mapping"):
        build_feature('uniform_sphere')
    with pytest.raises(ValueError, match="mapping"):
        build_source_list({'sources': [{'features': ['frequency']}]})


def test_density_grid_flat_values_need_counts():
    with pytest.raises(ValueError, match="counts"):
        build_feature({'type': 'density_grid', 'spacing': 1.0,
                       'values': [0.0, 1.0, 2.0, 3.0]})

    feature = build_feature({'type': 'density_grid', 'spacing': 1.0,
                             'counts': [1, 2, 2], 'values': [0.0, 1.0, 2.0, 3.0]})
    assert isinstance(feature, SourceDensityGrid)


def test_unknown_feature_type():
    with pytest.raises(ValueError, match="Unknown feature type"):
        build_feature({'type': 'wormhole'})


def test_missing_key():
    with pytest.raises(ValueError, match="radius"):
        build_feature({'type': 'uniform_sphere', 'center': [0, 0, 0]})


def test_load_source_list_yaml(tmp_path, rng):
    values = np.zeros((2, 2, 2))
    values[1, 1, 1] = 1.0
    np.save(tmp_path / 'density.npy', values)

    config = {
        'sources': [{
            'weight': 1.0,
            'features': [
                {'type': 'density_grid', 'origin': [0, 0, 0], 'spacing': 2.0,
                 'file': 'density.npy'},
                {'type': 'uniform_frequency', 'fmin': 1.0, 'fmax': 2.0},
            ],
        }]
    }
    path = tmp_path / 'sources.yaml'
    path.write_text(yaml.safe_dump(config))

    source_list = load_source_list(path)
    source, _ = source_list.entries[0]
    assert isinstance(source.features[0], SourceDensityGrid)

    for _ in range(200):
        created = source_list.get_candidate(rng).created
        assert np.all(created.position >= 2.0)
        assert np.all(created.position <= 4.0)
        assert 1.0 <= created.frequency < 2.0


def test_load_source_list_1d_inline(tmp_path, rng):
    path = tmp_path / 'line.yaml'
    path.write_text(
        "sources:\n"
        "  - features:\n"
        "      - type: density_grid_1d\n"
        "        spacing: 1.0\n"
        "        values: [0, 0, 0, 0, 0, 1, 0, 0, 0, 0]\n"
    )

    source_list = load_source_list(path)

    for _ in range(100):
        x = source_list.get_candidate(rng).created.position[0]
        assert 5.0 <= x <= 6.0


def test_load_source_list_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_source_list(tmp_path / 'missing.yaml')

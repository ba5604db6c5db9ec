"""
Build sources from plain dictionaries or YAML files.

File format:

    sources:
      - weight: 80
        features:
          - type: uniform_sphere
            center: [0, 0, 0]
            radius: 10
          - type: frequency
            frequency: 100
      - weight: 20
        features:
          - type: density_grid
            origin: [0, 0, 0]
            counts: [10, 10, 10]
            spacing: 1.0
            file: density.npy

Grid values are given inline (`values`) or as a `.npy` file relative to
the YAML file.
"""

from pathlib import Path

import numpy as np
import yaml
from typing import Callable, Dict, Optional, Union

from emission_mc.core.grid import ScalarGrid
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
from emission_mc.sources.source import Source, SourceList


def _require(spec: dict, key: str):
    if key not in spec:
        raise ValueError(f"Feature '{spec.get('type')}' is missing required key '{key}'")
    return spec[key]


def _load_grid(spec: dict, base_dir: Optional[Path], one_dimensional: bool) -> ScalarGrid:
    origin = spec.get('origin', (0.0, 0.0, 0.0))
    spacing = _require(spec, 'spacing')

    if 'values' in spec:
        values = np.array(spec['values'], dtype=np.float64)
    elif 'file' in spec:
        path = Path(spec['file'])
        if base_dir is not None and not path.is_absolute():
            path = base_dir / path
        if not path.exists():
            raise FileNotFoundError(f"Grid file not found: {path}")
        values = np.load(path)
    else:
        raise ValueError(f"Feature '{spec['type']}' needs 'values' or 'file'")

    if one_dimensional:
        values = values.reshape(-1)
        return ScalarGrid.one_dimensional(origin, values.size, spacing, values)

    if 'counts' in spec:
        counts = spec['counts']
    elif values.ndim == 3:
        counts = values.shape
    else:
        raise ValueError(f"Feature '{spec['type']}' needs 'counts' or 3D values, "
                         f"got values of shape {values.shape}")
    return ScalarGrid(origin, counts, spacing, values)


def _multiple_positions(spec: dict, base_dir: Optional[Path]) -> SourceMultiplePositions:
    feature = SourceMultiplePositions()
    for entry in _require(spec, 'positions'):
        if isinstance(entry, dict):
            feature.add(_require(entry, 'position'), entry.get('weight', 1.0))
        else:
            feature.add(entry)
    return feature


FEATURE_REGISTRY: Dict[str, Callable[[dict, Optional[Path]], SourceFeature]] = {
    'position': lambda s, d: SourcePosition(_require(s, 'position')),
    'multiple_positions': _multiple_positions,
    'uniform_box': lambda s, d: SourceUniformBox(_require(s, 'origin'), _require(s, 'size')),
    'uniform_sphere': lambda s, d: SourceUniformSphere(_require(s, 'center'),
                                                       _require(s, 'radius')),
    'uniform_shell': lambda s, d: SourceUniformShell(_require(s, 'center'),
                                                     _require(s, 'radius')),
    'uniform_cylinder': lambda s, d: SourceUniformCylinder(_require(s, 'center'),
                                                           _require(s, 'height'),
                                                           _require(s, 'radius')),
    'density_grid': lambda s, d: SourceDensityGrid(_load_grid(s, d, False)),
    'density_grid_1d': lambda s, d: SourceDensityGrid1D(_load_grid(s, d, True)),
    'direction': lambda s, d: SourceDirection(_require(s, 'direction')),
    'isotropic_emission': lambda s, d: SourceIsotropicEmission(),
    'frequency': lambda s, d: SourceFrequency(_require(s, 'frequency')),
    'uniform_frequency': lambda s, d: SourceUniformFrequency(_require(s, 'fmin'),
                                                             _require(s, 'fmax')),
    'amplitude': lambda s, d: SourceAmplitude(_require(s, 'amplitude')),
}


def build_feature(spec: dict, base_dir: Optional[Path] = None) -> SourceFeature:
    """
    Create a feature from its dictionary description.

    Parameters:
        spec: Dictionary with a 'type' key (see FEATURE_REGISTRY)
        base_dir: Directory used to resolve relative grid files
    """
    if not isinstance(spec, dict):
        raise ValueError(f"Feature description must be a mapping, got {spec!r}")
    kind = spec.get('type')
    if kind not in FEATURE_REGISTRY:
        raise ValueError(f"Unknown feature type '{kind}'. "
                         f"Available: {sorted(FEATURE_REGISTRY)}")
    return FEATURE_REGISTRY[kind](spec, base_dir)


def build_source(spec: dict, base_dir: Optional[Path] = None) -> Source:
    """Create a Source from {'features': [...]}."""
    if not isinstance(spec, dict):
        raise ValueError(f"Source description must be a mapping, got {spec!r}")
    source = Source()
    for feature_spec in spec.get('features', []):
        source.add(build_feature(feature_spec, base_dir))
    return source


def build_source_list(spec: dict, base_dir: Optional[Path] = None) -> SourceList:
    """Create a SourceList from {'sources': [{'weight': w, 'features': [...]}, ...]}."""
    source_list = SourceList()
    for source_spec in spec.get('sources', []):
        source_list.add(build_source(source_spec, base_dir),
                        source_spec.get('weight', 1.0))
    return source_list


def load_source_list(path: Union[str, Path]) -> SourceList:
    """
    Read a SourceList from a YAML file.

    Parameters:
        path: YAML file in the format described in the module docstring

    Returns:
        SourceList
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Source configuration not found: {path}")

    with open(path, 'r') as f:
        spec = yaml.safe_load(f) or {}

    if not isinstance(spec, dict):
        raise ValueError(f"{path.name}: expected a mapping at the top level")

    return build_source_list(spec, base_dir=path.parent)

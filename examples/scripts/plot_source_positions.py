"""
Source Positions - Simple Example

Draws candidates from a source list that mixes a uniform sphere, a
cylinder and a density grid, and plots the created positions.

Expected results:
    - Sphere and cylinder points fill their volumes evenly
    - Grid points concentrate in the cells with the largest values
    - Source fractions follow the declared luminosities (50/30/20)
"""

import numpy as np
import matplotlib.pyplot as plt
from pathlib import Path
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from emission_mc import (
    ParticleArray,
    ScalarGrid,
    Source,
    SourceDensityGrid,
    SourceFrequency,
    SourceList,
    SourceUniformCylinder,
    SourceUniformSphere,
    generate_candidates,
)


def build_source_list() -> SourceList:
    """
    Create a three-component source list.

    Returns:
        SourceList with sphere, cylinder and grid sources tagged by frequency 1, 2, 3
    """
    sphere = Source()
    sphere.add(SourceUniformSphere((-20.0, 0.0, 0.0), 8.0))
    sphere.add(SourceFrequency(1.0))

    cylinder = Source()
    cylinder.add(SourceUniformCylinder((0.0, 0.0, 0.0), 10.0, 4.0))
    cylinder.add(SourceFrequency(2.0))

    # Gaussian blob on a 20^3 grid
    centers = np.arange(20) + 0.5
    gx, gy, gz = np.meshgrid(centers, centers, centers, indexing='ij')
    blob = np.exp(-((gx - 10) ** 2 + (gy - 10) ** 2 + (gz - 10) ** 2) / 18.0)
    grid = ScalarGrid((10.0, -10.0, -10.0), 20, 1.0, values=blob)

    density = Source()
    density.add(SourceDensityGrid(grid))
    density.add(SourceFrequency(3.0))

    source_list = SourceList()
    source_list.add(sphere, 50)
    source_list.add(cylinder, 30)
    source_list.add(density, 20)
    return source_list


def main(n_candidates: int = 20000, seed: int = 42):
    print(f"\n{'='*70}")
    print(f"Source Position Sampling")
    print(f"{'='*70}")

    source_list = build_source_list()
    print(source_list.get_description())

    candidates = generate_candidates(source_list, n_candidates, rng=seed,
                                     progress=True, verbose=True)
    batch = ParticleArray.from_candidates(candidates)
    print(f"\n{batch}")

    positions = batch.particles['position']
    tags = batch.particles['frequency']

    for tag, expected in ((1.0, 0.5), (2.0, 0.3), (3.0, 0.2)):
        fraction = np.mean(tags == tag)
        print(f"  Source {tag:.0f}: {fraction:.3f} (expected {expected:.1f})")

    fig, axes = plt.subplots(1, 2, figsize=(14, 6))
    for tag, color in ((1.0, 'tab:blue'), (2.0, 'tab:orange'), (3.0, 'tab:green')):
        mask = tags == tag
        axes[0].scatter(positions[mask, 0], positions[mask, 1], s=1, alpha=0.3,
                        color=color, label=f'source {tag:.0f}')
        axes[1].scatter(positions[mask, 0], positions[mask, 2], s=1, alpha=0.3,
                        color=color)

    axes[0].set_xlabel('x')
    axes[0].set_ylabel('y')
    axes[0].set_title('Created positions (x-y)')
    axes[0].legend(markerscale=10)
    axes[1].set_xlabel('x')
    axes[1].set_ylabel('z')
    axes[1].set_title('Created positions (x-z)')
    for ax in axes:
        ax.set_aspect('equal')
        ax.grid(True, alpha=0.3)

    plt.tight_layout()
    output = Path('source_positions.png')
    plt.savefig(output, dpi=150)
    print(f"\nPlot saved: {output}")


if __name__ == "__main__":
    main()

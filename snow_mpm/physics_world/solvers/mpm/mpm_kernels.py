"""
MPM transfer kernels - quadratic B-spline weights for particle/grid transfer.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Tuple

import numpy as np

STENCIL_SIZE = 3


def quadratic_bspline_weights(frac: np.ndarray) -> np.ndarray:
    """
    Quadratic B-spline weights for the three nodes along each axis.

    Args:
        frac: Offset of the particle from its base node, in cell units
              (shape ``(..., dim)``). Valid interior values lie in [0.5, 1.5).

    Returns:
        Array of shape ``(..., 3, dim)``; entry ``k`` is the weight of node
        ``base + k`` along every axis.
    """
    frac = np.asarray(frac, dtype=np.float64)
    return np.stack(
        [
            0.5 * (1.5 - frac) ** 2,
            0.75 - (frac - 1.0) ** 2,
            0.5 * (frac - 0.5) ** 2,
        ],
        axis=-2,
    )


def stencil_offsets() -> Iterator[Tuple[int, int]]:
    """The 3x3 neighbourhood every particle scatters to and gathers from."""
    for i in range(STENCIL_SIZE):
        for j in range(STENCIL_SIZE):
            yield i, j


@dataclass(frozen=True)
class TransferWeights:
    """Grid influence of a batch of particles.

    ``base`` holds integer node coordinates of the lower-left stencil node,
    ``frac`` the particle offset from it in cell units and ``weights`` the
    per-axis B-spline weights (``(n, 3, 2)``).
    """

    base: np.ndarray
    frac: np.ndarray
    weights: np.ndarray
    dx: float

    def __len__(self) -> int:
        return self.base.shape[0]

    def node_weight(self, i: int, j: int) -> np.ndarray:
        return self.weights[:, i, 0] * self.weights[:, j, 1]

    def node_offset(self, i: int, j: int) -> np.ndarray:
        """Node position relative to the particle, in cell units."""
        return np.array([i, j], dtype=np.float64) - self.frac

    def node_delta(self, i: int, j: int) -> np.ndarray:
        """Node position relative to the particle, in domain units."""
        return self.node_offset(i, j) * self.dx

    def node_index(self, i: int, j: int) -> Tuple[np.ndarray, np.ndarray]:
        return self.base[:, 0] + i, self.base[:, 1] + j


def compute_transfer_weights(positions: np.ndarray, n_grid: int) -> TransferWeights:
    """
    Compute grid influence weights for particles.

    Args:
        positions: Particle positions in the unit square, shape ``(n, 2)``
        n_grid: Number of grid cells per axis

    Returns:
        TransferWeights with base node, fractional offset and weights
    """
    positions = np.asarray(positions, dtype=np.float64).reshape(-1, 2)
    grid_pos = positions * n_grid
    base = np.floor(grid_pos - 0.5).astype(np.int64)
    frac = grid_pos - base
    return TransferWeights(
        base=base,
        frac=frac,
        weights=quadratic_bspline_weights(frac),
        dx=1.0 / n_grid,
    )

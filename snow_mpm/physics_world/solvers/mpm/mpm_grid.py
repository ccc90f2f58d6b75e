"""
MPM grid operations - background Eulerian grid for momentum transfer.
"""
from __future__ import annotations

from typing import Tuple

import numpy as np


# Extra ring of nodes around the lattice so that stencils of particles within
# half a cell of the domain edge (base == -1, base + 2 == n_grid + 1) stay in bounds
PADDING = 1


class MPMGrid:
    """Background Eulerian grid for MPM simulation.

    Nodes ``0..n_grid`` along each axis form the lattice; one padding ring
    extends the valid index range to ``-1..n_grid + 1``. Each node stores
    ``(momentum_x, momentum_y, mass)``; after :meth:`normalize` nodes with
    mass hold ``(velocity_x, velocity_y, 1)``.
    """

    def __init__(self, n_grid: int):
        self.n_grid = n_grid
        self.dx = 1.0 / n_grid
        self.inv_dx = float(n_grid)
        size = n_grid + 1 + 2 * PADDING
        self.nodes = np.zeros((size, size, 3), dtype=np.float64)

        coords = (np.arange(size) - PADDING) * self.dx
        # Normalised (x, y) position of every stored node
        self.node_positions = np.stack(np.meshgrid(coords, coords, indexing="ij"), axis=-1)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.nodes.shape[0], self.nodes.shape[1]

    @property
    def momentum(self) -> np.ndarray:
        return self.nodes[..., :2]

    @property
    def velocity(self) -> np.ndarray:
        return self.nodes[..., :2]

    @property
    def mass(self) -> np.ndarray:
        return self.nodes[..., 2]

    @property
    def min_index(self) -> int:
        return -PADDING

    @property
    def max_index(self) -> int:
        return self.n_grid + PADDING

    def reset(self) -> None:
        """Clear grid momentum and mass."""
        self.nodes.fill(0.0)

    def in_bounds(self, i: np.ndarray, j: np.ndarray) -> np.ndarray:
        i = np.asarray(i)
        j = np.asarray(j)
        return (
            (i >= self.min_index) & (i <= self.max_index)
            & (j >= self.min_index) & (j <= self.max_index)
        )

    def accumulate(self, i: np.ndarray, j: np.ndarray, momentum: np.ndarray, mass: np.ndarray) -> None:
        """
        Add momentum and mass contributions to nodes ``(i, j)``.

        Repeated indices are summed, so any number of particles may target the
        same node in one call.

        Args:
            i, j: Node indices in lattice coordinates (may be -1 or n_grid + 1)
            momentum: Momentum contributions, shape ``(n, 2)``
            mass: Mass contributions, shape ``(n,)``
        """
        i = np.asarray(i, dtype=np.int64)
        j = np.asarray(j, dtype=np.int64)
        if not np.all(self.in_bounds(i, j)):
            raise IndexError(
                f"grid node index outside [{self.min_index}, {self.max_index}]: "
                f"i in [{i.min()}, {i.max()}], j in [{j.min()}, {j.max()}]"
            )
        si = i + PADDING
        sj = j + PADDING
        np.add.at(self.nodes[..., 0], (si, sj), momentum[:, 0])
        np.add.at(self.nodes[..., 1], (si, sj), momentum[:, 1])
        np.add.at(self.nodes[..., 2], (si, sj), mass)

    def gather_velocity(self, i: np.ndarray, j: np.ndarray) -> np.ndarray:
        return self.nodes[np.asarray(i) + PADDING, np.asarray(j) + PADDING, :2]

    def node(self, i: int, j: int) -> np.ndarray:
        """Stored ``(x, y, m)`` triple of lattice node ``(i, j)``."""
        return self.nodes[i + PADDING, j + PADDING]

    def occupied(self) -> np.ndarray:
        return self.mass > 0.0

    def normalize(self) -> np.ndarray:
        """
        Turn momentum into velocity on every node that received mass.

        Zero-mass nodes are left untouched.

        Returns:
            Boolean mask of the normalised nodes
        """
        mask = self.occupied()
        self.nodes[mask, :2] /= self.nodes[mask, 2:3]
        self.nodes[mask, 2] = 1.0
        return mask

    def total_mass(self) -> float:
        return float(self.mass.sum())

    def total_momentum(self) -> np.ndarray:
        return self.momentum.reshape(-1, 2).sum(axis=0)

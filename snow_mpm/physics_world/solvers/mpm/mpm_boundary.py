"""
MPM boundary handling - domain walls of the unit square.
"""
from __future__ import annotations

import numpy as np

from ....configuration import MPMConfig
from .mpm_grid import MPMGrid


class MPMBoundary:
    """Sticky walls and ceiling with a separating floor.

    Node positions are compared in normalised coordinates against the
    boundary thickness ``b``:

    * sticky: ``x < b``, ``x > 1 - b`` or ``y > 1 - b`` zeroes the velocity
    * separating: ``y < b`` only removes the downward component
    """

    def __init__(self, thickness: float, separating_floor: bool = True):
        self.thickness = thickness
        self.separating_floor = separating_floor

    @classmethod
    def from_config(cls, config: MPMConfig) -> "MPMBoundary":
        return cls(config.boundary_thickness, config.separating_floor)

    def sticky_mask(self, positions: np.ndarray) -> np.ndarray:
        b = self.thickness
        x = positions[..., 0]
        y = positions[..., 1]
        mask = (x < b) | (x > 1.0 - b) | (y > 1.0 - b)
        if not self.separating_floor:
            mask |= y < b
        return mask

    def floor_mask(self, positions: np.ndarray) -> np.ndarray:
        return positions[..., 1] < self.thickness

    def apply(self, grid: MPMGrid, active: np.ndarray | None = None) -> None:
        """
        Enforce the boundary policy on grid velocities in place.

        Args:
            grid: Normalised grid (velocities, not momenta)
            active: Optional mask of nodes to touch; defaults to nodes with mass
        """
        if active is None:
            active = grid.occupied()
        positions = grid.node_positions
        velocity = grid.velocity

        sticky = active & self.sticky_mask(positions)
        velocity[sticky] = 0.0

        floor = active & self.floor_mask(positions) & ~sticky
        velocity[floor, 1] = np.maximum(velocity[floor, 1], 0.0)

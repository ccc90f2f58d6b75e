"""
MPM state management - stores particle positions, velocities, etc.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)

DIM = 2


class MPMState:
    """Manages MPM particle state (positions, velocities, deformation gradients, etc.)

    All per-particle quantities are stored as NumPy arrays indexed by
    particle id; ``active`` is cleared for particles frozen after a
    degenerate deformation.
    """

    def __init__(self) -> None:
        self.x = np.zeros((0, DIM))  # positions
        self.v = np.zeros((0, DIM))  # velocities
        self.C = np.zeros((0, DIM, DIM))  # APIC affine matrix
        self.F = np.zeros((0, DIM, DIM))  # deformation gradient
        self.J = np.zeros(0)  # det(F) history / plastic volume ratio
        self.mass = np.zeros(0)
        self.volume = np.zeros(0)
        self.active = np.zeros(0, dtype=bool)

    @property
    def n_particles(self) -> int:
        return self.x.shape[0]

    def __len__(self) -> int:
        return self.n_particles

    def initialize(
        self,
        positions: np.ndarray | Sequence[Sequence[float]],
        mass: float,
        volume: float,
        velocity: Optional[Sequence[float]] = None,
    ) -> np.ndarray:
        """
        Append one particle per position.

        Args:
            positions: Particle positions, shape ``(n, 2)``
            mass: Particle mass
            volume: Particle volume
            velocity: Initial velocity shared by the new particles (default 0)

        Returns:
            Indices of the new particles
        """
        positions = np.asarray(positions, dtype=np.float64).reshape(-1, DIM)
        n = positions.shape[0]
        start = self.n_particles
        if velocity is None:
            velocity = (0.0, 0.0)
        velocities = np.tile(np.asarray(velocity, dtype=np.float64), (n, 1))

        self.x = np.concatenate([self.x, positions])
        self.v = np.concatenate([self.v, velocities])
        self.C = np.concatenate([self.C, np.zeros((n, DIM, DIM))])
        self.F = np.concatenate([self.F, np.tile(np.eye(DIM), (n, 1, 1))])  # initial deformation = identity
        self.J = np.concatenate([self.J, np.ones(n)])
        self.mass = np.concatenate([self.mass, np.full(n, float(mass))])
        self.volume = np.concatenate([self.volume, np.full(n, float(volume))])
        self.active = np.concatenate([self.active, np.ones(n, dtype=bool)])

        logger.debug("[MPMState] initialize: added %d particles (total %d)", n, self.n_particles)
        return np.arange(start, start + n)

    def total_mass(self) -> float:
        return float(self.mass.sum())

    def total_momentum(self) -> np.ndarray:
        return (self.mass[:, None] * self.v).sum(axis=0)

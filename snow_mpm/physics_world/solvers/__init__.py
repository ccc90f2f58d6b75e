"""Collection of specialized solvers used by the physics world."""

from .mpm import MPMSolver, MPMState

__all__ = [
    "MPMSolver",
    "MPMState",
]

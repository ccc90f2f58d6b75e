"""Physics world: particle state, solvers and the world that owns them."""

from .world import PhysicsWorld

__all__ = ["PhysicsWorld"]

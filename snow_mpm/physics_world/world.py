"""Physics world core that owns the particle state and the MPM solver."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..configuration import SceneConfig
from ..geometry import create_box
from .solvers.mpm import MPMSolver, MPMState, StepReport

logger = logging.getLogger(__name__)


@dataclass
class PhysicsWorld:
    config: SceneConfig
    solver: MPMSolver
    current_step: int = 0

    @classmethod
    def from_config(cls, config: SceneConfig) -> "PhysicsWorld":
        solver = MPMSolver(config.mpm, MPMState())
        for index, box in enumerate(config.boxes):
            positions = create_box(box.min_corner, box.max_corner, box.spacing)
            solver.initialize_particles(positions, velocity=box.initial_velocity)
            logger.info(
                "[PhysicsWorld] Box %d: %s -> %s, spacing=%g, %d particles",
                index,
                tuple(box.min_corner),
                tuple(box.max_corner),
                box.spacing,
                len(positions),
            )
        return cls(config=config, solver=solver)

    @property
    def state(self) -> MPMState:
        return self.solver.state

    @property
    def current_time(self) -> float:
        return self.solver.time

    def step(self) -> StepReport:
        report = self.solver.step()
        self.current_step += 1
        return report

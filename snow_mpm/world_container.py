"""High-level orchestration layer around the physics world and exporter."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from .configuration import SceneConfig, load_scene_config
from .errors import SimulationDivergedError
from .exporter import SimulationExporter
from .physics_world.solvers.mpm import Diagnostic, StepReport
from .physics_world.world import PhysicsWorld

logger = logging.getLogger(__name__)

FrameCallback = Callable[[int, "WorldContainer"], None]


@dataclass
class WorldContainer:
    """Bundles scene configuration, physics world, and exporter."""

    config: SceneConfig
    world: PhysicsWorld
    exporter: SimulationExporter | None = None
    current_frame: int = 0
    fatal_diagnostics: List[Diagnostic] = field(default_factory=list)

    @classmethod
    def from_config(cls, config: SceneConfig, *, export: bool = True) -> "WorldContainer":
        world = PhysicsWorld.from_config(config)
        exporter = SimulationExporter.from_config(config.export) if export else None
        return cls(config=config, world=world, exporter=exporter)

    @classmethod
    def from_config_file(cls, config_path: str | Path, *, export: bool = True) -> "WorldContainer":
        return cls.from_config(load_scene_config(config_path), export=export)

    def _check(self, report: StepReport) -> None:
        fatal = report.fatal
        if not fatal:
            return
        self.fatal_diagnostics.extend(fatal)
        if self.config.abort_on_divergence:
            raise SimulationDivergedError(
                f"Simulation diverged at step {report.step}: {len(fatal)} fatal diagnostic(s), first: {fatal[0]}",
                fatal,
            )
        logger.error("Step %d reported %d fatal diagnostic(s); continuing", report.step, len(fatal))

    def step(self) -> StepReport:
        """Advance the world by a single step."""
        report = self.world.step()
        self._check(report)
        return report

    def run_frame(self, *, export: bool = True) -> List[StepReport]:
        """Advance one frame (``frame_dt / dt`` steps) and optionally export it."""
        reports = [self.step() for _ in range(self.config.mpm.steps_per_frame)]
        if export and self.exporter is not None:
            self.exporter.export_frame(self.current_frame, self.world.state)
        self.current_frame += 1
        return reports

    def run(self, frames: Optional[int] = None, callback: Optional[FrameCallback] = None) -> None:
        """Execute multiple frames."""
        total_frames = frames if frames is not None else self.config.total_frames
        for _ in range(total_frames):
            self.run_frame()
            if callback is not None:
                callback(self.current_frame, self)
        if self.exporter is not None:
            self.exporter.write_manifest(
                total_frames=self.current_frame,
                frame_dt=self.config.mpm.frame_dt,
                extra={"scene_name": self.config.scene_name, "statistics": self.world.solver.statistics()},
            )

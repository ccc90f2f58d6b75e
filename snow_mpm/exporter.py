"""Exporter that writes particle frames (PLY) and human-readable state dumps.

Output structure:
  outputs/
  ├── particles/
  │   ├── frame_00000.ply
  │   ├── frame_00001.ply
  │   ...
  └── manifest.json
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

import numpy as np

from .configuration import ExportConfig
from .physics_world.solvers.mpm import MPMGrid, MPMState

logger = logging.getLogger(__name__)


@dataclass
class SimulationExporter:
    output_root: Path
    particles_dirname: str = "particles"
    every_n_frames: int = 1
    exported_frames: int = 0

    @classmethod
    def from_config(cls, config: Optional[ExportConfig]) -> "SimulationExporter":
        if config is None:
            exporter = cls(output_root=Path("outputs"))
        else:
            exporter = cls(
                output_root=config.output_root,
                particles_dirname=config.particles_subdir,
                every_n_frames=max(1, config.every_n_frames),
            )
        exporter._ensure_directories()
        return exporter

    @property
    def particles_dir(self) -> Path:
        return self.output_root / self.particles_dirname

    def _ensure_directories(self) -> None:
        self.particles_dir.mkdir(parents=True, exist_ok=True)

    def should_export(self, frame_index: int) -> bool:
        return frame_index % self.every_n_frames == 0

    def export_frame(self, frame_index: int, state: MPMState) -> Optional[Path]:
        if not self.should_export(frame_index):
            return None
        self._ensure_directories()
        path = self.particles_dir / f"frame_{frame_index:05d}.ply"
        write_particles_ply(path, state)
        self.exported_frames += 1
        return path

    def write_manifest(self, total_frames: int, frame_dt: float, extra: Optional[Dict[str, Any]] = None) -> Path:
        """Produce a JSON manifest describing the exported frames."""
        manifest = {
            "total_frames": total_frames,
            "exported_frames": self.exported_frames,
            "every_n_frames": self.every_n_frames,
            "frame_dt": frame_dt,
            "particles_dir": str(self.particles_dir),
        }
        if extra:
            manifest.update(extra)
        self.output_root.mkdir(parents=True, exist_ok=True)
        manifest_path = self.output_root / "manifest.json"
        manifest_path.write_text(json.dumps(manifest, indent=2), encoding="utf-8")
        logger.info("Wrote manifest for %d frames to %s", self.exported_frames, manifest_path)
        return manifest_path


def write_particles_ply(path: Path, state: MPMState) -> Path:
    """Dump particle positions, velocities and J to a simple ASCII PLY file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as ply:
        ply.write("ply\nformat ascii 1.0\n")
        ply.write(f"element vertex {state.n_particles}\n")
        ply.write("property float x\nproperty float y\n")
        ply.write("property float vx\nproperty float vy\n")
        ply.write("property float J\n")
        ply.write("property uchar active\n")
        ply.write("end_header\n")
        if state.n_particles:
            data = np.hstack((state.x, state.v, state.J[:, None], state.active[:, None].astype(np.float64)))
            np.savetxt(ply, data, fmt=["%.6f"] * 5 + ["%d"])
    return path


def dump_state(state: MPMState, grid: MPMGrid, stream: TextIO, skip_empty_rows: bool = True) -> None:
    """
    Print particle positions and grid node rows for manual inspection.

    Grid rows are printed per lattice row ``j`` as the stored ``(x, y, m)``
    component triples of nodes ``i = 0..n_grid``: momentum (velocity once the
    grid update ran) and mass. This is not a stable machine-readable format.
    """
    stream.write(f"# particles: {state.n_particles}\n")
    for p in range(state.n_particles):
        flag = "" if state.active[p] else " frozen"
        stream.write(f"{p}: {state.x[p, 0]:.6f} {state.x[p, 1]:.6f}{flag}\n")

    stream.write(f"# grid: {grid.n_grid + 1}x{grid.n_grid + 1} nodes (x, y, m)\n")
    for j in range(grid.n_grid + 1):
        row = [grid.node(i, j) for i in range(grid.n_grid + 1)]
        if skip_empty_rows and not any(node[2] != 0.0 for node in row):
            continue
        cells = " ".join(f"({node[0]:.4g}, {node[1]:.4g}, {node[2]:.4g})" for node in row)
        stream.write(f"row {j}: {cells}\n")

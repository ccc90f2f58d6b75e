"""CLI entry point to run the MPM snow simulation."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm

from .configuration import ExportConfig, default_scene, load_scene_config
from .errors import SimulationError
from .exporter import dump_state
from .logging_config import setup_logging
from .world_container import WorldContainer

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the 2D MLS-MPM snow simulation")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to the scene configuration YAML file (defaults to the two-box scene).",
    )
    parser.add_argument("--frames", type=int, default=None, help="Optional override for number of frames")
    parser.add_argument("--output", type=Path, default=None, help="Override the export output directory")
    parser.add_argument("--no-export", action="store_true", help="Skip writing PLY files")
    parser.add_argument("--dump", action="store_true", help="Print particles and grid rows after the run")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(getattr(logging, args.log_level), args.log_file)

    try:
        config = load_scene_config(args.config) if args.config is not None else default_scene()
        if args.output is not None:
            if config.export is not None:
                config.export = replace(config.export, output_root=args.output)
            else:
                config.export = ExportConfig(output_root=args.output)
        container = WorldContainer.from_config(config, export=not args.no_export)
    except (OSError, SimulationError) as exc:
        logger.error("Failed to set up the scene: %s", exc)
        return 2

    frames = args.frames if args.frames is not None else config.total_frames
    progress = tqdm(total=frames, desc="Simulating", unit="frame")
    try:
        container.run(frames, callback=lambda *_: progress.update(1))
    except SimulationError as exc:
        logger.error("%s", exc)
        return 1
    finally:
        progress.close()

    stats = container.world.solver.statistics()
    logger.info(
        "Finished %d frames (%d steps), %d/%d particles active",
        container.current_frame,
        container.world.solver.step_count,
        int(stats["active"]),
        int(stats["particles"]),
    )
    if args.dump:
        dump_state(container.world.state, container.world.solver.grid, sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())

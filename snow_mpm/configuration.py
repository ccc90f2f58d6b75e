"""Scene configuration dataclasses and loader utilities."""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

import yaml

from .errors import ConfigurationError

# Accepted runtime types per declared field type
_FIELD_TYPES = {"int": numbers.Integral, "float": numbers.Real, "bool": bool, "str": str}

ROTATION_METHODS = ("polar", "qr")
VOLUME_TERMS = ("identity", "uniform")
PLASTICITY_MODELS = ("none", "snow")


@dataclass(frozen=True)
class MPMConfig:
    """Every numeric constant the MPM core depends on.

    Simulation happens in the unit square; ``n_grid`` cells per axis give
    ``(n_grid + 1)`` lattice nodes per axis.
    """

    n_grid: int = 80
    dt: float = 1e-4  # seconds (s)
    frame_dt: float = 1e-3  # seconds (s)
    particle_mass: float = 1.0
    particle_volume: float = 1.0
    hardening: float = 10.0
    youngs_modulus: float = 1e4
    poisson_ratio: float = 0.2
    gravity: float = -200.0  # vertical acceleration, negative is down
    boundary_thickness: float = 0.05  # fraction of the domain
    separating_floor: bool = True  # False makes the floor sticky as well
    rotation_method: str = "polar"
    volume_term: str = "identity"
    plasticity: str = "none"
    plastic_compression: float = 2.5e-2  # theta_c
    plastic_stretch: float = 4.5e-3  # theta_s
    plastic_j_min: float = 0.6
    plastic_j_max: float = 20.0
    out_of_domain_patience: int = 10  # consecutive steps before a particle is fatal
    debug_interval: int = 200

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            expected = _FIELD_TYPES[f.type]
            if not isinstance(value, expected) or (expected is not bool and isinstance(value, bool)):
                raise ConfigurationError(f"{f.name} must be of type {f.type}, got {value!r}")
        if self.n_grid < 3:
            raise ConfigurationError(f"n_grid must be at least 3, got {self.n_grid}")
        for name in ("dt", "frame_dt", "particle_mass", "particle_volume", "youngs_modulus"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0.0:
                raise ConfigurationError(f"{name} must be positive, got {value}")
        if not -1.0 < self.poisson_ratio < 0.5:
            raise ConfigurationError(f"poisson_ratio must lie in (-1, 0.5), got {self.poisson_ratio}")
        if not 0.0 <= self.boundary_thickness < 0.5:
            raise ConfigurationError(
                f"boundary_thickness must lie in [0, 0.5), got {self.boundary_thickness}"
            )
        if self.frame_dt < self.dt:
            raise ConfigurationError(f"frame_dt ({self.frame_dt}) must not be smaller than dt ({self.dt})")
        if self.rotation_method not in ROTATION_METHODS:
            raise ConfigurationError(f"rotation_method must be one of {ROTATION_METHODS}, got {self.rotation_method!r}")
        if self.volume_term not in VOLUME_TERMS:
            raise ConfigurationError(f"volume_term must be one of {VOLUME_TERMS}, got {self.volume_term!r}")
        if self.plasticity not in PLASTICITY_MODELS:
            raise ConfigurationError(f"plasticity must be one of {PLASTICITY_MODELS}, got {self.plasticity!r}")
        if not 0.0 < self.plastic_j_min <= 1.0 <= self.plastic_j_max:
            raise ConfigurationError(
                f"plastic J range must bracket 1, got [{self.plastic_j_min}, {self.plastic_j_max}]"
            )
        if self.out_of_domain_patience < 0:
            raise ConfigurationError("out_of_domain_patience must be non-negative")
        if self.debug_interval < 0:
            raise ConfigurationError("debug_interval must be non-negative")

    @property
    def dx(self) -> float:
        return 1.0 / self.n_grid

    @property
    def inv_dx(self) -> float:
        return float(self.n_grid)

    @property
    def steps_per_frame(self) -> int:
        return max(1, int(round(self.frame_dt / self.dt)))

    def with_overrides(self, **overrides: Any) -> "MPMConfig":
        return replace(self, **overrides)


@dataclass
class BoxConfig:
    min_corner: Sequence[float]  # unit-square coordinates
    max_corner: Sequence[float]
    spacing: float = 0.01
    initial_velocity: Sequence[float] = (0.0, 0.0)

    def __post_init__(self) -> None:
        if len(self.min_corner) != 2 or len(self.max_corner) != 2:
            raise ConfigurationError("box corners must be 2D")
        if self.spacing <= 0.0:
            raise ConfigurationError(f"box spacing must be positive, got {self.spacing}")
        if any(lo > hi for lo, hi in zip(self.min_corner, self.max_corner)):
            raise ConfigurationError(f"box min_corner {self.min_corner} exceeds max_corner {self.max_corner}")


@dataclass
class ExportConfig:
    output_root: Path
    particles_subdir: str = "particles"
    every_n_frames: int = 1

    def particles_dir(self) -> Path:
        return self.output_root / self.particles_subdir


@dataclass
class SceneConfig:
    scene_name: str
    mpm: MPMConfig = field(default_factory=MPMConfig)
    boxes: List[BoxConfig] = field(default_factory=list)
    total_frames: int = 60
    export: ExportConfig | None = None
    abort_on_divergence: bool = True


def default_scene() -> SceneConfig:
    """Two overlapping snow boxes dropped onto the floor."""
    return SceneConfig(
        scene_name="two_boxes",
        boxes=[
            BoxConfig(min_corner=(0.5, 0.5), max_corner=(0.6, 0.6), spacing=0.01),
            BoxConfig(min_corner=(0.45, 0.4), max_corner=(0.55, 0.55), spacing=0.01),
        ],
    )


def _coerce_path(base_dir: Path, path_value: str | Path) -> Path:
    path = Path(path_value)
    return path if path.is_absolute() else (base_dir / path)


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError(f"expected an integer, got {value!r}")
    number = float(value)
    if not number.is_integer():
        raise ValueError(f"expected an integer, got {value!r}")
    return int(number)


def _as_float(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError(f"expected a number, got {value!r}")
    # PyYAML leaves "1e-4" and "1.0e4" as strings, it needs both a dot and an exponent sign
    return float(value)


def _as_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"expected true or false, got {value!r}")
    return value


def _as_str(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected a string, got {value!r}")
    return value


_COERCERS = {"int": _as_int, "float": _as_float, "bool": _as_bool, "str": _as_str}


def _build_mpm_config(raw: Mapping[str, Any] | None) -> MPMConfig:
    raw = dict(raw or {})
    declared = {f.name: f.type for f in fields(MPMConfig)}
    unknown = sorted(set(raw) - set(declared))
    if unknown:
        raise ConfigurationError(f"Unknown mpm configuration keys: {', '.join(unknown)}")
    values = {}
    for name, value in raw.items():
        try:
            values[name] = _COERCERS[declared[name]](value)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"mpm.{name}: {exc}") from exc
    return MPMConfig(**values)


def _as_point(value: Any) -> tuple:
    return tuple(_as_float(c) for c in value)


def scene_config_from_dict(raw: Mapping[str, Any], base_dir: Path | None = None, name: str = "scene") -> SceneConfig:
    """Build a ``SceneConfig`` from an already parsed mapping."""
    base_dir = base_dir or Path.cwd()

    try:
        boxes = [
            BoxConfig(
                min_corner=_as_point(entry["min_corner"]),
                max_corner=_as_point(entry["max_corner"]),
                spacing=_as_float(entry.get("spacing", 0.01)),
                initial_velocity=_as_point(entry.get("initial_velocity", (0.0, 0.0))),
            )
            for entry in (raw.get("boxes") or [])
        ]

        export_cfg: Dict[str, Any] | None = raw.get("export")
        export = None
        if export_cfg:
            export = ExportConfig(
                output_root=_coerce_path(base_dir, export_cfg["output_root"]),
                particles_subdir=_as_str(export_cfg.get("particles_subdir", "particles")),
                every_n_frames=_as_int(export_cfg.get("every_n_frames", 1)),
            )

        total_frames = _as_int(raw.get("total_frames", 60))
        abort_on_divergence = _as_bool(raw.get("abort_on_divergence", True))
    except ConfigurationError:
        raise
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid scene configuration: {exc!r}") from exc

    if total_frames < 0:
        raise ConfigurationError(f"total_frames must be non-negative, got {total_frames}")

    return SceneConfig(
        scene_name=str(raw.get("scene_name", name)),
        mpm=_build_mpm_config(raw.get("mpm")),
        boxes=boxes,
        total_frames=total_frames,
        export=export,
        abort_on_divergence=abort_on_divergence,
    )


def load_scene_config(config_path: str | Path) -> SceneConfig:
    """Load a scene configuration from YAML."""
    path = Path(config_path).expanduser().resolve()
    with path.open("r", encoding="utf-8") as handle:
        try:
            raw = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"{path} is not valid YAML: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"{path} does not contain a mapping at the top level")
    return scene_config_from_dict(raw, base_dir=path.parent, name=path.stem)

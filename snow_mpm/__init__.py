"""2D MLS-MPM simulator for snow-like elastoplastic materials."""

from .configuration import BoxConfig, ExportConfig, MPMConfig, SceneConfig, default_scene, load_scene_config
from .errors import ConfigurationError, SimulationDivergedError, SimulationError
from .geometry import create_box
from .world_container import WorldContainer

__all__ = [
    "BoxConfig",
    "ConfigurationError",
    "ExportConfig",
    "MPMConfig",
    "SceneConfig",
    "SimulationDivergedError",
    "SimulationError",
    "WorldContainer",
    "create_box",
    "default_scene",
    "load_scene_config",
]

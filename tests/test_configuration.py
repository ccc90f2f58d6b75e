import dataclasses
from pathlib import Path

import pytest
import yaml

from snow_mpm.configuration import (
    BoxConfig,
    MPMConfig,
    default_scene,
    load_scene_config,
    scene_config_from_dict,
)
from snow_mpm.errors import ConfigurationError

SHIPPED_CONFIG = Path(__file__).resolve().parents[1] / "config" / "scene_config.yaml"


def _write_yaml(path: Path, payload) -> Path:
    path.write_text(yaml.safe_dump(payload), encoding="utf-8")
    return path


def test_defaults():
    config = MPMConfig()
    assert config.n_grid == 80
    assert config.dx == pytest.approx(0.0125)
    assert config.inv_dx == 80.0
    assert config.steps_per_frame == 10
    assert config.rotation_method == "polar"
    assert config.volume_term == "identity"
    assert config.plasticity == "none"


def test_config_is_immutable():
    config = MPMConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.dt = 1.0


def test_with_overrides_returns_a_copy():
    config = MPMConfig()
    other = config.with_overrides(n_grid=32, gravity=0.0)
    assert other.n_grid == 32 and other.gravity == 0.0
    assert config.n_grid == 80


@pytest.mark.parametrize(
    "overrides",
    [
        {"n_grid": 2},
        {"dt": 0.0},
        {"dt": float("nan")},
        {"particle_mass": -1.0},
        {"youngs_modulus": 0.0},
        {"poisson_ratio": 0.5},
        {"boundary_thickness": 0.5},
        {"dt": 1e-2, "frame_dt": 1e-3},
        {"rotation_method": "gram-schmidt"},
        {"volume_term": "scalar"},
        {"plasticity": "sand"},
        {"plastic_j_min": 1.5},
        {"out_of_domain_patience": -1},
    ],
)
def test_invalid_values_are_rejected(overrides):
    with pytest.raises(ConfigurationError):
        MPMConfig(**overrides)


def test_configuration_error_is_a_value_error():
    with pytest.raises(ValueError):
        MPMConfig(n_grid=0)


def test_box_config_validation():
    with pytest.raises(ConfigurationError):
        BoxConfig(min_corner=(0.5, 0.5), max_corner=(0.4, 0.6))
    with pytest.raises(ConfigurationError):
        BoxConfig(min_corner=(0.1, 0.1), max_corner=(0.2, 0.2), spacing=0.0)
    with pytest.raises(ConfigurationError):
        BoxConfig(min_corner=(0.1, 0.1, 0.1), max_corner=(0.2, 0.2))


def test_default_scene_has_two_boxes():
    scene = default_scene()
    assert scene.scene_name == "two_boxes"
    assert [tuple(box.min_corner) for box in scene.boxes] == [(0.5, 0.5), (0.45, 0.4)]
    assert scene.mpm == MPMConfig()
    assert scene.export is None
    assert scene.abort_on_divergence


def test_shipped_config_matches_default_scene():
    scene = load_scene_config(SHIPPED_CONFIG)
    reference = default_scene()
    assert scene.scene_name == reference.scene_name
    assert scene.mpm == reference.mpm
    assert [(tuple(b.min_corner), tuple(b.max_corner), b.spacing) for b in scene.boxes] == [
        (tuple(b.min_corner), tuple(b.max_corner), b.spacing) for b in reference.boxes
    ]
    assert scene.export.output_root == SHIPPED_CONFIG.parent / "../outputs"


def test_load_scene_config(tmp_path):
    path = _write_yaml(
        tmp_path / "drop.yaml",
        {
            "total_frames": 5,
            "abort_on_divergence": False,
            "mpm": {"n_grid": 32, "plasticity": "snow", "rotation_method": "qr"},
            "boxes": [{"min_corner": [0.2, 0.2], "max_corner": [0.3, 0.3], "initial_velocity": [1.0, 0.0]}],
            "export": {"output_root": "frames", "every_n_frames": 3},
        },
    )
    scene = load_scene_config(path)
    assert scene.scene_name == "drop"
    assert scene.total_frames == 5
    assert not scene.abort_on_divergence
    assert scene.mpm.n_grid == 32
    assert scene.mpm.plasticity == "snow"
    assert scene.mpm.rotation_method == "qr"
    assert scene.mpm.dt == MPMConfig().dt
    assert scene.boxes[0].spacing == 0.01
    assert tuple(scene.boxes[0].initial_velocity) == (1.0, 0.0)
    assert scene.export.output_root == tmp_path / "frames"
    assert scene.export.every_n_frames == 3
    assert scene.export.particles_dir() == tmp_path / "frames" / "particles"


def test_unknown_mpm_key_is_rejected():
    with pytest.raises(ConfigurationError, match="grid_size"):
        scene_config_from_dict({"mpm": {"grid_size": 64}})


def test_invalid_mpm_value_in_file(tmp_path):
    path = _write_yaml(tmp_path / "bad.yaml", {"mpm": {"poisson_ratio": 0.7}})
    with pytest.raises(ConfigurationError):
        load_scene_config(path)


def test_non_mapping_file_is_rejected(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_scene_config(path)


def test_empty_file_gives_empty_scene(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    scene = load_scene_config(path)
    assert scene.scene_name == "empty"
    assert scene.boxes == []
    assert scene.mpm == MPMConfig()


def test_negative_frame_count_is_rejected():
    with pytest.raises(ConfigurationError):
        scene_config_from_dict({"total_frames": -1})


def test_yaml_numbers_are_coerced_to_declared_types(tmp_path):
    path = tmp_path / "loose.yaml"
    # PyYAML reads 1e-4 without a sign as a string
    path.write_text("total_frames: 4.0\nmpm:\n  dt: 1e-4\n  n_grid: 80.0\n  gravity: -200\n", encoding="utf-8")
    scene = load_scene_config(path)
    assert scene.mpm.dt == pytest.approx(1e-4)
    assert isinstance(scene.mpm.dt, float)
    assert scene.mpm.n_grid == 80
    assert isinstance(scene.mpm.n_grid, int)
    assert isinstance(scene.mpm.gravity, float)
    assert scene.total_frames == 4


@pytest.mark.parametrize(
    "text",
    [
        "mpm:\n  n_grid: 80.5\n",
        "mpm:\n  dt: fast\n",
        "mpm:\n  separating_floor: 1\n",
        "mpm:\n  rotation_method: 3\n",
        "total_frames: ten\n",
        "boxes:\n  - min_corner: [0.1, a]\n    max_corner: [0.2, 0.2]\n",
        "boxes:\n  - max_corner: [0.2, 0.2]\n",
        "mpm: [\n",
    ],
    ids=["fractional-int", "non-numeric", "int-for-bool", "int-for-str", "frames", "corner", "missing-key", "syntax"],
)
def test_badly_typed_yaml_is_a_configuration_error(tmp_path, text):
    path = tmp_path / "bad.yaml"
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_scene_config(path)


@pytest.mark.parametrize(
    "overrides",
    [{"n_grid": 80.0}, {"dt": "1e-4"}, {"separating_floor": 1}, {"debug_interval": True}],
)
def test_config_rejects_wrong_types(overrides):
    with pytest.raises(ConfigurationError):
        MPMConfig(**overrides)

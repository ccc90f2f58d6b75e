import json

import yaml

from snow_mpm.cli import build_parser, main


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.config is None
    assert args.frames is None
    assert not args.no_export
    assert args.log_level == "INFO"


def test_runs_default_scene_without_export(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert main(["--frames", "1", "--no-export", "--log-level", "WARNING"]) == 0
    assert not (tmp_path / "outputs").exists()


def test_exports_to_output_override(tmp_path):
    out = tmp_path / "frames"
    assert main(["--frames", "2", "--output", str(out), "--log-level", "WARNING"]) == 0
    assert (out / "particles" / "frame_00000.ply").is_file()
    assert (out / "particles" / "frame_00001.ply").is_file()
    manifest = json.loads((out / "manifest.json").read_text(encoding="utf-8"))
    assert manifest["total_frames"] == 2
    assert manifest["statistics"]["particles"] == 297


def test_dump_is_printed(tmp_path, capsys):
    assert main(["--frames", "1", "--no-export", "--dump", "--log-level", "ERROR"]) == 0
    out = capsys.readouterr().out
    assert "# particles: 297" in out
    assert "# grid: 81x81" in out


def test_log_file(tmp_path):
    log_file = tmp_path / "run.log"
    assert main(["--frames", "1", "--no-export", "--log-file", str(log_file)]) == 0
    assert "Finished 1 frames" in log_file.read_text(encoding="utf-8")


def test_missing_config_returns_setup_error(tmp_path):
    assert main(["--config", str(tmp_path / "missing.yaml"), "--no-export"]) == 2


def test_invalid_config_returns_setup_error(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text(yaml.safe_dump({"mpm": {"n_grid": 1}}), encoding="utf-8")
    assert main(["--config", str(path), "--no-export"]) == 2


def test_divergence_returns_failure(tmp_path):
    path = tmp_path / "fast.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "mpm": {"n_grid": 16, "out_of_domain_patience": 0, "debug_interval": 0},
                "boxes": [
                    {
                        "min_corner": [0.4, 0.2],
                        "max_corner": [0.45, 0.25],
                        "spacing": 0.05,
                        "initial_velocity": [0.0, -5000.0],
                    }
                ],
            }
        ),
        encoding="utf-8",
    )
    assert main(["--config", str(path), "--frames", "1", "--no-export"]) == 1


def test_unsigned_exponent_in_config_is_accepted(tmp_path):
    path = tmp_path / "small.yaml"
    path.write_text(
        "mpm:\n  n_grid: 16.0\n  dt: 1e-4\n  debug_interval: 0\n"
        "boxes:\n  - min_corner: [0.4, 0.4]\n    max_corner: [0.5, 0.5]\n    spacing: 0.05\n",
        encoding="utf-8",
    )
    assert main(["--config", str(path), "--frames", "1", "--no-export", "--log-level", "WARNING"]) == 0


def test_badly_typed_config_returns_setup_error(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("mpm:\n  dt: abc\n", encoding="utf-8")
    assert main(["--config", str(path), "--no-export"]) == 2


def test_output_override_keeps_export_settings(tmp_path):
    path = tmp_path / "scene.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "mpm": {"n_grid": 16, "debug_interval": 0},
                "boxes": [{"min_corner": [0.4, 0.4], "max_corner": [0.5, 0.5], "spacing": 0.05}],
                "export": {"output_root": "unused", "particles_subdir": "points", "every_n_frames": 2},
            }
        ),
        encoding="utf-8",
    )
    out = tmp_path / "frames"
    assert main(["--config", str(path), "--frames", "2", "--output", str(out), "--log-level", "WARNING"]) == 0
    assert (out / "points" / "frame_00000.ply").is_file()
    assert not (out / "points" / "frame_00001.ply").exists()
    assert not (out / "particles").exists()
    assert not (tmp_path / "unused").exists()

from __future__ import annotations

import pytest

from seiscal.config import (
    AzimuthSettings,
    CalibrationConfig,
    config_from_mapping,
    load_config,
    save_config,
)


def test_defaults_match_documented_constants() -> None:
    cfg = CalibrationConfig()
    assert cfg.azimuth.band_low_hz == pytest.approx(0.125)
    assert cfg.azimuth.band_high_hz == pytest.approx(0.25)
    assert cfg.azimuth.window_seconds == 2000.0
    assert cfg.azimuth.stride_seconds == 500.0
    assert cfg.azimuth.min_windows == 5
    assert cfg.step.lowpass_hz == pytest.approx(0.1)
    assert cfg.step.regularization == pytest.approx(0.008)
    assert cfg.step.solver.cost_tolerance == pytest.approx(1e-10)
    assert cfg.azimuth.solver.cost_tolerance == pytest.approx(1e-7)


def test_mapping_ignores_unknown_keys_and_flattens_calibration_block() -> None:
    cfg = config_from_mapping(
        {"calibration": {"azimuth": {"window_seconds": 1000, "bogus": 1}}, "other": 3}
    )
    assert cfg.azimuth.window_seconds == 1000.0
    assert cfg.step == CalibrationConfig().step


def test_partial_step_solver_keeps_step_tolerances() -> None:
    cfg = config_from_mapping({"step": {"solver": {"gradient_tolerance": 1e-9}}})
    assert cfg.step.solver.gradient_tolerance == pytest.approx(1e-9)
    assert cfg.step.solver.cost_tolerance == pytest.approx(1e-10)


def test_sanitized_orders_band_edges() -> None:
    settings = AzimuthSettings(band_low_hz=0.3, band_high_hz=0.1).sanitized()
    assert settings.band_high_hz > settings.band_low_hz


def test_yaml_round_trip(tmp_path) -> None:
    cfg = CalibrationConfig(azimuth=AzimuthSettings(window_seconds=1500.0))
    path = tmp_path / "nested" / "calibration.yaml"
    save_config(path, cfg)
    assert load_config(path) == cfg.sanitized()


def test_missing_file_gives_defaults(tmp_path) -> None:
    assert load_config(tmp_path / "absent.yaml") == CalibrationConfig()
    assert load_config(None) == CalibrationConfig()


def test_non_mapping_file_is_rejected(tmp_path) -> None:
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)

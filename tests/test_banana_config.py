"""Tests for threshold validation and the argparse bridge."""
import argparse
from dataclasses import FrozenInstanceError

import pytest

from banana_config import (
    BananaConfig, InvalidConfiguration, add_config_arguments, config_from_args,
)
from banana_detector import BananaDetector


class TestBananaConfig:

    def test_defaults(self):
        cfg = BananaConfig()
        assert (cfg.hue_min, cfg.hue_max, cfg.sat_min, cfg.val_min) == (0.10, 0.18, 0.35, 0.25)
        assert (cfg.min_object_size, cfg.close_radius, cfg.open_radius) == (200, 7, 3)
        assert (cfg.area_min, cfg.ecc_min, cfg.sol_min, cfg.sol_max, cfg.curve_min) == \
            (1200, 0.70, 0.60, 0.95, 0.05)

    def test_is_immutable(self):
        cfg = BananaConfig()
        with pytest.raises(FrozenInstanceError):
            cfg.area_min = 10

    @pytest.mark.parametrize("overrides", [
        {"hue_min": -0.01},
        {"hue_max": 1.0},
        {"hue_min": 0.5, "hue_max": 0.4},
        {"sat_min": 1.5},
        {"val_min": float("nan")},
        {"sol_min": 0.9, "sol_max": 0.8},
        {"ecc_min": 2.0},
        {"curve_min": -0.1},
        {"area_min": -1},
        {"close_radius": -1},
        {"open_radius": 2.5},
        {"min_object_size": True},
        {"hue_min": "0.1"},
    ])
    def test_rejects_bad_values(self, overrides):
        with pytest.raises(InvalidConfiguration):
            BananaConfig(**overrides)

    def test_values_are_not_clamped(self):
        with pytest.raises(InvalidConfiguration, match="sat_min"):
            BananaConfig(sat_min=1.01)

    def test_with_overrides_returns_validated_copy(self):
        base = BananaConfig()
        wide = base.with_overrides(hue_min=0.09, hue_max=0.20)
        assert (wide.hue_min, wide.hue_max) == (0.09, 0.20)
        assert base.hue_min == 0.10
        with pytest.raises(InvalidConfiguration):
            base.with_overrides(sol_min=0.99)

    def test_with_overrides_rejects_unknown_names(self):
        with pytest.raises(InvalidConfiguration, match="banana_count"):
            BananaConfig().with_overrides(banana_count=3)

    def test_zero_radius_is_allowed(self):
        det = BananaDetector(BananaConfig(close_radius=0, open_radius=0))
        assert det.close_kernel.shape == (1, 1)


class TestArgparseBridge:

    def parse(self, argv):
        parser = add_config_arguments(argparse.ArgumentParser())
        return config_from_args(parser.parse_args(argv))

    def test_no_flags_gives_defaults(self):
        assert self.parse([]) == BananaConfig()

    def test_flags_override_fields(self):
        cfg = self.parse(["--area-min", "1500", "--close-radius", "5", "--hue-max", "0.2"])
        assert cfg.area_min == 1500
        assert cfg.close_radius == 5 and isinstance(cfg.close_radius, int)
        assert cfg.hue_max == 0.2
        assert cfg.ecc_min == 0.70

    def test_invalid_flag_value_raises(self):
        with pytest.raises(InvalidConfiguration):
            self.parse(["--sol-min", "0.99"])

"""
Detection thresholds for the banana detector.

All tunables live in one frozen dataclass so a single instance can be shared
between frames (and threads) without anyone changing it mid-stream.
"""
import argparse
import dataclasses
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class InvalidConfiguration(ValueError):
    """A threshold is outside its valid range or the bounds are inverted."""


@dataclass(frozen=True)
class BananaConfig:
    # HSV thresholds for yellow (every channel in [0, 1])
    hue_min: float = 0.10          # widen to [0.09, 0.20] if needed
    hue_max: float = 0.18
    sat_min: float = 0.35          # require some saturation/brightness
    val_min: float = 0.25

    # Mask clean-up
    min_object_size: int = 200     # remove tiny specks
    close_radius: int = 7          # bridge small gaps
    open_radius: int = 3           # smooth small noise

    # Shape cues
    area_min: float = 1200         # reject tiny blobs
    ecc_min: float = 0.70          # elongated shape
    sol_min: float = 0.60          # solidity lower bound
    sol_max: float = 0.95          # avoid perfectly convex/straight
    curve_min: float = 0.05        # convexity deficit: 1 - area/convex_area

    def __post_init__(self):
        self.validate()

    def validate(self):
        """Raise InvalidConfiguration on the first bad field."""
        for name in ("hue_min", "hue_max"):
            _check_range(name, getattr(self, name), 0.0, 1.0, hi_open=True)
        for name in ("sat_min", "val_min", "ecc_min", "sol_min", "sol_max", "curve_min"):
            _check_range(name, getattr(self, name), 0.0, 1.0)
        for name in ("min_object_size", "close_radius", "open_radius"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidConfiguration(f"{name} must be a non-negative integer, got {value!r}")
        _check_range("area_min", self.area_min, 0.0, float("inf"))

        if self.hue_min > self.hue_max:
            raise InvalidConfiguration(
                f"hue_min ({self.hue_min}) is greater than hue_max ({self.hue_max})")
        if self.sol_min > self.sol_max:
            raise InvalidConfiguration(
                f"sol_min ({self.sol_min}) is greater than sol_max ({self.sol_max})")

    def with_overrides(self, **overrides) -> "BananaConfig":
        """Return a validated copy with some thresholds replaced."""
        known = {f.name for f in dataclasses.fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise InvalidConfiguration(f"unknown threshold(s): {', '.join(unknown)}")
        return dataclasses.replace(self, **overrides)


def _check_range(name, value, lo, hi, hi_open=False):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidConfiguration(f"{name} must be a number, got {value!r}")
    ok = lo <= value < hi if hi_open else lo <= value <= hi
    if not ok:  # also catches NaN
        bracket = ")" if hi_open else "]"
        raise InvalidConfiguration(f"{name}={value} is outside [{lo}, {hi}{bracket}")


def add_config_arguments(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    """Expose every BananaConfig field as a --kebab-case option."""
    group = parser.add_argument_group("detection thresholds")
    for f in dataclasses.fields(BananaConfig):
        group.add_argument(
            "--" + f.name.replace("_", "-"),
            dest=f.name,
            type=int if f.type in (int, "int") else float,
            default=f.default,
            help=f"(default: {f.default})",
        )
    return parser


def config_from_args(args: argparse.Namespace) -> BananaConfig:
    values = {f.name: getattr(args, f.name) for f in dataclasses.fields(BananaConfig)
              if hasattr(args, f.name)}
    config = BananaConfig(**values)
    logger.debug("Using %s", config)
    return config

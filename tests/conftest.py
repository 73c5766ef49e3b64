"""Shared fixtures: a default detector and synthetic banana frames."""
import sys
from pathlib import Path

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from banana_detector import BananaDetector  # noqa: E402

YELLOW = (255, 230, 0)


def crescent_mask(shape, center, r_in, r_out, half_angle_deg):
    """
    Annular sector opening downwards: pixels with r_in <= r <= r_out whose
    angle from the +row axis is within +-half_angle_deg. Looks like a smile.
    """
    h, w = shape
    rows, cols = np.mgrid[0:h, 0:w]
    dr = rows - center[0]
    dc = cols - center[1]
    r = np.hypot(dr, dc)
    ang = np.degrees(np.abs(np.arctan2(dc, dr)))
    return (r >= r_in) & (r <= r_out) & (ang <= half_angle_deg)


@pytest.fixture
def detector():
    return BananaDetector()


@pytest.fixture
def banana_mask():
    # 640x480 frame, crescent ~120 px below the top
    return crescent_mask((480, 640), center=(100, 320), r_in=70, r_out=120, half_angle_deg=60)


@pytest.fixture
def banana_frame(banana_mask):
    frame = np.zeros((480, 640, 3), np.uint8)
    frame[banana_mask] = YELLOW
    return frame

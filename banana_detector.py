import logging
from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np

from banana_config import BananaConfig

logger = logging.getLogger(__name__)

# Overlay style (frames are RGB inside the detector)
PERIM_COLOR = (0, 255, 0)
BOX_COLOR = (255, 0, 0)
TEXT_COLOR = (255, 255, 255)
BOX_LINE_WIDTH = 3
LABEL_TEXT = "banana time we ball"
LABEL_OFFSET = 18          # label sits this many px above the box
LABEL_OPACITY = 0.6
LABEL_FONT = cv2.FONT_HERSHEY_SIMPLEX
LABEL_SCALE = 0.65
LABEL_THICKNESS = 1
LABEL_PAD = 2


class InvalidFrame(ValueError):
    """Frame is not a non-empty HxWx3 uint8 image."""


@dataclass(frozen=True)
class Component:
    area: int
    bbox: Tuple[int, int, int, int]    # x, y, w, h
    convex_area: float
    eccentricity: float
    solidity: float

    @property
    def convexity_deficit(self):
        """1 - area/convex_area; curvier blobs score higher."""
        if self.convex_area > 0:
            return 1.0 - self.area / self.convex_area
        return 0.0


@dataclass(frozen=True)
class DetectionResult:
    is_banana: bool
    bbox: Tuple[int, int, int, int]


def validate_frame(frame):
    if not isinstance(frame, np.ndarray):
        raise InvalidFrame(f"expected a numpy array, got {type(frame).__name__}")
    if frame.ndim != 3 or frame.shape[2] != 3:
        raise InvalidFrame(f"expected an HxWx3 frame, got shape {frame.shape}")
    if frame.shape[0] == 0 or frame.shape[1] == 0:
        raise InvalidFrame(f"frame has zero size: {frame.shape}")
    if frame.dtype != np.uint8:
        raise InvalidFrame(f"expected uint8 samples, got {frame.dtype}")


def rgb_to_hsv(rgb):
    """
    Split an RGB uint8 image into float64 hue, saturation and value planes, all
    in [0, 1]. Hue is 0 wherever the pixel is gray (zero chroma).
    """
    f = rgb.astype(np.float64) / 255.0
    r, g, b = f[..., 0], f[..., 1], f[..., 2]
    v = f.max(axis=2)
    delta = v - f.min(axis=2)
    s = np.divide(delta, v, out=np.zeros_like(v), where=v > 0)

    d = np.where(delta > 0, delta, 1.0)
    h = np.zeros_like(v)
    # Ties between max channels resolve blue > green > red
    h = np.where(r == v, (g - b) / d, h)
    h = np.where(g == v, 2.0 + (b - r) / d, h)
    h = np.where(b == v, 4.0 + (r - g) / d, h)
    h = np.where(delta > 0, h / 6.0, 0.0)
    h = np.where(h < 0, h + 1.0, h)
    return h, s, v


def disk_kernel(radius):
    """Offsets within Euclidean distance `radius` of the center, as a uint8 kernel."""
    y, x = np.ogrid[-radius:radius + 1, -radius:radius + 1]
    return (x * x + y * y <= radius * radius).astype(np.uint8)


def remove_small_objects(mask, min_size):
    """Drop 8-connected blobs with fewer than `min_size` pixels."""
    n, labels, stats, _ = cv2.connectedComponentsWithStats(mask.astype(np.uint8), connectivity=8)
    keep = stats[:, cv2.CC_STAT_AREA] >= min_size
    keep[0] = False                         # background
    return keep[labels]


def fill_holes(mask):
    """Set every background region that can't reach the border (4-connected) to True."""
    mask = np.asarray(mask, dtype=bool)
    h, w = mask.shape
    # Pad so the whole outside is one region reachable from (0, 0)
    padded = np.zeros((h + 2, w + 2), np.uint8)
    padded[1:-1, 1:-1] = mask
    ff_mask = np.zeros((h + 4, w + 4), np.uint8)
    cv2.floodFill(padded, ff_mask, (0, 0), 2, flags=4)
    holes = padded[1:-1, 1:-1] == 0
    return mask | holes


def perimeter(mask):
    """True pixels with at least one false 4-neighbor; the frame edge counts as false."""
    mask = np.asarray(mask, dtype=bool)
    cross = cv2.getStructuringElement(cv2.MORPH_CROSS, (3, 3))
    eroded = cv2.erode(mask.astype(np.uint8), cross,
                       borderType=cv2.BORDER_CONSTANT, borderValue=0)
    return mask & (eroded == 0)


def ellipse_eccentricity(rows, cols):
    """
    Eccentricity of the ellipse with the same normalized second central moments
    as the pixel set. The 1/12 terms are the variance of a unit pixel, so
    a single row of pixels still has a non-zero minor axis.
    """
    n = rows.size
    if n <= 1:
        return 0.0
    x = cols - cols.mean()
    y = rows - rows.mean()
    uxx = np.sum(x * x) / n + 1.0 / 12.0
    uyy = np.sum(y * y) / n + 1.0 / 12.0
    uxy = np.sum(x * y) / n
    common = np.sqrt((uxx - uyy) ** 2 + 4.0 * uxy ** 2)
    major = 2.0 * np.sqrt(2.0) * np.sqrt(uxx + uyy + common)
    minor = 2.0 * np.sqrt(2.0) * np.sqrt(max(uxx + uyy - common, 0.0))
    return float(np.sqrt(max(1.0 - (minor / major) ** 2, 0.0)))


def convex_area(region):
    """Area of the convex hull around the unit squares of the region's boundary pixels."""
    boundary_rows, boundary_cols = np.nonzero(perimeter(region))
    if boundary_rows.size == 0:
        return 0.0
    corners = np.concatenate([
        np.stack([boundary_cols + dx, boundary_rows + dy], axis=1)
        for dx in (-0.5, 0.5) for dy in (-0.5, 0.5)
    ]).astype(np.float32)
    hull = cv2.convexHull(corners)
    return float(cv2.contourArea(hull))


class BananaDetector:
    def __init__(self, config=None):
        self.config = config if config is not None else BananaConfig()
        # Structuring elements are fixed for the detector's lifetime
        self.close_kernel = disk_kernel(self.config.close_radius)
        self.open_kernel = disk_kernel(self.config.open_radius)

    def segment(self, rgb, h_min=None, h_max=None, s_min=None, v_min=None):
        """Boolean mask of pixels inside the (non-wrapping) HSV band."""
        validate_frame(rgb)
        overrides = {name: value for name, value in (
            ("hue_min", h_min), ("hue_max", h_max), ("sat_min", s_min), ("val_min", v_min),
        ) if value is not None}
        # Explicit bounds get the same range checks as the config itself
        cfg = self.config.with_overrides(**overrides) if overrides else self.config

        h, s, v = rgb_to_hsv(rgb)
        return (h >= cfg.hue_min) & (h <= cfg.hue_max) & (s >= cfg.sat_min) & (v >= cfg.val_min)

    def clean(self, mask):
        """
        Clean-up morphology, in order:
        1) remove specks 2) close (bridge gaps) 3) open (smooth noise) 4) fill holes
        Each step consumes the previous step's output.
        """
        m = remove_small_objects(mask, self.config.min_object_size)
        m8 = m.astype(np.uint8)
        # Default border values: dilation sees background, erosion sees foreground
        m8 = cv2.morphologyEx(m8, cv2.MORPH_CLOSE, self.close_kernel)
        m8 = cv2.morphologyEx(m8, cv2.MORPH_OPEN, self.open_kernel)
        return fill_holes(m8 > 0)

    def measure(self, mask):
        """Measure 8-connected blobs, ordered by their first pixel in a row-major scan."""
        n, labels, stats, _ = cv2.connectedComponentsWithStats(mask.astype(np.uint8), connectivity=8)
        if n <= 1:
            return []

        ids, first = np.unique(labels.ravel(), return_index=True)
        fg = ids > 0
        order = ids[fg][np.argsort(first[fg], kind="stable")]

        components = []
        for lab in order:
            x, y, w, h, area = (int(v) for v in stats[lab])
            region = labels[y:y + h, x:x + w] == lab
            rows, cols = np.nonzero(region)
            hull_area = convex_area(region)
            if area <= 1 or hull_area <= 0:
                ecc, sol = 0.0, 0.0
            else:
                ecc = ellipse_eccentricity(rows.astype(np.float64), cols.astype(np.float64))
                sol = area / hull_area
            components.append(Component(area=area, bbox=(x, y, w, h),
                                        convex_area=hull_area, eccentricity=ecc, solidity=sol))
        return components

    def classify(self, components, config=None):
        cfg = config if config is not None else self.config
        return [
            c.area > cfg.area_min
            and c.eccentricity >= cfg.ecc_min
            and cfg.sol_min <= c.solidity <= cfg.sol_max
            and c.convexity_deficit >= cfg.curve_min
            for c in components
        ]

    def annotate(self, rgb, mask, components, flags):
        """Green perimeter + red labelled boxes on a copy of the frame."""
        validate_frame(rgb)
        out = rgb.copy()
        if not any(flags):
            return out

        out[perimeter(mask)] = PERIM_COLOR
        for c, flag in zip(components, flags):
            if flag:
                self.draw_box(out, c.bbox)
        return out

    def draw_box(self, out, bbox):
        x, y, w, h = bbox
        H, W = out.shape[:2]
        cv2.rectangle(out, (x, y), (x + w - 1, y + h - 1), BOX_COLOR, BOX_LINE_WIDTH)

        (tw, th), base = cv2.getTextSize(LABEL_TEXT, LABEL_FONT, LABEL_SCALE, LABEL_THICKNESS)
        bw, bh = tw + 2 * LABEL_PAD, th + base + 2 * LABEL_PAD
        # Keep the label box inside the frame
        bx = min(max(x, 0), max(W - bw, 0))
        by = min(max(y - LABEL_OFFSET, 0), max(H - bh, 0))

        roi = out[by:by + bh, bx:bx + bw]
        box = np.full_like(roi, BOX_COLOR)
        out[by:by + bh, bx:bx + bw] = cv2.addWeighted(box, LABEL_OPACITY, roi, 1.0 - LABEL_OPACITY, 0)
        cv2.putText(out, LABEL_TEXT, (bx + LABEL_PAD, by + LABEL_PAD + th),
                    LABEL_FONT, LABEL_SCALE, TEXT_COLOR, LABEL_THICKNESS, cv2.LINE_AA)

    def process_rgb(self, rgb):
        """
        Full pipeline for a single RGB frame:
        1) HSV mask 2) Clean-up morphology 3) Measure blobs 4) Classify 5) Overlay
        Returns: (annotated RGB frame, detections).
        """
        validate_frame(rgb)

        mask = self.segment(rgb)
        cleaned = self.clean(mask)
        components = self.measure(cleaned)
        flags = self.classify(components)
        out = self.annotate(rgb, cleaned, components, flags)

        results = [DetectionResult(True, c.bbox) for c, f in zip(components, flags) if f]
        logger.debug("mask=%d px, cleaned=%d px, blobs=%d, bananas=%d",
                     int(mask.sum()), int(cleaned.sum()), len(components), len(results))
        return out, results

    def process_bgr(self, bgr):
        """Same as process_rgb for frames straight from OpenCV (BGR in, BGR out)."""
        validate_frame(bgr)
        out, results = self.process_rgb(cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB))
        return cv2.cvtColor(out, cv2.COLOR_RGB2BGR), results

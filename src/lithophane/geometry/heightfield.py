"""
Height Field Builder.

Turns an RGBA pixel buffer at grid resolution into normalized depth values
plus a hole mask.

Algorithm (fixed order):
1. Per-pixel brightness / contrast / gamma adjustment, re-quantized to 8 bit
2. Optional box blur, radius = round(smoothing * 3), edge samples skipped
3. Luminance 0.299 R + 0.587 G + 0.114 B
4. Background removal: luminance > threshold becomes a hole
5. Quantization into layer_count levels
6. Inversion
7. Silhouette cuts: mounting hole, round (circle / oval) outline
8. Border profile override on non-hole cells
9. Layer visibility mask on the final physical layer index

Rounding is half-up everywhere (floor(x + 0.5)), so a luminance exactly
between two levels always lands on the upper one.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from scipy.ndimage import uniform_filter

from ..common.config import LithophaneConfig
from ..common.errors import GridSizeLimitError, ImageDecodeError
from .border import compute_border

logger = logging.getLogger(__name__)

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])


def round_half_up(values: np.ndarray) -> np.ndarray:
    return np.floor(np.asarray(values, dtype=np.float64) + 0.5)


@dataclass(frozen=True)
class HeightField:
    """
    Normalized depth grid for one render pass.

    depth: (H, W) float64, >= 0 and finite (border cells may exceed 1)
    hole:  (H, W) bool, True where the cell is cut away
    border: (H, W) bool, True where the border profile set the depth
    levels: number of quantization layers

    Both arrays are read-only once built.
    """
    depth: np.ndarray
    hole: np.ndarray
    border: np.ndarray
    levels: int

    def __post_init__(self):
        for arr in (self.depth, self.hole, self.border):
            arr.setflags(write=False)

    @property
    def width(self) -> int:
        return self.depth.shape[1]

    @property
    def height(self) -> int:
        return self.depth.shape[0]

    @property
    def shape(self) -> Tuple[int, int]:
        return self.depth.shape

    @property
    def filled(self) -> np.ndarray:
        return ~self.hole

    @property
    def n_holes(self) -> int:
        return int(self.hole.sum())

    def layer_index(self) -> np.ndarray:
        """Physical layer index per cell, -1 for holes."""
        idx = round_half_up(self.depth * (self.levels - 1)).astype(np.int64)
        return np.where(self.hole, -1, idx)


def check_grid_size(width: int, height: int, config: LithophaneConfig) -> None:
    """Raise GridSizeLimitError before allocating an oversized grid."""
    if width * height > config.max_grid_cells:
        raise GridSizeLimitError(width, height, config.max_grid_cells)


def adjust_pixels(
    rgb: np.ndarray,
    brightness: float = 1.0,
    contrast: float = 1.0,
    gamma: float = 1.0
) -> np.ndarray:
    """
    Apply brightness, contrast and gamma to 8-bit channels.

    Args:
        rgb: (H, W, 3) uint8
        brightness: Multiplier on the [0, 1] channel value
        contrast: Scale about 0.5
        gamma: Exponent 1 / gamma, skipped when 1

    Returns:
        (H, W, 3) uint8
    """
    if brightness == 1.0 and contrast == 1.0 and gamma == 1.0:
        return rgb

    v = rgb.astype(np.float64) / 255.0
    v = v * brightness
    v = (v - 0.5) * contrast + 0.5
    if gamma != 1.0:
        v = np.power(np.clip(v, 0.0, 1.0), 1.0 / gamma)
    v = np.clip(v, 0.0, 1.0)
    return round_half_up(v * 255.0).astype(np.uint8)


def box_blur(rgb: np.ndarray, radius: int) -> np.ndarray:
    """
    Mean over a (2r+1)^2 window, averaging only samples inside the grid.

    Args:
        rgb: (H, W, C) uint8
        radius: Window radius in cells; 0 returns the input

    Returns:
        (H, W, C) uint8
    """
    if radius <= 0:
        return rgb

    size = 2 * radius + 1
    # Zero padding plus a coverage map gives the variable-count edge mean
    coverage = uniform_filter(np.ones(rgb.shape[:2]), size=size, mode='constant', cval=0.0)
    out = np.empty_like(rgb)
    for c in range(rgb.shape[2]):
        total = uniform_filter(rgb[..., c].astype(np.float64), size=size, mode='constant', cval=0.0)
        out[..., c] = np.clip(round_half_up(total / coverage), 0, 255).astype(np.uint8)
    return out


def luminance(rgb: np.ndarray) -> np.ndarray:
    """Rec. 601 luma of an (H, W, 3) array, in 0-255."""
    return rgb.astype(np.float64) @ LUMA_WEIGHTS


def quantize(lum: np.ndarray, levels: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Snap luminance to one of `levels` evenly spaced heights.

    Returns:
        (layer_index, value) with value = layer_index / (levels - 1)
    """
    step = 1.0 / (levels - 1)
    layer_index = round_half_up((lum / 255.0) / step).astype(np.int64)
    layer_index = np.clip(layer_index, 0, levels - 1)
    return layer_index, layer_index * step


def _as_rgb(pixels: np.ndarray) -> np.ndarray:
    pixels = np.asarray(pixels)
    if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
        raise ImageDecodeError(f"Expected an (H, W, 3|4) pixel buffer, got shape {pixels.shape}")
    if pixels.shape[0] == 0 or pixels.shape[1] == 0:
        raise ImageDecodeError("Pixel buffer is empty")
    if pixels.dtype != np.uint8:
        raise ImageDecodeError(f"Expected uint8 channels, got {pixels.dtype}")
    return pixels[..., :3]


def build_height_field(pixels: np.ndarray, config: LithophaneConfig) -> HeightField:
    """
    Build the height field for a pixel buffer already at grid resolution.

    Args:
        pixels: (H, W, 4) or (H, W, 3) uint8 buffer
        config: Validated configuration snapshot

    Returns:
        HeightField
    """
    rgb = _as_rgb(pixels)
    height, width = rgb.shape[:2]
    check_grid_size(width, height, config)
    levels = config.layer_count

    # 1-2. Pixel adjustments
    rgb = adjust_pixels(rgb, config.brightness, config.contrast, config.gamma)
    rgb = box_blur(rgb, config.smoothing_radius)

    # 3-4. Luminance and background removal
    lum = luminance(rgb)
    hole = np.zeros((height, width), dtype=bool)
    if config.background_removal:
        hole |= lum > config.background_threshold

    # 5-6. Quantize, invert
    _, val = quantize(lum, levels)
    depth = 1.0 - val if config.invert else val

    # 7. Silhouette cuts
    if config.mounting.enabled:
        cx = width / 2.0
        cy = config.mounting.offset_mm / config.pixel_size_mm
        radius = config.mounting.diameter_mm / 2.0 / config.pixel_size_mm
        ys, xs = np.mgrid[0:height, 0:width]
        hole |= np.hypot(xs - cx, ys - cy) <= radius

    overlay = compute_border(config, width, height)
    hole |= overlay.cut

    # 8. Border override, holes win
    border = overlay.region & ~hole
    depth = np.where(border, overlay.depth, depth)

    # 9. Visibility by physical layer; border cells stay solid
    visibility = np.asarray(config.effective_layer_visibility(), dtype=bool)
    if not visibility.all():
        layer = np.clip(round_half_up(depth * (levels - 1)).astype(np.int64), 0, levels - 1)
        hidden = ~visibility[layer] & ~border
        hole |= hidden

    depth = np.where(hole, 0.0, depth)
    logger.info(f"Height field {width}x{height}: {int(hole.sum())} hole cells, "
                f"{int(border.sum())} border cells")

    return HeightField(
        depth=np.ascontiguousarray(depth, dtype=np.float64),
        hole=hole,
        border=border & ~hole,
        levels=levels
    )

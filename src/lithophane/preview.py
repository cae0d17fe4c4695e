"""
Preview raster.

A grayscale + alpha view of the height field for display only: depth is
clipped to [0, 1] and scaled to 0-255, holes are fully transparent.
"""

import logging

import numpy as np

from .geometry.heightfield import HeightField, round_half_up

logger = logging.getLogger(__name__)


def render_preview(field: HeightField, max_size: int = 512) -> np.ndarray:
    """
    Render a height field as an (h, w, 2) uint8 gray/alpha image.

    Args:
        field: Height field to display
        max_size: Longest side of the result; larger grids are sampled
            nearest-neighbour

    Returns:
        (h, w, 2) uint8 array
    """
    gray = np.floor(np.clip(field.depth, 0.0, 1.0) * 255).astype(np.uint8)
    gray = np.where(field.hole, 0, gray).astype(np.uint8)
    alpha = np.where(field.hole, 0, 255).astype(np.uint8)
    preview = np.stack([gray, alpha], axis=-1)

    h, w = field.shape
    longest = max(h, w)
    if max_size > 0 and longest > max_size:
        scale = max_size / longest
        rows = np.minimum((np.arange(max(1, int(round_half_up(h * scale)))) / scale).astype(int), h - 1)
        cols = np.minimum((np.arange(max(1, int(round_half_up(w * scale)))) / scale).astype(int), w - 1)
        preview = preview[rows[:, None], cols[None, :]]
        logger.debug(f"Preview downsampled {w}x{h} -> {preview.shape[1]}x{preview.shape[0]}")

    return preview

"""
Border profiles.

A border profile maps a normalized distance-to-edge t (0 = outer edge,
1 = inner/image boundary) to an absolute height Z(t) in mm above the base.
The height field builder converts Z back into normalized depth so border
cells flow through the surface mapper exactly like image cells.

Profiles are plain array functions selected once per request from PROFILES.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict

import numpy as np

from ..common.config import BorderType, LithophaneConfig, ShapeType

logger = logging.getLogger(__name__)

ProfileFn = Callable[[np.ndarray, float], np.ndarray]


def flat_profile(t: np.ndarray, depth_mm: float) -> np.ndarray:
    return np.full_like(t, depth_mm, dtype=np.float64)


def rounded_profile(t: np.ndarray, depth_mm: float) -> np.ndarray:
    """Quarter cosine: full height at the outer edge, ~0 at the image."""
    return depth_mm * np.cos(t * (np.pi / 2))


def chamfer_profile(t: np.ndarray, depth_mm: float) -> np.ndarray:
    return depth_mm * (1.0 - t)


def frame_profile(t: np.ndarray, depth_mm: float) -> np.ndarray:
    """
    Decorative picture-frame moulding over four bands of t.

    [0.0, 0.2)  flat lip at depth_mm
    [0.2, 0.4)  cosine groove dipping to 0.8 * depth_mm
    [0.4, 0.8)  sinusoidal bead from 0.6 * depth_mm up to depth_mm and back
    [0.8, 1.0]  linear taper from 0.6 * depth_mm to 0
    """
    t = np.asarray(t, dtype=np.float64)
    groove_s = (t - 0.2) / 0.2
    bead_s = (t - 0.4) / 0.4
    taper_s = (t - 0.8) / 0.2

    lip = np.full_like(t, depth_mm)
    groove = depth_mm * (1.0 - 0.1 * (1.0 - np.cos(2 * np.pi * groove_s)))
    bead = depth_mm * (0.6 + 0.4 * np.sin(np.pi * bead_s))
    taper = depth_mm * 0.6 * (1.0 - taper_s)

    return np.select(
        [t < 0.2, t < 0.4, t < 0.8],
        [lip, groove, bead],
        default=taper
    )


PROFILES: Dict[BorderType, ProfileFn] = {
    BorderType.FLAT: flat_profile,
    BorderType.ROUNDED: rounded_profile,
    BorderType.CHAMFER: chamfer_profile,
    BorderType.FRAME: frame_profile,
    BorderType.OVAL: rounded_profile,
}


def border_height(border_type: BorderType, t: np.ndarray, depth_mm: float) -> np.ndarray:
    """
    Absolute border height Z(t) in mm for a border type.

    Args:
        border_type: Any type except BorderType.NONE
        t: Normalized distance to the outer edge, clipped to [0, 1]
        depth_mm: Border depth above the base

    Returns:
        Array of heights with the shape of t
    """
    if border_type not in PROFILES:
        raise ValueError(f"No border profile for {border_type}")
    t = np.clip(np.asarray(t, dtype=np.float64), 0.0, 1.0)
    return PROFILES[border_type](t, depth_mm)


def radial_distance(width: int, height: int) -> np.ndarray:
    """
    Elliptical radius of every cell in [-1, 1]-normalized coordinates.

    1.0 lies on the ellipse inscribed in the grid; corners reach sqrt(2).
    """
    half_w = max((width - 1) / 2.0, 0.5)
    half_h = max((height - 1) / 2.0, 0.5)
    u = (np.arange(width) - (width - 1) / 2.0) / half_w
    v = (np.arange(height) - (height - 1) / 2.0) / half_h
    return np.sqrt(u[None, :] ** 2 + v[:, None] ** 2)


def edge_distance(width: int, height: int) -> np.ndarray:
    """Cell distance to the nearest grid edge (0 on the outermost ring)."""
    xs = np.arange(width)
    ys = np.arange(height)
    dist_x = np.minimum(xs, width - 1 - xs)
    dist_y = np.minimum(ys, height - 1 - ys)
    return np.minimum(dist_x[None, :], dist_y[:, None])


@dataclass(frozen=True)
class BorderOverlay:
    """
    Border contribution for one grid.

    region: cells whose depth is replaced by the border profile
    depth: replacement normalized depth (valid where region is True)
    cut: cells outside the silhouette that must become holes
    """
    region: np.ndarray
    depth: np.ndarray
    cut: np.ndarray


def compute_border(config: LithophaneConfig, width: int, height: int) -> BorderOverlay:
    """
    Evaluate the configured border over a width x height grid.

    Rectangular types cover cells within border_pixels of the nearest edge
    with t = distance / border_pixels. OVAL cuts everything outside the
    inscribed ellipse and shapes the ring of width border_pixels inside it.
    CIRCLE shape without an OVAL border only cuts the silhouette.
    """
    shape = (height, width)
    region = np.zeros(shape, dtype=bool)
    depth = np.zeros(shape, dtype=np.float64)
    cut = np.zeros(shape, dtype=bool)

    border = config.border
    border_px = config.border_pixels
    round_silhouette = border.type is BorderType.OVAL or config.shape.type is ShapeType.CIRCLE

    if round_silhouette:
        d = radial_distance(width, height)
        cut = d > 1.0

    if border.type is BorderType.NONE or border_px <= 0:
        return BorderOverlay(region=region, depth=depth, cut=cut)

    if border.type is BorderType.OVAL:
        width_uv = border_px / (min(width, height) / 2.0)
        t = (1.0 - d) / width_uv
        region = ~cut & (t < 1.0)
    else:
        dist = edge_distance(width, height)
        region = dist < border_px
        t = dist / float(border_px)

    z = border_height(border.type, t, border.depth_mm)
    depth = (z - config.min_height) / config.height_range
    # Never thinner than min_height; taller borders may exceed depth 1
    depth = np.maximum(depth, 0.0)

    logger.debug(f"Border {border.type.value}: {int(region.sum())} cells, "
                 f"{int(cut.sum())} cut")
    return BorderOverlay(region=region, depth=np.where(region, depth, 0.0), cut=cut)

"""
Surface Mapper.

Projects every height field cell onto the configured parametric shape,
producing an outer surface point at the cell's absolute thickness and an
inner point on the shape's base plane / radius.

Axis conventions keep the outer point further from the base than the inner
one and keep the grid's (x right, row up) orientation counter-clockwise when
seen from outside, so the stitcher's winding yields outward normals for
every shape:

- flat:     (x, y, T) / (x, y, 0)
- cylinder: ((R+T) sin θ, y, (R+T) cos θ), θ = u 2π, R = width / 2π
- arc:      as cylinder with θ = (u - 0.5) angle, R = width / angle,
            shifted by -R in z so the middle of the base touches z = 0
- sphere:   (R+T)(sin φ cos θ, sin φ sin θ, cos φ), θ = u 2π, φ = v π
- circle:   flat; the round outline comes from the height field's cut mask
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

import numpy as np

from ..common.config import LithophaneConfig, ShapeType
from .heightfield import HeightField

logger = logging.getLogger(__name__)

# Below this arc angle the radius is effectively infinite
MIN_ARC_RADIANS = 1e-4


@dataclass(frozen=True)
class GridCoordinates:
    """Per-cell parameters shared by every mapper, flattened row-major."""
    u: np.ndarray  # normalized column in [0, 1]
    v: np.ndarray  # normalized row in [0, 1], 0 = top
    x_mm: np.ndarray  # centred physical x
    y_mm: np.ndarray  # centred physical y, up positive
    thickness: np.ndarray  # absolute thickness T in mm
    width_mm: float
    height_mm: float


def physical_size(width: int, height: int, config: LithophaneConfig) -> Tuple[float, float]:
    """(width_mm, height_mm) of a grid; height keeps the grid aspect ratio."""
    return config.width_mm, (height / width) * config.width_mm


def cell_thickness(field: HeightField, config: LithophaneConfig) -> np.ndarray:
    """Absolute thickness per cell; hole cells collapse to the base."""
    t = config.base_mm + config.min_height + field.depth * config.height_range
    return np.where(field.hole, config.base_mm, t)


def grid_coordinates(field: HeightField, config: LithophaneConfig) -> GridCoordinates:
    h, w = field.shape
    width_mm, height_mm = physical_size(w, h, config)

    cols = np.arange(w, dtype=np.float64)
    rows = np.arange(h, dtype=np.float64)
    u = cols / (w - 1) if w > 1 else np.full(w, 0.5)
    v = rows / (h - 1) if h > 1 else np.full(h, 0.5)

    x_mm = u * width_mm - width_mm / 2
    y_mm = -(v * height_mm - height_mm / 2)

    uu, vv = np.meshgrid(u, v)
    xx, yy = np.meshgrid(x_mm, y_mm)
    return GridCoordinates(
        u=uu.ravel(),
        v=vv.ravel(),
        x_mm=xx.ravel(),
        y_mm=yy.ravel(),
        thickness=cell_thickness(field, config).ravel(),
        width_mm=width_mm,
        height_mm=height_mm
    )


def map_flat(g: GridCoordinates, config: LithophaneConfig) -> Tuple[np.ndarray, np.ndarray]:
    outer = np.column_stack([g.x_mm, g.y_mm, g.thickness])
    inner = np.column_stack([g.x_mm, g.y_mm, np.zeros_like(g.thickness)])
    return outer, inner


def _wrap(theta: np.ndarray, y: np.ndarray, radius: np.ndarray, z_offset: float = 0.0) -> np.ndarray:
    return np.column_stack([
        radius * np.sin(theta),
        y,
        radius * np.cos(theta) + z_offset
    ])


def map_cylinder(g: GridCoordinates, config: LithophaneConfig) -> Tuple[np.ndarray, np.ndarray]:
    """Width wraps once around; the seam columns coincide at θ = 0 and 2π."""
    base_radius = config.width_mm / (2 * np.pi)
    theta = g.u * 2 * np.pi
    outer = _wrap(theta, g.y_mm, base_radius + g.thickness)
    inner = _wrap(theta, g.y_mm, np.full_like(theta, base_radius))
    return outer, inner


def map_arc(g: GridCoordinates, config: LithophaneConfig) -> Tuple[np.ndarray, np.ndarray]:
    angle = math.radians(config.shape.angle_degrees)
    if angle < MIN_ARC_RADIANS:
        logger.warning(f"Arc angle {config.shape.angle_degrees} deg collapses the radius; "
                       f"mapping flat instead")
        return map_flat(g, config)

    base_radius = config.width_mm / angle
    theta = (g.u - 0.5) * angle
    outer = _wrap(theta, g.y_mm, base_radius + g.thickness, -base_radius)
    inner = _wrap(theta, g.y_mm, np.full_like(theta, base_radius), -base_radius)
    return outer, inner


def map_sphere(g: GridCoordinates, config: LithophaneConfig) -> Tuple[np.ndarray, np.ndarray]:
    """Rows run pole to pole; the pole rows collapse to single points."""
    base_radius = config.width_mm / (2 * np.pi)
    theta = g.u * 2 * np.pi
    phi = g.v * np.pi
    direction = np.column_stack([
        np.sin(phi) * np.cos(theta),
        np.sin(phi) * np.sin(theta),
        np.cos(phi)
    ])
    outer = direction * (base_radius + g.thickness)[:, None]
    inner = direction * base_radius
    return outer, inner


MAPPERS: Dict[ShapeType, Callable[[GridCoordinates, LithophaneConfig], Tuple[np.ndarray, np.ndarray]]] = {
    ShapeType.FLAT: map_flat,
    ShapeType.CIRCLE: map_flat,
    ShapeType.CYLINDER: map_cylinder,
    ShapeType.ARC: map_arc,
    ShapeType.SPHERE: map_sphere,
}


def map_surface(field: HeightField, config: LithophaneConfig) -> Tuple[np.ndarray, np.ndarray]:
    """
    Map a height field onto the configured shape.

    Args:
        field: Height field for this render pass
        config: Configuration snapshot (shape, thicknesses, width)

    Returns:
        Tuple of (outer, inner), each (H*W, 3) float64 in row-major cell order
    """
    mapper = MAPPERS[config.shape.type]
    coords = grid_coordinates(field, config)
    outer, inner = mapper(coords, config)
    logger.debug(f"Mapped {len(outer)} cells onto {config.shape.type.value} "
                 f"({coords.width_mm:.1f} x {coords.height_mm:.1f} mm)")
    return outer, inner

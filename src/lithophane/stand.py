"""
Display stand accessory.

A wedge-shaped stand with a slot tilted back 10 degrees, sized for a given
lithophane thickness. The side profile is extruded across the stand width
and re-oriented Z-up (X = width, Y = depth, Z = height) with its floor at
z = 0 and centred in X/Y. It shares nothing with the lithophane pipeline
except the Mesh container and the STL serializer.
"""

import logging
import math
from typing import List, Tuple

import numpy as np
import trimesh
from shapely.geometry import Polygon

from .common.config import BorderType, LithophaneConfig
from .common.errors import InvalidConfigurationError
from .common.mesh_ops import Mesh
from .geometry.stl import serialize_stl

logger = logging.getLogger(__name__)

SLOT_TOLERANCE_MM = 0.6
FLOOR_MM = 3.0
TILT_DEGREES = 10.0
STAND_WIDTH_MM = 60.0
STAND_DEPTH_MM = 40.0
BACK_SUPPORT_MM = 20.0
FRONT_LIP_MM = 8.0
BACK_SLOT_X_MM = 22.0  # back wall of the slot, at floor level
LEDGE_MM = 2.0  # flat top of the front lip


def stand_profile(thickness_mm: float) -> List[Tuple[float, float]]:
    """
    Side profile of the stand as (depth, height) points, front at x = 0.

    The slot walls are parallel, leaning back by TILT_DEGREES, and
    thickness_mm + SLOT_TOLERANCE_MM apart measured square to the walls.
    """
    tilt = math.radians(TILT_DEGREES)
    slot_width = thickness_mm + SLOT_TOLERANCE_MM

    def back_wall_x(y: float) -> float:
        return BACK_SLOT_X_MM + (y - FLOOR_MM) * math.tan(tilt)

    front_slot_x = BACK_SLOT_X_MM - slot_width / math.cos(tilt)

    def front_wall_x(y: float) -> float:
        return front_slot_x + (y - FLOOR_MM) * math.tan(tilt)

    back_top = back_wall_x(BACK_SUPPORT_MM)
    front_top = front_wall_x(FRONT_LIP_MM)

    return [
        (0.0, 0.0),
        (STAND_DEPTH_MM, 0.0),
        (STAND_DEPTH_MM, BACK_SUPPORT_MM),
        (back_top, BACK_SUPPORT_MM),
        (BACK_SLOT_X_MM, FLOOR_MM),
        (front_slot_x, FLOOR_MM),
        (front_top, FRONT_LIP_MM),
        (front_top - LEDGE_MM, FRONT_LIP_MM),
        (0.0, 2.0),
    ]


def generate_stand(thickness_mm: float) -> Mesh:
    """
    Build the stand mesh for a lithophane of the given thickness.

    Args:
        thickness_mm: Thickest point of the lithophane that must fit the slot

    Returns:
        Closed Mesh, floor at z = 0

    Raises:
        InvalidConfigurationError: if the thickness is not positive or the
            slot no longer fits inside the profile
    """
    if not math.isfinite(thickness_mm) or thickness_mm <= 0:
        raise InvalidConfigurationError(
            f"must be positive, got {thickness_mm}", "thickness_mm")

    points = stand_profile(thickness_mm)
    polygon = Polygon(points)
    if not polygon.is_valid or min(x for x, _ in points) < 0:
        raise InvalidConfigurationError(
            f"slot for {thickness_mm} mm does not fit the stand profile", "thickness_mm")

    extruded = trimesh.creation.extrude_polygon(polygon, height=STAND_WIDTH_MM)

    # (depth, height, width) -> (width, depth, height)
    vertices = np.asarray(extruded.vertices)[:, [2, 0, 1]]
    lo, hi = vertices.min(axis=0), vertices.max(axis=0)
    center = (lo + hi) / 2
    vertices = vertices - np.array([center[0], center[1], lo[2]])

    mesh = Mesh(vertices=vertices, faces=np.asarray(extruded.faces, dtype=np.int64))
    logger.info(f"Stand for {thickness_mm:.2f} mm: {mesh.n_faces} triangles")
    return mesh


def generate_stand_stl(thickness_mm: float) -> bytes:
    return serialize_stl(generate_stand(thickness_mm), header=b"Binary STL - lithophane stand")


def required_slot_thickness(config: LithophaneConfig) -> float:
    """Thickest point of a flat print under this configuration."""
    top = config.max_height
    if config.border.type is not BorderType.NONE:
        top = max(top, config.border.depth_mm)
    return config.base_mm + top

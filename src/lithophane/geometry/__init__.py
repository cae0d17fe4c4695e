"""
Geometry stages: height field, border profiles, surface mapping,
boundary stitching and STL serialization.
"""

from .heightfield import HeightField, build_height_field
from .border import border_height, compute_border
from .surface import map_surface
from .stitcher import BoundaryEdgeSet, stitch
from .stl import serialize_stl, parse_stl

__all__ = [
    "HeightField",
    "build_height_field",
    "border_height",
    "compute_border",
    "map_surface",
    "BoundaryEdgeSet",
    "stitch",
    "serialize_stl",
    "parse_stl",
]

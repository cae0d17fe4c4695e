"""
Lithophane - image to 3D-printable lithophane STL.

Pipeline stages:
- Height field: luminance -> quantized layers, holes, borders
- Surface mapping: flat, cylinder, arc, sphere, circle
- Stitching: top/bottom surfaces plus walls along every open edge
- Serialization: binary STL

Usage:
    lithophane photo.jpg -o outputs --layers 6 --shape arc --angle 120
"""

__version__ = "1.0.0"

from .common.config import LithophaneConfig, BorderType, ShapeType
from .pipeline import LithophaneResult, generate_lithophane, process_image_file
from .stand import generate_stand, generate_stand_stl

__all__ = [
    "LithophaneConfig",
    "BorderType",
    "ShapeType",
    "LithophaneResult",
    "generate_lithophane",
    "process_image_file",
    "generate_stand",
    "generate_stand_stl",
]

"""
Common modules shared by every stage of the lithophane pipeline.

Unit Model:
- Physical lengths are millimetres throughout
- Height field depth is normalized; thickness is reconstructed as
  base_mm + min_height + depth * (max_height - min_height)
"""

from .config import (
    LithophaneConfig, BorderSettings, ShapeSettings, MountingSettings,
    BorderType, ShapeType, DEFAULT_CONFIG,
)
from .errors import (
    LithophaneError, InvalidConfigurationError, ImageDecodeError,
    DegenerateGeometryError, EmptyMeshError, GridSizeLimitError, StlFormatError,
)
from .io import load_image, prepare_pixels, target_dimensions, save_mesh, load_mesh, MeshMetadata
from .mesh_ops import Mesh, count_open_edges, signed_volume, compute_mesh_stats

__all__ = [
    'LithophaneConfig', 'BorderSettings', 'ShapeSettings', 'MountingSettings',
    'BorderType', 'ShapeType', 'DEFAULT_CONFIG',
    'LithophaneError', 'InvalidConfigurationError', 'ImageDecodeError',
    'DegenerateGeometryError', 'EmptyMeshError', 'GridSizeLimitError', 'StlFormatError',
    'load_image', 'prepare_pixels', 'target_dimensions', 'save_mesh', 'load_mesh', 'MeshMetadata',
    'Mesh', 'count_open_edges', 'signed_volume', 'compute_mesh_stats',
]

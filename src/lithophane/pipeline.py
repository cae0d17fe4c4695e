"""
Lithophane pipeline.

image + config -> height field -> surface mapping -> stitched solid -> STL

Every call builds fresh objects from an immutable configuration snapshot and
an immutable pixel buffer; nothing is shared between calls, so identical
inputs give byte-identical output. Callers that re-render on option changes
simply discard results they no longer need.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np

from .common.config import LithophaneConfig
from .common.errors import EmptyMeshError
from .common.io import MeshMetadata, load_image, prepare_pixels, target_dimensions
from .common.mesh_ops import Mesh, count_open_edges
from .geometry.heightfield import HeightField, build_height_field, check_grid_size
from .geometry.stitcher import stitch
from .geometry.stl import serialize_stl
from .geometry.surface import map_surface, physical_size
from .preview import render_preview

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LithophaneResult:
    """Everything one render pass produces."""
    stl_bytes: bytes
    mesh: Mesh
    height_field: HeightField
    width: int  # grid cells
    height: int
    width_mm: float
    height_mm: float
    metadata: MeshMetadata
    preview: Optional[np.ndarray] = None  # (h, w, 2) gray/alpha


def generate_lithophane(
    pixels: np.ndarray,
    config: LithophaneConfig,
    preview_max_size: Optional[int] = 512,
    source: str = "<buffer>"
) -> LithophaneResult:
    """
    Run the full pipeline on a pixel buffer already at grid resolution.

    Args:
        pixels: (H, W, 4) uint8 RGBA buffer (see common.io.prepare_pixels)
        config: Configuration snapshot
        preview_max_size: Longest preview side, None to skip the preview
        source: Label recorded in the metadata

    Returns:
        LithophaneResult

    Raises:
        InvalidConfigurationError: invalid option snapshot
        ImageDecodeError: malformed pixel buffer
        GridSizeLimitError: grid above config.max_grid_cells
        EmptyMeshError: nothing left to print after masking
    """
    config.validate()

    field = build_height_field(pixels, config)
    if not field.filled.any():
        raise EmptyMeshError("Every cell was masked; nothing to print")

    outer, inner = map_surface(field, config)
    stitched = stitch(field, outer, inner)
    mesh = stitched.mesh
    if mesh.n_faces == 0:
        raise EmptyMeshError("No 2x2 block of filled cells remains; nothing to print")

    open_edges = count_open_edges(mesh.faces)
    if open_edges:
        logger.warning(f"Stitched mesh has {open_edges} open edges")

    stl_bytes = serialize_stl(mesh)
    width_mm, height_mm = physical_size(field.width, field.height, config)

    metadata = MeshMetadata(
        source=source,
        grid_width=field.width,
        grid_height=field.height,
        width_mm=width_mm,
        height_mm=height_mm,
        n_triangles=mesh.n_faces,
        n_vertices=mesh.n_vertices,
        n_hole_cells=field.n_holes,
        n_wall_triangles=stitched.n_wall_triangles,
        is_watertight=open_edges == 0,
        shape=config.shape.type.value,
        border=config.border.type.value,
        generation_params=config.to_dict()
    )

    preview = None
    if preview_max_size is not None:
        preview = render_preview(field, preview_max_size)

    logger.info(f"Lithophane {width_mm:.1f} x {height_mm:.1f} mm: "
                f"{mesh.n_faces} triangles, {len(stl_bytes)} bytes")

    return LithophaneResult(
        stl_bytes=stl_bytes,
        mesh=mesh,
        height_field=field,
        width=field.width,
        height=field.height,
        width_mm=width_mm,
        height_mm=height_mm,
        metadata=metadata,
        preview=preview
    )


def process_image_file(
    path: Union[str, Path],
    config: LithophaneConfig,
    preview_max_size: Optional[int] = 512
) -> LithophaneResult:
    """Decode, resize and convert an image file."""
    config.validate()
    image = load_image(path)
    check_grid_size(*target_dimensions(image.width, image.height, config), config)
    pixels = prepare_pixels(image, config)
    return generate_lithophane(pixels, config, preview_max_size, source=str(path))

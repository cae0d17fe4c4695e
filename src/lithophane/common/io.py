"""
Data I/O utilities.

Handles decoding source images into RGBA grids at the target resolution and
saving STL output with a JSON metadata sidecar. Image decoding and byte
emission are the only places the pipeline touches external resources.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np
import trimesh
from PIL import Image, UnidentifiedImageError

from .config import LithophaneConfig
from .errors import ImageDecodeError

logger = logging.getLogger(__name__)


@dataclass
class MeshMetadata:
    """
    Metadata saved next to every exported STL.

    Sizes are in millimetres; grid sizes in cells.
    """
    source: str
    grid_width: int
    grid_height: int
    width_mm: float
    height_mm: float
    n_triangles: int
    n_vertices: int
    n_hole_cells: int
    n_wall_triangles: int
    is_watertight: bool
    shape: str
    border: str
    generation_params: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "grid_width": self.grid_width,
            "grid_height": self.grid_height,
            "width_mm": self.width_mm,
            "height_mm": self.height_mm,
            "n_triangles": self.n_triangles,
            "n_vertices": self.n_vertices,
            "n_hole_cells": self.n_hole_cells,
            "n_wall_triangles": self.n_wall_triangles,
            "is_watertight": self.is_watertight,
            "shape": self.shape,
            "border": self.border,
            "generation_params": self.generation_params
        }

    def save(self, path: Path) -> None:
        """Save metadata to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MeshMetadata":
        return cls(**data)


def target_dimensions(
    image_width: int,
    image_height: int,
    config: LithophaneConfig
) -> Tuple[int, int]:
    """
    Grid size for an image under a configuration.

    The width follows width_mm / pixel_size_mm; the height keeps the image
    aspect ratio. Both are rounded half-up and at least 1.

    Returns:
        (target_width, target_height) in cells
    """
    if image_width <= 0 or image_height <= 0:
        raise ImageDecodeError(f"Image has no pixels ({image_width}x{image_height})")
    target_width = max(1, int(np.floor(config.width_mm / config.pixel_size_mm + 0.5)))
    scale = target_width / image_width
    target_height = max(1, int(np.floor(image_height * scale + 0.5)))
    return target_width, target_height


def load_image(path: Union[str, Path]) -> Image.Image:
    """
    Decode an image file into an RGBA Pillow image.

    Raises:
        ImageDecodeError: if the file is missing or cannot be decoded
    """
    path = Path(path)
    try:
        with Image.open(path) as img:
            img.load()
            rgba = img.convert("RGBA")
    except Image.DecompressionBombError as e:
        raise ImageDecodeError(f"Image {path} is too large to decode: {e}") from e
    except (OSError, UnidentifiedImageError, ValueError) as e:
        raise ImageDecodeError(f"Could not decode {path}: {e}") from e

    logger.info(f"Loaded image {path} ({rgba.width}x{rgba.height})")
    return rgba


def prepare_pixels(image: Image.Image, config: LithophaneConfig) -> np.ndarray:
    """
    Resize an image to the configured grid and return its RGBA buffer.

    Args:
        image: Decoded Pillow image (any mode)
        config: Configuration supplying width_mm and pixel_size_mm

    Returns:
        (H, W, 4) uint8 array
    """
    width, height = target_dimensions(image.width, image.height, config)
    resized = image.convert("RGBA").resize((width, height), Image.Resampling.BILINEAR)
    logger.debug(f"Resized {image.width}x{image.height} -> {width}x{height}")
    return np.asarray(resized, dtype=np.uint8).copy()


def save_mesh(
    stl_bytes: bytes,
    path: Path,
    metadata: Optional[MeshMetadata] = None
) -> None:
    """
    Save binary STL bytes with an optional metadata sidecar.

    Args:
        stl_bytes: Serialized binary STL
        path: Output path (should end in .stl)
        metadata: MeshMetadata object (saved as .json sidecar)
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, 'wb') as f:
        f.write(stl_bytes)
    logger.info(f"Saved mesh: {path} ({len(stl_bytes)} bytes)")

    if metadata is not None:
        meta_path = path.with_suffix('.json')
        metadata.save(meta_path)
        logger.info(f"Saved metadata: {meta_path}")


def load_mesh(path: Path) -> Tuple[trimesh.Trimesh, Optional[MeshMetadata]]:
    """
    Load mesh and its metadata sidecar.

    Args:
        path: Path to mesh file

    Returns:
        Tuple of (mesh, metadata) - metadata may be None if not found
    """
    path = Path(path)
    mesh = trimesh.load(str(path), force='mesh')

    meta_path = path.with_suffix('.json')
    metadata = None
    if meta_path.exists():
        with open(meta_path) as f:
            metadata = MeshMetadata.from_dict(json.load(f))

    return mesh, metadata


def save_preview(preview: np.ndarray, path: Path) -> None:
    """Save an (H, W, 2) grayscale+alpha preview raster as PNG."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(np.ascontiguousarray(preview, dtype=np.uint8)).save(path)
    logger.info(f"Saved preview: {path}")

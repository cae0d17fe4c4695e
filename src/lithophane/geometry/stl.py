"""
Binary STL serializer.

Layout (little endian):
- 80-byte header
- uint32 triangle count
- per triangle: float32 normal[3], float32 vertex[3][3], uint16 attribute (0)

Zero-area facets are written with a zero normal; facets with non-finite
coordinates are skipped. Both are logged, neither aborts the export.
"""

import logging
import struct
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..common.errors import StlFormatError
from ..common.mesh_ops import Mesh

logger = logging.getLogger(__name__)

HEADER_SIZE = 80
DEFAULT_HEADER = b"Binary STL - lithophane"

STL_RECORD = np.dtype([
    ('normal', '<f4', (3,)),
    ('vertices', '<f4', (3, 3)),
    ('attribute', '<u2'),
])


@dataclass
class StlData:
    """Parsed binary STL contents."""
    header: bytes
    normals: np.ndarray    # (M, 3) float32
    triangles: np.ndarray  # (M, 3, 3) float32
    attributes: np.ndarray  # (M,) uint16

    @property
    def n_triangles(self) -> int:
        return len(self.triangles)


def _header(text: Optional[bytes]) -> bytes:
    text = DEFAULT_HEADER if text is None else text
    if text.startswith(b"solid"):
        # ASCII STL readers sniff this prefix
        text = b"binary " + text
    return text[:HEADER_SIZE].ljust(HEADER_SIZE, b"\x00")


def serialize_stl(mesh: Mesh, header: Optional[bytes] = None) -> bytes:
    """
    Encode a mesh as binary STL.

    Args:
        mesh: Indexed triangle mesh
        header: Optional header text (truncated/padded to 80 bytes)

    Returns:
        STL file contents
    """
    tris = mesh.vertices[mesh.faces].reshape(-1, 3, 3)
    normals, degenerate = mesh.face_normals()

    finite = np.isfinite(tris).all(axis=(1, 2))
    if not finite.all():
        logger.warning(f"Skipping {int((~finite).sum())} facets with non-finite coordinates")
        tris, normals, degenerate = tris[finite], normals[finite], degenerate[finite]

    if degenerate.any():
        logger.warning(f"{int(degenerate.sum())} zero-area facets written with zero normals")

    records = np.zeros(len(tris), dtype=STL_RECORD)
    records['normal'] = normals
    records['vertices'] = tris

    data = _header(header) + struct.pack('<I', len(records)) + records.tobytes()
    logger.info(f"Serialized {len(records)} triangles ({len(data)} bytes)")
    return data


def parse_stl(data: bytes) -> StlData:
    """
    Decode binary STL bytes.

    Raises:
        StlFormatError: if the buffer is truncated or the count mismatches
    """
    if len(data) < HEADER_SIZE + 4:
        raise StlFormatError(f"STL buffer too short ({len(data)} bytes)")

    (count,) = struct.unpack_from('<I', data, HEADER_SIZE)
    expected = HEADER_SIZE + 4 + count * STL_RECORD.itemsize
    if len(data) != expected:
        raise StlFormatError(
            f"STL declares {count} triangles ({expected} bytes) but buffer has {len(data)} bytes")

    if count == 0:
        records = np.zeros(0, dtype=STL_RECORD)
    else:
        records = np.frombuffer(data, dtype=STL_RECORD, count=count, offset=HEADER_SIZE + 4)
    return StlData(
        header=bytes(data[:HEADER_SIZE]),
        normals=records['normal'].copy(),
        triangles=records['vertices'].copy(),
        attributes=records['attribute'].copy()
    )

"""
Mesh operation utilities.

Common mesh operations: the indexed Mesh container, manifold checks,
statistics.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Tuple

import numpy as np
import trimesh

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Mesh:
    """
    An indexed triangle mesh in millimetres.

    Lithophane meshes interleave vertices per grid cell: vertex 2*i is the
    outer surface point of cell i and vertex 2*i + 1 its inner partner.
    Face winding is counter-clockwise seen from outside the solid.
    """
    vertices: np.ndarray  # (N, 3) float64
    faces: np.ndarray     # (M, 3) int64

    @property
    def n_vertices(self) -> int:
        return len(self.vertices)

    @property
    def n_faces(self) -> int:
        return len(self.faces)

    @property
    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """Return (min_corner, max_corner) of the referenced vertices."""
        if self.n_faces == 0:
            return np.zeros(3), np.zeros(3)
        used = self.vertices[np.unique(self.faces)]
        return used.min(axis=0), used.max(axis=0)

    def face_normals(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Compute unit face normals.

        Returns:
            Tuple of (normals, degenerate) where degenerate flags faces with
            zero area; their normal is left as the zero vector.
        """
        tris = self.vertices[self.faces]
        cross = np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0])
        norms = np.linalg.norm(cross, axis=1)
        degenerate = ~(norms > 1e-12)
        normals = np.zeros_like(cross)
        ok = ~degenerate
        normals[ok] = cross[ok] / norms[ok, None]
        return normals, degenerate

    def to_trimesh(self) -> trimesh.Trimesh:
        """Wrap in a trimesh object without merging or reordering anything."""
        return trimesh.Trimesh(vertices=self.vertices, faces=self.faces, process=False)


def directed_edges(faces: np.ndarray) -> np.ndarray:
    """Return the (3M, 2) array of directed edges a->b, b->c, c->a."""
    faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
    return np.concatenate([faces[:, [0, 1]], faces[:, [1, 2]], faces[:, [2, 0]]])


def count_open_edges(faces: np.ndarray) -> int:
    """
    Number of directed edges without exactly one matching reverse edge.

    A closed, consistently wound 2-manifold uses every directed edge exactly
    once and always together with its reverse, so zero means watertight.
    """
    edges = directed_edges(faces)
    if len(edges) == 0:
        return 0

    stride = int(edges.max()) + 1
    keys, counts = np.unique(edges[:, 0] * stride + edges[:, 1], return_counts=True)
    reverse = (keys % stride) * stride + keys // stride
    pos = np.minimum(np.searchsorted(keys, reverse), len(keys) - 1)
    reverse_counts = np.where(keys[pos] == reverse, counts[pos], 0)
    return int(np.count_nonzero((counts != 1) | (reverse_counts != 1)))


def signed_volume(mesh: Mesh) -> float:
    """Signed enclosed volume in mm^3; positive when normals face outward."""
    if mesh.n_faces == 0:
        return 0.0
    tris = mesh.vertices[mesh.faces]
    return float(np.einsum('ij,ij->i', tris[:, 0], np.cross(tris[:, 1], tris[:, 2])).sum() / 6.0)


def compute_mesh_stats(mesh: Mesh) -> Dict[str, Any]:
    """
    Compute comprehensive mesh statistics.

    Args:
        mesh: Mesh object

    Returns:
        Dictionary of mesh statistics
    """
    if mesh.n_faces == 0:
        return {"n_vertices": mesh.n_vertices, "n_faces": 0, "is_watertight": False}

    tm = mesh.to_trimesh()
    lo, hi = mesh.bounds
    extents = hi - lo

    return {
        "n_vertices": mesh.n_vertices,
        "n_faces": mesh.n_faces,
        "bounds": {
            "min": lo.tolist(),
            "max": hi.tolist()
        },
        "extents": extents.tolist(),
        "max_extent": float(max(extents)),
        "volume": float(tm.volume) if tm.is_watertight else None,
        "surface_area": float(tm.area),
        "is_watertight": bool(tm.is_watertight),
        "is_winding_consistent": bool(tm.is_winding_consistent),
        "euler_number": int(tm.euler_number)
    }

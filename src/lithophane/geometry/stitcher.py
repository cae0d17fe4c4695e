"""
Boundary Stitcher.

Builds a closed solid from the filled cells of a height field:

1. Every 2x2 block of cells contributes up to two outer-surface triangles,
   one per diagonal combination whose three cells are all filled, so hole
   outlines of any shape are followed cell by cell.
2. Each outer triangle is mirrored onto the inner vertices with reversed
   winding.
3. Every directed edge of every outer triangle is toggled into a
   BoundaryEdgeSet. An edge whose reverse is already present cancels it
   (shared interior edge); whatever survives is the silhouette of the filled
   region: the outer rim and the rim of every hole.
4. Vertices where two fans meet at a single point are resolved by skipping
   the triangles around them, keeping every edge shared by exactly two faces.
5. Each surviving edge u->v gets one wall quad down to its inner partners
   u+1 -> v+1, split into two triangles wound outward.

Vertex layout is interleaved: cell i owns outer vertex 2i and inner 2i+1.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Tuple

import numpy as np

from ..common.mesh_ops import Mesh
from .heightfield import HeightField

logger = logging.getLogger(__name__)

Edge = Tuple[int, int]


class BoundaryEdgeSet:
    """
    Multiset of directed edges with XOR-style cancellation.

    Stored as a signed count per undirected key (lo, hi): +1 for lo->hi,
    -1 for hi->lo. Adding an edge whose reverse is present therefore removes
    both, and what is left after all triangles are added is exactly the set
    of edges bounding a single triangle.
    """

    def __init__(self):
        self._net: Dict[Edge, int] = {}

    def toggle(self, u: int, v: int) -> None:
        """Insert u->v, cancelling a stored v->u."""
        if u == v:
            return
        key, sign = ((u, v), 1) if u < v else ((v, u), -1)
        net = self._net.get(key, 0) + sign
        if net:
            self._net[key] = net
        else:
            del self._net[key]

    def add_triangles(self, faces: np.ndarray) -> "BoundaryEdgeSet":
        """
        Toggle all three directed edges of every face.

        Equivalent to calling toggle() edge by edge, but the cancellation is
        done in numpy so only surviving edges touch the dictionary.
        """
        faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
        if len(faces) == 0:
            return self

        edges = np.concatenate([faces[:, [0, 1]], faces[:, [1, 2]], faces[:, [2, 0]]])
        edges = edges[edges[:, 0] != edges[:, 1]]
        lo = np.minimum(edges[:, 0], edges[:, 1])
        hi = np.maximum(edges[:, 0], edges[:, 1])
        sign = np.where(edges[:, 0] < edges[:, 1], 1, -1)

        stride = int(hi.max()) + 1 if len(hi) else 1
        keys, inverse = np.unique(lo * stride + hi, return_inverse=True)
        net = np.zeros(len(keys), dtype=np.int64)
        np.add.at(net, inverse.ravel(), sign)

        survivors = net != 0
        for k, n in zip(keys[survivors], net[survivors]):
            key = (int(k // stride), int(k % stride))
            total = self._net.get(key, 0) + int(n)
            if total:
                self._net[key] = total
            else:
                self._net.pop(key, None)
        return self

    def merge(self, other: "BoundaryEdgeSet") -> "BoundaryEdgeSet":
        """Fold another (e.g. per-chunk) edge set into this one."""
        for key, n in other._net.items():
            total = self._net.get(key, 0) + n
            if total:
                self._net[key] = total
            else:
                self._net.pop(key, None)
        return self

    def edges(self) -> Iterator[Edge]:
        """Surviving directed edges in sorted key order."""
        for (a, b) in sorted(self._net):
            n = self._net[(a, b)]
            edge = (a, b) if n > 0 else (b, a)
            for _ in range(abs(n)):
                yield edge

    def to_array(self) -> np.ndarray:
        edges = list(self.edges())
        if not edges:
            return np.zeros((0, 2), dtype=np.int64)
        return np.array(edges, dtype=np.int64)

    def __len__(self) -> int:
        return sum(abs(n) for n in self._net.values())

    def __contains__(self, edge: Iterable[int]) -> bool:
        u, v = edge
        if u < v:
            return self._net.get((u, v), 0) > 0
        return self._net.get((v, u), 0) < 0


@dataclass(frozen=True)
class StitchResult:
    """Closed mesh plus the face counts of each stage."""
    mesh: Mesh
    n_surface_triangles: int  # outer surface only
    n_wall_triangles: int
    n_boundary_edges: int


def surface_triangles(filled: np.ndarray) -> np.ndarray:
    """
    Outer-surface triangles over a mask of filled cells.

    For a 2x2 block with corners TL TR / BL BR, the full split is
    (TL, BL, TR) + (TR, BL, BR). When exactly one corner is missing the
    single triangle of the remaining three is used instead.

    Args:
        filled: (H, W) bool

    Returns:
        (M, 3) int64 faces in outer vertex indices (2 * cell index)
    """
    h, w = filled.shape
    if h < 2 or w < 2:
        return np.zeros((0, 3), dtype=np.int64)

    cell = np.arange(h * w, dtype=np.int64).reshape(h, w) * 2
    tl, tr = cell[:-1, :-1], cell[:-1, 1:]
    bl, br = cell[1:, :-1], cell[1:, 1:]
    f_tl, f_tr = filled[:-1, :-1], filled[:-1, 1:]
    f_bl, f_br = filled[1:, :-1], filled[1:, 1:]

    candidates = [
        (f_tl & f_bl & f_tr, (tl, bl, tr)),
        (f_tr & f_bl & f_br, (tr, bl, br)),
        (f_tl & f_bl & f_br & ~f_tr, (tl, bl, br)),
        (f_tl & f_br & f_tr & ~f_bl, (tl, br, tr)),
    ]

    # Interleave per block so faces come out in row-major block order
    n_blocks = (h - 1) * (w - 1)
    faces = np.zeros((n_blocks, len(candidates), 3), dtype=np.int64)
    keep = np.zeros((n_blocks, len(candidates)), dtype=bool)
    for k, (mask, (a, b, c)) in enumerate(candidates):
        faces[:, k] = np.column_stack([a.ravel(), b.ravel(), c.ravel()])
        keep[:, k] = mask.ravel()
    return faces[keep]


def remove_pinch_vertices(faces: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Drop surface triangles around vertices where two fans touch at a point.

    A cell filled only diagonally to its neighbours can leave a vertex with
    two separate triangle fans. Walls down from such a vertex would share
    one vertical edge between four faces, so those facets are skipped until
    every boundary vertex has exactly one outgoing boundary edge.

    Returns:
        Tuple of (kept faces, directed boundary edges of the kept faces)
    """
    n_dropped = 0
    while True:
        boundary = BoundaryEdgeSet().add_triangles(faces).to_array()
        starts, counts = np.unique(boundary[:, 0], return_counts=True)
        pinched = starts[counts > 1]
        if len(pinched) == 0:
            break
        drop = np.isin(faces, pinched).any(axis=1)
        n_dropped += int(drop.sum())
        faces = faces[~drop]

    if n_dropped:
        logger.warning(f"Skipped {n_dropped} surface triangles at pinch vertices")
    return faces, boundary


def wall_triangles(boundary: np.ndarray) -> np.ndarray:
    """
    Wall quads for directed outer boundary edges u->v.

    The quad runs v -> u -> u+1 -> v+1, so it shares v->u with nothing but
    the outer triangle's u->v and u+1->v+1 with the inner triangle's v+1->u+1.
    """
    if len(boundary) == 0:
        return np.zeros((0, 3), dtype=np.int64)
    u = boundary[:, 0]
    v = boundary[:, 1]
    first = np.column_stack([v, u, u + 1])
    second = np.column_stack([v, u + 1, v + 1])
    return np.stack([first, second], axis=1).reshape(-1, 3)


def interleave(outer: np.ndarray, inner: np.ndarray) -> np.ndarray:
    """Vertex buffer with outer[i] at 2i and inner[i] at 2i + 1."""
    vertices = np.empty((len(outer) * 2, 3), dtype=np.float64)
    vertices[0::2] = outer
    vertices[1::2] = inner
    return vertices


def stitch(field: HeightField, outer: np.ndarray, inner: np.ndarray) -> StitchResult:
    """
    Build the closed lithophane solid.

    Args:
        field: Height field supplying the filled-cell mask
        outer: (H*W, 3) outer surface points
        inner: (H*W, 3) inner surface points

    Returns:
        StitchResult with faces ordered outer, inner, walls
    """
    top, boundary = remove_pinch_vertices(surface_triangles(field.filled))
    bottom = top[:, [0, 2, 1]] + 1
    walls = wall_triangles(boundary)

    faces = np.concatenate([top, bottom, walls]).astype(np.int64)
    mesh = Mesh(vertices=interleave(outer, inner), faces=faces)

    logger.info(f"Stitched {len(top)} surface triangles, {len(boundary)} boundary edges, "
                f"{len(walls)} wall triangles")
    return StitchResult(
        mesh=mesh,
        n_surface_triangles=len(top),
        n_wall_triangles=len(walls),
        n_boundary_edges=len(boundary)
    )

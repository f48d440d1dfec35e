"""
Cutter Location Surface
=======================
Builds the adaptive quad sampling grid that a drop-cutter projector is run on.

Why is this file needed?
------------------------
1. Initialization: It creates a square of half-extent ``far`` as a half-edge
   mesh with one bounded inner face and one outer face.
2. Refinement: It subdivides every bounded face into four child quads, pass
   by pass, until no side is longer than ``min_sampling``.
3. Hand-off: It exposes the vertex positions (the sample points) and lets an
   external projector write contact heights back into them.

Layout of the bounding square (counter-clockwise inner boundary):

    b  e1  a
    e2     e4
    c  e3  d
"""
from __future__ import annotations

import logging
import time
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

import numpy as np

from clsurface.config import (
    DEFAULT_FAR,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MIN_SAMPLING,
    LENGTH_TOLERANCE,
    SamplingSettings,
    exceeds_sampling,
)
from clsurface.exceptions import CLSurfaceError, ResourceLimitError, StructuralError
from clsurface.model.geometry_utils import midpoint, quad_center, side_lengths
from clsurface.model.halfedge import EdgeId, FaceId, HalfEdgeMesh, VertexId

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

# Face payload: the four corner vertices of a quad, counter-clockwise.
QuadCorners = tuple[VertexId, VertexId, VertexId, VertexId]

CLSurfaceMesh = HalfEdgeMesh[None, None, Optional[QuadCorners]]


class SurfaceState(Enum):
    UNINITIALIZED = "uninitialized"
    BOUNDING_QUAD_BUILT = "bounding_quad_built"
    SUBDIVIDED = "subdivided"


class CutterLocationSurface:
    """
    Cutter location surface.

    1) start with a square sized like the bounding box of the surface
    2) recursively subdivide until every edge is at most ``min_sampling``
    3) hand the vertex positions to a drop-cutter projector
    """

    def __init__(
        self,
        far: float = DEFAULT_FAR,
        min_sampling: float = DEFAULT_MIN_SAMPLING,
        max_depth: int = DEFAULT_MAX_DEPTH,
        deadline: Optional[float] = None,
    ) -> None:
        """
        Validate the sampling parameters. Nothing is built yet.

        Args:
            far: Half-extent of the bounding square.
            min_sampling: Target maximum edge length.
            max_depth: Maximum number of subdivision passes.
            deadline: Optional wall-clock budget in seconds for ``subdivide``.

        Raises:
            ConfigurationError: If a parameter is invalid.
            ResourceLimitError: If reaching ``min_sampling`` needs more than
                ``max_depth`` passes.
        """
        self.settings = SamplingSettings(far=far, min_sampling=min_sampling, max_depth=max_depth, deadline=deadline)
        self.settings.validate()
        self._check_depth_budget()

        self.mesh: CLSurfaceMesh = HalfEdgeMesh()
        self.state = SurfaceState.UNINITIALIZED
        self.depth = 0
        self.out_face: Optional[FaceId] = None

    def __str__(self) -> str:
        return f"CutterLocationSurface (nVerts={self.mesh.num_vertices()} , nEdges={self.mesh.num_edges()})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(far={self.far}, min_sampling={self.min_sampling}, "
            f"state={self.state.value}, depth={self.depth})"
        )

    @property
    def far(self) -> float:
        return self.settings.far

    @property
    def min_sampling(self) -> float:
        return self.settings.min_sampling

    def _check_depth_budget(self) -> None:
        needed = self.settings.required_depth
        if needed > self.settings.max_depth:
            raise ResourceLimitError(
                f"Sampling {self.settings.min_sampling} on a square of half-extent {self.settings.far} "
                f"needs {needed} subdivision passes, max_depth is {self.settings.max_depth}."
            )

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------
    def build(self) -> CutterLocationSurface:
        """Build the bounding square and refine it. Returns ``self``."""
        self.init_bounding_quad()
        self.subdivide()
        return self

    def init_bounding_quad(self) -> None:
        """Create the four corners, the inner and outer faces and their 8 half-edges."""
        if self.state is not SurfaceState.UNINITIALIZED:
            raise CLSurfaceError(f"Bounding quad already built (state={self.state.value}).")

        g = self.mesh
        far = self.far
        a = g.add_vertex((far, far, 0.0))
        b = g.add_vertex((-far, far, 0.0))
        c = g.add_vertex((-far, -far, 0.0))
        d = g.add_vertex((far, -far, 0.0))

        f_outer = g.add_face(outer=True)
        f_inner = g.add_face(data=(a, b, c, d))

        e1 = g.add_edge(a, b)
        e1t = g.add_edge(b, a)
        e2 = g.add_edge(b, c)
        e2t = g.add_edge(c, b)
        e3 = g.add_edge(c, d)
        e3t = g.add_edge(d, c)
        e4 = g.add_edge(d, a)
        e4t = g.add_edge(a, d)

        g.set_face_edge(f_inner, e1)
        g.set_face_edge(f_outer, e1t)
        self.out_face = f_outer

        for e, t in ((e1, e1t), (e2, e2t), (e3, e3t), (e4, e4t)):
            g.set_twin(e, t)

        inner = [e1, e2, e3, e4]
        outer = [e1t, e4t, e3t, e2t]
        for cycle, face in ((inner, f_inner), (outer, f_outer)):
            for e, n in zip(cycle, cycle[1:] + cycle[:1]):
                g.set_next(e, n)
                g.set_face(e, face)

        self._check_integrity()
        self.state = SurfaceState.BOUNDING_QUAD_BUILT
        logger.debug(f"Bounding quad built with far={far}.")

    def subdivide(self) -> None:
        """
        Refine pass by pass until no bounded face has a side longer than
        ``min_sampling``, the deadline expires, or the depth limit is hit.

        Raises:
            ResourceLimitError: If more passes than ``max_depth`` are needed.
            StructuralError: If the mesh is corrupted by a pass.
        """
        if self.state is SurfaceState.UNINITIALIZED:
            raise CLSurfaceError("Bounding quad has not been built, call init_bounding_quad() first.")

        started = time.monotonic()
        while True:
            pending = self.faces_to_refine()
            if not pending:
                break
            if self.depth >= self.settings.max_depth:
                raise ResourceLimitError(
                    f"{len(pending)} faces still exceed min_sampling={self.min_sampling} "
                    f"at max_depth={self.settings.max_depth}."
                )
            deadline = self.settings.deadline
            if deadline is not None and time.monotonic() - started > deadline:
                logger.warning(
                    f"Deadline of {deadline}s reached at depth {self.depth}, "
                    f"{len(pending)} faces left unrefined."
                )
                break
            self.subdivide_pass(pending)

        logger.info(f"Subdivision finished at depth {self.depth}: {self}")

    def subdivide_pass(self, faces: Optional[list[FaceId]] = None) -> None:
        """
        Subdivide each given face once (all bounded faces by default) and
        verify the mesh afterwards.
        """
        if self.state is SurfaceState.UNINITIALIZED:
            raise CLSurfaceError("Bounding quad has not been built, call init_bounding_quad() first.")
        if faces is None:
            faces = self.mesh.bounded_faces()

        for f in faces:
            self.subdivide_face(f)

        self._check_integrity()
        self.depth += 1
        self.state = SurfaceState.SUBDIVIDED
        logger.debug(f"Pass {self.depth}: subdivided {len(faces)} faces, {self}")

    def subdivide_face(self, f: FaceId) -> list[FaceId]:
        """
        Split a bounded quad into four child quads around its center.

        The parent face id is reused for the child at the first corner.

        Returns:
            The ids of the four child faces.
        """
        g = self.mesh
        if g.is_outer(f):
            raise CLSurfaceError(f"Face {f} is the outer face and cannot be subdivided.")
        corners = self._corners(f)

        # Capture corners before any edge is split.
        corner_positions = np.array([g.position(v) for v in corners])
        center_position = quad_center(corner_positions)

        mids = [
            self._side_midpoint(f, corners[i], corners[(i + 1) % 4])
            for i in range(4)
        ]

        # leaving[i]: corner i -> mid i, arriving[i]: mid i -> corner i+1
        leaving = [self._outgoing_edge(f, corners[i]) for i in range(4)]
        arriving = [g.next(e) for e in leaving]

        center = g.add_vertex(center_position)
        to_center: list[EdgeId] = []
        from_center: list[EdgeId] = []
        for m in mids:
            inward = g.add_edge(m, center)
            outward = g.add_edge(center, m)
            g.set_twin(inward, outward)
            to_center.append(inward)
            from_center.append(outward)

        children = [f]
        for i in range(1, 4):
            children.append(g.add_face(leaving[i]))

        for i, child in enumerate(children):
            cycle = [arriving[i - 1], leaving[i], to_center[i], from_center[i - 1]]
            for e, n in zip(cycle, cycle[1:] + cycle[:1]):
                g.set_next(e, n)
                g.set_face(e, child)
            g.set_face_edge(child, leaving[i])
            g.set_face_data(child, (corners[i], mids[i], center, mids[i - 1]))
        return children

    def faces_to_refine(self) -> list[FaceId]:
        return [f for f in self.mesh.bounded_faces() if exceeds_sampling(self.max_side_length(f), self.min_sampling)]

    def max_side_length(self, f: FaceId) -> float:
        """
        Longest side of a bounded quad, measured in the xy plane.

        Projected heights are ignored so every face of a pass has the same
        length and neighbours are always split together.
        """
        positions = np.array([self.mesh.position(v) for v in self._corners(f)])
        return float(side_lengths(positions[:, :2]).max())

    def _corners(self, f: FaceId) -> QuadCorners:
        corners = self.mesh.face_data(f)
        if corners is None or len(corners) != 4:
            raise StructuralError(f"Face {f} carries no quad corners: {corners!r}.")
        return corners

    def _outgoing_edge(self, f: FaceId, v: VertexId) -> EdgeId:
        for e in self.mesh.face_boundary(f):
            if self.mesh.source(e) == v:
                return e
        raise StructuralError(f"Corner {v} is not on the boundary of face {f}.")

    def _side_midpoint(self, f: FaceId, start: VertexId, end: VertexId) -> VertexId:
        """
        Midpoint vertex of the side start->end of face ``f``. The side is split
        unless a neighbour has already split it.
        """
        g = self.mesh
        e = self._outgoing_edge(f, start)
        if g.target(e) == end:
            return g.insert_vertex_in_edge(e, midpoint(g.position(start), g.position(end)))

        m = g.target(e)
        if g.target(g.next(e)) != end:
            raise StructuralError(f"Side {start}->{end} of face {f} has more than one vertex inserted.")
        expected = midpoint(g.position(start), g.position(end))
        if not np.allclose(g.position(m), expected, rtol=LENGTH_TOLERANCE, atol=LENGTH_TOLERANCE):
            raise StructuralError(f"Vertex {m} on side {start}->{end} of face {f} is not its midpoint.")
        return m

    def _check_integrity(self) -> None:
        try:
            self.mesh.check_integrity()
        except StructuralError as e:
            logger.error(f"Mesh integrity check failed at depth {self.depth}: {e}")
            raise

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    def set_min_sampling(self, s: float) -> None:
        """
        Change the target edge length. If the surface is already built it is
        refined further; a coarser value leaves the mesh as it is.
        """
        settings = SamplingSettings(
            far=self.far, min_sampling=s, max_depth=self.settings.max_depth, deadline=self.settings.deadline
        )
        settings.validate()
        previous = self.settings
        self.settings = settings
        try:
            self._check_depth_budget()
        except ResourceLimitError:
            self.settings = previous
            raise
        if self.state is not SurfaceState.UNINITIALIZED:
            self.subdivide()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    def get_vertices(self) -> list[npt.NDArray[np.float64]]:
        """Positions of all vertices (copies)."""
        return [self.mesh.position(v).copy() for v in self.mesh.vertices()]

    def get_edges(self) -> list[tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]]:
        """Every half-edge as a (source position, target position) pair."""
        return [
            (self.mesh.position(s).copy(), self.mesh.position(t).copy())
            for s, t in self.mesh.iter_edge_endpoints()
        ]

    def get_faces(self) -> list[npt.NDArray[np.float64]]:
        """Boundary vertex positions of every bounded face, each of shape (n, 3)."""
        return [
            np.array([self.mesh.position(v) for v in self.mesh.face_vertices(f)])
            for f in self.mesh.bounded_faces()
        ]

    def vertex_array(self) -> npt.NDArray[np.float64]:
        """All vertex positions as an (N, 3) array."""
        if self.mesh.num_vertices() == 0:
            return np.empty((0, 3), dtype=np.float64)
        return np.array([self.mesh.position(v) for v in self.mesh.vertices()], dtype=np.float64)

    def edge_array(self) -> npt.NDArray[np.float64]:
        """All half-edges as an (E, 2, 3) array of endpoint positions."""
        if self.mesh.num_edges() == 0:
            return np.empty((0, 2, 3), dtype=np.float64)
        return np.array(self.get_edges(), dtype=np.float64)

    def project(self, projector: Callable[[npt.NDArray[np.float64]], npt.ArrayLike]) -> None:
        """
        Hand the sample points to an external projector and store the returned
        contact heights as the vertices' z coordinates.

        Args:
            projector: Callable taking an (N, 3) array of positions and
                returning N heights.
        """
        points = self.vertex_array()
        heights = np.asarray(projector(points.copy()), dtype=np.float64).reshape(-1)
        if heights.shape != (len(points),):
            raise ValueError(f"Projector returned {heights.shape[0]} heights for {len(points)} points.")
        for v, z in zip(self.mesh.vertices(), heights):
            self.mesh.set_position(v, (points[v][0], points[v][1], z))
        logger.debug(f"Projected {len(points)} sample points.")


def build_surface(
    far: float = DEFAULT_FAR,
    min_sampling: float = DEFAULT_MIN_SAMPLING,
    max_depth: int = DEFAULT_MAX_DEPTH,
    deadline: Optional[float] = None,
) -> CutterLocationSurface:
    """
    Build and refine a cutter location surface.

    Args:
        far: Half-extent of the bounding square.
        min_sampling: Target maximum edge length.
        max_depth: Maximum number of subdivision passes.
        deadline: Optional wall-clock budget in seconds.

    Returns:
        The refined surface; its ``mesh`` satisfies all half-edge invariants.
    """
    return CutterLocationSurface(far=far, min_sampling=min_sampling, max_depth=max_depth, deadline=deadline).build()

"""
Half-Edge Mesh (Doubly Connected Edge List)
===========================================
A generic topological container for vertices, directed half-edges and faces.

Why is this file needed?
------------------------
1. Topology: It keeps the next/twin/face relations of a polygonal mesh
   consistent while the mesh is edited.
2. Safety: All relations are stored as integer ids into three arenas
   (plain lists), so there are no dangling object references. Every lookup is
   range checked and a broken ``next`` cycle is reported as a
   ``StructuralError`` instead of looping forever.
3. Reuse: Vertices, half-edges and faces each carry an arbitrary ``data``
   payload, so the container knows nothing about cutter location surfaces.

Mutation during iteration over ``vertices()``, ``edges()`` or ``faces()`` is
not allowed: those return a snapshot range of the ids that existed when they
were called.
"""
from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, Iterator, Optional, TypeVar

import numpy as np

from clsurface.exceptions import StructuralError, UnknownEntityError
from clsurface.model.geometry_utils import as_position, distance

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

VertexId = int
EdgeId = int
FaceId = int

VertexData = TypeVar("VertexData")
EdgeData = TypeVar("EdgeData")
FaceData = TypeVar("FaceData")


@dataclass
class VertexRecord:
    """A mesh vertex: position, stable index and payload."""
    position: npt.NDArray[np.float64]
    index: int
    data: Any = None


@dataclass
class HalfEdgeRecord:
    """
    A directed half-edge from ``source`` to ``target``.

    ``next`` is the following half-edge (counter-clockwise) around ``face`` and
    ``twin`` is the oppositely directed half-edge bounding the adjacent face.
    """
    source: VertexId
    target: VertexId
    next: Optional[EdgeId] = None
    twin: Optional[EdgeId] = None
    face: Optional[FaceId] = None
    data: Any = None


@dataclass
class FaceRecord:
    """A face with one representative boundary half-edge."""
    edge: Optional[EdgeId] = None
    outer: bool = False
    data: Any = None


class HalfEdgeMesh(Generic[VertexData, EdgeData, FaceData]):
    """
    Arena based half-edge mesh.

    Vertex indices come from a counter owned by this instance, so independent
    meshes never share or collide on indices.
    """

    def __init__(self) -> None:
        self._vertices: list[VertexRecord] = []
        self._edges: list[HalfEdgeRecord] = []
        self._faces: list[FaceRecord] = []
        self._vertex_counter = itertools.count()

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(vertices={self.num_vertices()}, "
            f"edges={self.num_edges()}, faces={self.num_faces()})"
        )

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def _vertex(self, v: VertexId) -> VertexRecord:
        if not _in_range(v, len(self._vertices)):
            raise UnknownEntityError(f"Unknown vertex id {v!r}.")
        return self._vertices[v]

    def _edge(self, e: EdgeId) -> HalfEdgeRecord:
        if not _in_range(e, len(self._edges)):
            raise UnknownEntityError(f"Unknown half-edge id {e!r}.")
        return self._edges[e]

    def _face(self, f: FaceId) -> FaceRecord:
        if not _in_range(f, len(self._faces)):
            raise UnknownEntityError(f"Unknown face id {f!r}.")
        return self._faces[f]

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    def add_vertex(self, position: Any, data: Optional[VertexData] = None) -> VertexId:
        """
        Create a vertex at the given position.

        Args:
            position: (x, y) or (x, y, z) coordinates.
            data: Optional payload stored with the vertex.

        Returns:
            The id of the new vertex.
        """
        record = VertexRecord(position=as_position(position), index=next(self._vertex_counter), data=data)
        self._vertices.append(record)
        return len(self._vertices) - 1

    def add_edge(self, source: VertexId, target: VertexId, data: Optional[EdgeData] = None) -> EdgeId:
        """
        Create one directed half-edge. ``twin``, ``next`` and ``face`` are left
        unset and must be wired by the caller.

        Raises:
            UnknownEntityError: If either endpoint does not exist.
        """
        self._vertex(source)
        self._vertex(target)
        self._edges.append(HalfEdgeRecord(source=source, target=target, data=data))
        return len(self._edges) - 1

    def add_face(
        self,
        edge: Optional[EdgeId] = None,
        data: Optional[FaceData] = None,
        outer: bool = False,
    ) -> FaceId:
        """
        Create a face, optionally bound to a representative half-edge.

        Args:
            edge: Representative boundary half-edge.
            data: Optional payload stored with the face.
            outer: Marks the unbounded exterior face.
        """
        if edge is not None:
            self._edge(edge)
        self._faces.append(FaceRecord(edge=edge, outer=outer, data=data))
        return len(self._faces) - 1

    def set_twin(self, e1: EdgeId, e2: EdgeId) -> None:
        """
        Declare ``e1`` and ``e2`` mutual twins.

        Re-assigning the same pair is a no-op.

        Raises:
            StructuralError: If either edge is already twinned with another
                edge, or the two edges are not oppositely directed.
        """
        r1 = self._edge(e1)
        r2 = self._edge(e2)
        if r1.twin == e2 and r2.twin == e1:
            return
        if e1 == e2:
            raise StructuralError(f"Half-edge {e1} cannot be its own twin.")
        if r1.twin is not None or r2.twin is not None:
            raise StructuralError(
                f"Cannot twin {e1} and {e2}: existing twins are {r1.twin} and {r2.twin}."
            )
        if r1.source != r2.target or r1.target != r2.source:
            raise StructuralError(
                f"Cannot twin {e1} ({r1.source}->{r1.target}) with {e2} ({r2.source}->{r2.target})."
            )
        r1.twin = e2
        r2.twin = e1

    def set_next(self, e: EdgeId, next_edge: EdgeId) -> None:
        """Set the successor of ``e`` around its face."""
        record = self._edge(e)
        if self._edge(next_edge).source != record.target:
            raise StructuralError(f"Half-edge {next_edge} does not start where {e} ends.")
        record.next = next_edge

    def set_face(self, e: EdgeId, face: FaceId) -> None:
        self._face(face)
        self._edge(e).face = face

    def set_face_edge(self, face: FaceId, e: EdgeId) -> None:
        self._edge(e)
        self._face(face).edge = e

    def set_face_data(self, face: FaceId, data: Optional[FaceData]) -> None:
        self._face(face).data = data

    def set_position(self, v: VertexId, position: Any) -> None:
        self._vertex(v).position = as_position(position)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def num_vertices(self) -> int:
        return len(self._vertices)

    def num_edges(self) -> int:
        return len(self._edges)

    def num_faces(self) -> int:
        return len(self._faces)

    def vertices(self) -> range:
        """Ids of the vertices present at call time."""
        return range(len(self._vertices))

    def edges(self) -> range:
        """Ids of the half-edges present at call time."""
        return range(len(self._edges))

    def faces(self) -> range:
        """Ids of the faces present at call time, outer faces included."""
        return range(len(self._faces))

    def bounded_faces(self) -> list[FaceId]:
        return [f for f in self.faces() if not self._faces[f].outer]

    def outer_faces(self) -> list[FaceId]:
        return [f for f in self.faces() if self._faces[f].outer]

    def is_outer(self, face: FaceId) -> bool:
        return self._face(face).outer

    def position(self, v: VertexId) -> npt.NDArray[np.float64]:
        """Position of a vertex. The returned array is the stored one, do not modify it."""
        return self._vertex(v).position

    def vertex_index(self, v: VertexId) -> int:
        return self._vertex(v).index

    def vertex_data(self, v: VertexId) -> Optional[VertexData]:
        return self._vertex(v).data

    def source(self, e: EdgeId) -> VertexId:
        return self._edge(e).source

    def target(self, e: EdgeId) -> VertexId:
        return self._edge(e).target

    def next(self, e: EdgeId) -> Optional[EdgeId]:
        return self._edge(e).next

    def twin(self, e: EdgeId) -> Optional[EdgeId]:
        return self._edge(e).twin

    def face(self, e: EdgeId) -> Optional[FaceId]:
        return self._edge(e).face

    def edge_data(self, e: EdgeId) -> Optional[EdgeData]:
        return self._edge(e).data

    def face_edge(self, face: FaceId) -> Optional[EdgeId]:
        return self._face(face).edge

    def face_data(self, face: FaceId) -> Optional[FaceData]:
        return self._face(face).data

    def edge_length(self, e: EdgeId) -> float:
        record = self._edge(e)
        return distance(self._vertices[record.source].position, self._vertices[record.target].position)

    def face_boundary(self, face: FaceId) -> list[EdgeId]:
        """
        Half-edges around ``face`` in ``next`` order, starting at its
        representative edge.

        Returns an empty list for a face without a representative edge.

        Raises:
            StructuralError: If a ``next`` pointer is missing or the cycle
                does not close within ``num_edges()`` steps.
        """
        start = self._face(face).edge
        if start is None:
            return []

        boundary = [start]
        limit = len(self._edges)
        e = self._edges[start].next
        while e != start:
            if e is None:
                raise StructuralError(f"Half-edge {boundary[-1]} on face {face} has no next pointer.")
            if len(boundary) >= limit:
                raise StructuralError(f"Boundary of face {face} does not close after {limit} steps.")
            boundary.append(e)
            e = self._edges[e].next
        return boundary

    def face_vertices(self, face: FaceId) -> list[VertexId]:
        """Source vertices of the boundary half-edges of ``face``, in order."""
        return [self._edges[e].source for e in self.face_boundary(face)]

    def iter_edge_endpoints(self) -> Iterator[tuple[VertexId, VertexId]]:
        for record in self._edges:
            yield record.source, record.target

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------
    def insert_vertex_in_edge(self, e: EdgeId, position: Any, data: Optional[VertexData] = None) -> VertexId:
        """
        Split ``e`` (source->target) and its twin at a new vertex.

        ``e`` keeps its id and becomes source->new, a new half-edge new->target
        follows it. The twin likewise becomes target->new followed by a new
        half-edge new->source. New half-edges inherit the face and payload of
        the half-edge they were split from, so the predecessors' ``next``
        pointers and the faces' representative edges stay valid.

        Args:
            e: Half-edge to split.
            position: Position of the inserted vertex.
            data: Optional payload of the inserted vertex.

        Returns:
            The id of the inserted vertex.

        Raises:
            UnknownEntityError: If ``e`` does not exist.
            StructuralError: If ``e`` or its twin is not fully wired.
        """
        record = self._edge(e)
        t = record.twin
        if t is None:
            raise StructuralError(f"Malformed mesh: half-edge {e} has no twin, cannot split it.")
        twin_record = self._edges[t]
        if twin_record.twin != e:
            raise StructuralError(f"Malformed mesh: twin of {t} is {twin_record.twin}, expected {e}.")
        if record.next is None or twin_record.next is None:
            raise StructuralError(f"Malformed mesh: half-edge {e} or its twin {t} has no next pointer.")

        source, target = record.source, record.target
        v = self.add_vertex(position, data)

        # e: source->v, tail: v->target
        tail = len(self._edges)
        self._edges.append(
            HalfEdgeRecord(source=v, target=target, next=record.next, face=record.face, data=record.data)
        )
        # t: target->v, twin_tail: v->source
        twin_tail = len(self._edges)
        self._edges.append(
            HalfEdgeRecord(source=v, target=source, next=twin_record.next, face=twin_record.face,
                           data=twin_record.data)
        )

        record.target = v
        record.next = tail
        record.twin = twin_tail

        twin_record.target = v
        twin_record.next = twin_tail
        twin_record.twin = tail

        self._edges[tail].twin = t
        self._edges[twin_tail].twin = e
        return v

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    def check_integrity(self, quad_faces: bool = True) -> None:
        """
        Verify every half-edge invariant.

        Args:
            quad_faces: Also require every bounded face boundary length to be
                a multiple of 4.

        Raises:
            StructuralError: On the first violated invariant.
        """
        for e, record in enumerate(self._edges):
            if record.twin is None or record.next is None or record.face is None:
                raise StructuralError(f"Half-edge {e} is not fully wired: {record}.")
            twin = self._edges[record.twin]
            if twin.twin != e:
                raise StructuralError(f"twin(twin({e})) is {twin.twin}, expected {e}.")
            if twin.source != record.target or twin.target != record.source:
                raise StructuralError(f"Half-edge {e} and its twin {record.twin} are not opposite.")
            if twin.face == record.face:
                raise StructuralError(f"Half-edge {e} and its twin {record.twin} bound the same face.")
            if self._edges[record.next].source != record.target:
                raise StructuralError(f"next({e}) does not start at the target of {e}.")

        seen = 0
        for f, face in enumerate(self._faces):
            boundary = self.face_boundary(f)
            if not boundary:
                raise StructuralError(f"Face {f} has no representative edge.")
            for e in boundary:
                if self._edges[e].face != f:
                    raise StructuralError(f"Half-edge {e} on the boundary of {f} belongs to face {self._edges[e].face}.")
            if quad_faces and not face.outer and len(boundary) % 4 != 0:
                raise StructuralError(f"Bounded face {f} has {len(boundary)} boundary edges, not a multiple of 4.")
            seen += len(boundary)

        if seen != len(self._edges):
            raise StructuralError(f"{len(self._edges) - seen} half-edges are not on any face boundary.")

        indices = [record.index for record in self._vertices]
        if len(set(indices)) != len(indices):
            raise StructuralError("Vertex indices are not unique.")

        logger.debug(f"Integrity check passed for {self!r}.")


def _in_range(i: Any, n: int) -> bool:
    return isinstance(i, (int, np.integer)) and not isinstance(i, bool) and 0 <= i < n

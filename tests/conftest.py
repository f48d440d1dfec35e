import logging

import pytest

from clsurface.model.halfedge import HalfEdgeMesh
from clsurface.model.surface import CutterLocationSurface


def make_square_mesh():
    """
    Unit square wired by hand: one inner face (id 0) bounded by edges
    0, 2, 4, 6 and one outer face (id 1) bounded by their twins.
    """
    mesh = HalfEdgeMesh()
    a = mesh.add_vertex((1.0, 1.0))
    b = mesh.add_vertex((0.0, 1.0))
    c = mesh.add_vertex((0.0, 0.0))
    d = mesh.add_vertex((1.0, 0.0))
    inner_face = mesh.add_face()
    outer_face = mesh.add_face(outer=True)

    inner, outer = [], []
    for s, t in ((a, b), (b, c), (c, d), (d, a)):
        e = mesh.add_edge(s, t)
        et = mesh.add_edge(t, s)
        mesh.set_twin(e, et)
        inner.append(e)
        outer.append(et)
    outer.reverse()

    for cycle, face in ((inner, inner_face), (outer, outer_face)):
        for e, n in zip(cycle, cycle[1:] + cycle[:1]):
            mesh.set_next(e, n)
            mesh.set_face(e, face)
        mesh.set_face_edge(face, cycle[0])
    return mesh


@pytest.fixture
def square_mesh():
    return make_square_mesh()


@pytest.fixture
def bounding_quad():
    surface = CutterLocationSurface(far=1.0, min_sampling=0.5)
    surface.init_bounding_quad()
    return surface


@pytest.fixture
def reset_package_logger():
    yield
    logger = logging.getLogger("clsurface")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)

import logging
import math

import numpy as np
import pytest

import clsurface.model.surface as surface_module
from clsurface.exceptions import CLSurfaceError, ConfigurationError, ResourceLimitError
from clsurface.model.surface import CutterLocationSurface, SurfaceState, build_surface

EPS = 1e-9


def assert_consistent(surface):
    mesh = surface.mesh
    for e in mesh.edges():
        assert mesh.twin(mesh.twin(e)) == e
        assert mesh.face(mesh.twin(e)) != mesh.face(e)
    for f in mesh.bounded_faces():
        boundary = mesh.face_boundary(f)
        assert len(boundary) % 4 == 0
        e = boundary[0]
        for _ in boundary:
            e = mesh.next(e)
        assert e == boundary[0]
    mesh.check_integrity()


@pytest.mark.parametrize("far, min_sampling", [(0.0, 0.1), (-1.0, 0.1), (1.0, 0.0), (1.0, -0.25), (math.nan, 0.1)])
def test_invalid_parameters_fail_fast(far, min_sampling):
    with pytest.raises(ConfigurationError):
        CutterLocationSurface(far=far, min_sampling=min_sampling)


def test_excessive_depth_is_a_resource_error():
    with pytest.raises(ResourceLimitError):
        build_surface(far=1.0, min_sampling=1e-6, max_depth=10)


def test_new_surface_is_uninitialized():
    surface = CutterLocationSurface(far=2.0, min_sampling=0.5)
    assert surface.state is SurfaceState.UNINITIALIZED
    assert surface.mesh.num_vertices() == 0
    with pytest.raises(CLSurfaceError):
        surface.subdivide()


def test_bounding_quad(bounding_quad):
    mesh = bounding_quad.mesh
    assert bounding_quad.state is SurfaceState.BOUNDING_QUAD_BUILT
    assert mesh.num_vertices() == 4
    assert mesh.num_edges() == 8
    assert mesh.num_faces() == 2
    assert mesh.outer_faces() == [bounding_quad.out_face]

    (inner,) = mesh.bounded_faces()
    corners = [mesh.position(v)[:2].tolist() for v in mesh.face_vertices(inner)]
    assert corners == [[1.0, 1.0], [-1.0, 1.0], [-1.0, -1.0], [1.0, -1.0]]

    outer = [mesh.position(v)[:2].tolist() for v in mesh.face_vertices(bounding_quad.out_face)]
    assert outer == [[-1.0, 1.0], [1.0, 1.0], [1.0, -1.0], [-1.0, -1.0]]
    assert_consistent(bounding_quad)


def test_bounding_quad_is_built_once(bounding_quad):
    with pytest.raises(CLSurfaceError):
        bounding_quad.init_bounding_quad()


def test_outer_face_is_never_subdivided(bounding_quad):
    with pytest.raises(CLSurfaceError):
        bounding_quad.subdivide_face(bounding_quad.out_face)


def test_one_pass_gives_four_unit_squares(bounding_quad):
    bounding_quad.subdivide_pass()
    mesh = bounding_quad.mesh

    assert mesh.num_vertices() == 9
    assert len(mesh.bounded_faces()) == 4
    assert len(mesh.outer_faces()) == 1
    assert mesh.num_edges() == 24
    assert str(bounding_quad) == "CutterLocationSurface (nVerts=9 , nEdges=24)"

    centers = []
    for f in mesh.bounded_faces():
        boundary = mesh.face_boundary(f)
        assert len(boundary) == 4
        assert [mesh.edge_length(e) for e in boundary] == pytest.approx([1.0] * 4)
        centers.append(np.mean([mesh.position(v) for v in mesh.face_vertices(f)], axis=0)[:2].tolist())
    assert sorted(centers) == sorted([[0.5, 0.5], [-0.5, 0.5], [-0.5, -0.5], [0.5, -0.5]])

    assert len(mesh.face_boundary(bounding_quad.out_face)) == 8
    assert_consistent(bounding_quad)


def test_subdivide_face_reuses_parent_id(bounding_quad):
    (inner,) = bounding_quad.mesh.bounded_faces()
    children = bounding_quad.subdivide_face(inner)
    assert children[0] == inner
    assert len(set(children)) == 4


def test_shared_midpoints_are_not_duplicated(bounding_quad):
    bounding_quad.subdivide_pass()
    before = bounding_quad.mesh.num_vertices()
    bounding_quad.subdivide_pass()
    mesh = bounding_quad.mesh

    # 4 faces: 4 centers plus the 12 distinct edge midpoints of a 2x2 grid
    assert mesh.num_vertices() - before == 16
    positions = {tuple(np.round(mesh.position(v), 12)) for v in mesh.vertices()}
    assert len(positions) == mesh.num_vertices() == 25
    assert_consistent(bounding_quad)


def test_edge_length_halves_every_pass(bounding_quad):
    longest = 2.0
    for _ in range(3):
        bounding_quad.subdivide_pass()
        lengths = [bounding_quad.mesh.edge_length(e) for e in bounding_quad.mesh.edges()]
        assert max(lengths) <= longest / 2.0 + EPS
        longest = max(lengths)


def test_center_uses_original_corners(bounding_quad):
    mesh = bounding_quad.mesh
    mesh.set_position(0, (1.5, 1.2, 0.4))
    corners = np.array([mesh.position(v) for v in range(4)])

    (inner,) = mesh.bounded_faces()
    bounding_quad.subdivide_face(inner)

    # corners 0-3, split vertices 4-7, then the center
    assert np.allclose(mesh.position(8), corners.mean(axis=0))
    assert np.allclose(mesh.position(4), 0.5 * (corners[0] + corners[1]))


def test_build_surface_terminates_below_min_sampling():
    surface = build_surface(far=1.0, min_sampling=0.25)
    mesh = surface.mesh

    assert surface.state is SurfaceState.SUBDIVIDED
    assert surface.depth == 3
    assert mesh.num_vertices() == 81
    assert len(mesh.bounded_faces()) == 64
    assert mesh.num_edges() == 64 * 4 + 32
    assert all(mesh.edge_length(e) <= 0.25 + EPS for e in mesh.edges())
    assert_consistent(surface)


def test_build_surface_half_unit_sampling():
    surface = build_surface(far=1.0, min_sampling=0.5)
    assert surface.depth == 2
    assert surface.mesh.num_vertices() == 25
    assert all(surface.max_side_length(f) == pytest.approx(0.5) for f in surface.mesh.bounded_faces())


def test_coarse_sampling_keeps_bounding_quad():
    surface = build_surface(far=1.0, min_sampling=5.0)
    assert surface.state is SurfaceState.BOUNDING_QUAD_BUILT
    assert surface.mesh.num_vertices() == 4


def test_surfaces_do_not_share_vertex_indices():
    first = build_surface(far=1.0, min_sampling=1.0)
    second = build_surface(far=3.0, min_sampling=3.0)
    first_indices = [first.mesh.vertex_index(v) for v in first.mesh.vertices()]
    second_indices = [second.mesh.vertex_index(v) for v in second.mesh.vertices()]
    assert first_indices == list(range(9))
    assert second_indices == list(range(9))


def test_deadline_stops_between_passes(monkeypatch, caplog):
    ticks = iter([0.0, 1.0])
    monkeypatch.setattr(surface_module.time, "monotonic", lambda: next(ticks, 100.0))

    surface = CutterLocationSurface(far=1.0, min_sampling=0.25, deadline=5.0)
    with caplog.at_level(logging.WARNING, logger="clsurface"):
        surface.build()

    assert surface.depth == 1
    assert surface.mesh.num_vertices() == 9
    assert "Deadline" in caplog.text
    assert_consistent(surface)


def test_set_min_sampling_refines_further():
    surface = build_surface(far=1.0, min_sampling=0.5)
    surface.set_min_sampling(0.25)
    assert surface.depth == 3
    assert surface.min_sampling == 0.25

    surface.set_min_sampling(1.0)
    assert surface.depth == 3

    with pytest.raises(ConfigurationError):
        surface.set_min_sampling(0.0)
    with pytest.raises(ResourceLimitError):
        surface.set_min_sampling(1e-9)
    assert surface.min_sampling == 1.0


def test_accessors():
    surface = build_surface(far=1.0, min_sampling=1.0)

    vertices = surface.get_vertices()
    assert len(vertices) == 9
    assert surface.vertex_array().shape == (9, 3)

    edges = surface.get_edges()
    assert len(edges) == 24
    assert surface.edge_array().shape == (24, 2, 3)

    faces = surface.get_faces()
    assert len(faces) == 4
    assert all(face.shape == (4, 3) for face in faces)

    vertices[0][0] = 99.0
    assert surface.mesh.position(0)[0] == 1.0


def test_project_writes_heights():
    surface = build_surface(far=1.0, min_sampling=1.0)
    surface.project(lambda points: points[:, 0] + 2.0 * points[:, 1])

    points = surface.vertex_array()
    assert np.allclose(points[:, 2], points[:, 0] + 2.0 * points[:, 1])


def test_project_rejects_wrong_height_count():
    surface = build_surface(far=1.0, min_sampling=1.0)
    with pytest.raises(ValueError):
        surface.project(lambda points: np.zeros(3))


def test_refining_after_projection_stays_uniform():
    surface = build_surface(far=1.0, min_sampling=0.5)
    surface.project(lambda points: np.where(points[:, 0] > 0.9, 1.0, 0.0))

    surface.set_min_sampling(0.5)
    assert surface.depth == 2
    assert surface.mesh.num_vertices() == 25

    surface.set_min_sampling(0.25)
    assert surface.depth == 3
    assert surface.mesh.num_vertices() == 81
    assert all(len(surface.mesh.face_boundary(f)) == 4 for f in surface.mesh.bounded_faces())
    assert_consistent(surface)

    # projected corner heights survive the extra pass
    assert surface.mesh.position(0)[2] == 1.0
    assert surface.mesh.position(1)[2] == 0.0


def test_side_length_ignores_heights(bounding_quad):
    (inner,) = bounding_quad.mesh.bounded_faces()
    bounding_quad.project(lambda points: 10.0 * points[:, 0])
    assert bounding_quad.max_side_length(inner) == pytest.approx(2.0)


def test_depth_limit_reached_while_refining():
    surface = CutterLocationSurface(far=1.0, min_sampling=1.0, max_depth=1)
    surface.init_bounding_quad()
    surface.mesh.set_position(0, (3.0, 3.0, 0.0))

    with pytest.raises(ResourceLimitError, match="max_depth=1"):
        surface.subdivide()
    assert surface.depth == 1
    assert_consistent(surface)


@pytest.mark.parametrize("min_sampling", [0.5, 0.25 * (1.0 + 1e-12), 0.25 * (1.0 - 1e-6), 2.0 / 3.0, 0.1])
def test_depth_estimate_matches_refinement(min_sampling):
    surface = CutterLocationSurface(far=1.0, min_sampling=min_sampling)
    expected = surface.settings.required_depth
    surface.build()
    assert surface.depth == expected

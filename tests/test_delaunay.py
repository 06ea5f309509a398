import pytest
from numpy import array, roll, sqrt
from numpy.random import uniform, seed, permutation
from hypothesis import given, settings, strategies as st
from loguru import logger
from scipy.spatial import Delaunay

from voromesh import (
    Triangulation,
    TriangulationState,
    LocationKind,
    CoincidentPointError,
    EmptyTriangulationError,
    build,
)
from voromesh.predicates import circumcenter


def face_set(triangles):
    return {frozenset(int(v) for v in t) for t in triangles}


def polygon_area(points):
    x, y = points[:, 0], points[:, 1]
    return 0.5 * (x * roll(y, -1) - roll(x, -1) * y).sum()


@pytest.fixture
def random_points():
    seed(7)
    return uniform(-1.0, 1.0, size=[150, 2])


def test_single_triangle():
    tri = build([(0, 0), (1, 0), (0, 1)])
    assert tri.state is TriangulationState.BUILT
    assert tri.n_faces == 1
    assert face_set(tri.faces()) == {frozenset({0, 1, 2})}
    mesh = tri.mesh
    assert (mesh.triangle_neighbors[mesh.live_faces] == -1).all()
    tri.validate()


def test_interior_point_without_flips():
    tri = build([(0, 0), (2, 0), (1, 2)])
    v = tri.insert((1, 0.5))
    assert v == 3
    assert tri.n_faces == 3
    assert all(3 in t for t in tri.faces())
    tri.validate()


def test_flip_to_delaunay_diagonal():
    tri = build([(0.0, 0.0), (4.0, 0.0), (2.0, 0.5), (2.0, -0.5)])
    assert face_set(tri.faces()) == {frozenset({0, 3, 2}), frozenset({3, 1, 2})}
    tri.validate()


@pytest.mark.parametrize(
    "points, diagonal",
    [
        ([(0, 0), (1, 0), (1, 1), (0, 1)], {0, 2}),
        ([(0, 1), (1, 1), (1, 0), (0, 0)], {0, 2}),
        ([(1, 0), (0, 1), (0, 0), (1, 1)], {0, 1}),
    ],
)
def test_cocircular_square_keeps_lowest_index_diagonal(points, diagonal):
    tri = build(points)
    assert tri.n_faces == 2
    a, b = [set(t) for t in tri.faces()]
    assert a & b == diagonal
    tri.validate()


def test_collinear_points_stay_degenerate():
    tri = build([(0, 0), (1, 0), (2, 0)])
    assert tri.state is TriangulationState.DEGENERATE
    assert tri.n_faces == 0
    assert list(tri.faces()) == []
    assert list(tri.hull()) == [0, 2]

    tri.insert((1, 1))
    assert tri.state is TriangulationState.BUILT
    assert tri.n_faces == 2
    tri.validate()


def test_collinear_chain_is_ordered_along_line():
    tri = build([(0, 0), (4, 2), (2, 1), (-2, -1)])
    assert tri.state is TriangulationState.DEGENERATE
    assert tri.chain == [3, 0, 2, 1]
    assert list(tri.hull()) == [3, 1]
    assert tri.neighbors(0) == [3, 2]
    assert tri.neighbors(1) == [2]

    tri.insert((0, 5))
    assert tri.n_faces == 3
    assert sorted(tri.neighbors(4)) == [0, 1, 2, 3]
    tri.validate()


def test_states():
    tri = Triangulation()
    assert tri.state is TriangulationState.EMPTY
    tri.insert((0.5, 0.5))
    assert tri.state is TriangulationState.EMPTY
    tri.insert((1.5, 0.5))
    assert tri.state is TriangulationState.DEGENERATE
    tri.insert((1.5, 1.5))
    assert tri.state is TriangulationState.BUILT


def test_coincident_point_rejected():
    tri = build([(0, 0), (1, 0), (0, 1), (0.3, 0.3)])
    triangles = tri.triangles
    with pytest.raises(CoincidentPointError) as err:
        tri.insert((1.0, 0.0))
    assert err.value.vertex == 1
    assert tri.n_vertices == 4
    assert face_set(tri.triangles) == face_set(triangles)
    tri.validate()


def test_coincident_point_rejected_while_degenerate():
    tri = build([(0, 0), (1, 1)])
    with pytest.raises(CoincidentPointError) as err:
        tri.insert((1, 1))
    assert err.value.vertex == 1
    assert tri.n_vertices == 2


@pytest.mark.parametrize(
    "point", [(float("nan"), 0.0), (0.0, float("inf")), (1.0, 2.0, 3.0), 5.0]
)
def test_invalid_points_rejected(point):
    tri = build([(0, 0), (1, 0), (0, 1)])
    with pytest.raises(ValueError):
        tri.insert(point)
    assert tri.n_vertices == 3


def test_extend_shape_check():
    tri = Triangulation()
    with pytest.raises(ValueError):
        tri.extend([[0, 1, 2], [3, 4, 5]])
    assert tri.extend([]) == []
    assert tri.extend([(0, 0), (1, 0), (0, 1)]) == [0, 1, 2]


def test_locate():
    tri = build([(0, 0), (2, 0), (0, 2)])
    assert tri.locate((0.5, 0.5)).kind is LocationKind.INSIDE

    location = tri.locate((1.0, 0.0))
    assert location.kind is LocationKind.EDGE
    edge = tri.mesh.edge_vertices(location.face, location.index)
    assert set(edge) == {0, 1}

    location = tri.locate((0.0, 2.0))
    assert location.kind is LocationKind.VERTEX
    assert tri.mesh.face_vertices(location.face)[location.index] == 2

    location = tri.locate((3.0, 3.0))
    assert location.kind is LocationKind.OUTSIDE
    assert tri.mesh.neighbor_across(location.face, location.index) is None


def test_locate_requires_faces():
    tri = build([(0, 0), (1, 0)])
    with pytest.raises(EmptyTriangulationError):
        tri.locate((0.5, 0.5))


def test_points_on_edges():
    points = [(0, 0), (4, 0), (4, 4), (0, 4), (2, 0), (2, 2), (4, 2), (1, 1), (3, 3)]
    tri = build(points)
    tri.validate()
    assert sorted(tri.hull()) == [0, 1, 2, 3, 4, 6]
    assert tri.n_faces == 2 * len(points) - len(tri.hull()) - 2


def test_outside_point_along_hull_edge_line():
    tri = build([(0, 0), (1, 0), (1, 1), (0, 1)])
    tri.insert((2, 0))
    tri.insert((-1, 0))
    tri.validate()
    assert sorted(tri.hull()) == [0, 1, 2, 3, 4, 5]


def test_interior_insertion_adds_two_faces():
    tri = build([(0, 0), (1, 0), (1, 1), (0, 1)])
    seed(11)
    for p in uniform(0.01, 0.99, size=[100, 2]):
        n_faces = tri.n_faces
        tri.insert(p)
        assert tri.n_faces == n_faces + 2
    tri.validate()


def test_matches_scipy(random_points):
    tri = build(random_points)
    tri.validate()
    reference = Delaunay(random_points)
    assert face_set(tri.triangles) == face_set(reference.simplices)


def test_insertion_order_independence(random_points):
    reference = face_set(build(random_points).triangles)
    seed(5)
    for _ in range(3):
        order = permutation(random_points.shape[0])
        tri = build(random_points[order])
        mapped = {frozenset(int(order[v]) for v in f) for f in tri.triangles}
        assert mapped == reference


def test_empty_circumcircles(random_points):
    tri = build(random_points)
    P = tri.vertices
    for a, b, c in tri.faces():
        centre = circumcenter(P[a], P[b], P[c])
        radius = sqrt(((P[a] - centre) ** 2).sum())
        distances = sqrt(((P - centre) ** 2).sum(axis=1))
        assert (distances >= radius * (1 - 1e-9)).all()


def test_hull_is_counterclockwise(random_points):
    tri = build(random_points)
    loop = tri.hull()
    assert polygon_area(tri.vertices[loop]) > 0
    reference = Delaunay(random_points)
    assert set(loop) == set(reference.convex_hull.flatten())
    assert len(tri.hull_edges()) == len(loop)


def test_neighbors():
    tri = build([(0, 0), (1, 0), (0, 1), (-1, 0), (0, -1)])
    assert sorted(tri.neighbors(0)) == [1, 2, 3, 4]
    assert sorted(tri.neighbors(1)) == [0, 2, 4]
    with pytest.raises(ValueError):
        tri.neighbors(5)


def test_copy_is_independent():
    tri = build([(0, 0), (1, 0), (0, 1)])
    clone = tri.copy()
    clone.insert((1, 1))
    assert clone.n_vertices == 4
    assert tri.n_vertices == 3
    assert tri.n_faces == 1
    tri.validate()
    clone.validate()


@settings(max_examples=60, deadline=None)
@given(
    st.lists(
        st.tuples(st.integers(-6, 6), st.integers(-6, 6)),
        min_size=1,
        max_size=40,
        unique=True,
    )
)
def test_integer_grids(points):
    # integer points produce many collinear and cocircular configurations
    tri = build(points)
    tri.validate()
    assert tri.n_vertices == len(points)
    if tri.state is TriangulationState.BUILT:
        n_hull = len(tri.hull())
        assert tri.n_faces == 2 * len(points) - n_hull - 2
    else:
        assert tri.n_faces == 0
        assert sorted(tri.chain) == list(range(len(points)))


@settings(max_examples=30, deadline=None)
@given(
    st.lists(
        st.tuples(st.integers(-4, 4), st.integers(-4, 4)),
        min_size=2,
        max_size=20,
        unique=True,
    )
)
def test_duplicates_never_change_the_mesh(points):
    tri = build(points)
    triangles = face_set(tri.triangles)
    with pytest.raises(CoincidentPointError):
        tri.insert(points[len(points) // 2])
    assert face_set(tri.triangles) == triangles
    assert tri.n_vertices == len(points)


def test_debug_logging():
    messages = []
    logger.enable("voromesh")
    sink = logger.add(messages.append, level="DEBUG")
    try:
        build([(0.0, 0.0), (4.0, 0.0), (2.0, 0.5), (2.0, -0.5)])
    finally:
        logger.remove(sink)
        logger.disable("voromesh")
    assert any("flipping edge" in m for m in messages)
    assert any("inserted vertex 3" in m for m in messages)


def describe(tri, location):
    """Reduce a location to the parts which do not depend on the walk's route."""
    mesh = tri.mesh
    if location.kind is LocationKind.INSIDE:
        return location.kind, location.face
    elif location.kind is LocationKind.EDGE:
        return location.kind, frozenset(mesh.edge_vertices(location.face, location.index))
    elif location.kind is LocationKind.VERTEX:
        return location.kind, mesh.face_vertices(location.face)[location.index]
    return (location.kind,)


@pytest.fixture
def grid():
    return build([(i, j) for i in range(4) for j in range(4)])


@pytest.fixture
def queries():
    seed(17)
    special = [(0.3, 0.6), (1.5, 1.0), (2.0, 2.0), (3.0, 3.0), (5.0, 5.0), (-1.0, 1.5)]
    return special + [tuple(p) for p in uniform(-1.0, 4.0, size=[100, 2])]


def test_walk_step_budget(grid):
    face = int(grid.mesh.live_faces[0])
    assert grid._walk(array([2.5, 2.5]), face, 0) is None
    assert grid._walk(array([2.5, 2.5]), face, 2 * grid.n_faces + 8) is not None


def test_locate_falls_back_to_linear_search(grid, queries, monkeypatch):
    expected = [describe(grid, grid.locate(q)) for q in queries]
    # a walk which never arrives forces every lookup onto the linear search
    monkeypatch.setattr(Triangulation, "_walk", lambda self, p, face, max_steps: None)

    messages = []
    logger.enable("voromesh")
    sink = logger.add(messages.append, level="WARNING")
    try:
        found = [describe(grid, grid.locate(q)) for q in queries]
    finally:
        logger.remove(sink)
        logger.disable("voromesh")

    assert found == expected
    assert len(messages) == len(queries)
    assert all("linear search" in m for m in messages)


def test_locate_from_retired_face(grid, queries):
    expected = [describe(grid, grid.locate(q)) for q in queries]
    grid.last_face = grid.mesh.n_slots + 10
    assert [describe(grid, grid.locate(q)) for q in queries] == expected


def test_last_face_touches_newest_vertex():
    seed(23)
    points = [(0.0, 0.0), (1.0, 0.0), (2.0, 0.0), (1.0, 1.0)]
    points += [tuple(p) for p in uniform(-2.0, 3.0, size=[60, 2])]
    tri = Triangulation()
    for p in points:
        v = tri.insert(p)
        if tri.state is TriangulationState.BUILT:
            assert tri.mesh.is_live(tri.last_face)
            assert v in tri.mesh.face_vertices(tri.last_face)

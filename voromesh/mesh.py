from numpy import full, zeros, int64, ndarray, asarray, isfinite
from loguru import logger

from voromesh.errors import DegenerateInputError
from voromesh.predicates import orient2d, incircle
from voromesh.utilities import build_edge_map, find_boundaries


def _grow(array: ndarray, size: int, fill_value) -> ndarray:
    capacity = array.shape[0]
    while capacity < size:
        capacity *= 2
    new_array = full(
        [capacity, *array.shape[1:]], fill_value=fill_value, dtype=array.dtype
    )
    new_array[: array.shape[0]] = array
    return new_array


class TriangularMesh:
    """
    An incrementally modifiable triangular mesh, stored as an arena of faces which
    reference their vertices and neighbouring faces by index.

    Each face is stored as three vertex indices in counterclockwise order. For a face
    ``f``, ``triangle_neighbors[f, i]`` is the index of the face across the edge which
    is opposite to the local vertex ``i``, or ``-1`` if that edge lies on the convex
    hull. Faces which are replaced by a split or flip are retired, and their slots are
    re-used by later faces.

    :param int capacity: \
        The number of vertex and face slots which are allocated initially. Storage
        is grown automatically as required.
    """

    def __init__(self, capacity: int = 16):
        capacity = max(int(capacity), 4)
        self.points = zeros([capacity, 2])
        self.n_vertices = 0
        self.triangle_vertices = full([capacity, 3], fill_value=-1, dtype=int64)
        self.triangle_neighbors = full([capacity, 3], fill_value=-1, dtype=int64)
        self.vertex_face = full(capacity, fill_value=-1, dtype=int64)
        self.n_faces = 0
        self.n_slots = 0
        self.free_slots = []

    @classmethod
    def create_initial(cls, p0, p1, p2):
        """
        Build a new mesh whose first face is formed from three points. The points are
        given the vertex indices 0, 1 and 2 in the order they are passed.

        :return: The new mesh as an instance of ``TriangularMesh``.
        """
        points = [asarray(p, dtype=float) for p in (p0, p1, p2)]
        orientation = orient2d(*points)
        if orientation == 0:
            raise DegenerateInputError([tuple(p) for p in points])
        mesh = cls()
        for p in points:
            mesh.add_vertex(p)
        triangle = (0, 1, 2) if orientation > 0 else (0, 2, 1)
        mesh.replace_faces([], [triangle])
        return mesh

    @property
    def vertices(self) -> ndarray:
        return self.points[: self.n_vertices]

    @property
    def triangles(self) -> ndarray:
        """The vertex indices of every live face as a 2D array of shape ``(N, 3)``."""
        tv = self.triangle_vertices[: self.n_slots]
        return tv[tv[:, 0] >= 0].copy()

    @property
    def live_faces(self) -> ndarray:
        """The indices of every live face as a 1D array."""
        return (self.triangle_vertices[: self.n_slots, 0] >= 0).nonzero()[0]

    def add_vertex(self, point) -> int:
        p = asarray(point, dtype=float)
        if p.shape != (2,) or not isfinite(p).all():
            raise ValueError(
                f"""\n
                [ TriangularMesh error ]
                >> Vertices must be given as two finite coordinates,
                >> but instead received {point}.
                """
            )
        if self.n_vertices == self.points.shape[0]:
            self.points = _grow(self.points, self.n_vertices + 1, 0.0)
            self.vertex_face = _grow(self.vertex_face, self.n_vertices + 1, -1)
        self.points[self.n_vertices] = p
        self.n_vertices += 1
        return self.n_vertices - 1

    def faces(self):
        """
        Iterate over the live faces of the mesh.

        :return: \
            A generator yielding ``(face_index, (a, b, c))`` tuples, where ``a, b, c``
            are the vertex indices of the face in counterclockwise order.
        """
        for f in range(self.n_slots):
            if self.triangle_vertices[f, 0] >= 0:
                yield f, self.face_vertices(f)

    def is_live(self, face: int) -> bool:
        return 0 <= face < self.n_slots and self.triangle_vertices[face, 0] >= 0

    def face_vertices(self, face: int) -> tuple[int, int, int]:
        a, b, c = self.triangle_vertices[face]
        return int(a), int(b), int(c)

    def neighbor_across(self, face: int, edge_index: int):
        """
        :return: \
            The index of the face sharing the edge opposite local vertex ``edge_index``
            of ``face``, or ``None`` if that edge lies on the convex hull.
        """
        g = int(self.triangle_neighbors[face, edge_index])
        return None if g < 0 else g

    def edge_vertices(self, face: int, edge_index: int) -> tuple[int, int]:
        """The directed edge opposite local vertex ``edge_index``, interior to its left."""
        verts = self.face_vertices(face)
        return verts[(edge_index + 1) % 3], verts[(edge_index + 2) % 3]

    def edge_index(self, face: int, u: int, v: int) -> int:
        verts = self.face_vertices(face)
        for i in range(3):
            if verts[(i + 1) % 3] == u and verts[(i + 2) % 3] == v:
                return i
        raise ValueError(
            f"""\n
            [ TriangularMesh error ]
            >> The directed edge ({u}, {v}) is not an edge of face {face},
            >> which has vertices {verts}.
            """
        )

    def shared_edge(self, face_a: int, face_b: int) -> int:
        for i in range(3):
            if self.triangle_neighbors[face_a, i] == face_b:
                return i
        raise ValueError(
            f"""\n
            [ TriangularMesh error ]
            >> Faces {face_a} and {face_b} are not adjacent.
            """
        )

    def ccw_face(self, face: int, vertex: int) -> int:
        """The next face counterclockwise around ``vertex``, or ``-1`` at the hull."""
        k = self.face_vertices(face).index(vertex)
        return int(self.triangle_neighbors[face, (k + 1) % 3])

    def cw_face(self, face: int, vertex: int) -> int:
        """The next face clockwise around ``vertex``, or ``-1`` at the hull."""
        k = self.face_vertices(face).index(vertex)
        return int(self.triangle_neighbors[face, (k + 2) % 3])

    def vertex_faces(self, vertex: int) -> tuple[list[int], bool]:
        """
        Find the faces incident to a vertex.

        :param int vertex: The index of the vertex.

        :return: \
            A tuple ``(faces, closed)``. ``faces`` lists the incident faces in
            counterclockwise order around the vertex. ``closed`` is ``True`` if the
            faces form a complete cycle (the vertex is interior to the mesh). For a
            hull vertex the first face holds the hull edge leaving the vertex and the
            last face holds the hull edge entering it.
        """
        start = int(self.vertex_face[vertex])
        if start < 0:
            return [], False

        # rotate clockwise until we either reach the hull or come back around
        f = start
        closed = False
        while True:
            g = self.cw_face(f, vertex)
            if g < 0:
                break
            if g == start:
                closed = True
                f = start
                break
            f = g

        faces = [f]
        while True:
            g = self.ccw_face(faces[-1], vertex)
            if g < 0 or g == faces[0]:
                break
            faces.append(g)
        return faces, closed

    def hull_edges(self) -> list[tuple[int, int]]:
        """All hull edges as ``(face, edge_index)`` pairs."""
        return [
            (f, i)
            for f, _ in self.faces()
            for i in range(3)
            if self.triangle_neighbors[f, i] < 0
        ]

    def next_hull_edge(self, face: int, edge_index: int) -> tuple[int, int]:
        """The hull edge following the given hull edge, counterclockwise around the hull."""
        _, v = self.edge_vertices(face, edge_index)
        f = face
        while True:
            g = self.cw_face(f, v)
            if g < 0:
                break
            f = g
        k = self.face_vertices(f).index(v)
        return f, (k + 2) % 3

    def previous_hull_edge(self, face: int, edge_index: int) -> tuple[int, int]:
        """The hull edge preceding the given hull edge, counterclockwise around the hull."""
        u, _ = self.edge_vertices(face, edge_index)
        f = face
        while True:
            g = self.ccw_face(f, u)
            if g < 0:
                break
            f = g
        k = self.face_vertices(f).index(u)
        return f, (k + 1) % 3

    def replace_faces(self, old_faces, new_triangles, outer_neighbors=None) -> list[int]:
        """
        Retire a set of faces and create new faces in their place. Neighbour links
        between the new faces are found from their shared edges, and links to faces
        surrounding the retired ones are carried over.

        :param old_faces: \
            The indices of the faces being retired.

        :param new_triangles: \
            The vertex indices of each new face, in counterclockwise order.

        :param outer_neighbors: \
            Optional dictionary mapping a directed edge ``(u, v)`` of a new face to an
            existing face which lies across it, for edges which did not belong to any
            of the retired faces.

        :return: The indices of the new faces.
        """
        outer = {} if outer_neighbors is None else dict(outer_neighbors)
        old_faces = [int(f) for f in old_faces]
        old_set = set(old_faces)
        for f in old_faces:
            verts = self.face_vertices(f)
            for i in range(3):
                g = int(self.triangle_neighbors[f, i])
                if g >= 0 and g not in old_set:
                    outer[(verts[(i + 1) % 3], verts[(i + 2) % 3])] = g

        for f in old_faces:
            self.triangle_vertices[f] = -1
            self.triangle_neighbors[f] = -1
            self.free_slots.append(f)
            self.n_faces -= 1

        new_faces = []
        edges = {}
        for triangle in new_triangles:
            f = self._allocate()
            self.triangle_vertices[f] = triangle
            self.triangle_neighbors[f] = -1
            new_faces.append(f)
            for i in range(3):
                u, v = int(triangle[(i + 1) % 3]), int(triangle[(i + 2) % 3])
                edges[(u, v)] = (f, i)
            for v in triangle:
                self.vertex_face[v] = f

        for (u, v), (f, i) in edges.items():
            if (v, u) in edges:
                self.triangle_neighbors[f, i] = edges[(v, u)][0]
            elif (u, v) in outer:
                g = outer[(u, v)]
                self.triangle_neighbors[f, i] = g
                self.triangle_neighbors[g, self.edge_index(g, v, u)] = f
        return new_faces

    def _allocate(self) -> int:
        self.n_faces += 1
        if self.free_slots:
            return self.free_slots.pop()
        if self.n_slots == self.triangle_vertices.shape[0]:
            self.triangle_vertices = _grow(self.triangle_vertices, self.n_slots + 1, -1)
            self.triangle_neighbors = _grow(
                self.triangle_neighbors, self.n_slots + 1, -1
            )
        self.n_slots += 1
        return self.n_slots - 1

    def split_face(self, face: int, vertex: int) -> list[int]:
        """
        Replace a face with three new faces, each pairing ``vertex`` with one of the
        original edges. The vertex must lie strictly inside the face.

        :return: The indices of the three new faces.
        """
        a, b, c = self.face_vertices(face)
        P = self.points
        p = P[vertex]
        orientations = [
            orient2d(P[b], P[c], p),
            orient2d(P[c], P[a], p),
            orient2d(P[a], P[b], p),
        ]
        if min(orientations) <= 0:
            raise ValueError(
                f"""\n
                [ TriangularMesh error ]
                >> Vertex {vertex} does not lie strictly inside face {face}.
                """
            )
        logger.debug(f"splitting face {face} at vertex {vertex}")
        return self.replace_faces(
            [face], [(b, c, vertex), (c, a, vertex), (a, b, vertex)]
        )

    def split_edge(self, face_a: int, face_b: int, vertex: int) -> list[int]:
        """
        Replace the two faces which share an edge with four new faces, where ``vertex``
        lies strictly inside the shared edge.

        :return: The indices of the four new faces.
        """
        i = self.shared_edge(face_a, face_b)
        a = self.face_vertices(face_a)[i]
        u, w = self.edge_vertices(face_a, i)
        b = self.face_vertices(face_b)[self.edge_index(face_b, w, u)]
        self._check_on_edge(u, w, vertex)
        logger.debug(f"splitting edge ({u}, {w}) at vertex {vertex}")
        return self.replace_faces(
            [face_a, face_b],
            [(u, vertex, a), (vertex, w, a), (w, vertex, b), (vertex, u, b)],
        )

    def split_hull_edge(self, face: int, edge_index: int, vertex: int) -> list[int]:
        """
        Replace a face with two new faces, where ``vertex`` lies strictly inside the
        hull edge opposite local vertex ``edge_index``.

        :return: The indices of the two new faces.
        """
        if self.triangle_neighbors[face, edge_index] >= 0:
            raise ValueError(
                f"""\n
                [ TriangularMesh error ]
                >> Edge {edge_index} of face {face} is not a hull edge.
                """
            )
        a = self.face_vertices(face)[edge_index]
        u, w = self.edge_vertices(face, edge_index)
        self._check_on_edge(u, w, vertex)
        logger.debug(f"splitting hull edge ({u}, {w}) at vertex {vertex}")
        return self.replace_faces([face], [(u, vertex, a), (vertex, w, a)])

    def _check_on_edge(self, u: int, w: int, vertex: int):
        P = self.points
        p = P[vertex]
        # compare along whichever axis the edge is not perpendicular to
        axis = 0 if P[u, 0] != P[w, 0] else 1
        lower, upper = sorted([P[u, axis], P[w, axis]])
        if orient2d(P[u], P[w], p) != 0 or not (lower < p[axis] < upper):
            raise ValueError(
                f"""\n
                [ TriangularMesh error ]
                >> Vertex {vertex} does not lie strictly inside the edge ({u}, {w}).
                """
            )

    def flip_edge(self, face_a: int, face_b: int) -> list[int]:
        """
        Given two faces sharing the edge ``(u, v)`` with opposite vertices ``p`` and
        ``q``, replace them with two faces sharing the edge ``(p, q)`` instead.

        :return: The indices of the two new faces.
        """
        i = self.shared_edge(face_a, face_b)
        p = self.face_vertices(face_a)[i]
        u, v = self.edge_vertices(face_a, i)
        q = self.face_vertices(face_b)[self.edge_index(face_b, v, u)]
        P = self.points
        if orient2d(P[p], P[u], P[q]) <= 0 or orient2d(P[q], P[v], P[p]) <= 0:
            raise ValueError(
                f"""\n
                [ TriangularMesh error ]
                >> The quadrilateral formed by faces {face_a} and {face_b}
                >> is not strictly convex, so its diagonal cannot be flipped.
                """
            )
        logger.debug(f"flipping edge ({u}, {v}) to ({p}, {q})")
        return self.replace_faces([face_a, face_b], [(p, u, q), (q, v, p)])

    def extend_hull(self, hull_edges, vertex: int) -> list[int]:
        """
        Connect a vertex outside the mesh to a chain of hull edges which it can see,
        adding one new face per edge.

        :param hull_edges: \
            The visible hull edges as a sequence of ``(face, edge_index)`` pairs.

        :param int vertex: The index of the new vertex.

        :return: The indices of the new faces.
        """
        P = self.points
        triangles = []
        outer = {}
        for face, edge_index in hull_edges:
            u, w = self.edge_vertices(face, edge_index)
            if (
                self.triangle_neighbors[face, edge_index] >= 0
                or orient2d(P[u], P[w], P[vertex]) >= 0
            ):
                raise ValueError(
                    f"""\n
                    [ TriangularMesh error ]
                    >> Edge ({u}, {w}) is not a hull edge which is visible
                    >> from vertex {vertex}.
                    """
                )
            triangles.append((w, u, vertex))
            outer[(w, u)] = face
        logger.debug(f"extending hull over {len(triangles)} edges to vertex {vertex}")
        return self.replace_faces([], triangles, outer)

    def fan(self, chain, apex: int) -> list[int]:
        """
        Create the first faces of an empty mesh by joining a chain of collinear
        vertices to a single vertex which is not on their line.

        :param chain: \
            The indices of the collinear vertices, ordered along their line.

        :param int apex: The index of the vertex joined to every edge of the chain.

        :return: The indices of the new faces.
        """
        if self.n_faces > 0:
            raise ValueError(
                """\n
                [ TriangularMesh error ]
                >> The fan method can only be used on a mesh without faces.
                """
            )
        P = self.points
        orientation = orient2d(P[chain[0]], P[chain[-1]], P[apex])
        if orientation == 0:
            raise DegenerateInputError(
                [tuple(P[chain[0]]), tuple(P[chain[-1]]), tuple(P[apex])]
            )
        pairs = list(zip(chain[:-1], chain[1:]))
        if orientation > 0:
            triangles = [(a, b, apex) for a, b in pairs]
        else:
            triangles = [(b, a, apex) for a, b in pairs]
        return self.replace_faces([], triangles)

    def copy(self):
        mesh = TriangularMesh.__new__(TriangularMesh)
        mesh.points = self.points.copy()
        mesh.n_vertices = self.n_vertices
        mesh.triangle_vertices = self.triangle_vertices.copy()
        mesh.triangle_neighbors = self.triangle_neighbors.copy()
        mesh.vertex_face = self.vertex_face.copy()
        mesh.n_faces = self.n_faces
        mesh.n_slots = self.n_slots
        mesh.free_slots = list(self.free_slots)
        return mesh


def validate_mesh(mesh: TriangularMesh, check_delaunay: bool = True):
    """
    Check that a ``TriangularMesh`` is a valid triangulation of its vertices.

    The checks are that every face has three distinct vertices in strictly
    counterclockwise order, that neighbour links are reciprocal and cross matching
    edges, that no edge belongs to more than two faces, that the hull edges form a
    single closed convex loop and, optionally, that every interior edge is locally Delaunay
    (which implies that no vertex lies inside the circumcircle of any face).

    :param mesh: The mesh to be checked as an instance of ``TriangularMesh``.

    :param bool check_delaunay: Whether to check the empty-circumcircle property.

    :raises ValueError: If any of the checks fail.
    """

    def fail(message):
        raise ValueError(
            f"""\n
            [ validate_mesh error ]
            >> {message}
            """
        )

    P = mesh.points
    n_live = 0
    for f, (a, b, c) in mesh.faces():
        n_live += 1
        if len({a, b, c}) != 3 or max(a, b, c) >= mesh.n_vertices:
            fail(f"face {f} has invalid vertices {(a, b, c)}")
        if orient2d(P[a], P[b], P[c]) <= 0:
            fail(f"face {f} with vertices {(a, b, c)} is not counterclockwise")
        for i in range(3):
            g = int(mesh.triangle_neighbors[f, i])
            if g < 0:
                continue
            if not mesh.is_live(g):
                fail(f"face {f} references the retired face {g}")
            u, v = mesh.edge_vertices(f, i)
            j = mesh.edge_index(g, v, u)
            if mesh.triangle_neighbors[g, j] != f:
                fail(f"faces {f} and {g} are not reciprocal neighbours")
            if check_delaunay:
                q = mesh.face_vertices(g)[j]
                if incircle(P[a], P[b], P[c], P[q]) > 0:
                    fail(f"vertex {q} lies inside the circumcircle of face {f}")

    if n_live != mesh.n_faces:
        fail(f"the face count {mesh.n_faces} does not match the {n_live} live faces")
    if n_live == 0:
        return

    triangles = mesh.triangles
    _, _, edge_map = build_edge_map(triangles)
    if max(len(v) for v in edge_map.values()) > 2:
        fail("an edge is shared by more than two faces")
    boundaries = find_boundaries(triangles)
    if len(boundaries) != 1:
        fail(f"the hull edges form {len(boundaries)} loops rather than one")

    # the hull turns left (or runs straight) at every boundary vertex
    loop = boundaries[0]
    n = loop.size
    for k in range(n):
        a, b, c = loop[k - 1], loop[k], loop[(k + 1) % n]
        if orient2d(P[a], P[b], P[c]) < 0:
            fail(f"the hull is not convex at vertex {b}")

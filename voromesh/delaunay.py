from dataclasses import dataclass
from enum import Enum
from numpy import array, asarray, int64, isfinite, ndarray, zeros
from loguru import logger

from voromesh.errors import CoincidentPointError, EmptyTriangulationError
from voromesh.mesh import TriangularMesh, validate_mesh
from voromesh.predicates import incircle, orient2d


class TriangulationState(Enum):
    EMPTY = "empty"
    DEGENERATE = "degenerate"
    BUILT = "built"


class LocationKind(Enum):
    INSIDE = "inside"
    EDGE = "edge"
    VERTEX = "vertex"
    OUTSIDE = "outside"


@dataclass(frozen=True)
class Location:
    """
    The result of locating a point in a triangulation.

    :ivar kind: \
        A ``LocationKind`` stating whether the point is strictly inside ``face``, on
        one of its edges, on one of its vertices, or outside the convex hull.

    :ivar face: The index of the face in which the point was located.

    :ivar index: \
        For ``EDGE`` the local index of the edge the point lies on, for ``VERTEX``
        the local index of the coinciding vertex, and for ``OUTSIDE`` the local index
        of a hull edge of ``face`` which can see the point. Otherwise ``-1``.
    """

    kind: LocationKind
    face: int
    index: int = -1


class Triangulation:
    """
    An incrementally constructed Delaunay triangulation of a set of 2D points.

    Vertices are numbered in the order in which they are inserted. Until three
    non-collinear points have been inserted the triangulation has no faces, and the
    points are kept as a collinear chain. The first point which is not on the line
    of the chain is joined to it to create the initial mesh, after which each new
    point is inserted into the mesh and the Delaunay property restored by flipping
    edges.

    The orientation and in-circle tests are exact provided their intermediate
    products stay finite, which holds for coordinates smaller than about 1e75 in
    magnitude.

    :param points: \
        An optional sequence of points (or a 2D array of shape ``(N, 2)``) which are
        inserted in order.
    """

    def __init__(self, points=None):
        self.mesh = TriangularMesh()
        self.chain = []
        self.last_face = -1
        if points is not None:
            self.extend(points)

    @property
    def state(self) -> TriangulationState:
        if self.mesh.n_faces > 0:
            return TriangulationState.BUILT
        elif self.mesh.n_vertices <= 1:
            return TriangulationState.EMPTY
        else:
            return TriangulationState.DEGENERATE

    @property
    def n_vertices(self) -> int:
        return self.mesh.n_vertices

    @property
    def n_faces(self) -> int:
        return self.mesh.n_faces

    @property
    def vertices(self) -> ndarray:
        return self.mesh.vertices

    @property
    def triangles(self) -> ndarray:
        return self.mesh.triangles

    def faces(self):
        """
        Iterate over the faces of the triangulation as counterclockwise triples of
        vertex indices. No faces are produced until the triangulation is built.
        """
        for _, triangle in self.mesh.faces():
            yield triangle

    def insert(self, point) -> int:
        """
        Insert a point into the triangulation, restoring the Delaunay property.

        :param point: The point to be inserted as a pair of floats.

        :return: The index assigned to the new vertex.

        :raises CoincidentPointError: \
            If the point is exactly equal to an existing vertex. The triangulation is
            not modified.
        """
        p = self._check_point(point)
        if self.state is not TriangulationState.BUILT:
            return self._insert_collinear(p)

        location = self.locate(p)
        if location.kind is LocationKind.VERTEX:
            vertex = self.mesh.face_vertices(location.face)[location.index]
            raise CoincidentPointError(tuple(p), vertex)

        mesh = self.mesh
        v = mesh.add_vertex(p)
        if location.kind is LocationKind.INSIDE:
            new_faces = mesh.split_face(location.face, v)
        elif location.kind is LocationKind.EDGE:
            neighbor = mesh.neighbor_across(location.face, location.index)
            if neighbor is None:
                new_faces = mesh.split_hull_edge(location.face, location.index, v)
            else:
                new_faces = mesh.split_edge(location.face, neighbor, v)
        else:
            edges = self._visible_hull_edges(p, location.face, location.index)
            new_faces = mesh.extend_hull(edges, v)

        n_flips = self._restore_delaunay(v, new_faces)
        self.last_face = int(mesh.vertex_face[v])
        logger.debug(
            f"inserted vertex {v} ({location.kind.value}) with {n_flips} flips, "
            f"mesh now has {mesh.n_faces} faces"
        )
        return v

    def extend(self, points) -> list[int]:
        """
        Insert a sequence of points, in the order given.

        :param points: A sequence of points, or a 2D array of shape ``(N, 2)``.

        :return: The indices assigned to the new vertices.
        """
        points = asarray(points, dtype=float)
        if points.size == 0:
            return []
        if points.ndim != 2 or points.shape[1] != 2:
            raise ValueError(
                f"""\n
                [ Triangulation error ]
                >> The 'points' argument must have shape (num_points, 2)
                >> but given array has shape {points.shape}.
                """
            )
        return [self.insert(p) for p in points]

    def locate(self, point) -> Location:
        """
        Find where a point lies relative to the faces of the triangulation, by walking
        across the mesh starting from the most recently modified face.

        :param point: The point to be located as a pair of floats.

        :return: The location of the point as an instance of ``Location``.
        """
        if self.state is not TriangulationState.BUILT:
            raise EmptyTriangulationError(self.n_vertices)
        p = self._check_point(point)
        mesh = self.mesh

        face = self.last_face
        if not mesh.is_live(face):
            face = int(mesh.live_faces[0])

        # a visibility walk never revisits a face of a Delaunay triangulation
        location = self._walk(p, face, 2 * mesh.n_faces + 8)
        if location is not None:
            return location

        logger.warning(
            f"walk to locate point {tuple(p)} did not converge, using a linear search"
        )
        return self._linear_locate(p)

    def _walk(self, p, face: int, max_steps: int):
        """
        Step from ``face`` towards the point ``p``, always crossing the first edge
        which has ``p`` on its outer side. Returns ``None`` if the point has not been
        located after ``max_steps`` steps.
        """
        mesh = self.mesh
        for _ in range(max_steps):
            orientations = self._edge_orientations(face, p)
            step = None
            for i, o in enumerate(orientations):
                if o < 0:
                    step = i
                    break
            if step is None:
                return self._classify(face, orientations)
            neighbor = int(mesh.triangle_neighbors[face, step])
            if neighbor < 0:
                return Location(LocationKind.OUTSIDE, face, step)
            face = neighbor
        return None

    def _linear_locate(self, p) -> Location:
        mesh = self.mesh
        for face, _ in mesh.faces():
            orientations = self._edge_orientations(face, p)
            if min(orientations) >= 0:
                return self._classify(face, orientations)
        P = mesh.points
        for face, i in mesh.hull_edges():
            u, w = mesh.edge_vertices(face, i)
            if orient2d(P[u], P[w], p) < 0:
                return Location(LocationKind.OUTSIDE, face, i)
        raise RuntimeError(f"unable to locate the point {tuple(p)} in the mesh")

    def _edge_orientations(self, face: int, p) -> list[int]:
        P = self.mesh.points
        a, b, c = self.mesh.face_vertices(face)
        return [
            orient2d(P[b], P[c], p),
            orient2d(P[c], P[a], p),
            orient2d(P[a], P[b], p),
        ]

    @staticmethod
    def _classify(face: int, orientations: list[int]) -> Location:
        on_edges = [i for i, o in enumerate(orientations) if o == 0]
        if len(on_edges) == 0:
            return Location(LocationKind.INSIDE, face)
        elif len(on_edges) == 1:
            return Location(LocationKind.EDGE, face, on_edges[0])
        else:
            # the two edges which the point lies on meet at the remaining vertex
            return Location(LocationKind.VERTEX, face, 3 - sum(on_edges))

    def _visible_hull_edges(self, p, face: int, edge_index: int) -> list[tuple[int, int]]:
        mesh = self.mesh
        P = mesh.points

        def visible(edge):
            u, w = mesh.edge_vertices(*edge)
            return orient2d(P[u], P[w], p) < 0

        first = (face, edge_index)
        edges = [first]
        # a point outside a convex hull always sees a contiguous chain of
        # hull edges, and never all of them
        edge = mesh.next_hull_edge(*first)
        while edge != first and visible(edge):
            edges.append(edge)
            edge = mesh.next_hull_edge(*edge)
        edge = mesh.previous_hull_edge(*first)
        while edge != first and edge not in edges and visible(edge):
            edges.insert(0, edge)
            edge = mesh.previous_hull_edge(*edge)
        return edges

    def _restore_delaunay(self, v: int, new_faces: list[int]) -> int:
        """
        Flip edges opposite to the vertex ``v`` until every face incident to ``v`` is
        locally Delaunay. Returns the number of flips performed.
        """
        mesh = self.mesh
        P = mesh.points
        stack = list(new_faces)
        n_flips = 0
        while stack:
            f = stack.pop()
            if not mesh.is_live(f):
                continue
            verts = mesh.face_vertices(f)
            if v not in verts:
                continue
            k = verts.index(v)
            g = int(mesh.triangle_neighbors[f, k])
            if g < 0:
                continue
            u, w = verts[(k + 1) % 3], verts[(k + 2) % 3]
            q = mesh.face_vertices(g)[mesh.edge_index(g, w, u)]
            if not self._is_illegal(v, u, w, q):
                continue
            # flipping is only possible if the quadrilateral v-u-q-w is convex
            if orient2d(P[v], P[u], P[q]) <= 0 or orient2d(P[q], P[w], P[v]) <= 0:
                continue
            stack.extend(mesh.flip_edge(f, g))
            n_flips += 1
        return n_flips

    def _is_illegal(self, v: int, u: int, w: int, q: int) -> bool:
        """
        Decide whether the edge ``(u, w)`` shared by the counterclockwise face
        ``(v, u, w)`` and a face with opposite vertex ``q`` should be flipped.
        """
        P = self.mesh.points
        test = incircle(P[v], P[u], P[w], P[q])
        if test == 0:
            # cocircular - keep whichever diagonal holds the lowest vertex index
            return min(v, q) < min(u, w)
        return test > 0

    def _insert_collinear(self, p) -> int:
        mesh = self.mesh
        P = mesh.points
        for i in self.chain:
            if P[i, 0] == p[0] and P[i, 1] == p[1]:
                raise CoincidentPointError(tuple(p), i)

        if len(self.chain) >= 2:
            orientation = orient2d(P[self.chain[0]], P[self.chain[-1]], p)
        else:
            orientation = 0

        v = mesh.add_vertex(p)
        if orientation == 0:
            # collinear points ordered lexicographically are ordered along their line
            self.chain.append(v)
            self.chain.sort(key=lambda i: (mesh.points[i, 0], mesh.points[i, 1]))
            logger.debug(f"vertex {v} is collinear with {len(self.chain) - 1} others")
        else:
            new_faces = mesh.fan(self.chain, v)
            self.chain = []
            self.last_face = new_faces[-1]
            logger.debug(f"vertex {v} created the initial mesh of {len(new_faces)} faces")
        return v

    @staticmethod
    def _check_point(point) -> ndarray:
        p = asarray(point, dtype=float)
        if p.shape != (2,):
            raise ValueError(
                f"""\n
                [ Triangulation error ]
                >> Points must be given as a pair of coordinates, but
                >> given point has shape {p.shape}.
                """
            )
        if not isfinite(p).all():
            raise ValueError(
                f"""\n
                [ Triangulation error ]
                >> Points must have finite coordinates, but instead received
                >> {tuple(p)}.
                """
            )
        return p

    def hull_edges(self) -> list[tuple[int, int]]:
        """The directed hull edges ``(u, v)``, with the triangulation to their left."""
        return [self.mesh.edge_vertices(f, i) for f, i in self.mesh.hull_edges()]

    def hull(self) -> ndarray:
        """
        :return: \
            The indices of the vertices on the convex hull in counterclockwise order
            as a 1D numpy array. While the triangulation is degenerate, this holds the
            two end-points of the collinear chain.
        """
        if self.state is not TriangulationState.BUILT:
            if len(self.chain) <= 1:
                return array(self.chain, dtype=int64)
            return array([self.chain[0], self.chain[-1]], dtype=int64)

        mesh = self.mesh
        first = mesh.hull_edges()[0]
        loop = []
        edge = first
        while True:
            loop.append(mesh.edge_vertices(*edge)[0])
            edge = mesh.next_hull_edge(*edge)
            if edge == first:
                break
        return array(loop, dtype=int64)

    def neighbors(self, vertex: int) -> list[int]:
        """
        :return: \
            The indices of the vertices joined to ``vertex`` by an edge, in
            counterclockwise order around it.
        """
        if not 0 <= vertex < self.n_vertices:
            raise ValueError(
                f"""\n
                [ Triangulation error ]
                >> The vertex index {vertex} is out of range for a
                >> triangulation with {self.n_vertices} vertices.
                """
            )
        if self.state is not TriangulationState.BUILT:
            k = self.chain.index(vertex)
            return self.chain[max(k - 1, 0) : k] + self.chain[k + 1 : k + 2]

        mesh = self.mesh
        faces, closed = mesh.vertex_faces(vertex)
        result = []
        for f in faces:
            verts = mesh.face_vertices(f)
            result.append(verts[(verts.index(vertex) + 1) % 3])
        if not closed:
            last = mesh.face_vertices(faces[-1])
            result.append(last[(last.index(vertex) + 2) % 3])
        return result

    def copy(self):
        """Create an independent copy of the triangulation."""
        new = Triangulation.__new__(Triangulation)
        new.mesh = self.mesh.copy()
        new.chain = list(self.chain)
        new.last_face = self.last_face
        return new

    def validate(self):
        """
        Check that the faces form a valid Delaunay triangulation of the vertices.

        :raises ValueError: If any of the checks fail.
        """
        validate_mesh(self.mesh, check_delaunay=True)
        if self.state is TriangulationState.BUILT:
            covered = zeros(self.n_vertices, dtype=bool)
            covered[self.triangles.flatten()] = True
            if not covered.all():
                raise ValueError(
                    f"""\n
                    [ Triangulation error ]
                    >> The vertices {(~covered).nonzero()[0]} do not belong to any face.
                    """
                )


def build(points) -> Triangulation:
    """
    Construct the Delaunay triangulation of a set of points by inserting them one at
    a time, in the order given, into a new ``Triangulation``.

    :param points: \
        The points to be triangulated as a sequence of coordinate pairs, or as a 2D
        numpy array of shape ``(N, 2)``.

    :return: The triangulation as an instance of ``Triangulation``.
    """
    return Triangulation(points)

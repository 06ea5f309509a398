from dataclasses import dataclass, field
from numpy import array, full, isfinite, nan, ndarray, sqrt, vstack

from voromesh.delaunay import Triangulation, TriangulationState
from voromesh.errors import EmptyTriangulationError
from voromesh.intersection import ray_rectangle_exit
from voromesh.predicates import circumcenters, squared_distance


@dataclass(frozen=True)
class ClipBox:
    """
    An axis-aligned rectangle used to truncate the unbounded rays of Voronoi regions.

    :ivar x_min, x_max: The x-values of the left and right sides of the rectangle.
    :ivar y_min, y_max: The y-values of the bottom and top sides of the rectangle.
    """

    x_min: float
    x_max: float
    y_min: float
    y_max: float

    def __post_init__(self):
        values = array([self.x_min, self.x_max, self.y_min, self.y_max], dtype=float)
        if not isfinite(values).all() or self.x_min >= self.x_max or self.y_min >= self.y_max:
            raise ValueError(
                f"""\n
                [ ClipBox error ]
                >> The limits of a ClipBox must be finite and satisfy
                >> x_min < x_max and y_min < y_max, but instead received
                >> x: ({self.x_min}, {self.x_max}), y: ({self.y_min}, {self.y_max}).
                """
            )

    @property
    def x_lims(self) -> tuple[float, float]:
        return self.x_min, self.x_max

    @property
    def y_lims(self) -> tuple[float, float]:
        return self.y_min, self.y_max


@dataclass(eq=False)
class FiniteRegion:
    """
    The bounded Voronoi region of a vertex which is interior to the triangulation.

    :ivar vertex: The index of the vertex which the region belongs to.

    :ivar polygon: \
        The vertices of the region as a 2D numpy array of shape ``(k, 2)``. These are
        the circumcenters of the faces around the vertex, in counterclockwise order.
    """

    vertex: int
    polygon: ndarray

    bounded = True

    def boundary(self) -> ndarray:
        return self.polygon


@dataclass(eq=False)
class InfiniteRegion:
    """
    The unbounded Voronoi region of a vertex on the convex hull.

    The region is bounded by a ray starting at ``polyline[0]`` and travelling in
    ``start_direction``, the polyline itself, and a ray starting at ``polyline[-1]``
    and travelling in ``end_direction``.

    :ivar vertex: The index of the vertex which the region belongs to.

    :ivar polyline: \
        The circumcenters of the faces around the vertex, in counterclockwise order,
        as a 2D numpy array of shape ``(k, 2)``.

    :ivar start_direction: \
        The outward unit normal of the hull edge leaving the vertex.

    :ivar end_direction: \
        The outward unit normal of the hull edge entering the vertex.

    :ivar start_ray_end, end_ray_end: \
        When the region is clipped, the points at which the two rays leave the clip
        box (or the start of the ray if it misses the box). ``None`` otherwise.
    """

    vertex: int
    polyline: ndarray
    start_direction: ndarray
    end_direction: ndarray
    start_ray_end: ndarray = field(default=None)
    end_ray_end: ndarray = field(default=None)

    bounded = False

    @property
    def clipped(self) -> bool:
        return self.start_ray_end is not None

    def boundary(self) -> ndarray:
        """
        :return: \
            The points along the boundary of the region as a 2D numpy array, which
            includes the ends of both rays if the region has been clipped.
        """
        if not self.clipped:
            return self.polyline
        return vstack([self.start_ray_end, self.polyline, self.end_ray_end])


def _outward_normal(start: ndarray, end: ndarray) -> ndarray:
    # the mesh lies to the left of each hull edge, so the right-hand normal points
    # out. the edge is scaled before squaring so large coordinates cannot overflow
    d = end - start
    d = d / abs(d).max()
    length = sqrt(squared_distance((0.0, 0.0), d))
    return array([d[1] / length, -d[0] / length])


def _as_clip_box(clip_box):
    if clip_box is None or isinstance(clip_box, ClipBox):
        return clip_box
    if len(clip_box) != 4:
        raise ValueError(
            f"""\n
            [ regions error ]
            >> The 'clip_box' argument must be a ClipBox or a tuple in the form
            >> (x_min, x_max, y_min, y_max), but instead received {clip_box}.
            """
        )
    return ClipBox(*clip_box)


def _face_circumcenters(triangulation: Triangulation) -> ndarray:
    mesh = triangulation.mesh
    centres = full([mesh.n_slots, 2], fill_value=nan)
    live = mesh.live_faces
    centres[live] = circumcenters(mesh.points, mesh.triangle_vertices[live])
    return centres


def _build_region(triangulation: Triangulation, vertex: int, centres: ndarray):
    mesh = triangulation.mesh
    P = mesh.points
    faces, closed = mesh.vertex_faces(vertex)
    points = centres[faces]
    if closed:
        return FiniteRegion(vertex=vertex, polygon=points)

    first = mesh.face_vertices(faces[0])
    following = first[(first.index(vertex) + 1) % 3]
    last = mesh.face_vertices(faces[-1])
    preceding = last[(last.index(vertex) + 2) % 3]
    return InfiniteRegion(
        vertex=vertex,
        polyline=points,
        start_direction=_outward_normal(P[vertex], P[following]),
        end_direction=_outward_normal(P[preceding], P[vertex]),
    )


def _clip_rays(regions: list, clip_box: ClipBox):
    unbounded = [r for r in regions if not r.bounded]
    if len(unbounded) == 0:
        return
    origins = vstack(
        [r.polyline[0] for r in unbounded] + [r.polyline[-1] for r in unbounded]
    )
    directions = vstack(
        [r.start_direction for r in unbounded] + [r.end_direction for r in unbounded]
    )
    t = ray_rectangle_exit(clip_box.x_lims, clip_box.y_lims, origins, directions)
    # rays which miss the box are truncated at their starting point
    t[~isfinite(t)] = 0.0
    ends = origins + t[:, None] * directions
    n = len(unbounded)
    for i, r in enumerate(unbounded):
        r.start_ray_end = ends[i]
        r.end_ray_end = ends[n + i]


def _check_built(triangulation: Triangulation):
    if triangulation.state is not TriangulationState.BUILT:
        raise EmptyTriangulationError(triangulation.n_vertices)


def regions(triangulation: Triangulation, clip_box=None) -> list:
    """
    Derive the Voronoi region of every vertex of a Delaunay triangulation.

    :param triangulation: \
        The triangulation as an instance of ``Triangulation``. It is not modified.

    :param clip_box: \
        An optional ``ClipBox``, or a tuple in the form ``(x_min, x_max, y_min, y_max)``,
        used to truncate the unbounded rays of regions belonging to hull vertices.

    :return: \
        A list whose ``i``'th element is the region of vertex ``i``, either as a
        ``FiniteRegion`` for interior vertices or an ``InfiniteRegion`` for vertices
        on the convex hull.

    :raises EmptyTriangulationError: If the triangulation does not yet have any faces.
    """
    _check_built(triangulation)
    box = _as_clip_box(clip_box)
    centres = _face_circumcenters(triangulation)
    result = [
        _build_region(triangulation, v, centres)
        for v in range(triangulation.n_vertices)
    ]
    if box is not None:
        _clip_rays(result, box)
    return result


def region(triangulation: Triangulation, vertex: int, clip_box=None):
    """
    Derive the Voronoi region of a single vertex of a Delaunay triangulation.

    :param triangulation: The triangulation as an instance of ``Triangulation``.

    :param int vertex: The index of the vertex.

    :param clip_box: \
        An optional ``ClipBox`` or ``(x_min, x_max, y_min, y_max)`` tuple used to
        truncate unbounded rays.

    :return: The region as a ``FiniteRegion`` or an ``InfiniteRegion``.
    """
    _check_built(triangulation)
    if not 0 <= vertex < triangulation.n_vertices:
        raise ValueError(
            f"""\n
            [ region error ]
            >> The vertex index {vertex} is out of range for a
            >> triangulation with {triangulation.n_vertices} vertices.
            """
        )
    box = _as_clip_box(clip_box)
    mesh = triangulation.mesh
    faces, _ = mesh.vertex_faces(vertex)
    centres = full([mesh.n_slots, 2], fill_value=nan)
    centres[faces] = circumcenters(mesh.points, mesh.triangle_vertices[faces])
    result = _build_region(triangulation, vertex, centres)
    if box is not None:
        _clip_rays([result], box)
    return result

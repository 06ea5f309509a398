class VoromeshError(ValueError):
    """Base class for errors raised by the triangulation and Voronoi code."""


class DegenerateInputError(VoromeshError):
    """Raised when three points given as the first face of a mesh are collinear."""

    def __init__(self, points):
        self.points = points
        super().__init__(
            f"""\n
            [ TriangularMesh error ]
            >> The points given to create_initial are collinear:
            >> {points}
            >> so they do not form a triangle.
            """
        )


class CoincidentPointError(VoromeshError):
    """
    Raised when an inserted point is exactly equal to an existing vertex.

    :ivar point: The rejected point.
    :ivar vertex: The index of the existing vertex it coincides with.
    """

    def __init__(self, point, vertex: int):
        self.point = point
        self.vertex = vertex
        super().__init__(
            f"""\n
            [ Triangulation error ]
            >> The point {point} coincides with the existing vertex {vertex}.
            """
        )


class EmptyTriangulationError(VoromeshError):
    """Raised when Voronoi regions are requested before any face exists."""

    def __init__(self, n_vertices: int):
        self.n_vertices = n_vertices
        super().__init__(
            f"""\n
            [ regions error ]
            >> Voronoi regions require a triangulation with at least one face,
            >> but the given triangulation has {n_vertices} vertices and no faces.
            """
        )

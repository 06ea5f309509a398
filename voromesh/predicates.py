from numpy import array, asarray, empty, maximum, ndarray
from shewchuk import incircle_test, orientation


def _sign(value) -> int:
    return (value > 0) - (value < 0)


def orient2d(a, b, c) -> int:
    """
    Exact orientation test for three points.

    :param a: The first point as a pair of floats.
    :param b: The second point as a pair of floats.
    :param c: The point being tested as a pair of floats.

    :return: \
        ``1`` if ``a, b, c`` are in counterclockwise order, ``-1`` if they are in
        clockwise order and ``0`` if they are collinear.
    """
    return _sign(
        orientation(
            float(a[0]), float(a[1]), float(b[0]), float(b[1]), float(c[0]), float(c[1])
        )
    )


def incircle(a, b, c, d) -> int:
    """
    Exact in-circle test for the point ``d`` against the circle through ``a, b, c``.

    :param a, b, c: \
        The vertices of a counterclockwise triangle, each as a pair of floats.

    :param d: The point being tested as a pair of floats.

    :return: \
        ``1`` if ``d`` lies strictly inside the circumcircle, ``-1`` if it lies
        strictly outside and ``0`` if the four points are cocircular.
    """
    return _sign(
        incircle_test(
            float(d[0]),
            float(d[1]),
            float(a[0]),
            float(a[1]),
            float(b[0]),
            float(b[1]),
            float(c[0]),
            float(c[1]),
        )
    )


def circumcenter(a, b, c) -> ndarray:
    """Closed-form circumcenter of the non-degenerate triangle ``a, b, c``."""
    # work relative to `a` to limit cancellation, and scaled so that squaring
    # the edge lengths cannot overflow or underflow
    bx, by = b[0] - a[0], b[1] - a[1]
    cx, cy = c[0] - a[0], c[1] - a[1]
    s = max(abs(bx), abs(by), abs(cx), abs(cy))
    bx, by, cx, cy = bx / s, by / s, cx / s, cy / s
    d = 2.0 * (bx * cy - by * cx)
    b2 = bx * bx + by * by
    c2 = cx * cx + cy * cy
    ux = (cy * b2 - by * c2) / d
    uy = (bx * c2 - cx * b2) / d
    return array([a[0] + s * ux, a[1] + s * uy])


def squared_distance(a, b) -> float:
    dx = b[0] - a[0]
    dy = b[1] - a[1]
    return dx * dx + dy * dy


def circumcenters(points: ndarray, triangles: ndarray) -> ndarray:
    """
    Vectorised circumcenter calculation for a set of triangles.

    :param points: \
        The vertex coordinates as a 2D numpy array of shape ``(n, 2)``.

    :param triangles: \
        A 2D numpy array of integers of shape ``(N, 3)`` specifying the indices of the
        vertices which form each triangle.

    :return: \
        The circumcenters as a 2D numpy array of shape ``(N, 2)``.
    """
    points = asarray(points, dtype=float)
    triangles = asarray(triangles)
    if triangles.size == 0:
        return empty((0, 2))
    a = points[triangles[:, 0]]
    b = points[triangles[:, 1]] - a
    c = points[triangles[:, 2]] - a
    s = maximum(abs(b).max(axis=1), abs(c).max(axis=1))
    b /= s[:, None]
    c /= s[:, None]
    d = 2.0 * (b[:, 0] * c[:, 1] - b[:, 1] * c[:, 0])
    b2 = (b**2).sum(axis=1)
    c2 = (c**2).sum(axis=1)
    centres = empty(a.shape)
    centres[:, 0] = a[:, 0] + s * (c[:, 1] * b2 - b[:, 1] * c2) / d
    centres[:, 1] = a[:, 1] + s * (b[:, 0] * c2 - c[:, 0] * b2) / d
    return centres

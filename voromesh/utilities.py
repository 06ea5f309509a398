from collections import defaultdict
from numpy import arange, array, asarray, int64, ndarray, repeat, stack, unique, zeros


def build_edge_map(triangles: ndarray):
    """
    Generates various mappings to and from edges in the mesh.

    :param triangles: \
        A 2D numpy array of integers specifying the indices of the vertices which form
        each of the triangles in the mesh. The array must have shape ``(N, 3)`` where
        ``N`` is the total number of triangles.

    :return: \
        A tuple containing ``triangle_edges``, ``edge_vertices`` and ``edge_map``.
        ``triangle_edges`` specifies the indices of the edges which make up each
        triangle as a 2D numpy array of shape ``(N, 3)``, where column ``k`` holds the
        edge opposite the ``k``'th vertex of the triangle. ``edge_vertices`` specifies
        the indices of the vertices which make up each edge as a 2D numpy array of
        shape ``(M, 2)`` where ``M`` is the total number of edges. ``edge_map`` is a
        dictionary mapping the index of an edge to the indices of the triangles to
        which it belongs.
    """
    triangles = asarray(triangles, dtype=int64).reshape(-1, 3)
    n_triangles = triangles.shape[0]
    if n_triangles == 0:
        return zeros([0, 3], dtype=int64), zeros([0, 2], dtype=int64), {}

    # edge k of each triangle joins the two vertices other than vertex k
    pairs = stack([triangles[:, [1, 2, 0]], triangles[:, [2, 0, 1]]], axis=2)
    pairs = pairs.reshape(-1, 2)
    pairs.sort(axis=1)
    edge_vertices, inverse = unique(pairs, axis=0, return_inverse=True)
    inverse = inverse.reshape(-1)

    edge_map = defaultdict(list)
    for t, e in zip(repeat(arange(n_triangles), 3), inverse):
        edge_map[int(e)].append(int(t))
    return inverse.reshape(n_triangles, 3), edge_vertices, edge_map


def find_boundaries(triangles: ndarray) -> list[ndarray]:
    """
    Find all the boundaries of a mesh whose triangles are listed counterclockwise.

    :param triangles: \
        A 2D numpy array of integers specifying the indices of the vertices which form
        each of the triangles in the mesh, in counterclockwise order. The array must
        have shape ``(N, 3)`` where ``N`` is the total number of triangles.

    :return: \
        A list of 1D numpy arrays containing the indices of the vertices in each
        boundary, ordered so that the mesh lies to the left of the boundary.
    """
    triangles = asarray(triangles, dtype=int64).reshape(-1, 3)
    directed = set()
    for a, b, c in triangles:
        directed.update([(int(a), int(b)), (int(b), int(c)), (int(c), int(a))])

    # a directed edge is on the boundary if its reverse belongs to no triangle
    successor = {}
    for u, v in directed:
        if (v, u) not in directed:
            if u in successor:
                raise ValueError(
                    f"""\n
                    [ find_boundaries error ]
                    >> Vertex {u} starts more than one boundary edge, so the
                    >> boundaries of the mesh are not simple loops.
                    """
                )
            successor[u] = v

    boundaries = []
    unused = set(successor)
    while unused:
        start = min(unused)
        loop = [start]
        unused.remove(start)
        v = successor[start]
        while v != start:
            if v not in unused:
                raise ValueError(
                    f"""\n
                    [ find_boundaries error ]
                    >> The boundary passing through vertex {v} does not close.
                    """
                )
            loop.append(v)
            unused.remove(v)
            v = successor[v]
        boundaries.append(array(loop, dtype=int64))
    return boundaries

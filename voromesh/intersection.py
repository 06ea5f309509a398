from numpy import asanyarray, errstate, inf, maximum, minimum, nan, ndarray, where


def ray_rectangle_exit(
    x_lims: tuple, y_lims: tuple, origins: ndarray, directions: ndarray
) -> ndarray:
    """
    Finds where a set of rays leave an axis-aligned rectangle.

    :param x_lims: \
        A tuple specifying the x-values of the left and right sides of the
        rectangle in the form ``(x_left, x_right)``.

    :param y_lims: \
        A tuple specifying the y-values of the bottom and top sides of the
        rectangle in the form ``(y_bottom, y_top)``.

    :param origins: \
        The origin point of each ray as a 2D numpy array of shape ``(N, 2)``
        where ``N`` is the total number of rays.

    :param directions: \
        The direction of each ray as a 2D numpy array of shape ``(N, 2)``.

    :return: \
        The distance along each ray (in units of the length of its direction
        vector) at which it leaves the rectangle, as a 1D numpy array. Rays which
        never pass through the rectangle are given a value of ``nan``.
    """

    def check_input_array(array, array_name):
        new_array = asanyarray(array, dtype=float)
        if new_array.shape == (2,):
            new_array = new_array.reshape((1, 2))
        if new_array.ndim != 2 or new_array.shape[1] != 2:
            raise ValueError(
                f"Wrong shape for input {array_name}: expected (N, 2), got {new_array.shape}"
            )
        return new_array

    origins = check_input_array(origins, "origins")
    directions = check_input_array(directions, "directions")
    if origins.shape != directions.shape:
        raise ValueError(
            f"Inconsistent shapes for origins {origins.shape} and directions {directions.shape}"
        )

    lower = asanyarray([x_lims[0], y_lims[0]], dtype=float)
    upper = asanyarray([x_lims[1], y_lims[1]], dtype=float)

    # slab method - find the range of distances over which each ray is
    # between the two sides of the rectangle along each axis
    with errstate(divide="ignore", invalid="ignore"):
        t1 = (lower[None, :] - origins) / directions
        t2 = (upper[None, :] - origins) / directions
    t_near = minimum(t1, t2)
    t_far = maximum(t1, t2)

    # rays parallel to an axis are either always or never between its sides
    parallel = directions == 0.0
    between = (lower[None, :] <= origins) & (origins <= upper[None, :])
    t_near = where(parallel, where(between, -inf, inf), t_near)
    t_far = where(parallel, where(between, inf, -inf), t_far)

    t_enter = t_near.max(axis=1)
    t_exit = t_far.min(axis=1)
    hits = t_exit >= maximum(t_enter, 0.0)
    return where(hits, t_exit, nan)

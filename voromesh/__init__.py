from importlib.metadata import version, PackageNotFoundError
from loguru import logger

try:
    __version__ = version("voromesh")
except PackageNotFoundError:
    from setuptools_scm import get_version

    __version__ = get_version(
        root="..", relative_to=__file__, fallback_version="0.1.0"
    )

from voromesh.errors import (
    VoromeshError,
    DegenerateInputError,
    CoincidentPointError,
    EmptyTriangulationError,
)
from voromesh.mesh import TriangularMesh, validate_mesh
from voromesh.delaunay import (
    Triangulation,
    TriangulationState,
    Location,
    LocationKind,
    build,
)
from voromesh.voronoi import ClipBox, FiniteRegion, InfiniteRegion, regions, region

# library code stays silent unless the user enables it
logger.disable("voromesh")

__all__ = [
    "__version__",
    "VoromeshError",
    "DegenerateInputError",
    "CoincidentPointError",
    "EmptyTriangulationError",
    "TriangularMesh",
    "validate_mesh",
    "Triangulation",
    "TriangulationState",
    "Location",
    "LocationKind",
    "build",
    "ClipBox",
    "FiniteRegion",
    "InfiniteRegion",
    "regions",
    "region",
]

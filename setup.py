from setuptools import setup

with open("README.md", "r") as fh:
    long_description = fh.read()

setup(
    name="voromesh",
    version="0.1.0",
    description="Incremental Delaunay triangulation and Voronoi regions in 2D",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=["voromesh"],
    python_requires=">=3.9",
    install_requires=["numpy", "shewchuk", "loguru", "setuptools_scm"],
    extras_require={"tests": ["pytest", "hypothesis", "scipy"]},
)

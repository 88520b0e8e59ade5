[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "hipster"
version = "0.1.0"
description = "Create HiPS surveys from full-sky equirectangular images"
requires-python = ">=3.10"
keywords = ["hips", "healpix", "astronomy", "tiles", "survey"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Astronomy",
    "Topic :: Multimedia :: Graphics :: Graphics Conversion",
]
dependencies = [
    "numpy",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
hipster = "hipster.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["hipster"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

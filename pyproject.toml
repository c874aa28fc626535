[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "viewplanner"
version = "0.1.0"
description = "Modular trajectory evaluation building blocks for informative 3D view planning"
requires-python = ">=3.10"
dependencies = []
keywords = ["planning", "exploration", "trajectory", "next-best-view", "robotics", "voxel"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["viewplanner"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

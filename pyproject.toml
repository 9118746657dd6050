[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "calico"
version = "0.1.0"
description = "A UCI chess engine with 0x88 move generation, alpha-beta search and NNUE evaluation"
requires-python = ">=3.10"
dependencies = ["numpy"]
keywords = ["chess", "uci", "engine", "nnue", "alpha-beta", "perft"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment :: Board Games",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
calico = "calico.uci:main"

[tool.hatch.build.targets.wheel]
packages = ["calico"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

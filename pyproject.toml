[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pktdef"
version = "0.1.0"
description = "Declarative, bit-exact packet layouts: describe header fields once and read, write and size raw packets"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "packet",
    "network",
    "protocol",
    "bitfield",
    "binary",
    "parsing",
    "serialization",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["pktdef"]

[tool.hatch.build.targets.sdist]
include = ["pktdef", "tests", "README.md"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

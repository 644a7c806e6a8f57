[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nocopyio"
version = "0.1.0"
description = "Linked zero-copy byte buffers, stream adapters, poller load balancing and socket helpers"
requires-python = ">=3.10"
dependencies = []
keywords = ["buffer", "zero-copy", "networking", "readv", "writev", "sendmsg", "poll"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["nocopyio"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

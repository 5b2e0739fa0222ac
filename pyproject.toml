[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "atlasreconcile"
version = "0.8.0"
description = "Reconciliation logic for keeping managed database clusters in line with a declared specification"
requires-python = ">=3.10"
dependencies = []
keywords = ["reconcile", "cluster", "operator", "database", "automation", "backup"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["atlasreconcile"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

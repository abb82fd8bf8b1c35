[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tnbench"
version = "0.1.0"
description = "Benchmark tooling for stream query procedures: stream tree shapes, result export to CSV and Markdown, and container memory sampling."
requires-python = ">=3.10"
dependencies = []
keywords = ["benchmark", "streams", "csv", "markdown", "docker", "memory"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Benchmark",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
tnbench-export = "tnbench.exportresults:main"

[tool.hatch.build.targets.wheel]
packages = ["tnbench"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

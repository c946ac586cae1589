[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "guardheap"
version = "0.1.0"
description = "A simulated guarded heap that catches leaks, buffer overruns and forced allocation failures in tests"
requires-python = ">=3.10"
dependencies = []
keywords = ["testing", "malloc", "heap", "leak detection", "buffer overrun", "memory"]
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
    "Topic :: Software Development :: Testing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["guardheap"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"

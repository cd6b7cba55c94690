[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "contractkit"
version = "0.1.0"
description = "Contract source metadata, Wasm post-processing and build tooling helpers"
requires-python = ">=3.10"
dependencies = [
    "semver>=3",
]
keywords = ["wasm", "smart-contracts", "metadata", "build", "wasm-opt", "cargo"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["contractkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

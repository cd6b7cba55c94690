"""Contract source metadata, Wasm post-processing and build tooling helpers."""

__version__ = "0.1.0"
"""Running ``wasm-opt`` to shrink the contract's Wasm binary."""

from __future__ import annotations

import errno
import logging
import os
import re
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Union

__all__ = [
    "ToolError",
    "OptimizedWasm",
    "parse_wasm_opt_version",
    "check_wasm_opt_version_compatibility",
    "do_optimization",
    "optimize_wasm",
]

log = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

MINIMUM_WASM_OPT_VERSION = 99
_U32_MAX = 2**32 - 1
_VERSION_PATTERN = re.compile(r"wasm-opt version (\d+)")

_GITHUB_NOTE = (
    "\n\n"
    "If you tried installing from your system package manager the best\n"
    "way forward is to download a recent binary release directly:\n\n"
    "https://github.com/WebAssembly/binaryen/releases\n\n"
    "Make sure that the `wasm-opt` file from that release is in your `PATH`."
)

_NOT_FOUND_MESSAGE = (
    "wasm-opt not found! Make sure the binary is in your PATH environment.\n\n"
    "We use this tool to optimize the size of your contract's Wasm binary.\n\n"
    "wasm-opt is part of the binaryen package. You can find detailed\n"
    "installation instructions on https://github.com/WebAssembly/binaryen#tools.\n\n"
    "There are ready-to-install packages for many platforms:\n"
    "* Debian/Ubuntu: apt-get install binaryen\n"
    "* Homebrew: brew install binaryen\n"
    "* Arch Linux: pacman -S binaryen\n"
    "* Windows: binary releases at https://github.com/WebAssembly/binaryen/releases"
)


class ToolError(Exception):
    """Raised when an external tool is missing, incompatible or fails."""


@dataclass(frozen=True)
class OptimizedWasm:
    """Result of optimizing a Wasm file; sizes are in kilobytes."""

    dest_wasm: Path
    original_size: float
    optimized_size: float


def parse_wasm_opt_version(output: str) -> int:
    """Extract the version number from the output of ``wasm-opt --version``."""
    text = output.strip()
    match = _VERSION_PATTERN.search(text)
    if match is None:
        raise ToolError(
            f"Unable to extract version information from '{text}'.\n"
            f"Your wasm-opt version is most probably too old. "
            f"Make sure you use a version >= {MINIMUM_WASM_OPT_VERSION}.{_GITHUB_NOTE}"
        )
    number = int(match.group(1))
    if number > _U32_MAX:
        raise ToolError(
            f"Parsing version number failed with 'number too large' for {text!r}"
        )
    return number


def _run_version(wasm_opt_path: PathLike) -> subprocess.CompletedProcess:
    command = [str(wasm_opt_path), "--version"]
    try:
        return subprocess.run(command, capture_output=True)
    except OSError as err:
        if err.errno != errno.ETXTBSY:
            raise
    # The executable may still be held open by whoever just wrote it.
    time.sleep(1)
    return subprocess.run(command, capture_output=True)


def check_wasm_opt_version_compatibility(wasm_opt_path: PathLike) -> int:
    """Ensure the ``wasm-opt`` at the given path has version 99 or newer.

    Returns the detected version number.
    """
    try:
        result = _run_version(wasm_opt_path)
    except OSError as err:
        raise ToolError(
            f"Executing `{str(wasm_opt_path)!r} --version` failed with {err!r}"
        ) from err
    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise ToolError(
            "Getting version information from wasm-opt failed.\n"
            f"The error which wasm-opt returned was: \n{stderr}"
        )
    stdout = result.stdout.decode("utf-8", errors="replace").strip()
    version = parse_wasm_opt_version(stdout)
    log.info(
        "The wasm-opt version output is '%s', which was parsed to '%s'",
        stdout,
        version,
    )
    if version < MINIMUM_WASM_OPT_VERSION:
        raise ToolError(
            f"Your wasm-opt version is {version}, but we require a version "
            f">= {MINIMUM_WASM_OPT_VERSION}.{_GITHUB_NOTE}"
        )
    return version


def do_optimization(
    dest_wasm: PathLike,
    dest_optimized: PathLike,
    optimization_level: Union[str, int] = "z",
    keep_debug_symbols: bool = False,
) -> None:
    """Optimize ``dest_wasm`` with ``wasm-opt``, writing the result to ``dest_optimized``."""
    wasm_opt_path = shutil.which("wasm-opt")
    if wasm_opt_path is None:
        raise ToolError(_NOT_FOUND_MESSAGE)
    log.info("Path to wasm-opt executable: %s", wasm_opt_path)

    check_wasm_opt_version_compatibility(wasm_opt_path)

    log.info("Optimization level passed to wasm-opt: %s", optimization_level)
    command = [
        wasm_opt_path,
        str(dest_wasm),
        f"-O{optimization_level}",
        "-o",
        str(dest_optimized),
        # The memory is imported; tell wasm-opt it starts zeroed so that
        # the memory-packing pre-pass runs.
        "--zero-filled-memory",
    ]
    if keep_debug_symbols:
        command.append("-g")
    log.info("Invoking wasm-opt with %s", command)
    try:
        result = subprocess.run(command, capture_output=True)
    except OSError as err:
        raise ToolError(f"Executing {wasm_opt_path} failed with {err!r}") from err
    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise ToolError(
            "The wasm-opt optimization failed.\n\n"
            f"The error which wasm-opt returned was: \n{stderr}"
        )


def optimize_wasm(
    dest_wasm: PathLike,
    artifact_name: str,
    optimization_level: Union[str, int] = "z",
    keep_debug_symbols: bool = False,
) -> OptimizedWasm:
    """Optimize ``dest_wasm`` in place and report its size before and after."""
    dest = Path(dest_wasm)
    dest_optimized = dest.with_name(f"{artifact_name}-opt.wasm")
    do_optimization(dest, dest_optimized, optimization_level, keep_debug_symbols)

    if not dest_optimized.exists():
        raise ToolError(
            f"Optimization failed, optimized wasm output file `{dest_optimized}` not found."
        )

    original_size = dest.stat().st_size / 1000.0
    optimized_size = dest_optimized.stat().st_size / 1000.0
    os.replace(dest_optimized, dest)
    return OptimizedWasm(dest, original_size, optimized_size)
"""Invoking cargo for contract builds: arguments, environment and requirement checks."""

from __future__ import annotations

import logging
import os
import subprocess
from typing import Optional, Sequence, Union

import semver

__all__ = [
    "CargoError",
    "assert_debug_mode_supported",
    "wasm_build_args",
    "wasm_build_env",
    "check_dylint_requirements",
    "assert_compatible_ink_dependencies",
    "build_steps",
]

log = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]
Command = Union[PathLike, Sequence[str]]

_MINIMUM_DEBUG_INK_VERSION = semver.Version.parse("3.0.0-rc4")

_INK_DEPENDENCIES = ("parity-scale-codec", "scale-info")

_RUSTFLAGS = (
    "-C link-arg=-zstack-size=65536 -C link-arg=--import-memory -Clinker-plugin-lto"
)

_DYLINT_NOT_FOUND = (
    "cargo-dylint was not found!\n"
    "Make sure it is installed and the binary is in your PATH environment.\n\n"
    "You can install it by executing `cargo install cargo-dylint`."
)

_BUILD_STEPS = {
    "all": 5,
    "code-only": 4,
    "check-only": 2,
}


class CargoError(Exception):
    """Raised when cargo or a cargo subcommand is missing, incompatible or fails."""


def _command_prefix(cargo: Optional[Command]) -> list[str]:
    if cargo is None:
        return [os.environ.get("CARGO", "cargo")]
    if isinstance(cargo, (str, os.PathLike)):
        return [os.fspath(cargo)]
    return [os.fspath(part) for part in cargo]


def assert_debug_mode_supported(
    ink_version: Union[str, semver.Version],
) -> semver.Version:
    """Ensure the ink! version supports the debug feature (``3.0.0-rc4`` or newer).

    Returns the checked version.
    """
    version = (
        ink_version
        if isinstance(ink_version, semver.Version)
        else semver.Version.parse(ink_version)
    )
    log.info("Contract version: %s", version)
    if version < _MINIMUM_DEBUG_INK_VERSION:
        raise CargoError(
            "Building the contract in debug mode requires an ink! version "
            "newer than `3.0.0-rc3`!"
        )
    return version


def wasm_build_args(
    target_dir: PathLike, release: bool = False, offline: bool = False
) -> list[str]:
    """Arguments passed to cargo when building or checking for the Wasm target."""
    args = [
        "--target=wasm32-unknown-unknown",
        "-Zbuild-std",
        "--no-default-features",
        "--release",
        f"--target-dir={os.fspath(target_dir)}",
    ]
    if offline:
        args.append("--offline")
    if release:
        args.append("-Zbuild-std-features=panic_immediate_abort")
    else:
        args.append("--features=ink_env/ink-debug")
    return args


def wasm_build_env() -> dict[str, str]:
    """Environment variables set for the Wasm target build."""
    return {"RUSTFLAGS": _RUSTFLAGS}


def check_dylint_requirements(cargo: Optional[Command] = None) -> list[str]:
    """Ensure ``cargo dylint`` can be executed.

    ``cargo`` defaults to the ``CARGO`` environment variable, else ``cargo``.
    Returns the command that was run.
    """
    command = _command_prefix(cargo) + ["dylint", "--version"]
    try:
        result = subprocess.run(
            command, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL
        )
    except OSError as err:
        log.debug("Error spawning `%s`: %s", command, err)
        raise CargoError(f"Executing `{' '.join(command)}` failed: {err}") from err
    if result.returncode != 0:
        raise CargoError(_DYLINT_NOT_FOUND)
    return command


def assert_compatible_ink_dependencies(
    manifest_dir: Optional[PathLike] = None, cargo: Optional[Command] = None
) -> tuple[str, ...]:
    """Ensure the contract uses versions of ink!'s codec crates compatible with ink!.

    Runs ``cargo tree -i <crate> --duplicates`` for each crate. Returns the
    names of the crates that were checked.
    """
    prefix = _command_prefix(cargo)
    for dependency in _INK_DEPENDENCIES:
        command = prefix + ["tree", "-i", dependency, "--duplicates"]
        log.debug("Invoking cargo: %s", command)
        mismatch = CargoError(
            f"Mismatching versions of `{dependency}` were found!\n"
            "Please ensure that your contract and your ink! dependencies use a "
            "compatible version of this package."
        )
        try:
            result = subprocess.run(command, cwd=manifest_dir, capture_output=True)
        except OSError as err:
            raise mismatch from err
        if result.returncode != 0:
            log.debug(
                "cargo tree failed: %s",
                result.stderr.decode("utf-8", errors="replace").strip(),
            )
            raise mismatch
    return _INK_DEPENDENCIES


def build_steps(artifacts: str) -> int:
    """Number of build steps reported for ``all``, ``code-only`` or ``check-only``."""
    key = getattr(artifacts, "value", artifacts)
    try:
        return _BUILD_STEPS[str(key).lower().replace("_", "-")]
    except KeyError:
        raise ValueError(f"unknown build artifacts '{artifacts}'") from None
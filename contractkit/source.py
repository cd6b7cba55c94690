"""Description of a contract's Wasm code: hash, language, compiler and code."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import semver

from .hexbytes import HexDecodeError, from_byte_str, from_byte_str_32, to_byte_str

__all__ = [
    "SourceParseError",
    "Language",
    "Compiler",
    "SourceLanguage",
    "SourceCompiler",
    "SourceWasm",
    "CodeHash",
    "Source",
]


class SourceParseError(ValueError):
    """Raised when source metadata cannot be parsed."""


class Language(Enum):
    """The language in which a smart contract is written."""

    INK = "ink!"
    SOLIDITY = "Solidity"
    ASSEMBLY_SCRIPT = "AssemblyScript"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> "Language":
        try:
            return cls(text)
        except ValueError:
            raise SourceParseError(f"Invalid language '{text}'") from None


class Compiler(Enum):
    """Compilers used to compile a smart contract."""

    RUSTC = "rustc"
    SOLANG = "solang"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> "Compiler":
        try:
            return cls(text)
        except ValueError:
            raise SourceParseError(f"Invalid compiler '{text}'") from None


def _parse_named_version(text: str, label: str, placeholder: str):
    parts = text.split()
    expected = (
        f"{label}: Expected format '<{placeholder}> <version>', got '{text}'"
    )
    if not parts:
        raise SourceParseError(expected)
    name = parts[0]
    if len(parts) < 2:
        return name, None, expected
    return name, parts[1], expected


def _parse_version(text: str) -> semver.Version:
    try:
        return semver.Version.parse(text)
    except (ValueError, TypeError) as err:
        raise SourceParseError(f"Error parsing version {err}") from None


@dataclass(frozen=True)
class SourceLanguage:
    """The language and version in which a smart contract is written."""

    language: Language
    version: semver.Version

    def __str__(self) -> str:
        return f"{self.language} {self.version}"

    @classmethod
    def parse(cls, text: str) -> "SourceLanguage":
        name, version, expected = _parse_named_version(
            text, "SourceLanguage", "language"
        )
        language = Language.parse(name)
        if version is None:
            raise SourceParseError(expected)
        return cls(language, _parse_version(version))


@dataclass(frozen=True)
class SourceCompiler:
    """A compiler and its version used to compile a smart contract."""

    compiler: Compiler
    version: semver.Version

    def __str__(self) -> str:
        return f"{self.compiler} {self.version}"

    @classmethod
    def parse(cls, text: str) -> "SourceCompiler":
        name, version, expected = _parse_named_version(
            text, "SourceCompiler", "compiler"
        )
        compiler = Compiler.parse(name)
        if version is None:
            raise SourceParseError(expected)
        return cls(compiler, _parse_version(version))


@dataclass(frozen=True)
class SourceWasm:
    """The bytes of the compiled Wasm smart contract."""

    code: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "code", bytes(self.code))

    def __str__(self) -> str:
        return "0x" + self.code.hex()

    def to_json(self) -> str:
        return to_byte_str(self.code)

    @classmethod
    def from_json(cls, value: Any) -> "SourceWasm":
        return cls(from_byte_str(value))


@dataclass(frozen=True)
class CodeHash:
    """The 32-byte hash of the contract's Wasm code."""

    digest: bytes

    def __post_init__(self) -> None:
        digest = bytes(self.digest)
        if len(digest) != 32:
            raise ValueError(f"code hash must be 32 bytes, got {len(digest)}")
        object.__setattr__(self, "digest", digest)

    def to_json(self) -> str:
        return to_byte_str(self.digest)

    @classmethod
    def from_json(cls, value: Any) -> "CodeHash":
        return cls(from_byte_str_32(value))


def _require_str(data: dict, key: str) -> str:
    if key not in data:
        raise SourceParseError(f"missing field `{key}`")
    value = data[key]
    if not isinstance(value, str):
        raise SourceParseError(f"field `{key}` must be a string")
    return value


@dataclass
class Source:
    """Information about the contract's Wasm code."""

    hash: CodeHash
    language: SourceLanguage
    compiler: SourceCompiler
    wasm: Optional[SourceWasm] = None

    def to_json(self) -> dict:
        result = {
            "hash": self.hash.to_json(),
            "language": str(self.language),
            "compiler": str(self.compiler),
        }
        if self.wasm is not None:
            result["wasm"] = self.wasm.to_json()
        return result

    @classmethod
    def from_json(cls, data: Any) -> "Source":
        if not isinstance(data, dict):
            raise SourceParseError("source must be a JSON object")
        try:
            code_hash = CodeHash.from_json(_require_str(data, "hash"))
            wasm_value = data.get("wasm")
            wasm = None if wasm_value is None else SourceWasm.from_json(wasm_value)
        except HexDecodeError as err:
            raise SourceParseError(str(err)) from err
        language = SourceLanguage.parse(_require_str(data, "language"))
        compiler = SourceCompiler.parse(_require_str(data, "compiler"))
        return cls(code_hash, language, compiler, wasm)
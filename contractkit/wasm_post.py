"""Post-processing of a compiled contract's Wasm binary.

Only as much of the binary format is decoded as the post-processing needs:
the import and export sections and the names of custom sections. All other
sections are carried through unchanged.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Optional, Union

__all__ = [
    "WasmError",
    "WasmModule",
    "strip_exports",
    "strip_custom_sections",
    "ensure_maximum_memory_pages",
    "post_process_wasm",
]

PathLike = Union[str, os.PathLike]

MAX_MEMORY_PAGES = 16

_MAGIC = b"\0asm"
_CUSTOM_SECTION = 0
_IMPORT_SECTION = 2
_EXPORT_SECTION = 7
_KEPT_EXPORTS = ("call", "deploy")


class WasmError(Exception):
    """Raised when a Wasm module is malformed or violates contract requirements."""


class _Kind(IntEnum):
    FUNCTION = 0
    TABLE = 1
    MEMORY = 2
    GLOBAL = 3


@dataclass
class _Limits:
    initial: int
    maximum: Optional[int] = None


@dataclass
class _Import:
    module: str
    field: str
    kind: _Kind
    descriptor: bytes = b""
    memory: Optional[_Limits] = None


@dataclass
class _Export:
    field: str
    kind: _Kind
    index: int


@dataclass
class _Section:
    id: int
    payload: bytes = b""
    name: Optional[str] = None
    imports: Optional[list] = None
    exports: Optional[list] = None


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    @property
    def at_end(self) -> bool:
        return self.pos >= len(self.data)

    def byte(self) -> int:
        if self.pos >= len(self.data):
            raise WasmError("unexpected end of data")
        value = self.data[self.pos]
        self.pos += 1
        return value

    def take(self, count: int) -> bytes:
        end = self.pos + count
        if end > len(self.data):
            raise WasmError("unexpected end of data")
        chunk = self.data[self.pos:end]
        self.pos = end
        return chunk

    def u32(self) -> int:
        result = 0
        for shift in range(0, 35, 7):
            value = self.byte()
            result |= (value & 0x7F) << shift
            if not value & 0x80:
                if result > 0xFFFFFFFF:
                    raise WasmError("integer too large")
                return result
        raise WasmError("integer representation too long")

    def name(self) -> str:
        raw = self.take(self.u32())
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as err:
            raise WasmError(f"invalid UTF-8 in name: {err}") from None

    def limits(self) -> _Limits:
        flag = self.byte()
        if flag == 0:
            return _Limits(self.u32())
        if flag == 1:
            initial = self.u32()
            return _Limits(initial, self.u32())
        raise WasmError(f"invalid limits flag {flag:#x}")

    def kind(self) -> _Kind:
        value = self.byte()
        try:
            return _Kind(value)
        except ValueError:
            raise WasmError(f"invalid external kind {value:#x}") from None


def _u32(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _name(text: str) -> bytes:
    raw = text.encode("utf-8")
    return _u32(len(raw)) + raw


def _limits(limits: _Limits) -> bytes:
    if limits.maximum is None:
        return b"\x00" + _u32(limits.initial)
    return b"\x01" + _u32(limits.initial) + _u32(limits.maximum)


def _parse_imports(payload: bytes) -> list:
    reader = _Reader(payload)
    entries = []
    for _ in range(reader.u32()):
        module = reader.name()
        field_name = reader.name()
        kind = reader.kind()
        start = reader.pos
        memory = None
        if kind is _Kind.FUNCTION:
            reader.u32()
        elif kind is _Kind.TABLE:
            reader.byte()
            reader.limits()
        elif kind is _Kind.MEMORY:
            memory = reader.limits()
        else:
            reader.take(2)
        descriptor = b"" if memory is not None else payload[start:reader.pos]
        entries.append(_Import(module, field_name, kind, descriptor, memory))
    if not reader.at_end:
        raise WasmError("trailing bytes in import section")
    return entries


def _parse_exports(payload: bytes) -> list:
    reader = _Reader(payload)
    entries = [
        _Export(reader.name(), reader.kind(), reader.u32())
        for _ in range(reader.u32())
    ]
    if not reader.at_end:
        raise WasmError("trailing bytes in export section")
    return entries


def _parse_section(section_id: int, payload: bytes) -> _Section:
    if section_id == _CUSTOM_SECTION:
        reader = _Reader(payload)
        name = reader.name()
        return _Section(section_id, payload[reader.pos:], name=name)
    if section_id == _IMPORT_SECTION:
        return _Section(section_id, imports=_parse_imports(payload))
    if section_id == _EXPORT_SECTION:
        return _Section(section_id, exports=_parse_exports(payload))
    return _Section(section_id, payload)


def _encode_payload(section: _Section) -> bytes:
    if section.id == _CUSTOM_SECTION:
        return _name(section.name or "") + section.payload
    if section.id == _IMPORT_SECTION:
        body = bytearray(_u32(len(section.imports)))
        for entry in section.imports:
            body += _name(entry.module) + _name(entry.field) + bytes([entry.kind])
            body += _limits(entry.memory) if entry.memory is not None else entry.descriptor
        return bytes(body)
    if section.id == _EXPORT_SECTION:
        body = bytearray(_u32(len(section.exports)))
        for entry in section.exports:
            body += _name(entry.field) + bytes([entry.kind]) + _u32(entry.index)
        return bytes(body)
    return section.payload


@dataclass
class WasmModule:
    """A Wasm module as an ordered list of sections."""

    sections: list = field(default_factory=list)
    version: int = 1

    @classmethod
    def parse(cls, data: bytes) -> "WasmModule":
        data = bytes(data)
        if data[:4] != _MAGIC:
            raise WasmError("invalid Wasm magic number")
        if len(data) < 8:
            raise WasmError("unexpected end of data")
        version = int.from_bytes(data[4:8], "little")
        if version != 1:
            raise WasmError(f"unsupported Wasm version {version}")
        reader = _Reader(data)
        reader.pos = 8
        sections = []
        while not reader.at_end:
            section_id = reader.byte()
            payload = reader.take(reader.u32())
            sections.append(_parse_section(section_id, payload))
        return cls(sections, version)

    def to_bytes(self) -> bytes:
        out = bytearray(_MAGIC + self.version.to_bytes(4, "little"))
        for section in self.sections:
            payload = _encode_payload(section)
            out += bytes([section.id]) + _u32(len(payload)) + payload
        return bytes(out)


def strip_exports(module: WasmModule) -> None:
    """Keep only the ``call`` and ``deploy`` function exports."""
    for section in module.sections:
        if section.id == _EXPORT_SECTION:
            section.exports = [
                entry
                for entry in section.exports
                if entry.kind is _Kind.FUNCTION and entry.field in _KEPT_EXPORTS
            ]


def strip_custom_sections(module: WasmModule) -> None:
    """Remove all custom sections except the ``name`` section."""
    module.sections = [
        section
        for section in module.sections
        if section.id != _CUSTOM_SECTION or section.name == "name"
    ]


def ensure_maximum_memory_pages(module: WasmModule, maximum_allowed_pages: int) -> None:
    """Make sure the imported memory declares a maximum within the allowed pages.

    A memory without a maximum is given one of ``MAX_MEMORY_PAGES``.
    """
    memory = next(
        (
            entry.memory
            for section in module.sections
            if section.id == _IMPORT_SECTION
            for entry in section.imports
            if entry.kind is _Kind.MEMORY
        ),
        None,
    )
    if memory is None:
        raise WasmError(
            "Memory import is not found. Is --import-memory specified in the linker args"
        )
    if memory.maximum is not None:
        if memory.maximum > maximum_allowed_pages:
            raise WasmError(
                f"The wasm module requires {memory.maximum} pages. "
                f"The maximum allowed number of pages is {maximum_allowed_pages}"
            )
    else:
        memory.maximum = MAX_MEMORY_PAGES


def post_process_wasm(original_wasm: PathLike, dest_wasm: PathLike) -> WasmModule:
    """Load ``original_wasm``, apply all post-processing steps and write ``dest_wasm``."""
    path = Path(original_wasm)
    try:
        module = WasmModule.parse(path.read_bytes())
    except (OSError, WasmError) as err:
        raise WasmError(f"Loading of wasm module at '{path}' failed: {err}") from err
    strip_exports(module)
    ensure_maximum_memory_pages(module, MAX_MEMORY_PAGES)
    strip_custom_sections(module)
    data = module.to_bytes()
    Path(dest_wasm).write_bytes(data)
    return module
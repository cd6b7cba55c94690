import pytest
import semver

from contractkit.source import (
    CodeHash,
    Compiler,
    Language,
    Source,
    SourceCompiler,
    SourceLanguage,
    SourceParseError,
    SourceWasm,
)

ZERO_HASH = "0x0000000000000000000000000000000000000000000000000000000000000000"


def _language():
    return SourceLanguage(Language.INK, semver.Version(2, 1, 0))


def _compiler():
    return SourceCompiler(Compiler.RUSTC, semver.Version.parse("1.46.0-nightly"))


def test_json_with_wasm():
    source = Source(CodeHash(bytes(32)), _language(), _compiler(), SourceWasm(bytes([0, 1, 2])))
    assert source.to_json() == {
        "hash": ZERO_HASH,
        "language": "ink! 2.1.0",
        "compiler": "rustc 1.46.0-nightly",
        "wasm": "0x000102",
    }


def test_json_excludes_missing_wasm():
    source = Source(CodeHash(bytes(32)), _language(), _compiler())
    assert source.to_json() == {
        "hash": ZERO_HASH,
        "language": "ink! 2.1.0",
        "compiler": "rustc 1.46.0-nightly",
    }


def test_decoding_works():
    source = Source(CodeHash(bytes(32)), _language(), _compiler(), SourceWasm(bytes([0, 1, 2])))
    decoded = Source.from_json(source.to_json())
    assert decoded == source


def test_decoding_without_wasm():
    source = Source(CodeHash(bytes(range(32))), _language(), _compiler())
    decoded = Source.from_json(source.to_json())
    assert decoded.wasm is None
    assert decoded == source


@pytest.mark.parametrize("missing", ["hash", "language", "compiler"])
def test_missing_field_rejected(missing):
    data = Source(CodeHash(bytes(32)), _language(), _compiler()).to_json()
    del data[missing]
    with pytest.raises(SourceParseError, match=missing):
        Source.from_json(data)


def test_bad_hash_length_rejected():
    with pytest.raises(SourceParseError, match="Expected exactly 32 bytes"):
        Source.from_json(
            {"hash": "0x00", "language": "ink! 2.1.0", "compiler": "rustc 1.46.0-nightly"}
        )


def test_language_display_and_parse():
    assert str(Language.INK) == "ink!"
    assert str(Language.SOLIDITY) == "Solidity"
    assert str(Language.ASSEMBLY_SCRIPT) == "AssemblyScript"
    for language in Language:
        assert Language.parse(str(language)) is language


def test_invalid_language():
    with pytest.raises(SourceParseError, match="Invalid language 'Rust'"):
        Language.parse("Rust")


def test_compiler_display_and_parse():
    assert str(Compiler.RUSTC) == "rustc"
    assert str(Compiler.SOLANG) == "solang"
    assert Compiler.parse("solang") is Compiler.SOLANG


def test_invalid_compiler():
    with pytest.raises(SourceParseError, match="Invalid compiler 'gcc'"):
        Compiler.parse("gcc")


def test_source_language_parse():
    parsed = SourceLanguage.parse("ink! 2.1.0")
    assert parsed == _language()
    assert str(parsed) == "ink! 2.1.0"


def test_source_compiler_parse():
    parsed = SourceCompiler.parse("rustc 1.46.0-nightly")
    assert parsed == _compiler()
    assert str(parsed) == "rustc 1.46.0-nightly"


def test_source_language_missing_version():
    with pytest.raises(SourceParseError) as info:
        SourceLanguage.parse("ink!")
    assert str(info.value) == (
        "SourceLanguage: Expected format '<language> <version>', got 'ink!'"
    )


def test_source_compiler_empty():
    with pytest.raises(SourceParseError) as info:
        SourceCompiler.parse("")
    assert str(info.value) == (
        "SourceCompiler: Expected format '<compiler> <version>', got ''"
    )


def test_source_compiler_bad_version():
    with pytest.raises(SourceParseError, match="^Error parsing version"):
        SourceCompiler.parse("rustc nope")


def test_source_wasm_display():
    assert str(SourceWasm(bytes([0, 1, 2]))) == "0x000102"
    assert str(SourceWasm(b"")) == "0x"
    assert SourceWasm(b"").to_json() == ""


def test_source_wasm_round_trip():
    wasm = SourceWasm(b"\x00asm\x01\x00\x00\x00")
    assert SourceWasm.from_json(wasm.to_json()) == wasm


def test_code_hash_requires_32_bytes():
    with pytest.raises(ValueError):
        CodeHash(bytes(31))


def test_code_hash_json():
    assert CodeHash(bytes(32)).to_json() == ZERO_HASH
    assert CodeHash.from_json(ZERO_HASH[2:]) == CodeHash(bytes(32))
# contractkit

Helpers for building smart contracts that compile to WebAssembly. The package
has five modules:

- `contractkit.hexbytes` reads and writes hex byte strings.
- `contractkit.source` models the `source` part of a contract's metadata: the
  code hash, the language, the compiler and, if wanted, the Wasm code.
- `contractkit.wasm_post` parses a Wasm module and post-processes it for
  deployment.
- `contractkit.wasm_opt` runs `wasm-opt` after it checks the tool's version.
- `contractkit.cargo` builds cargo arguments and checks that the required cargo
  tools are installed.

## Installation

```
pip install contractkit
```

To run the test suite, install the test extra:

```
pip install "contractkit[test]"
```

## Hex byte strings

```python
from contractkit.hexbytes import from_byte_str, from_byte_str_32, to_byte_str

to_byte_str(b"\x00\x01\x02")   # "0x000102"
to_byte_str(b"")               # ""
from_byte_str("0x000102")      # b"\x00\x01\x02"
from_byte_str("000102")        # the "0x" prefix is optional
```

Encoding works as follows:

- Output is lower-case hex with a `0x` prefix.
- Empty input gives `""`, with no prefix.

Decoding works as follows:

- Input with an odd number of digits is accepted. The first digit becomes the
  low nibble of the first byte.
- `from_byte_str_32` also requires exactly 32 bytes.
- Invalid input raises `HexDecodeError`, which is a `ValueError`.

## Source metadata

```python
import semver

from contractkit.source import (
    CodeHash, Compiler, Language, Source, SourceCompiler, SourceLanguage, SourceWasm,
)

source = Source(
    hash=CodeHash(bytes(32)),
    language=SourceLanguage(Language.INK, semver.Version(2, 1, 0)),
    compiler=SourceCompiler(Compiler.RUSTC, semver.Version.parse("1.46.0-nightly")),
    wasm=SourceWasm(b"\x00\x01\x02"),
)

document = source.to_json()
# {"hash": "0x00...00", "language": "ink! 2.1.0",
#  "compiler": "rustc 1.46.0-nightly", "wasm": "0x000102"}
assert Source.from_json(document).to_json() == document
```

Parsing and serialising work as follows:

- `SourceLanguage.parse` and `SourceCompiler.parse` read strings of the form
  `"<name> <version>"`.
- `Language.parse` accepts `ink!`, `Solidity` and `AssemblyScript`.
- `Compiler.parse` accepts `rustc` and `solang`.
- `to_json` leaves out the `wasm` key when there is no code.
  `ContractMetadata`-style helpers are not provided; see the last section.
- A malformed value raises `SourceParseError`.
- `CodeHash` rejects a digest that is not 32 bytes long.

## Wasm post-processing

```python
from contractkit.wasm_post import WasmModule, post_process_wasm

module = post_process_wasm("target/original.wasm", "target/ink/incrementer.wasm")
```

`post_process_wasm` loads the module and applies three steps in turn:

1. `strip_exports` keeps only the `call` and `deploy` function exports.
2. `ensure_maximum_memory_pages` checks the imported memory. If the memory has
   no maximum, it is given one of 16 pages. If it declares more pages than
   allowed, or if there is no memory import, `WasmError` is raised.
3. `strip_custom_sections` drops every custom section except `name`.

The module is then written out. Each step can also be called on its own on a
`WasmModule` from `WasmModule.parse(data)`, and `module.to_bytes()` serialises
it back. Only the import section, the export section and the names of custom
sections are decoded. All other sections pass through unchanged.

## Optimisation with wasm-opt

```python
from contractkit.wasm_opt import check_wasm_opt_version_compatibility, optimize_wasm

result = optimize_wasm("target/ink/incrementer.wasm", "incrementer", "z", False)
print(result.dest_wasm, result.original_size, result.optimized_size)  # sizes in kB
```

`optimize_wasm` works as follows:

- It writes `<artifact_name>-opt.wasm` next to the input.
- It runs `wasm-opt -O<level> --zero-filled-memory`. It adds `-g` when debug
  symbols are to be kept.
- It then replaces the input with the optimised file.

`wasm-opt` must be on your `PATH`. `check_wasm_opt_version_compatibility(path)`
returns the version of the tool at that path. `parse_wasm_opt_version(output)`
reads the version number from text of the form `wasm-opt version 99`.
`ToolError` is raised in these cases:

- the tool is missing;
- its version is below 99;
- its version cannot be read;
- the optimisation fails.

## Cargo helpers

- `wasm_build_args(target_dir, release, offline)` returns the cargo arguments
  for a `wasm32-unknown-unknown` build.
- `wasm_build_env()` returns the matching `RUSTFLAGS`.
- `assert_debug_mode_supported(ink_version)` raises `CargoError` for ink!
  versions older than `3.0.0-rc4`.
- `check_dylint_requirements(cargo)` runs `cargo dylint --version`. It raises
  `CargoError` if that fails.
- `assert_compatible_ink_dependencies(manifest_dir, cargo)` runs
  `cargo tree -i <crate> --duplicates` for `parity-scale-codec` and
  `scale-info`. It raises `CargoError` on a mismatch.
- `build_steps(artifacts)` gives the number of reported build steps:
  `all` is 5, `code-only` is 4 and `check-only` is 2.

In the last two helpers, `cargo` defaults to the `CARGO` environment variable,
and to `cargo` if that is not set.

## What the package does not do

- It has no command-line program. It does not run a whole contract build: you
  call `cargo` yourself, using the arguments and environment it builds.
- It models only the `source` part of a contract's metadata. It has no types
  for these other parts of the metadata document:
  - the `contract` section (name, version, authors and so on);
  - user-defined metadata;
  - the ABI.
- It does not create zip archives of project templates or lint drivers.
- It does not check the names of the imported host functions in a Wasm module.
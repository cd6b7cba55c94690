import sys

import pytest
import semver

from contractkit.cargo import (
    CargoError,
    assert_compatible_ink_dependencies,
    assert_debug_mode_supported,
    build_steps,
    check_dylint_requirements,
    wasm_build_args,
    wasm_build_env,
)


def _fake_cargo(code, *extra):
    return [sys.executable, "-c", code, *extra]


RECORD = (
    "import sys, pathlib; "
    "pathlib.Path(sys.argv[1]).write_text(' '.join(sys.argv[2:]))"
)


@pytest.mark.parametrize("text", ["3.0.0-rc4", "4.0.0-rc1", "5.0.0"])
def test_debug_mode_must_be_compatible(text):
    assert assert_debug_mode_supported(text) == semver.Version.parse(text)


def test_debug_mode_accepts_version_object():
    version = semver.Version.parse("3.0.0")
    assert assert_debug_mode_supported(version) == version


def test_debug_mode_must_be_incompatible():
    with pytest.raises(CargoError) as info:
        assert_debug_mode_supported("3.0.0-rc3")
    assert str(info.value) == (
        "Building the contract in debug mode requires an ink! version newer than `3.0.0-rc3`!"
    )


def test_wasm_build_args_debug_online():
    assert wasm_build_args("/tmp/target") == [
        "--target=wasm32-unknown-unknown",
        "-Zbuild-std",
        "--no-default-features",
        "--release",
        "--target-dir=/tmp/target",
        "--features=ink_env/ink-debug",
    ]


def test_wasm_build_args_release_offline():
    assert wasm_build_args("out", release=True, offline=True) == [
        "--target=wasm32-unknown-unknown",
        "-Zbuild-std",
        "--no-default-features",
        "--release",
        "--target-dir=out",
        "--offline",
        "-Zbuild-std-features=panic_immediate_abort",
    ]


def test_wasm_build_env():
    assert wasm_build_env() == {
        "RUSTFLAGS": "-C link-arg=-zstack-size=65536 -C link-arg=--import-memory -Clinker-plugin-lto"
    }


def test_missing_cargo_dylint_installation_must_be_detected():
    with pytest.raises(CargoError, match="cargo-dylint was not found!"):
        check_dylint_requirements(_fake_cargo("import sys; sys.exit(1)"))


def test_missing_cargo_binary_is_an_error(tmp_path):
    with pytest.raises(CargoError):
        check_dylint_requirements(str(tmp_path / "no-such-cargo"))


def test_installed_cargo_dylint_is_accepted(tmp_path):
    log_file = tmp_path / "args.txt"
    command = check_dylint_requirements(_fake_cargo(RECORD, str(log_file)))
    assert command[-2:] == ["dylint", "--version"]
    assert log_file.read_text() == "dylint --version"


def test_compatible_dependencies(tmp_path):
    checked = assert_compatible_ink_dependencies(
        tmp_path, _fake_cargo("import sys; sys.exit(0)")
    )
    assert checked == ("parity-scale-codec", "scale-info")


def test_compatible_dependencies_runs_cargo_tree(tmp_path):
    log_file = tmp_path / "args.txt"
    assert_compatible_ink_dependencies(tmp_path, _fake_cargo(RECORD, str(log_file)))
    assert log_file.read_text() == "tree -i scale-info --duplicates"


def test_detect_mismatching_dependencies(tmp_path):
    code = "import sys; sys.exit(1 if 'scale-info' in sys.argv else 0)"
    with pytest.raises(CargoError, match="Mismatching versions of `scale-info`"):
        assert_compatible_ink_dependencies(tmp_path, _fake_cargo(code))


def test_detect_mismatching_first_dependency(tmp_path):
    with pytest.raises(CargoError, match="`parity-scale-codec`"):
        assert_compatible_ink_dependencies(
            tmp_path, _fake_cargo("import sys; sys.exit(2)")
        )


@pytest.mark.parametrize(
    "artifacts, steps",
    [("all", 5), ("code-only", 4), ("check-only", 2), ("CHECK_ONLY", 2)],
)
def test_build_steps(artifacts, steps):
    assert build_steps(artifacts) == steps


def test_build_steps_unknown():
    with pytest.raises(ValueError, match="unknown build artifacts"):
        build_steps("everything")
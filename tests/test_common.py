import os
import sys
from pathlib import Path

import pytest

from trunk.common import (
    TrunkError,
    copy_dir_recursive,
    is_executable,
    parse_public_url,
    path_exists,
    remove_dir_all,
    run_command,
    strip_prefix,
)


@pytest.mark.parametrize("value", ["foo", "/foo", "foo/", "/foo/", "/a/b", "x/y/z"])
def test_parse_public_url_wraps_in_slashes(value):
    result = parse_public_url(value)
    assert result.startswith("/")
    assert result.endswith("/")
    assert result.strip("/") == value.strip("/")


def test_parse_public_url_keeps_well_formed_value():
    assert parse_public_url("/app/") == "/app/"
    assert parse_public_url("/") == "/"


def _make_tree(root: Path) -> None:
    (root / "sub").mkdir(parents=True)
    (root / "a.txt").write_text("alpha")
    (root / "sub" / "b.txt").write_text("beta")


def test_copy_dir_recursive_copies_contents(tmp_path):
    src = tmp_path / "src"
    dst = tmp_path / "dst"
    _make_tree(src)
    copy_dir_recursive(src, dst)
    assert (dst / "a.txt").read_text() == "alpha"
    assert (dst / "sub" / "b.txt").read_text() == "beta"
    assert not (dst / "src").exists()


def test_copy_dir_recursive_overwrites(tmp_path):
    src = tmp_path / "src"
    dst = tmp_path / "dst"
    _make_tree(src)
    dst.mkdir()
    (dst / "a.txt").write_text("old")
    (dst / "keep.txt").write_text("kept")
    copy_dir_recursive(src, dst)
    assert (dst / "a.txt").read_text() == "alpha"
    assert (dst / "keep.txt").read_text() == "kept"


def test_copy_dir_recursive_missing_source(tmp_path):
    with pytest.raises(TrunkError, match="does not exist"):
        copy_dir_recursive(tmp_path / "nope", tmp_path / "dst")


def test_remove_dir_all_removes_tree(tmp_path):
    root = tmp_path / "tree"
    _make_tree(root)
    remove_dir_all(root)
    assert not root.exists()


def test_remove_dir_all_missing_is_fine(tmp_path):
    target = tmp_path / "absent"
    remove_dir_all(target)
    assert not target.exists()


def test_path_exists(tmp_path):
    file = tmp_path / "f"
    file.write_text("x")
    assert path_exists(file) is True
    assert path_exists(tmp_path) is True
    assert path_exists(tmp_path / "missing") is False


def test_is_executable(tmp_path):
    exe = tmp_path / "exe"
    exe.write_text("#!/bin/sh\n")
    os.chmod(exe, 0o755)
    plain = tmp_path / "plain"
    plain.write_text("data")
    os.chmod(plain, 0o644)
    assert is_executable(exe) is True
    assert is_executable(plain) is False
    assert is_executable(tmp_path) is False
    assert is_executable(tmp_path / "missing") is False


def test_strip_prefix_relative_to_cwd():
    target = Path.cwd() / "some" / "file.txt"
    assert strip_prefix(target) == Path("some") / "file.txt"


def test_strip_prefix_outside_cwd_unchanged(tmp_path):
    outside = Path("/definitely-not-the-cwd/file")
    assert strip_prefix(outside) == outside


@pytest.mark.asyncio
async def test_run_command_success(tmp_path):
    out = tmp_path / "out.txt"
    await run_command(
        "python",
        sys.executable,
        ["-c", "import sys; open(sys.argv[1], 'w').write('done')", str(out)],
    )
    assert out.read_text() == "done"


@pytest.mark.asyncio
async def test_run_command_bad_status():
    with pytest.raises(TrunkError, match="python call returned a bad status"):
        await run_command("python", sys.executable, ["-c", "raise SystemExit(3)"])


@pytest.mark.asyncio
async def test_run_command_missing_program(tmp_path):
    with pytest.raises(TrunkError, match="error spawning ghost call") as info:
        await run_command("ghost", tmp_path / "no-such-program", [])
    assert isinstance(info.value.__cause__, FileNotFoundError)
"""Shared helpers: errors, filesystem utilities and command execution."""

from __future__ import annotations

import asyncio
import functools
import os
import shutil
import stat
from collections.abc import Iterable
from pathlib import Path

BUILDING = "📦"
SUCCESS = "✅"
ERROR = "❌"
SERVER = "📡"


class TrunkError(Exception):
    """An error raised by the build tooling; the cause is chained when there is one."""


def parse_public_url(val: str) -> str:
    """Ensure a public URL starts and ends with a slash."""
    prefix = "" if val.startswith("/") else "/"
    suffix = "" if val.endswith("/") else "/"
    return f"{prefix}{val}{suffix}"


def copy_dir_recursive(from_dir: str | os.PathLike, to_dir: str | os.PathLike) -> None:
    """Copy the contents of ``from_dir`` into ``to_dir``, overwriting existing files."""
    source = Path(from_dir)
    if not path_exists(source):
        raise TrunkError(f'directory can not be copied as it does not exist "{source}"')
    try:
        shutil.copytree(source, Path(to_dir), dirs_exist_ok=True)
    except OSError as err:
        raise TrunkError("error copying directory") from err


def remove_dir_all(from_dir: str | os.PathLike) -> None:
    """Recursively delete a directory; a missing directory is not an error."""
    target = Path(from_dir)
    if not path_exists(target):
        return
    try:
        shutil.rmtree(target)
    except OSError as err:
        raise TrunkError("error removing directory") from err


def path_exists(path: str | os.PathLike) -> bool:
    """Report whether the path exists, raising on errors other than absence."""
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    except OSError as err:
        raise TrunkError(f'error checking for existance of path at "{path}"') from err
    return True


def is_executable(path: str | os.PathLike) -> bool:
    """Report whether the path is a regular file carrying the owner execute bit."""
    try:
        meta = os.stat(path)
    except FileNotFoundError:
        return False
    except OSError as err:
        raise TrunkError(f'error checking file mode for file "{path}"') from err
    if not stat.S_ISREG(meta.st_mode):
        return False
    if os.name != "posix":
        return True
    return bool(meta.st_mode & stat.S_IXUSR)


@functools.cache
def _cwd() -> Path:
    return Path.cwd()


def strip_prefix(target: str | os.PathLike) -> Path:
    """Return ``target`` relative to the working directory, or unchanged if outside it."""
    path = Path(target)
    try:
        return path.relative_to(_cwd())
    except ValueError:
        return path


async def run_command(
    name: str, path: str | os.PathLike, args: Iterable[str | os.PathLike]
) -> None:
    """Run a program with inherited output and raise unless it exits successfully."""
    try:
        process = await asyncio.create_subprocess_exec(
            os.fspath(path), *(os.fspath(arg) for arg in args)
        )
    except OSError as err:
        raise TrunkError(f"error spawning {name} call") from err
    returncode = await process.wait()
    if returncode != 0:
        raise TrunkError(f"{name} call returned a bad status")
"""Locating, downloading and installing the external tools used by the build."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import sys
import tarfile
import urllib.error
import urllib.request
import weakref
import zipfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import BinaryIO

import platformdirs

from trunk.common import TrunkError, is_executable

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


def _os_name() -> str:
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform == "darwin":
        return "macos"
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


class Application(Enum):
    """An external application that is located or downloaded on demand."""

    SASS = "sass"
    WASM_BINDGEN = "wasm-bindgen"
    WASM_OPT = "wasm-opt"

    def app_name(self) -> str:
        """Base name of the executable without extension."""
        return self.value

    def path(self) -> str:
        """Path of the executable within the downloaded archive."""
        if _os_name() == "windows":
            return {
                Application.SASS: "sass.bat",
                Application.WASM_BINDGEN: "wasm-bindgen.exe",
                Application.WASM_OPT: "bin/wasm-opt.exe",
            }[self]
        return {
            Application.SASS: "sass",
            Application.WASM_BINDGEN: "wasm-bindgen",
            Application.WASM_OPT: "bin/wasm-opt",
        }[self]

    def extra_paths(self) -> tuple[str, ...]:
        """Additional archive files needed to run the main binary."""
        system = _os_name()
        if self is Application.SASS:
            if system == "windows":
                return ("src/dart.exe", "src/sass.snapshot")
            if system == "macos":
                return ("src/dart", "src/sass.snapshot")
            return ()
        if self is Application.WASM_OPT and system == "macos":
            return ("lib/libbinaryen.dylib",)
        return ()

    def default_version(self) -> str:
        """Version used when none is configured."""
        return {
            Application.SASS: "1.37.5",
            Application.WASM_BINDGEN: "0.2.74",
            Application.WASM_OPT: "version_101",
        }[self]

    def target(self) -> str:
        """Platform part of the download URL; raises when there is no release for this OS."""
        system = _os_name()
        if self is Application.WASM_BINDGEN:
            targets = {
                "windows": "pc-windows-msvc",
                "macos": "apple-darwin",
                "linux": "unknown-linux-musl",
            }
        else:
            targets = {"windows": "windows", "macos": "macos", "linux": "linux"}
        try:
            return targets[system]
        except KeyError:
            raise TrunkError("unsupported OS") from None

    def url(self, version: str) -> str:
        """Direct download URL of the release archive."""
        target = self.target()
        if self is Application.SASS:
            extension = "zip" if _os_name() == "windows" else "tar.gz"
            return (
                f"https://github.com/sass/dart-sass/releases/download/{version}/"
                f"dart-sass-{version}-{target}-x64.{extension}"
            )
        if self is Application.WASM_BINDGEN:
            return (
                f"https://github.com/rustwasm/wasm-bindgen/releases/download/{version}/"
                f"wasm-bindgen-{version}-x86_64-{target}.tar.gz"
            )
        return (
            f"https://github.com/WebAssembly/binaryen/releases/download/{version}/"
            f"binaryen-{version}-x86_64-{target}.tar.gz"
        )

    def version_test(self) -> str:
        """The command-line flag that prints the application's version."""
        return "--version"

    def format_version_output(self, text: str) -> str:
        """Extract the version from the output of the version check."""
        text = text.strip()
        error = TrunkError(f"missing or malformed version output: {text}")
        if self is Application.SASS:
            lines = text.splitlines()
            if not lines:
                raise error
            return lines[0]
        words = text.split(" ")
        index = 1 if self is Application.WASM_BINDGEN else 2
        if len(words) <= index:
            raise error
        if self is Application.WASM_BINDGEN:
            return words[index]
        return f"version_{words[index]}"


def _strip_first(name: str) -> tuple[str, ...]:
    return PurePosixPath(name).parts[1:]


def _write_out(source: BinaryIO, file: str, target: Path) -> Path:
    out = target / file
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
    except OSError as err:
        raise TrunkError("failed creating output directory") from err
    try:
        with open(out, "wb") as sink:
            shutil.copyfileobj(source, sink)
    except OSError as err:
        raise TrunkError("failed copying over final output file from archive") from err
    return out


def _set_permissions(path: Path, mode: int) -> None:
    if os.name != "posix":
        return
    try:
        os.chmod(path, mode & 0o7777)
    except OSError as err:
        raise TrunkError("failed setting file permissions") from err


@dataclass(frozen=True)
class Archive:
    """A downloaded release archive, either a gzipped tarball or a zip file."""

    path: Path
    is_zip: bool = False

    def extract_file(self, file: str, target: str | os.PathLike) -> None:
        """Extract ``file`` (path below the archive's top folder) into ``target``."""
        target = Path(target)
        if self.is_zip:
            self._extract_zip(file, target)
        else:
            self._extract_tar_gz(file, target)

    def _extract_tar_gz(self, file: str, target: Path) -> None:
        wanted = PurePosixPath(file).parts
        try:
            with tarfile.open(self.path, "r:gz") as tar:
                for member in tar:
                    if _strip_first(member.name) == wanted:
                        break
                else:
                    raise TrunkError("file not found in archive")
                source = tar.extractfile(member)
                if source is None:
                    raise TrunkError("file not found in archive")
                with source:
                    out = _write_out(source, file, target)
                mode = member.mode
        except (tarfile.TarError, EOFError, OSError) as err:
            raise TrunkError("failed getting archive entries") from err
        _set_permissions(out, mode)

    def _extract_zip(self, file: str, target: Path) -> None:
        wanted = PurePosixPath(file).parts
        try:
            with zipfile.ZipFile(self.path) as archive:
                for info in archive.infolist():
                    name = PurePosixPath(info.filename.replace("\\", "/"))
                    if "\0" in info.filename or name.is_absolute() or ".." in name.parts:
                        raise TrunkError("invalid entry path")
                    if name.parts[1:] == wanted:
                        break
                else:
                    raise TrunkError("file not found in archive")
                with archive.open(info) as source:
                    out = _write_out(source, file, target)
        except (zipfile.BadZipFile, OSError) as err:
            raise TrunkError("error while getting archive entry") from err
        mode = info.external_attr >> 16
        if info.create_system == 3 and mode:
            _set_permissions(out, mode)


_installed: set[tuple[Application, str]] = set()
_locks: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock] = (
    weakref.WeakKeyDictionary()
)


def _install_lock() -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    lock = _locks.get(loop)
    if lock is None:
        lock = _locks[loop] = asyncio.Lock()
    return lock


async def _install_once(app: Application, version: str, app_dir: Path) -> None:
    async with _install_lock():
        key = (app, version)
        if key in _installed:
            return
        try:
            archive = await download(app, version)
        except TrunkError as err:
            raise TrunkError("failed downloading release archive") from err
        await install(app, archive, app_dir)
        try:
            archive.unlink()
        except OSError as err:
            raise TrunkError("failed deleting temporary archive") from err
        _installed.add(key)


async def get(app: Application, version: str | None = None) -> Path:
    """Locate the application, downloading it when it is missing."""
    if version is None:
        version = app.default_version()

    system_path = await find_system(app, version)
    if system_path is not None:
        logger.info("using system installed binary %s %s", app.app_name(), version)
        return system_path

    app_dir = cache_dir() / f"{app.app_name()}-{version}"
    bin_path = app_dir / app.path()
    if not is_executable(bin_path):
        await _install_once(app, version, app_dir)
    return bin_path


async def find_system(app: Application, version: str) -> Path | None:
    """Return the system-installed application if it has exactly the wanted version."""
    try:
        found = shutil.which(app.app_name())
        if found is None:
            raise TrunkError(f"cannot find binary {app.app_name()}")
        process = await asyncio.create_subprocess_exec(
            found,
            app.version_test(),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, _ = await process.communicate()
        if process.returncode != 0:
            raise TrunkError(f"running command `{found} {app.version_test()}` failed")
        system_version = app.format_version_output(stdout.decode("utf-8", errors="replace"))
    except (OSError, TrunkError) as err:
        logger.debug("system version not found for %s: %s", app.app_name(), err)
        return None
    return Path(found) if system_version == version else None


def _fetch(url: str, out: Path) -> None:
    try:
        sink = open(out, "wb")
    except OSError as err:
        raise TrunkError("failed creating temporary output file") from err
    with sink:
        try:
            response = urllib.request.urlopen(url)
        except urllib.error.HTTPError as err:
            raise TrunkError(f"error downloading archive file: {err.code}\n{url}") from err
        except (urllib.error.URLError, OSError) as err:
            raise TrunkError("error sending HTTP request") from err
        with response:
            status = getattr(response, "status", 200)
            if not 200 <= status < 300:
                raise TrunkError(f"error downloading archive file: {status}\n{url}")
            try:
                while chunk := response.read(_CHUNK_SIZE):
                    sink.write(chunk)
            except OSError as err:
                raise TrunkError("error reading chunk from download") from err


async def download(app: Application, version: str) -> Path:
    """Download the release archive into the cache directory and return its path."""
    logger.info("downloading %s %s", app.app_name(), version)
    try:
        directory = cache_dir()
    except TrunkError as err:
        raise TrunkError("failed getting the cache directory") from err
    temp_out = directory / f"{app.app_name()}-{version}.tmp"
    url = app.url(version)
    await asyncio.to_thread(_fetch, url, temp_out)
    return temp_out


async def install(
    app: Application, archive_path: str | os.PathLike, target: str | os.PathLike
) -> None:
    """Extract the application and its extra files from the archive into ``target``."""
    logger.info("installing %s", app.app_name())

    def extract() -> None:
        archive = Archive(
            Path(archive_path),
            is_zip=app is Application.SASS and _os_name() == "windows",
        )
        archive.extract_file(app.path(), target)
        for extra in app.extra_paths():
            archive.extract_file(extra, target)

    await asyncio.to_thread(extract)


def cache_dir() -> Path:
    """Return the tool cache directory, creating it when needed."""
    path = Path(platformdirs.user_cache_dir("trunk", "trunkrs"))
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as err:
        raise TrunkError("failed creating cache directory") from err
    return path
"""Asset files and helpers shared by the asset pipelines."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from trunk.common import TrunkError, path_exists
from trunk.hashing import seahash

ATTR_INLINE = "data-inline"
ATTR_HREF = "href"
ATTR_TYPE = "type"
ATTR_REL = "rel"
SNIPPETS_DIR = "snippets"
TRUNK_ID = "data-trunk-id"

LinkAttrs = dict[str, str]
"""All attributes of a ``<link data-trunk .../>`` element."""


def href_to_path(href: str) -> Path:
    """Turn a slash-separated ``href`` into a filesystem path."""
    return Path(*href.split("/"))


def trunk_id_selector(id: int) -> str:
    """CSS selector for the trunk link carrying the given ID."""
    return f'link[{TRUNK_ID}="{id}"]'


@dataclass(frozen=True)
class HashedFileOutput:
    """A copied file whose name carries the hash of its contents."""

    hash: int
    file_path: Path
    file_name: str


@dataclass(frozen=True)
class AssetFile:
    """An existing file on disk to be processed by a pipeline."""

    path: Path
    file_name: str
    file_stem: str
    ext: str | None

    @classmethod
    def load(cls, rel_dir: str | os.PathLike, path: str | os.PathLike) -> AssetFile:
        """Resolve ``path`` (relative to ``rel_dir`` unless absolute) to an existing file."""
        path = Path(path)
        if not path.is_absolute():
            path = Path(rel_dir) / path
        try:
            path = path.resolve(strict=True)
        except (OSError, RuntimeError) as err:
            raise TrunkError(f'error getting canonical path for "{path}"') from err
        if not path_exists(path):
            raise TrunkError(f'target file does not appear to exist on disk "{path}"')
        if not path.name:
            raise TrunkError(f'asset has no file name "{path}"')
        if not path.stem:
            raise TrunkError(f'asset has no file name stem "{path}"')
        return cls(
            path=path,
            file_name=path.name,
            file_stem=path.stem,
            ext=path.suffix[1:] if path.suffix else None,
        )

    def _read(self) -> bytes:
        try:
            return self.path.read_bytes()
        except OSError as err:
            raise TrunkError(f'error reading file for copying "{self.path}"') from err

    def _write(self, file_path: Path, data: bytes) -> None:
        try:
            file_path.write_bytes(data)
        except OSError as err:
            raise TrunkError(f'error copying file "{self.path}" to "{file_path}"') from err

    def copy(self, to_dir: str | os.PathLike) -> Path:
        """Copy this asset into ``to_dir`` under its own name."""
        data = self._read()
        file_path = Path(to_dir) / self.file_name
        self._write(file_path, data)
        return file_path

    def copy_with_hash(self, to_dir: str | os.PathLike) -> HashedFileOutput:
        """Copy this asset into ``to_dir`` as ``{stem}-{hash}.{ext}``."""
        data = self._read()
        digest = seahash(data)
        file_name = f"{self.file_stem}-{digest:x}.{self.ext or ''}"
        file_path = Path(to_dir) / file_name
        self._write(file_path, data)
        return HashedFileOutput(hash=digest, file_path=file_path, file_name=file_name)

    def read_to_string(self) -> str:
        """Return the text content of this asset."""
        try:
            return self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as err:
            raise TrunkError(f'error reading file "{self.path}" to string') from err
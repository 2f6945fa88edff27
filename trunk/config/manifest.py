"""Metadata of the target cargo project."""

from __future__ import annotations

import asyncio
import json
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from trunk.common import TrunkError


def _root_package(metadata: Mapping[str, Any]) -> Mapping[str, Any] | None:
    packages = metadata.get("packages") or []
    resolve = metadata.get("resolve")
    if isinstance(resolve, Mapping):
        root = resolve.get("root")
        if root is None:
            return None
        return next((pkg for pkg in packages if pkg.get("id") == root), None)
    workspace_root = metadata.get("workspace_root")
    if workspace_root is None:
        return None
    root_manifest = Path(workspace_root) / "Cargo.toml"
    return next(
        (
            pkg
            for pkg in packages
            if pkg.get("manifest_path") is not None
            and Path(pkg["manifest_path"]) == root_manifest
        ),
        None,
    )


@dataclass
class CargoMetadata:
    """The cargo project's metadata and its root package."""

    metadata: dict[str, Any]
    package: dict[str, Any]
    manifest_path: str

    @property
    def target_directory(self) -> Path:
        """The cargo target directory of the project."""
        return Path(self.metadata["target_directory"])

    @classmethod
    def from_json(cls, data: str | bytes) -> CargoMetadata:
        """Build an instance from the JSON printed by ``cargo metadata``."""
        try:
            metadata = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as err:
            raise TrunkError("error getting cargo metadata") from err
        if not isinstance(metadata, dict) or not isinstance(metadata.get("packages", []), list):
            raise TrunkError("error getting cargo metadata")
        package = _root_package(metadata)
        if package is None or not isinstance(package.get("manifest_path"), str):
            raise TrunkError("could not find root package of the target crate")
        return cls(
            metadata=metadata,
            package=dict(package),
            manifest_path=package["manifest_path"],
        )

    @classmethod
    async def load(cls, manifest: str | os.PathLike) -> CargoMetadata:
        """Run ``cargo metadata`` for the given ``Cargo.toml``."""
        try:
            process = await asyncio.create_subprocess_exec(
                "cargo",
                "metadata",
                "--format-version",
                "1",
                "--manifest-path",
                os.fspath(manifest),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as err:
            raise TrunkError("error getting cargo metadata") from err
        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            detail = TrunkError(stderr.decode("utf-8", errors="replace").strip())
            raise TrunkError("error getting cargo metadata") from detail
        return cls.from_json(stdout)
"""Rust web worker pipeline; the asset type is recognised but not yet supported."""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from trunk.common import TrunkError
from trunk.config.manifest import CargoMetadata
from trunk.config.runtime import RtcBuild
from trunk.pipelines.assets import LinkAttrs

_UNSUPPORTED = (
    'the rust web worker asset type `<link data-trunk rel="rust-worker" .../>` '
    "is not yet supported"
)


@dataclass(frozen=True)
class RustWorker:
    """A Rust web worker link, ``<link data-trunk rel="rust-worker">``."""

    TYPE_RUST_WORKER: ClassVar[str] = "rust-worker"

    id: int
    cfg: RtcBuild
    manifest: CargoMetadata
    ignore_chan: asyncio.Queue[Path] | None

    @classmethod
    async def create(
        cls,
        cfg: RtcBuild,
        html_dir: str | os.PathLike,
        ignore_chan: asyncio.Queue[Path] | None,
        attrs: LinkAttrs,
        id: int,
    ) -> RustWorker:
        """Reject the link: this asset type is not supported yet."""
        error = TrunkError(_UNSUPPORTED)
        href = attrs.get("href")
        location = f"link {id} in {Path(html_dir)}"
        error.add_note(f"{location} (href={href!r})" if href is not None else location)
        raise error
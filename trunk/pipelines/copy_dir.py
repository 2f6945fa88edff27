"""Pipeline copying a whole directory into the distribution."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from bs4 import BeautifulSoup

from trunk.common import TrunkError, copy_dir_recursive, strip_prefix
from trunk.config.runtime import RtcBuild
from trunk.pipelines.assets import ATTR_HREF, LinkAttrs, href_to_path, trunk_id_selector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CopyDirOutput:
    """The result of a copy-dir pipeline."""

    id: int

    def finalize(self, dom: BeautifulSoup) -> None:
        """Remove the source link element from the document."""
        for tag in dom.select(trunk_id_selector(self.id)):
            tag.decompose()


@dataclass(frozen=True)
class CopyDir:
    """Copies a directory referenced by a ``<link data-trunk rel="copy-dir">``."""

    TYPE_COPY_DIR: ClassVar[str] = "copy-dir"

    id: int
    cfg: RtcBuild
    path: Path

    @classmethod
    async def create(
        cls, cfg: RtcBuild, html_dir: str | os.PathLike, attrs: LinkAttrs, id: int
    ) -> CopyDir:
        """Build the pipeline from the link's attributes."""
        href = attrs.get(ATTR_HREF)
        if href is None:
            raise TrunkError(
                'required attr `href` missing for <link data-trunk rel="copydir" .../> element'
            )
        path = href_to_path(href)
        if not path.is_absolute():
            path = Path(html_dir) / path
        return cls(id=id, cfg=cfg, path=path)

    async def run(self) -> CopyDirOutput:
        """Copy the directory into the staging dist dir."""
        rel_path = strip_prefix(self.path)
        logger.info("copying directory %s", rel_path)
        try:
            canonical = self.path.resolve(strict=True)
        except (OSError, RuntimeError) as err:
            raise TrunkError(
                f'error taking canonical path of directory "{self.path}"'
            ) from err
        if not canonical.name:
            raise TrunkError(f'could not get directory name of dir "{canonical}"')
        await asyncio.to_thread(
            copy_dir_recursive, canonical, self.cfg.staging_dist / canonical.name
        )
        logger.info("finished copying directory %s", rel_path)
        return CopyDirOutput(self.id)
"""Pipeline copying a single file into the distribution."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import ClassVar

from bs4 import BeautifulSoup

from trunk.common import TrunkError, strip_prefix
from trunk.config.runtime import RtcBuild
from trunk.pipelines.assets import (
    ATTR_HREF,
    AssetFile,
    LinkAttrs,
    href_to_path,
    trunk_id_selector,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CopyFileOutput:
    """The result of a copy-file pipeline."""

    id: int

    def finalize(self, dom: BeautifulSoup) -> None:
        """Remove the source link element from the document."""
        for tag in dom.select(trunk_id_selector(self.id)):
            tag.decompose()


@dataclass(frozen=True)
class CopyFile:
    """Copies a file referenced by a ``<link data-trunk rel="copy-file">``."""

    TYPE_COPY_FILE: ClassVar[str] = "copy-file"

    id: int
    cfg: RtcBuild
    asset: AssetFile

    @classmethod
    async def create(
        cls, cfg: RtcBuild, html_dir: str | os.PathLike, attrs: LinkAttrs, id: int
    ) -> CopyFile:
        """Build the pipeline from the link's attributes."""
        href = attrs.get(ATTR_HREF)
        if href is None:
            raise TrunkError(
                'required attr `href` missing for <link data-trunk rel="copyfile" .../> element'
            )
        asset = AssetFile.load(html_dir, href_to_path(href))
        return cls(id=id, cfg=cfg, asset=asset)

    async def run(self) -> CopyFileOutput:
        """Copy the file into the staging dist dir."""
        rel_path = strip_prefix(self.asset.path)
        logger.info("copying file %s", rel_path)
        await asyncio.to_thread(self.asset.copy, self.cfg.staging_dist)
        logger.info("finished copying file %s", rel_path)
        return CopyFileOutput(self.id)
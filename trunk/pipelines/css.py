"""CSS asset pipeline."""

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
    HashedFileOutput,
    LinkAttrs,
    href_to_path,
    trunk_id_selector,
)

logger = logging.getLogger(__name__)


def _replace_with_html(dom: BeautifulSoup, selector: str, html: str) -> None:
    for tag in dom.select(selector):
        fragment = BeautifulSoup(html, "html.parser")
        for node in list(fragment.contents):
            tag.insert_before(node)
        tag.decompose()


@dataclass(frozen=True)
class CssOutput:
    """The result of a CSS pipeline."""

    cfg: RtcBuild
    id: int
    file: HashedFileOutput

    def finalize(self, dom: BeautifulSoup) -> None:
        """Replace the source link with a stylesheet link to the hashed file."""
        _replace_with_html(
            dom,
            trunk_id_selector(self.id),
            f'<link rel="stylesheet" href="{self.cfg.public_url}{self.file.file_name}"/>',
        )


@dataclass(frozen=True)
class Css:
    """Copies and hashes a stylesheet referenced by ``<link data-trunk rel="css">``."""

    TYPE_CSS: ClassVar[str] = "css"

    id: int
    cfg: RtcBuild
    asset: AssetFile

    @classmethod
    async def create(
        cls, cfg: RtcBuild, html_dir: str | os.PathLike, attrs: LinkAttrs, id: int
    ) -> Css:
        """Build the pipeline from the link's attributes."""
        href = attrs.get(ATTR_HREF)
        if href is None:
            raise TrunkError(
                'required attr `href` missing for <link data-trunk rel="css" .../> element'
            )
        asset = AssetFile.load(html_dir, href_to_path(href))
        return cls(id=id, cfg=cfg, asset=asset)

    async def run(self) -> CssOutput:
        """Copy the stylesheet into the staging dist dir under a hashed name."""
        rel_path = strip_prefix(self.asset.path)
        logger.info("copying & hashing css %s", rel_path)
        hashed = await asyncio.to_thread(self.asset.copy_with_hash, self.cfg.staging_dist)
        logger.info("finished copying & hashing css %s", rel_path)
        return CssOutput(cfg=self.cfg, id=self.id, file=hashed)
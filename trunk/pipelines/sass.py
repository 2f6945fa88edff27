"""Sass/SCSS asset pipeline."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from bs4 import BeautifulSoup

from trunk import tools
from trunk.common import TrunkError, run_command, strip_prefix
from trunk.config.runtime import RtcBuild
from trunk.hashing import seahash
from trunk.pipelines.assets import (
    ATTR_HREF,
    ATTR_INLINE,
    AssetFile,
    HashedFileOutput,
    LinkAttrs,
    href_to_path,
    trunk_id_selector,
)
from trunk.tools import Application

logger = logging.getLogger(__name__)


def _replace_with_html(dom: BeautifulSoup, selector: str, html: str) -> None:
    for tag in dom.select(selector):
        fragment = BeautifulSoup(html, "html.parser")
        for node in list(fragment.contents):
            tag.insert_before(node)
        tag.decompose()


@dataclass(frozen=True)
class SassOutput:
    """The compiled CSS: inline text, or a hashed file in the staging dir."""

    cfg: RtcBuild
    id: int
    css_ref: str | HashedFileOutput

    def finalize(self, dom: BeautifulSoup) -> None:
        """Replace the source link with a style element or a stylesheet link."""
        if isinstance(self.css_ref, HashedFileOutput):
            html = (
                f'<link rel="stylesheet" href="{self.cfg.public_url}'
                f'{self.css_ref.file_name}"/>'
            )
        else:
            html = f'<style type="text/css">{self.css_ref}</style>'
        _replace_with_html(dom, trunk_id_selector(self.id), html)


def _write_hashed(staging: Path, stem: str, css: str) -> HashedFileOutput:
    data = css.encode("utf-8")
    digest = seahash(data)
    file_name = f"{stem}-{digest:x}.css"
    file_path = staging / file_name
    try:
        file_path.write_bytes(data)
    except OSError as err:
        raise TrunkError("error writing SASS pipeline output") from err
    return HashedFileOutput(hash=digest, file_path=file_path, file_name=file_name)


@dataclass(frozen=True)
class Sass:
    """Compiles a sass/scss file referenced by ``<link data-trunk rel="sass|scss">``."""

    TYPE_SASS: ClassVar[str] = "sass"
    TYPE_SCSS: ClassVar[str] = "scss"

    id: int
    cfg: RtcBuild
    asset: AssetFile
    use_inline: bool

    @classmethod
    async def create(
        cls, cfg: RtcBuild, html_dir: str | os.PathLike, attrs: LinkAttrs, id: int
    ) -> Sass:
        """Build the pipeline from the link's attributes."""
        href = attrs.get(ATTR_HREF)
        if href is None:
            raise TrunkError(
                'required attr `href` missing for <link data-trunk rel="sass|scss" .../> element'
            )
        asset = AssetFile.load(html_dir, href_to_path(href))
        return cls(id=id, cfg=cfg, asset=asset, use_inline=ATTR_INLINE in attrs)

    async def run(self) -> SassOutput:
        """Compile the stylesheet with the sass tool."""
        sass = await tools.get(Application.SASS, self.cfg.tools.sass)

        style = "compressed" if self.cfg.release else "expanded"
        file_path = self.cfg.staging_dist / f"{self.asset.file_stem}.css"
        args = ["--no-source-map", "-s", style, str(self.asset.path), str(file_path)]

        rel_path = strip_prefix(self.asset.path)
        logger.info("compiling sass/scss %s", rel_path)
        await run_command("sass", sass, args)

        try:
            css = await asyncio.to_thread(file_path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as err:
            raise TrunkError(f'error reading compiled CSS "{file_path}"') from err

        if self.use_inline:
            css_ref: str | HashedFileOutput = css
        else:
            css_ref = await asyncio.to_thread(
                _write_hashed, self.cfg.staging_dist, self.asset.file_stem, css
            )

        logger.info("finished compiling sass/scss %s", rel_path)
        return SassOutput(cfg=self.cfg, id=self.id, css_ref=css_ref)
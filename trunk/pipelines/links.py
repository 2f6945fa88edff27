"""Dispatch of ``<link data-trunk .../>`` elements to their asset pipelines."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

from trunk.common import TrunkError
from trunk.config.runtime import RtcBuild
from trunk.pipelines.assets import ATTR_REL, LinkAttrs
from trunk.pipelines.copy_dir import CopyDir, CopyDirOutput
from trunk.pipelines.copy_file import CopyFile, CopyFileOutput
from trunk.pipelines.css import Css, CssOutput
from trunk.pipelines.icon import Icon, IconOutput
from trunk.pipelines.inline import Inline, InlineOutput
from trunk.pipelines.rust_app import RustApp, RustAppOutput
from trunk.pipelines.rust_worker import RustWorker
from trunk.pipelines.sass import Sass, SassOutput

TrunkLink = Css | Sass | Icon | Inline | CopyFile | CopyDir | RustApp | RustWorker
"""Any asset pipeline built from a trunk link; each has an async ``run()``."""

TrunkLinkPipelineOutput = (
    CssOutput
    | SassOutput
    | IconOutput
    | InlineOutput
    | CopyFileOutput
    | CopyDirOutput
    | RustAppOutput
)
"""Any pipeline result; each has ``finalize(dom)``."""


async def from_html(
    cfg: RtcBuild,
    html_dir: str | os.PathLike,
    ignore_chan: asyncio.Queue[Path] | None,
    attrs: LinkAttrs,
    id: int,
) -> TrunkLink:
    """Build the pipeline named by the link's ``rel`` attribute."""
    rel = attrs.get(ATTR_REL)
    if rel is None:
        raise TrunkError(
            "all <link data-trunk .../> elements must have a `rel` attribute "
            "indicating the asset type"
        )
    match rel:
        case Sass.TYPE_SASS | Sass.TYPE_SCSS:
            return await Sass.create(cfg, html_dir, attrs, id)
        case Icon.TYPE_ICON:
            return await Icon.create(cfg, html_dir, attrs, id)
        case Inline.TYPE_INLINE:
            return await Inline.create(html_dir, attrs, id)
        case Css.TYPE_CSS:
            return await Css.create(cfg, html_dir, attrs, id)
        case CopyFile.TYPE_COPY_FILE:
            return await CopyFile.create(cfg, html_dir, attrs, id)
        case CopyDir.TYPE_COPY_DIR:
            return await CopyDir.create(cfg, html_dir, attrs, id)
        case RustApp.TYPE_RUST_APP:
            return await RustApp.create(cfg, html_dir, ignore_chan, attrs, id)
        case RustWorker.TYPE_RUST_WORKER:
            return await RustWorker.create(cfg, html_dir, ignore_chan, attrs, id)
    raise TrunkError(
        f'unknown <link data-trunk .../> attr value `rel="{rel}"`; please ensure the '
        "value is lowercase and is a supported asset type"
    )
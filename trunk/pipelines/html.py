"""The source HTML pipeline, which drives every asset pipeline of a build."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

from bs4 import BeautifulSoup

from trunk.common import TrunkError
from trunk.config.options import PipelineStage
from trunk.config.runtime import RtcBuild
from trunk.hooks import spawn_hooks, wait_hooks
from trunk.pipelines.assets import TRUNK_ID, LinkAttrs
from trunk.pipelines.links import TrunkLink, from_html
from trunk.pipelines.rust_app import RustApp

logger = logging.getLogger(__name__)

PUBLIC_URL_MARKER_ATTR = "data-trunk-public-url"

RELOAD_SCRIPT = """(function () {
  var protocol = window.location.protocol === "https:" ? "wss" : "ws";
  var ws = new WebSocket(protocol + "://" + window.location.host + "/_trunk/ws");
  ws.onmessage = function (ev) {
    var msg = JSON.parse(ev.data);
    if (msg.reload) {
      window.location.reload();
    }
  };
})();"""

_PRE_BUILD = PipelineStage("pre_build")
_BUILD = PipelineStage("build")
_POST_BUILD = PipelineStage("post_build")


def _cancel_all(tasks: list[asyncio.Task]) -> None:
    for task in tasks:
        if not task.done():
            task.cancel()


class HtmlPipeline:
    """Processes the source HTML and spawns a pipeline for every asset it links."""

    def __init__(
        self,
        cfg: RtcBuild,
        target_html_path: Path,
        target_html_dir: Path,
        ignore_chan: asyncio.Queue[Path] | None,
    ) -> None:
        self.cfg = cfg
        self.target_html_path = target_html_path
        self.target_html_dir = target_html_dir
        self.ignore_chan = ignore_chan

    @classmethod
    def from_config(
        cls, cfg: RtcBuild, ignore_chan: asyncio.Queue[Path] | None = None
    ) -> HtmlPipeline:
        """Create the pipeline for the target HTML named in ``cfg``."""
        try:
            target = Path(cfg.target).resolve(strict=True)
        except (OSError, RuntimeError) as err:
            raise TrunkError("failed to get canonical path of target HTML file") from err
        if target.parent == target:
            raise TrunkError("failed to determine parent dir of target HTML file")
        return cls(cfg, target, target.parent, ignore_chan)

    async def run(self) -> None:
        """Build all assets and write the finalized ``index.html`` to the staging dir."""
        logger.info("spawning asset pipelines")

        await wait_hooks(spawn_hooks(self.cfg, _PRE_BUILD))

        try:
            raw_html = await asyncio.to_thread(
                self.target_html_path.read_text, encoding="utf-8"
            )
        except (OSError, UnicodeDecodeError) as err:
            raise TrunkError(
                f'error reading source HTML file "{self.target_html_path}"'
            ) from err
        dom = BeautifulSoup(raw_html, "html.parser", multi_valued_attributes=None)

        assets: list[TrunkLink] = []
        for id, link in enumerate(dom.select("link[data-trunk]")):
            link[TRUNK_ID] = str(id)
            attrs: LinkAttrs = {name: str(value) for name, value in link.attrs.items()}
            assets.append(
                await from_html(self.cfg, self.target_html_dir, self.ignore_chan, attrs, id)
            )

        rust_app_nodes = len(dom.select('link[data-trunk][rel="rust"]'))
        if rust_app_nodes > 1:
            raise TrunkError('only one <link data-trunk rel="rust" .../> may be specified')
        if rust_app_nodes == 0:
            assets.append(
                await RustApp.create_default(
                    self.cfg, self.target_html_dir, self.ignore_chan
                )
            )

        pipelines = [asyncio.create_task(asset.run()) for asset in assets]
        build_hooks = spawn_hooks(self.cfg, _BUILD)
        try:
            await self._finalize_asset_pipelines(dom, pipelines)
        except BaseException:
            _cancel_all(pipelines)
            _cancel_all(build_hooks)
            raise

        await wait_hooks(build_hooks)

        self.finalize_html(dom)

        output = self.cfg.staging_dist / "index.html"
        try:
            await asyncio.to_thread(output.write_text, str(dom), encoding="utf-8")
        except OSError as err:
            raise TrunkError("error writing finalized HTML output") from err

        await wait_hooks(spawn_hooks(self.cfg, _POST_BUILD))

    @staticmethod
    async def _finalize_asset_pipelines(
        dom: BeautifulSoup, pipelines: list[asyncio.Task]
    ) -> None:
        for finished in asyncio.as_completed(pipelines):
            try:
                output = await finished
            except TrunkError as err:
                raise TrunkError("error from asset pipeline") from err
            output.finalize(dom)

    def finalize_html(self, dom: BeautifulSoup) -> None:
        """Write the public URL into marked base elements and inject the autoloader."""
        for base in dom.select(f"html head base[{PUBLIC_URL_MARKER_ATTR}]"):
            del base[PUBLIC_URL_MARKER_ATTR]
            base["href"] = self.cfg.public_url

        if self.cfg.inject_autoloader:
            for body in dom.select("body"):
                script = dom.new_tag("script")
                script.string = RELOAD_SCRIPT
                body.append(script)

    def __repr__(self) -> str:
        return f"HtmlPipeline(target_html_path={os.fspath(self.target_html_path)!r})"
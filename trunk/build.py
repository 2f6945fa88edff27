"""The build system: staging, running the HTML pipeline and applying the result."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from trunk.common import BUILDING, ERROR, SUCCESS, TrunkError, remove_dir_all
from trunk.config.runtime import RtcBuild
from trunk.pipelines.html import HtmlPipeline

logger = logging.getLogger(__name__)


@dataclass
class BuildSystem:
    """Builds the application described by a runtime build config."""

    cfg: RtcBuild
    html_pipeline: HtmlPipeline

    @classmethod
    async def create(
        cls, cfg: RtcBuild, ignore_chan: asyncio.Queue[Path] | None = None
    ) -> BuildSystem:
        """Create a build system for ``cfg``."""
        return cls(cfg, HtmlPipeline.from_config(cfg, ignore_chan))

    async def build(self) -> None:
        """Run a full build, logging its outcome."""
        logger.info("%s starting build", BUILDING)
        try:
            await self._do_build()
        except TrunkError as err:
            logger.error("%s error\n%s", ERROR, err)
            raise
        logger.info("%s success", SUCCESS)

    async def _do_build(self) -> None:
        try:
            Path(self.cfg.final_dist).mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise TrunkError("error creating build environment directory: dist") from err

        try:
            await asyncio.to_thread(self._prepare_staging_dist)
        except TrunkError as err:
            raise TrunkError("error preparing build environment") from err

        try:
            await self.html_pipeline.run()
        except TrunkError as err:
            raise TrunkError("error from HTML pipeline") from err

        try:
            await asyncio.to_thread(self._finalize_dist)
        except TrunkError as err:
            raise TrunkError("error applying built distribution") from err

    def _prepare_staging_dist(self) -> None:
        staging = Path(self.cfg.staging_dist)
        try:
            remove_dir_all(staging)
        except TrunkError as err:
            raise TrunkError("error cleaning staging dist dir") from err
        try:
            staging.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise TrunkError(
                "error creating build environment directory: staging dist dir"
            ) from err

    def _finalize_dist(self) -> None:
        """Replace the contents of the dist dir with those of the staging dir."""
        logger.info("applying new distribution")
        self._clean_final()
        self._move_stage_to_final()
        try:
            os.rmdir(self.cfg.staging_dist)
        except OSError as err:
            raise TrunkError("error deleting staging dist dir") from err

    def _move_stage_to_final(self) -> None:
        final = Path(self.cfg.final_dist)
        try:
            entries = list(os.scandir(self.cfg.staging_dist))
        except OSError as err:
            raise TrunkError("error reading staging dist dir") from err
        for entry in entries:
            target = final / entry.name
            try:
                os.rename(entry.path, target)
            except OSError as err:
                raise TrunkError(f'error moving "{entry.path}" to "{target}"') from err

    def _clean_final(self) -> None:
        stage_name = Path(self.cfg.staging_dist).name
        try:
            entries = list(os.scandir(self.cfg.final_dist))
        except OSError as err:
            raise TrunkError("error reading final dist dir") from err
        for entry in entries:
            if entry.name == stage_name:
                continue
            try:
                if entry.is_dir(follow_symlinks=False):
                    remove_dir_all(entry.path)
                elif entry.is_symlink() or entry.is_file(follow_symlinks=False):
                    os.remove(entry.path)
            except (OSError, TrunkError) as err:
                raise TrunkError("error cleaning final dist") from err
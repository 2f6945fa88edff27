"""Running user-configured commands at build stages."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Iterable

from trunk.common import TrunkError
from trunk.config.options import ConfigOptsHook, PipelineStage
from trunk.config.runtime import RtcBuild

logger = logging.getLogger(__name__)


async def _run_hook(hook: ConfigOptsHook, env: dict[str, str]) -> None:
    name = hook.command
    try:
        process = await asyncio.create_subprocess_exec(
            name, *hook.command_arguments, env=env
        )
    except OSError as err:
        raise TrunkError(f"error spawning hook call for {name}") from err
    if await process.wait() != 0:
        raise TrunkError(f"hook call to {name} returned a bad status")
    logger.info("finished hook %s", name)


def spawn_hooks(cfg: RtcBuild, stage: PipelineStage) -> list[asyncio.Task[None]]:
    """Start a task for every hook configured for ``stage``; needs a running event loop."""
    logger.info("spawning hooks for stage %s", stage)
    env = {
        **os.environ,
        "TRUNK_PROFILE": "release" if cfg.release else "debug",
        "TRUNK_HTML_FILE": os.fspath(cfg.target),
        "TRUNK_SOURCE_DIR": os.fspath(cfg.target_parent),
        "TRUNK_STAGING_DIR": os.fspath(cfg.staging_dist),
        "TRUNK_DIST_DIR": os.fspath(cfg.final_dist),
        "TRUNK_PUBLIC_URL": cfg.public_url,
    }
    tasks = []
    for hook in cfg.hooks:
        if hook.stage != stage:
            continue
        logger.info("spawned hook %s %s", hook.command, hook.command_arguments)
        tasks.append(asyncio.create_task(_run_hook(hook, env)))
    return tasks


async def wait_hooks(handles: Iterable[asyncio.Task[None]]) -> None:
    """Wait for all hooks, raising the first error that occurs."""
    pending = list(handles)
    try:
        for finished in asyncio.as_completed(pending):
            await finished
    except BaseException:
        for task in pending:
            if not task.done():
                task.cancel()
        raise
"""Runtime configuration resolved from the layered config options."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from trunk.common import TrunkError
from trunk.config.options import (
    ConfigOptsBuild,
    ConfigOptsClean,
    ConfigOptsHook,
    ConfigOptsProxy,
    ConfigOptsServe,
    ConfigOptsTools,
    ConfigOptsWatch,
)

DIST_DIR = "dist"
"""Default directory for final build artifacts."""
STAGE_DIR = ".stage"
"""Directory used to stage artifacts during an active build."""


def _canonical(path: Path) -> Path:
    try:
        return Path(path).resolve(strict=True)
    except (OSError, RuntimeError) as err:
        raise FileNotFoundError(str(path)) from err


@dataclass(frozen=True)
class RtcBuild:
    """Runtime config for the build system."""

    target: Path
    target_parent: Path
    release: bool
    public_url: str
    final_dist: Path
    staging_dist: Path
    tools: ConfigOptsTools
    hooks: tuple[ConfigOptsHook, ...]
    inject_autoloader: bool

    @classmethod
    def from_opts(
        cls,
        opts: ConfigOptsBuild,
        tools: ConfigOptsTools,
        hooks: Iterable[ConfigOptsHook],
        inject_autoloader: bool,
    ) -> RtcBuild:
        pre_target = Path(opts.target) if opts.target is not None else Path("index.html")
        try:
            target = _canonical(pre_target)
        except FileNotFoundError as err:
            raise TrunkError(
                f'error getting canonical path to source HTML file "{pre_target}"'
            ) from err
        target_parent = target.parent

        final_dist = Path(opts.dist) if opts.dist is not None else target_parent / DIST_DIR
        if not final_dist.exists():
            try:
                final_dist.mkdir()
            except OSError as err:
                raise TrunkError(
                    f'error creating final dist directory "{final_dist}"'
                ) from err
        try:
            final_dist = _canonical(final_dist)
        except FileNotFoundError as err:
            raise TrunkError("error taking canonical path to dist dir") from err

        return cls(
            target=target,
            target_parent=target_parent,
            release=opts.release,
            public_url=opts.public_url if opts.public_url is not None else "/",
            final_dist=final_dist,
            staging_dist=final_dist / STAGE_DIR,
            tools=tools,
            hooks=tuple(hooks),
            inject_autoloader=inject_autoloader,
        )


def _canonical_all(paths: Iterable[Path], kind: str) -> list[Path]:
    resolved = []
    for path in paths:
        try:
            resolved.append(_canonical(path))
        except FileNotFoundError as err:
            raise TrunkError(f'invalid {kind} path provided: "{path}"') from err
    return resolved


@dataclass(frozen=True)
class RtcWatch:
    """Runtime config for the watch system."""

    build: RtcBuild
    paths: tuple[Path, ...]
    ignored_paths: tuple[Path, ...]

    @classmethod
    def from_opts(
        cls,
        build_opts: ConfigOptsBuild,
        opts: ConfigOptsWatch,
        tools: ConfigOptsTools,
        hooks: Iterable[ConfigOptsHook],
        inject_autoloader: bool,
    ) -> RtcWatch:
        build = RtcBuild.from_opts(build_opts, tools, hooks, inject_autoloader)
        paths = _canonical_all(opts.watch or [], "watch") or [build.target_parent]
        ignored = _canonical_all(opts.ignore or [], "ignore")
        ignored.append(build.final_dist)
        return cls(build=build, paths=tuple(paths), ignored_paths=tuple(ignored))


@dataclass(frozen=True)
class RtcServe:
    """Runtime config for the serve system."""

    watch: RtcWatch
    port: int
    open: bool
    proxy_backend: str | None
    proxy_rewrite: str | None
    proxy_ws: bool
    proxies: tuple[ConfigOptsProxy, ...] | None
    no_autoreload: bool

    @classmethod
    def from_opts(
        cls,
        build_opts: ConfigOptsBuild,
        watch_opts: ConfigOptsWatch,
        opts: ConfigOptsServe,
        tools: ConfigOptsTools,
        hooks: Iterable[ConfigOptsHook],
        proxies: Iterable[ConfigOptsProxy] | None,
    ) -> RtcServe:
        watch = RtcWatch.from_opts(
            build_opts, watch_opts, tools, hooks, not opts.no_autoreload
        )
        return cls(
            watch=watch,
            port=opts.port if opts.port is not None else 8080,
            open=opts.open,
            proxy_backend=opts.proxy_backend,
            proxy_rewrite=opts.proxy_rewrite,
            proxy_ws=opts.proxy_ws,
            proxies=None if proxies is None else tuple(proxies),
            no_autoreload=opts.no_autoreload,
        )


@dataclass(frozen=True)
class RtcClean:
    """Runtime config for the clean system."""

    dist: Path
    cargo: bool

    @classmethod
    def from_opts(cls, opts: ConfigOptsClean) -> RtcClean:
        dist = Path(opts.dist) if opts.dist is not None else Path(DIST_DIR)
        return cls(dist=dist, cargo=opts.cargo)
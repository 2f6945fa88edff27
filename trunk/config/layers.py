"""Layered configuration: config file, then environment, then command line."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, TypeVar

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
from trunk.config.runtime import RtcBuild, RtcClean, RtcServe, RtcWatch

_T = TypeVar("_T")

_DEFAULT_CONFIG_FILE = "Trunk.toml"


def _or(preferred: _T | None, fallback: _T | None) -> _T | None:
    return preferred if preferred is not None else fallback


def _merge_section(
    lesser: _T | None, greater: _T | None, combine: Callable[[_T, _T], _T]
) -> _T | None:
    if lesser is None:
        return greater
    if greater is None:
        return lesser
    return combine(lesser, greater)


def _merge_build(lesser: ConfigOptsBuild, greater: ConfigOptsBuild) -> ConfigOptsBuild:
    return replace(
        greater,
        target=_or(greater.target, lesser.target),
        dist=_or(greater.dist, lesser.dist),
        public_url=_or(greater.public_url, lesser.public_url),
        # Release mode can not be disabled further down the cascade.
        release=greater.release or lesser.release,
    )


def _merge_watch(lesser: ConfigOptsWatch, greater: ConfigOptsWatch) -> ConfigOptsWatch:
    return replace(
        greater,
        watch=_or(greater.watch, lesser.watch),
        ignore=_or(greater.ignore, lesser.ignore),
    )


def _merge_serve(lesser: ConfigOptsServe, greater: ConfigOptsServe) -> ConfigOptsServe:
    return replace(
        greater,
        proxy_backend=_or(greater.proxy_backend, lesser.proxy_backend),
        proxy_rewrite=_or(greater.proxy_rewrite, lesser.proxy_rewrite),
        port=_or(greater.port, lesser.port),
        proxy_ws=greater.proxy_ws or lesser.proxy_ws,
        no_autoreload=greater.no_autoreload or lesser.no_autoreload,
        open=greater.open or lesser.open,
    )


def _merge_tools(lesser: ConfigOptsTools, greater: ConfigOptsTools) -> ConfigOptsTools:
    return replace(
        greater,
        sass=_or(greater.sass, lesser.sass),
        wasm_bindgen=_or(greater.wasm_bindgen, lesser.wasm_bindgen),
        wasm_opt=_or(greater.wasm_opt, lesser.wasm_opt),
    )


def _merge_clean(lesser: ConfigOptsClean, greater: ConfigOptsClean) -> ConfigOptsClean:
    return replace(
        greater,
        dist=_or(greater.dist, lesser.dist),
        cargo=greater.cargo or lesser.cargo,
    )


def _tables(value: Any, key: str, parse: Callable[[Any], _T]) -> list[_T] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        raise TrunkError(f"invalid type for `{key}`: expected an array of tables")
    return [parse(item) for item in value]


def _section(data: Mapping[str, Any], key: str, parse: Callable[[Any], _T]) -> _T | None:
    value = data.get(key)
    return None if value is None else parse(value)


def _canonical(path: Path) -> Path:
    return path.resolve(strict=True)


def _prefixed(environ: Mapping[str, str], prefix: str) -> dict[str, str]:
    return {
        key[len(prefix):].lower(): value
        for key, value in environ.items()
        if key.startswith(prefix)
    }


@dataclass
class ConfigOpts:
    """All configuration options, as gathered from one configuration layer."""

    build: ConfigOptsBuild | None = None
    watch: ConfigOptsWatch | None = None
    serve: ConfigOptsServe | None = None
    clean: ConfigOptsClean | None = None
    tools: ConfigOptsTools | None = None
    proxy: list[ConfigOptsProxy] | None = None
    hooks: list[ConfigOptsHook] | None = None

    @classmethod
    def rtc_build(cls, cli_build: ConfigOptsBuild, config: str | os.PathLike | None) -> RtcBuild:
        """Resolve the runtime config of the build system from all layers."""
        layer = cls.merge(cls._file_and_env_layers(config), cls(build=cli_build))
        return RtcBuild.from_opts(
            layer.build or ConfigOptsBuild(),
            layer.tools or ConfigOptsTools(),
            layer.hooks or [],
            False,
        )

    @classmethod
    def rtc_watch(
        cls,
        cli_build: ConfigOptsBuild,
        cli_watch: ConfigOptsWatch,
        config: str | os.PathLike | None,
    ) -> RtcWatch:
        """Resolve the runtime config of the watch system from all layers."""
        layer = cls.merge(cls._file_and_env_layers(config), cls(build=cli_build))
        layer = cls.merge(layer, cls(watch=cli_watch))
        return RtcWatch.from_opts(
            layer.build or ConfigOptsBuild(),
            layer.watch or ConfigOptsWatch(),
            layer.tools or ConfigOptsTools(),
            layer.hooks or [],
            False,
        )

    @classmethod
    def rtc_serve(
        cls,
        cli_build: ConfigOptsBuild,
        cli_watch: ConfigOptsWatch,
        cli_serve: ConfigOptsServe,
        config: str | os.PathLike | None,
    ) -> RtcServe:
        """Resolve the runtime config of the serve system from all layers."""
        layer = cls.merge(cls._file_and_env_layers(config), cls(build=cli_build))
        layer = cls.merge(layer, cls(watch=cli_watch))
        layer = cls.merge(layer, cls(serve=cli_serve))
        return RtcServe.from_opts(
            layer.build or ConfigOptsBuild(),
            layer.watch or ConfigOptsWatch(),
            layer.serve or ConfigOptsServe(),
            layer.tools or ConfigOptsTools(),
            layer.hooks or [],
            layer.proxy,
        )

    @classmethod
    def rtc_clean(cls, cli_clean: ConfigOptsClean, config: str | os.PathLike | None) -> RtcClean:
        """Resolve the runtime config of the clean system from all layers."""
        layer = cls.merge(cls._file_and_env_layers(config), cls(clean=cli_clean))
        return RtcClean.from_opts(layer.clean or ConfigOptsClean())

    @classmethod
    def full(cls, config: str | os.PathLike | None) -> ConfigOpts:
        """Return the configuration from the config file and environment variables."""
        return cls._file_and_env_layers(config)

    @classmethod
    def _file_and_env_layers(cls, path: str | os.PathLike | None) -> ConfigOpts:
        toml_cfg = cls.from_file(path)
        try:
            env_cfg = cls.from_env()
        except TrunkError as err:
            raise TrunkError("error reading trunk env var config") from err
        return cls.merge(toml_cfg, env_cfg)

    @classmethod
    def _from_toml(cls, data: Mapping[str, Any]) -> ConfigOpts:
        return cls(
            build=_section(data, "build", ConfigOptsBuild.from_dict),
            watch=_section(data, "watch", ConfigOptsWatch.from_dict),
            serve=_section(data, "serve", ConfigOptsServe.from_dict),
            clean=_section(data, "clean", ConfigOptsClean.from_dict),
            tools=_section(data, "tools", ConfigOptsTools.from_dict),
            proxy=_tables(data.get("proxy"), "proxy", ConfigOptsProxy.from_dict),
            hooks=_tables(data.get("hooks"), "hooks", ConfigOptsHook.from_dict),
        )

    @classmethod
    def from_file(cls, path: str | os.PathLike | None = None) -> ConfigOpts:
        """Read a config file; relative paths inside it are taken relative to the file."""
        toml_path = Path(path) if path is not None else Path(_DEFAULT_CONFIG_FILE)
        if not toml_path.exists():
            return cls()
        if not toml_path.is_absolute():
            try:
                toml_path = _canonical(toml_path)
            except (OSError, RuntimeError) as err:
                raise TrunkError(
                    f'error getting canonical path to Trunk config file "{toml_path}"'
                ) from err
        try:
            raw = toml_path.read_bytes()
        except OSError as err:
            raise TrunkError("error reading config file") from err
        try:
            cfg = cls._from_toml(tomllib.loads(raw.decode("utf-8")))
        except (UnicodeDecodeError, tomllib.TOMLDecodeError, TrunkError) as err:
            raise TrunkError("error reading config file contents as TOML data") from err

        parent = toml_path.parent

        def canonical_in_file(value: Path, field_name: str) -> Path:
            if value.is_absolute():
                return value
            try:
                return _canonical(parent / value)
            except (OSError, RuntimeError) as err:
                raise TrunkError(
                    f'error taking canonical path to {field_name} "{value}" in "{toml_path}"'
                ) from err

        def joined(value: Path | None) -> Path | None:
            if value is None or value.is_absolute():
                return value
            return parent / value

        if cfg.build is not None:
            if cfg.build.target is not None:
                cfg.build.target = canonical_in_file(cfg.build.target, "[build].target")
            cfg.build.dist = joined(cfg.build.dist)
        if cfg.watch is not None:
            if cfg.watch.watch is not None:
                cfg.watch.watch = [canonical_in_file(p, "[watch].watch") for p in cfg.watch.watch]
            if cfg.watch.ignore is not None:
                cfg.watch.ignore = [
                    canonical_in_file(p, "[watch].ignore") for p in cfg.watch.ignore
                ]
        if cfg.clean is not None:
            cfg.clean.dist = joined(cfg.clean.dist)
        return cfg

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ConfigOpts:
        """Read config from ``TRUNK_BUILD_*``, ``TRUNK_WATCH_*``, ``TRUNK_SERVE_*``, ``TRUNK_CLEAN_*``."""
        env = os.environ if environ is None else environ
        return cls(
            build=ConfigOptsBuild.from_dict(_prefixed(env, "TRUNK_BUILD_")),
            watch=ConfigOptsWatch.from_dict(_prefixed(env, "TRUNK_WATCH_")),
            serve=ConfigOptsServe.from_dict(_prefixed(env, "TRUNK_SERVE_")),
            clean=ConfigOptsClean.from_dict(_prefixed(env, "TRUNK_CLEAN_")),
        )

    @classmethod
    def merge(cls, lesser: ConfigOpts, greater: ConfigOpts) -> ConfigOpts:
        """Merge two layers; values of ``greater`` take precedence."""
        return cls(
            build=_merge_section(lesser.build, greater.build, _merge_build),
            watch=_merge_section(lesser.watch, greater.watch, _merge_watch),
            serve=_merge_section(lesser.serve, greater.serve, _merge_serve),
            clean=_merge_section(lesser.clean, greater.clean, _merge_clean),
            tools=_merge_section(lesser.tools, greater.tools, _merge_tools),
            # Proxies and hooks are not merged; the greater list wins whole.
            proxy=_or(greater.proxy, lesser.proxy),
            hooks=_or(greater.hooks, lesser.hooks),
        )
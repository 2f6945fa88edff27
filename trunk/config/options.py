"""Configuration option models, as read from config files and the environment."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from trunk.common import TrunkError

_INVALID_URI_CHARS = frozenset('"<>\\^`{|}')


class PipelineStage(Enum):
    """A stage in the build process at which hooks run."""

    PRE_BUILD = "pre_build"
    BUILD = "build"
    POST_BUILD = "post_build"


def validate_uri(value: Any) -> str:
    """Check that ``value`` is a well-formed URI and return it."""
    if not isinstance(value, str):
        raise TrunkError("invalid type: expected a URI string")
    if not value:
        raise TrunkError("empty string")
    for ch in value:
        if not ch.isascii() or ch.isspace() or ord(ch) < 0x20 or ord(ch) == 0x7F or ch in _INVALID_URI_CHARS:
            raise TrunkError("invalid uri character")
    try:
        parts = urlsplit(value)
    except ValueError as err:
        raise TrunkError("invalid format") from err
    if "://" in value:
        if not parts.scheme or not parts.netloc:
            raise TrunkError("invalid format")
        try:
            parts.port
        except ValueError as err:
            raise TrunkError("invalid port") from err
    return value


def _table(data: Any, section: str) -> Mapping[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise TrunkError(f"invalid type for {section}: expected a table")
    return data


def _opt_str(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise TrunkError(f"invalid type for `{key}`: expected a string")
    return value


def _opt_path(data: Mapping[str, Any], key: str) -> Path | None:
    value = _opt_str(data, key)
    return None if value is None else Path(value)


def _flag(data: Mapping[str, Any], key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if value in ("true", "false"):
        return value == "true"
    raise TrunkError(f"invalid value for `{key}`: expected a boolean")


def _opt_port(data: Mapping[str, Any], key: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = int(value)
        except ValueError as err:
            raise TrunkError(f"invalid value for `{key}`: expected a port number") from err
    if isinstance(value, bool) or not isinstance(value, int):
        raise TrunkError(f"invalid type for `{key}`: expected a port number")
    if not 0 <= value <= 0xFFFF:
        raise TrunkError(f"invalid value for `{key}`: {value} is out of range for a port")
    return value


def _str_list(data: Mapping[str, Any], key: str) -> list[str] | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, str):
        return value.split(",")
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return list(value)
    raise TrunkError(f"invalid type for `{key}`: expected a list of strings")


def _opt_paths(data: Mapping[str, Any], key: str) -> list[Path] | None:
    values = _str_list(data, key)
    return None if values is None else [Path(value) for value in values]


def _required(data: Mapping[str, Any], key: str) -> Any:
    if data.get(key) is None:
        raise TrunkError(f"missing field `{key}`")
    return data[key]


@dataclass
class ConfigOptsBuild:
    """Options for the build system."""

    target: Path | None = None
    release: bool = False
    dist: Path | None = None
    public_url: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ConfigOptsBuild:
        table = _table(data, "[build]")
        return cls(
            target=_opt_path(table, "target"),
            release=_flag(table, "release"),
            dist=_opt_path(table, "dist"),
            public_url=_opt_str(table, "public_url"),
        )


@dataclass
class ConfigOptsWatch:
    """Options for the watch system."""

    watch: list[Path] | None = None
    ignore: list[Path] | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ConfigOptsWatch:
        table = _table(data, "[watch]")
        return cls(watch=_opt_paths(table, "watch"), ignore=_opt_paths(table, "ignore"))


@dataclass
class ConfigOptsServe:
    """Options for the serve system."""

    port: int | None = None
    open: bool = False
    proxy_backend: str | None = None
    proxy_rewrite: str | None = None
    proxy_ws: bool = False
    no_autoreload: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ConfigOptsServe:
        table = _table(data, "[serve]")
        backend = table.get("proxy_backend")
        return cls(
            port=_opt_port(table, "port"),
            open=_flag(table, "open"),
            proxy_backend=None if backend is None else validate_uri(backend),
            proxy_rewrite=_opt_str(table, "proxy_rewrite"),
            proxy_ws=_flag(table, "proxy_ws"),
            no_autoreload=_flag(table, "no_autoreload"),
        )


@dataclass
class ConfigOptsClean:
    """Options for the clean system."""

    dist: Path | None = None
    cargo: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ConfigOptsClean:
        table = _table(data, "[clean]")
        return cls(dist=_opt_path(table, "dist"), cargo=_flag(table, "cargo"))


@dataclass
class ConfigOptsTools:
    """Versions of the external tools to download."""

    sass: str | None = None
    wasm_bindgen: str | None = None
    wasm_opt: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ConfigOptsTools:
        table = _table(data, "[tools]")
        return cls(
            sass=_opt_str(table, "sass"),
            wasm_bindgen=_opt_str(table, "wasm_bindgen"),
            wasm_opt=_opt_str(table, "wasm_opt"),
        )


@dataclass
class ConfigOptsProxy:
    """A proxy definition; only read from the config file."""

    backend: str
    rewrite: str | None = None
    ws: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ConfigOptsProxy:
        table = _table(data, "[[proxy]]")
        return cls(
            backend=validate_uri(_required(table, "backend")),
            rewrite=_opt_str(table, "rewrite"),
            ws=_flag(table, "ws"),
        )


@dataclass
class ConfigOptsHook:
    """A command to run at a given build stage."""

    stage: PipelineStage
    command: str
    command_arguments: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ConfigOptsHook:
        table = _table(data, "[[hooks]]")
        raw_stage = _required(table, "stage")
        try:
            stage = PipelineStage(raw_stage)
        except ValueError as err:
            expected = ", ".join(f"`{s.value}`" for s in PipelineStage)
            raise TrunkError(f"unknown variant `{raw_stage}`, expected one of {expected}") from err
        _required(table, "command")
        command = _opt_str(table, "command")
        arguments = _str_list(table, "command_arguments")
        return cls(stage=stage, command=command, command_arguments=arguments or [])
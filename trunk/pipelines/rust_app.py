"""Rust application pipeline: cargo build, wasm-bindgen and wasm-opt."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
import sys
import tomllib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar

from bs4 import BeautifulSoup

from trunk import tools
from trunk.common import TrunkError, copy_dir_recursive, path_exists, run_command
from trunk.config.manifest import CargoMetadata
from trunk.config.options import ConfigOptsTools
from trunk.config.runtime import RtcBuild
from trunk.hashing import seahash
from trunk.pipelines.assets import (
    ATTR_HREF,
    SNIPPETS_DIR,
    LinkAttrs,
    href_to_path,
    trunk_id_selector,
)
from trunk.tools import Application

logger = logging.getLogger(__name__)

_MANIFEST_NAME = "Cargo.toml"


class WasmOptLevel(Enum):
    """Optimization levels understood by wasm-opt; ``OFF`` skips the step."""

    DEFAULT = ""
    OFF = "0"
    ONE = "1"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    S = "s"
    Z = "z"

    @classmethod
    def parse(cls, value: str) -> WasmOptLevel:
        """Parse the value of a ``data-wasm-opt`` attribute."""
        normalized = value.lower() if value in ("S", "Z") else value
        try:
            return cls(normalized)
        except ValueError:
            raise TrunkError(f"unknown wasm-opt level `{value}`") from None


def _version_from_lock(manifest: CargoMetadata) -> str | None:
    lock_path = Path(manifest.manifest_path).parent / "Cargo.lock"
    try:
        data = tomllib.loads(lock_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError):
        return None
    packages = data.get("package", [])
    if not isinstance(packages, list):
        return None
    for package in packages:
        if isinstance(package, dict) and package.get("name") == "wasm-bindgen":
            version = package.get("version")
            return None if version is None else str(version)
    return None


def _version_from_metadata(manifest: CargoMetadata) -> str | None:
    for package in manifest.metadata.get("packages") or []:
        if isinstance(package, dict) and package.get("name") == "wasm-bindgen":
            version = package.get("version")
            return None if version is None else str(version)
    return None


def find_wasm_bindgen_version(
    tools: ConfigOptsTools, manifest: CargoMetadata
) -> str | None:
    """The wasm-bindgen version: from the config, else Cargo.lock, else cargo metadata."""
    if tools.wasm_bindgen is not None:
        return tools.wasm_bindgen
    return _version_from_lock(manifest) or _version_from_metadata(manifest)


def _manifest_path(html_dir: str | os.PathLike, href: str | None) -> Path:
    if href is None:
        return Path(html_dir) / _MANIFEST_NAME
    path = href_to_path(href)
    if not path.is_absolute():
        path = Path(html_dir) / path
    if path.name != _MANIFEST_NAME:
        path = path / _MANIFEST_NAME
    return path


def _find_artifact(output: bytes, package_id: Any) -> dict[str, Any]:
    """Pick the compiler artifact of the package from cargo's JSON messages."""
    artifact: dict[str, Any] | None = None
    failed = False
    for line in output.decode("utf-8", errors="replace").splitlines():
        try:
            message = json.loads(line)
        except json.JSONDecodeError:
            continue
        if not isinstance(message, dict):
            continue
        reason = message.get("reason")
        if reason == "compiler-artifact" and message.get("package_id") == package_id:
            artifact = message
            failed = False
        elif reason == "build-finished" and not message.get("success", False):
            failed = True
    if failed:
        raise TrunkError("error while fetching cargo artifact info")
    if artifact is None:
        raise TrunkError("cargo artifacts not found for target crate")
    return artifact


def _wasm_file(artifact: dict[str, Any]) -> Path:
    for name in artifact.get("filenames") or []:
        path = Path(name)
        if path.suffix == ".wasm":
            return path
    raise TrunkError("could not find WASM output after cargo build")


def _check_target_not_found(err: TrunkError, target: str) -> TrunkError:
    """Wrap an error whose cause is a missing executable with a clearer message."""
    cause = err.__cause__
    while cause is not None:
        if isinstance(cause, FileNotFoundError):
            wrapped = TrunkError(f"{target} not found")
            wrapped.__cause__ = err
            return wrapped
        cause = cause.__cause__
    return err


def _append_html(dom: BeautifulSoup, selector: str, html: str) -> None:
    for tag in dom.select(selector):
        fragment = BeautifulSoup(html, "html.parser")
        for node in list(fragment.contents):
            tag.append(node)


def _replace_with_html(dom: BeautifulSoup, selector: str, html: str) -> None:
    for tag in dom.select(selector):
        fragment = BeautifulSoup(html, "html.parser")
        for node in list(fragment.contents):
            tag.insert_before(node)
        tag.decompose()


def _copy(source: Path, dest: Path, message: str) -> None:
    try:
        shutil.copy(source, dest)
    except OSError as err:
        raise TrunkError(message) from err


@dataclass(frozen=True)
class RustAppOutput:
    """The JS loader and WASM file written to the staging dir."""

    cfg: RtcBuild
    id: int | None
    js_output: str
    wasm_output: str

    def finalize(self, dom: BeautifulSoup) -> None:
        """Add preload links to the head and the loader script to the document."""
        base, js, wasm = self.cfg.public_url, self.js_output, self.wasm_output
        preload = (
            f'\n<link rel="preload" href="{base}{wasm}" as="fetch" '
            f'type="application/wasm" crossorigin>'
            f'\n<link rel="modulepreload" href="{base}{js}">'
        )
        _append_html(dom, "html head", preload)

        script = (
            f"<script type=\"module\">import init from '{base}{js}';"
            f"init('{base}{wasm}');</script>"
        )
        if self.id is None:
            _append_html(dom, "html body", script)
        else:
            _replace_with_html(dom, trunk_id_selector(self.id), script)


@dataclass(frozen=True)
class RustApp:
    """Builds the cargo project referenced by ``<link data-trunk rel="rust">``."""

    TYPE_RUST_APP: ClassVar[str] = "rust"

    id: int | None
    cfg: RtcBuild
    cargo_features: str | None
    manifest: CargoMetadata
    ignore_chan: asyncio.Queue[Path] | None
    bin: str | None
    keep_debug: bool
    no_demangle: bool
    wasm_opt: WasmOptLevel

    @classmethod
    async def create(
        cls,
        cfg: RtcBuild,
        html_dir: str | os.PathLike,
        ignore_chan: asyncio.Queue[Path] | None,
        attrs: LinkAttrs,
        id: int,
    ) -> RustApp:
        """Build the pipeline from the link's attributes."""
        manifest_href = _manifest_path(html_dir, attrs.get(ATTR_HREF))
        wasm_opt_attr = attrs.get("data-wasm-opt")
        if wasm_opt_attr is not None:
            wasm_opt = WasmOptLevel.parse(wasm_opt_attr)
        else:
            wasm_opt = WasmOptLevel.DEFAULT if cfg.release else WasmOptLevel.OFF
        manifest = await CargoMetadata.load(manifest_href)
        return cls(
            id=id,
            cfg=cfg,
            cargo_features=attrs.get("data-cargo-features"),
            manifest=manifest,
            ignore_chan=ignore_chan,
            bin=attrs.get("data-bin"),
            keep_debug="data-keep-debug" in attrs,
            no_demangle="data-no-demangle" in attrs,
            wasm_opt=wasm_opt,
        )

    @classmethod
    async def create_default(
        cls,
        cfg: RtcBuild,
        html_dir: str | os.PathLike,
        ignore_chan: asyncio.Queue[Path] | None,
    ) -> RustApp:
        """Build the pipeline for the ``Cargo.toml`` next to the source HTML."""
        manifest = await CargoMetadata.load(_manifest_path(html_dir, None))
        return cls(
            id=None,
            cfg=cfg,
            cargo_features=None,
            manifest=manifest,
            ignore_chan=ignore_chan,
            bin=None,
            keep_debug=False,
            no_demangle=False,
            wasm_opt=WasmOptLevel.OFF,
        )

    async def run(self) -> RustAppOutput:
        """Build the app, generate its bindings and optimize it when configured."""
        wasm, hashed_name = await self._cargo_build()
        output = await self._wasm_bindgen_build(wasm, hashed_name)
        await self._wasm_opt_build(output.wasm_output)
        return output

    @property
    def _mode_segment(self) -> str:
        return "release" if self.cfg.release else "debug"

    async def _cargo_build(self) -> tuple[Path, str]:
        logger.info("building %s", self.manifest.package.get("name"))
        args = [
            "build",
            "--target=wasm32-unknown-unknown",
            "--manifest-path",
            self.manifest.manifest_path,
        ]
        if self.cfg.release:
            args.append("--release")
        if self.bin is not None:
            args += ["--bin", self.bin]
        if self.cargo_features is not None:
            args += ["--features", self.cargo_features]

        build_error: TrunkError | None = None
        try:
            await run_command("cargo", "cargo", args)
        except TrunkError as err:
            build_error = err

        # The target dir must be ignored by the watcher whether or not the build worked.
        if self.ignore_chan is not None:
            try:
                self.ignore_chan.put_nowait(self.manifest.target_directory)
            except asyncio.QueueFull:
                pass

        if build_error is not None:
            raise TrunkError("error during cargo build execution") from build_error

        logger.info("fetching cargo artifacts")
        try:
            process = await asyncio.create_subprocess_exec(
                "cargo",
                *args,
                "--message-format=json",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as err:
            raise TrunkError("error spawning cargo build artifacts task") from err
        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            print(stderr.decode("utf-8", errors="replace"), file=sys.stderr)
            raise TrunkError("bad status returned from cargo artifacts request")

        artifact = _find_artifact(stdout, self.manifest.package.get("id"))
        wasm = _wasm_file(artifact)

        logger.info("processing WASM")
        try:
            data = await asyncio.to_thread(wasm.read_bytes)
        except OSError as err:
            raise TrunkError("error reading wasm file for hash generation") from err
        return wasm, f"index-{seahash(data):x}"

    async def _wasm_bindgen_build(self, wasm: Path, hashed_name: str) -> RustAppOutput:
        version = find_wasm_bindgen_version(self.cfg.tools, self.manifest)
        wasm_bindgen = await tools.get(Application.WASM_BINDGEN, version)

        name = Application.WASM_BINDGEN.app_name()
        bindgen_out = self.manifest.target_directory / name / self._mode_segment
        try:
            bindgen_out.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise TrunkError("error creating wasm-bindgen output dir") from err

        args = [
            "--target=web",
            f"--out-dir={bindgen_out}",
            f"--out-name={hashed_name}",
            "--no-typescript",
            str(wasm),
        ]
        if self.keep_debug:
            args.append("--keep-debug")
        if self.no_demangle:
            args.append("--no-demangle")

        logger.info("calling wasm-bindgen")
        try:
            await run_command(name, wasm_bindgen, args)
        except TrunkError as err:
            raise _check_target_not_found(err, name)

        logger.info("copying generated wasm-bindgen artifacts")
        js_name = f"{hashed_name}.js"
        wasm_name = f"{hashed_name}_bg.wasm"
        staging = self.cfg.staging_dist
        await asyncio.to_thread(
            _copy,
            bindgen_out / js_name,
            staging / js_name,
            "error copying JS loader file to stage dir",
        )
        await asyncio.to_thread(
            _copy,
            bindgen_out / wasm_name,
            staging / wasm_name,
            "error copying wasm file to stage dir",
        )

        snippets_dir = bindgen_out / SNIPPETS_DIR
        if path_exists(snippets_dir):
            try:
                await asyncio.to_thread(
                    copy_dir_recursive, snippets_dir, staging / SNIPPETS_DIR
                )
            except TrunkError as err:
                raise TrunkError("error copying snippets dir to stage dir") from err

        return RustAppOutput(
            cfg=self.cfg, id=self.id, js_output=js_name, wasm_output=wasm_name
        )

    async def _wasm_opt_build(self, hashed_name: str) -> None:
        if not self.cfg.release or self.wasm_opt is WasmOptLevel.OFF:
            return

        wasm_opt = await tools.get(Application.WASM_OPT, self.cfg.tools.wasm_opt)

        name = Application.WASM_OPT.app_name()
        out_dir = self.manifest.target_directory / name / self._mode_segment
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise TrunkError("error creating wasm-opt output dir") from err

        output = out_dir / hashed_name
        target_wasm = self.cfg.staging_dist / hashed_name
        args = [f"--output={output}", f"-O{self.wasm_opt.value}", str(target_wasm)]

        logger.info("calling wasm-opt")
        try:
            await run_command(name, wasm_opt, args)
        except TrunkError as err:
            raise _check_target_not_found(err, name)

        logger.info("copying generated wasm-opt artifacts")
        await asyncio.to_thread(
            _copy, output, target_wasm, "error copying wasm file to dist dir"
        )
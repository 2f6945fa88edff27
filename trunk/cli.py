"""Command-line entry point: build, clean and config commands."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import pprint
import subprocess
import sys
from pathlib import Path
from typing import Any

from trunk.build import BuildSystem
from trunk.common import TrunkError, parse_public_url, remove_dir_all
from trunk.config.layers import ConfigOpts
from trunk.config.options import ConfigOptsBuild, ConfigOptsClean
from trunk.tools import cache_dir

logger = logging.getLogger("trunk")


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for all commands."""
    parser = argparse.ArgumentParser(
        prog="trunk",
        description="Build, bundle & ship your Rust WASM application to the web.",
    )
    parser.add_argument(
        "--config",
        default=os.environ.get("TRUNK_CONFIG"),
        help="Path to the Trunk config file [default: Trunk.toml]",
    )
    parser.add_argument("-v", action="store_true", help="Enable verbose logging.")
    commands = parser.add_subparsers(dest="command", required=True)

    build = commands.add_parser("build", help="Build the Rust WASM app and all of its assets.")
    build.add_argument(
        "target", nargs="?", help="The index HTML file to drive the bundling process"
    )
    build.add_argument("--release", action="store_true", help="Build in release mode")
    build.add_argument("-d", "--dist", help="The output dir for all final assets")
    build.add_argument(
        "--public-url",
        type=parse_public_url,
        help="The public URL from which assets are to be served",
    )

    clean = commands.add_parser("clean", help="Clean output artifacts.")
    clean.add_argument("-d", "--dist", help="The output dir for all final assets")
    clean.add_argument("--cargo", action="store_true", help="Optionally perform a cargo clean")
    clean.add_argument(
        "-t", "--tools", action="store_true", help="Optionally clean any cached tools"
    )

    config = commands.add_parser("config", help="Trunk config controls.")
    config_commands = config.add_subparsers(dest="config_command", required=True)
    config_commands.add_parser("show", help="Show Trunk's current config pre-CLI.")
    return parser


def _present(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


async def _run_build(args: argparse.Namespace, config: Path | None) -> None:
    cli_build = ConfigOptsBuild.from_dict(
        _present(
            {
                "target": args.target,
                "release": args.release,
                "dist": args.dist,
                "public_url": args.public_url,
            }
        )
    )
    cfg = ConfigOpts.rtc_build(cli_build, config)
    system = await BuildSystem.create(cfg, None)
    await system.build()


def _run_clean(args: argparse.Namespace, config: Path | None) -> None:
    cli_clean = ConfigOptsClean.from_dict(
        _present({"dist": args.dist, "cargo": args.cargo})
    )
    cfg = ConfigOpts.rtc_clean(cli_clean, config)
    try:
        remove_dir_all(cfg.dist)
    except TrunkError:
        pass
    if cfg.cargo:
        logger.debug("cleaning cargo dir")
        try:
            result = subprocess.run(["cargo", "clean"], capture_output=True)
        except OSError as err:
            raise TrunkError("error spawning cargo clean") from err
        if result.returncode != 0:
            raise TrunkError(result.stderr.decode("utf-8", errors="replace"))
    if args.tools:
        logger.debug("cleaning trunk tools cache dir")
        try:
            path = cache_dir()
        except TrunkError as err:
            raise TrunkError("error getting cache dir path") from err
        remove_dir_all(path)


def _describe(err: BaseException) -> str:
    lines = [str(err)]
    cause = err.__cause__
    if cause is not None:
        lines.append("Caused by:")
        while cause is not None:
            lines.append(f"    {cause}")
            cause = cause.__cause__
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    """Run the command line and return the process exit status."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(format="%(levelname)s %(message)s", level=logging.ERROR)
    logger.setLevel(logging.DEBUG if args.v else logging.INFO)

    config = Path(args.config) if args.config else None
    try:
        if args.command == "build":
            asyncio.run(_run_build(args, config))
        elif args.command == "clean":
            _run_clean(args, config)
        else:
            print(pprint.pformat(ConfigOpts.full(config)))
    except TrunkError as err:
        print(f"error: {_describe(err)}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
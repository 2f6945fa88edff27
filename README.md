# trunk

Build and bundle a Rust WASM application and its assets for the web.

`trunk` takes a source HTML file (by default `index.html`) and treats it as
the description of your application. Every `<link data-trunk .../>` element
in it names an asset to process: the Rust application itself, stylesheets,
Sass/SCSS, icons, inlined content, and files or directories to copy. The
result is written to a `dist` directory next to the HTML file, with hashed
file names and a finalized `index.html`.

## Installation

```
pip install .
```

Building a Rust application needs `cargo` with the `wasm32-unknown-unknown`
target. The tools `wasm-bindgen`, `wasm-opt` and `sass` are taken from your
`PATH` when the installed version is exactly the one wanted, and are otherwise
downloaded into a per-user cache directory on first use.

## Commands

Global options go before the command:

```
trunk [--config PATH] [-v] <command> ...
```

`--config` (or the `TRUNK_CONFIG` environment variable) selects a config file
other than `Trunk.toml`; `-v` enables debug logging. A failing command prints
the error with its chain of causes and exits with status 1.

```
trunk build [TARGET] [--release] [-d DIR | --dist DIR] [--public-url URL]
```

Build the application described by `TARGET` (default `index.html`). The
build is assembled in `dist/.stage` and only moved into `dist` when it
succeeds, so a failed build leaves the previous output in place. The public
URL is normalised to start and end with `/`.

```
trunk clean [-d DIR | --dist DIR] [--cargo] [-t | --tools]
```

Remove the dist directory (default `dist` in the current directory).
`--cargo` also runs `cargo clean`, and `--tools` removes the cache of
downloaded tools.

```
trunk config show
```

Print the configuration gathered from `Trunk.toml` and the environment.

## Asset links

```html
<link data-trunk rel="rust" href="Cargo.toml" data-wasm-opt="z" />
<link data-trunk rel="css" href="styles/main.css" />
<link data-trunk rel="scss" href="styles/theme.scss" data-inline />
<link data-trunk rel="icon" href="favicon.png" />
<link data-trunk rel="inline" href="snippet.js" />
<link data-trunk rel="copy-file" href="robots.txt" />
<link data-trunk rel="copy-dir" href="static" />
```

- `rust`: builds the cargo project (`href` may name a directory or a
  `Cargo.toml`). Optional attributes: `data-bin`, `data-cargo-features`,
  `data-keep-debug`, `data-no-demangle`, and `data-wasm-opt` (`0`, `1`, `2`,
  `3`, `4`, `s`, `z` or empty). `wasm-opt` runs only in release builds.
- `css` and `icon`: copied under a content-hashed name.
- `sass` / `scss`: compiled with `sass`; with `data-inline` the CSS is placed
  in a `<style>` element, otherwise written to a hashed file.
- `inline`: the file's content is inserted as HTML, or wrapped in `<style>`
  or `<script>`, chosen by the `type` attribute or the file extension
  (`html`, `css`, `js`).
- `copy-file` and `copy-dir`: copied as they are, and the link is removed.
- `rust-worker` is recognised but rejected as not yet supported.

If no `rel="rust"` link is present, the `Cargo.toml` next to the HTML file is
built. At most one `rel="rust"` link may be given.

A `<base data-trunk-public-url/>` element in `<head>` receives the configured
public URL as its `href`.

## Configuration

Settings are layered: `Trunk.toml` is the base, environment variables
override it, and command-line options override both. Flags such as
`release` and `cargo` cannot be switched off by a later layer. Relative paths
in `Trunk.toml` are resolved against the file's own directory.

```toml
[build]
target = "index.html"
dist = "dist"
public_url = "/"

[clean]
cargo = false

[tools]
wasm_bindgen = "0.2.74"

[[hooks]]
stage = "pre_build"
command = "echo"
command_arguments = ["starting"]
```

Environment variables use the prefixes `TRUNK_BUILD_`, `TRUNK_WATCH_`,
`TRUNK_SERVE_` and `TRUNK_CLEAN_`, for example `TRUNK_BUILD_RELEASE=true`.

Hooks run at the `pre_build`, `build` or `post_build` stage and see the
variables `TRUNK_PROFILE`, `TRUNK_HTML_FILE`, `TRUNK_SOURCE_DIR`,
`TRUNK_STAGING_DIR`, `TRUNK_DIST_DIR` and `TRUNK_PUBLIC_URL`.

## Using it from Python

```python
import asyncio
from trunk.build import BuildSystem
from trunk.config.layers import ConfigOpts
from trunk.config.options import ConfigOptsBuild

cfg = ConfigOpts.rtc_build(ConfigOptsBuild(release=True), None)
system = asyncio.run(BuildSystem.create(cfg))
asyncio.run(system.build())
```

Errors are raised as `trunk.common.TrunkError`, with the underlying cause
chained.

## What it does not do

There is no `watch` or `serve` command: the package does not watch files for
changes, run a development web server, proxy requests to a backend, or reload
the browser. The `[watch]` and `[serve]` config sections and the
`TRUNK_WATCH_*` / `TRUNK_SERVE_*` variables are read and merged, and
`trunk.config.layers.ConfigOpts.rtc_watch` / `rtc_serve` resolve them, but no
command uses them.
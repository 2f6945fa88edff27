import os
import sys
from pathlib import Path

import pytest
from bs4 import BeautifulSoup

from trunk.common import TrunkError
from trunk.config.options import ConfigOptsTools
from trunk.config.runtime import RtcBuild
from trunk.hashing import seahash
from trunk.pipelines.assets import HashedFileOutput, trunk_id_selector
from trunk.pipelines.sass import Sass, SassOutput

SOURCE = "$c: red;\nbody { color: $c; }\n"

FAKE_SASS = """#!{exe}
import sys
args = sys.argv[1:]
if args == ["--version"]:
    print("1.37.5")
    sys.exit(0)
style, source, dest = args[2], args[3], args[4]
with open(source) as fh:
    body = fh.read()
with open(dest, "w") as fh:
    fh.write("/* " + style + " */\\n" + body)
"""


def _cfg(tmp_path: Path, release: bool = False, public_url: str = "/") -> RtcBuild:
    dist = tmp_path / "dist"
    staging = dist / ".stage"
    staging.mkdir(parents=True)
    return RtcBuild(
        target=tmp_path / "index.html",
        target_parent=tmp_path,
        release=release,
        public_url=public_url,
        final_dist=dist,
        staging_dist=staging,
        tools=ConfigOptsTools(),
        hooks=(),
        inject_autoloader=False,
    )


@pytest.fixture
def fake_sass(tmp_path, monkeypatch):
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = bin_dir / "sass"
    script.write_text(FAKE_SASS.format(exe=sys.executable))
    script.chmod(0o755)
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    return script


@pytest.fixture
def source_dir(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    (src / "main.scss").write_text(SOURCE)
    return src


@pytest.mark.asyncio
async def test_missing_href_raises(tmp_path):
    with pytest.raises(TrunkError, match='rel="sass\\|scss"'):
        await Sass.create(_cfg(tmp_path), tmp_path, {"rel": "scss"}, 0)


@pytest.mark.asyncio
async def test_inline_flag_is_read(tmp_path, source_dir):
    cfg = _cfg(tmp_path)
    inline = await Sass.create(cfg, source_dir, {"href": "main.scss", "data-inline": ""}, 0)
    linked = await Sass.create(cfg, source_dir, {"href": "main.scss"}, 1)
    assert inline.use_inline is True
    assert linked.use_inline is False


@pytest.mark.asyncio
async def test_run_inline_returns_css_text(tmp_path, source_dir, fake_sass):
    cfg = _cfg(tmp_path)
    pipeline = await Sass.create(cfg, source_dir, {"href": "main.scss", "data-inline": ""}, 0)
    output = await pipeline.run()
    assert output.css_ref == "/* expanded */\n" + SOURCE
    assert output.id == 0


@pytest.mark.asyncio
async def test_run_release_uses_compressed_style(tmp_path, source_dir, fake_sass):
    cfg = _cfg(tmp_path, release=True)
    pipeline = await Sass.create(cfg, source_dir, {"href": "main.scss", "data-inline": ""}, 0)
    output = await pipeline.run()
    assert output.css_ref == "/* compressed */\n" + SOURCE


@pytest.mark.asyncio
async def test_run_writes_hashed_file(tmp_path, source_dir, fake_sass):
    cfg = _cfg(tmp_path)
    pipeline = await Sass.create(cfg, source_dir, {"href": "main.scss"}, 2)
    output = await pipeline.run()

    css = "/* expanded */\n" + SOURCE
    digest = seahash(css.encode("utf-8"))
    assert isinstance(output.css_ref, HashedFileOutput)
    assert output.css_ref.file_name == f"main-{digest:x}.css"
    assert (cfg.staging_dist / output.css_ref.file_name).read_text() == css


def test_finalize_inline_inserts_style(tmp_path):
    cfg = _cfg(tmp_path)
    dom = BeautifulSoup('<head><link data-trunk-id="0" rel="scss"/></head>', "html.parser")
    SassOutput(cfg=cfg, id=0, css_ref="a { b: c; }").finalize(dom)
    assert dom.select_one("style").string == "a { b: c; }"
    assert dom.select(trunk_id_selector(0)) == []


def test_finalize_file_inserts_stylesheet_link(tmp_path):
    cfg = _cfg(tmp_path, public_url="/site/")
    dom = BeautifulSoup('<head><link data-trunk-id="1" rel="sass"/></head>', "html.parser")
    ref = HashedFileOutput(hash=3, file_path=tmp_path / "main-3.css", file_name="main-3.css")
    SassOutput(cfg=cfg, id=1, css_ref=ref).finalize(dom)
    assert [tag["href"] for tag in dom.select('link[rel="stylesheet"]')] == ["/site/main-3.css"]
    assert dom.select(trunk_id_selector(1)) == []
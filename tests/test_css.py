from pathlib import Path

import pytest
from bs4 import BeautifulSoup

from trunk.common import TrunkError
from trunk.config.options import ConfigOptsTools
from trunk.config.runtime import RtcBuild
from trunk.hashing import seahash
from trunk.pipelines.assets import HashedFileOutput, trunk_id_selector
from trunk.pipelines.css import Css, CssOutput


def _cfg(tmp_path: Path, public_url: str = "/") -> RtcBuild:
    dist = tmp_path / "dist"
    staging = dist / ".stage"
    staging.mkdir(parents=True)
    return RtcBuild(
        target=tmp_path / "index.html",
        target_parent=tmp_path,
        release=False,
        public_url=public_url,
        final_dist=dist,
        staging_dist=staging,
        tools=ConfigOptsTools(),
        hooks=(),
        inject_autoloader=False,
    )


@pytest.mark.asyncio
async def test_missing_href_raises(tmp_path):
    with pytest.raises(TrunkError, match='rel="css"'):
        await Css.create(_cfg(tmp_path), tmp_path, {"rel": "css"}, 0)


@pytest.mark.asyncio
async def test_run_writes_hashed_copy(tmp_path):
    cfg = _cfg(tmp_path)
    data = b"body { color: red; }"
    (tmp_path / "main.css").write_bytes(data)

    pipeline = await Css.create(cfg, tmp_path, {"href": "main.css"}, 0)
    output = await pipeline.run()

    digest = seahash(data)
    assert output.id == 0
    assert output.file.hash == digest
    assert output.file.file_name == f"main-{digest:x}.css"
    assert (cfg.staging_dist / output.file.file_name).read_bytes() == data


def test_finalize_replaces_link_with_stylesheet(tmp_path):
    cfg = _cfg(tmp_path, public_url="/app/")
    dom = BeautifulSoup(
        '<html><head><link data-trunk rel="css" href="main.css" data-trunk-id="5"/>'
        "</head></html>",
        "html.parser",
    )
    file = HashedFileOutput(hash=1, file_path=tmp_path / "main-1.css", file_name="main-1.css")
    CssOutput(cfg=cfg, id=5, file=file).finalize(dom)

    assert dom.select(trunk_id_selector(5)) == []
    links = dom.select('link[rel="stylesheet"]')
    assert [tag["href"] for tag in links] == ["/app/main-1.css"]
    assert links[0].parent.name == "head"
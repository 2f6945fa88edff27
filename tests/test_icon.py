from pathlib import Path

import pytest
from bs4 import BeautifulSoup

from trunk.common import TrunkError
from trunk.config.options import ConfigOptsTools
from trunk.config.runtime import RtcBuild
from trunk.hashing import seahash
from trunk.pipelines.assets import HashedFileOutput, trunk_id_selector
from trunk.pipelines.icon import Icon, IconOutput


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
    with pytest.raises(TrunkError, match='rel="icon"'):
        await Icon.create(_cfg(tmp_path), tmp_path, {}, 0)


@pytest.mark.asyncio
async def test_run_writes_hashed_copy(tmp_path):
    cfg = _cfg(tmp_path)
    data = b"\x89PNG\r\n\x1a\nfake"
    (tmp_path / "favicon.png").write_bytes(data)

    pipeline = await Icon.create(cfg, tmp_path, {"href": "favicon.png"}, 2)
    output = await pipeline.run()

    assert output.id == 2
    assert output.file.file_name == f"favicon-{seahash(data):x}.png"
    assert output.file.file_path == cfg.staging_dist / output.file.file_name
    assert output.file.file_path.read_bytes() == data


def test_finalize_replaces_link_with_icon(tmp_path):
    cfg = _cfg(tmp_path, public_url="/")
    dom = BeautifulSoup(
        '<head><link data-trunk rel="icon" href="favicon.png" data-trunk-id="0"/></head>',
        "html.parser",
    )
    file = HashedFileOutput(hash=7, file_path=tmp_path / "favicon-7.png", file_name="favicon-7.png")
    IconOutput(cfg=cfg, id=0, file=file).finalize(dom)

    assert dom.select(trunk_id_selector(0)) == []
    assert [tag["href"] for tag in dom.select('link[rel="icon"]')] == ["/favicon-7.png"]
from pathlib import Path

import pytest
from bs4 import BeautifulSoup

from trunk.common import TrunkError
from trunk.config.options import ConfigOptsTools
from trunk.config.runtime import RtcBuild
from trunk.pipelines.assets import trunk_id_selector
from trunk.pipelines.copy_file import CopyFile, CopyFileOutput


def _cfg(tmp_path: Path) -> RtcBuild:
    dist = tmp_path / "dist"
    staging = dist / ".stage"
    staging.mkdir(parents=True)
    return RtcBuild(
        target=tmp_path / "index.html",
        target_parent=tmp_path,
        release=False,
        public_url="/",
        final_dist=dist,
        staging_dist=staging,
        tools=ConfigOptsTools(),
        hooks=(),
        inject_autoloader=False,
    )


@pytest.mark.asyncio
async def test_missing_href_raises(tmp_path):
    with pytest.raises(TrunkError, match="required attr `href` missing"):
        await CopyFile.create(_cfg(tmp_path), tmp_path, {}, 0)


@pytest.mark.asyncio
async def test_missing_file_raises(tmp_path):
    with pytest.raises(TrunkError, match="error getting canonical path"):
        await CopyFile.create(_cfg(tmp_path), tmp_path, {"href": "absent.txt"}, 0)


@pytest.mark.asyncio
async def test_run_copies_file_under_same_name(tmp_path):
    cfg = _cfg(tmp_path)
    (tmp_path / "data").mkdir()
    (tmp_path / "data" / "robots.txt").write_bytes(b"User-agent: *\n")

    pipeline = await CopyFile.create(cfg, tmp_path, {"href": "data/robots.txt"}, 4)
    output = await pipeline.run()

    assert output == CopyFileOutput(4)
    assert (cfg.staging_dist / "robots.txt").read_bytes() == b"User-agent: *\n"


def test_finalize_removes_only_matching_link():
    dom = BeautifulSoup(
        '<head><link data-trunk-id="0" href="a"/><link data-trunk-id="1" href="b"/></head>',
        "html.parser",
    )
    CopyFileOutput(0).finalize(dom)
    assert dom.select(trunk_id_selector(0)) == []
    assert [tag["href"] for tag in dom.select("link")] == ["b"]
import sys

import pytest

from trunk.common import TrunkError
from trunk.config.options import ConfigOptsHook, ConfigOptsTools, PipelineStage
from trunk.config.runtime import RtcBuild
from trunk.hooks import spawn_hooks, wait_hooks

WRITE_ENV = (
    "import os, sys; open(sys.argv[1], 'w').write(os.environ[sys.argv[2]])"
)


def make_cfg(tmp_path, hooks, release=False):
    return RtcBuild(
        target=tmp_path / "index.html",
        target_parent=tmp_path,
        release=release,
        public_url="/base/",
        final_dist=tmp_path / "dist",
        staging_dist=tmp_path / "dist" / ".stage",
        tools=ConfigOptsTools(),
        hooks=tuple(hooks),
        inject_autoloader=False,
    )


def writer(stage, out, var):
    return ConfigOptsHook(
        stage=stage,
        command=sys.executable,
        command_arguments=["-c", WRITE_ENV, str(out), var],
    )


@pytest.mark.asyncio
async def test_only_hooks_of_stage_run(tmp_path):
    build_out = tmp_path / "build.txt"
    pre_out = tmp_path / "pre.txt"
    cfg = make_cfg(
        tmp_path,
        [
            writer(PipelineStage.BUILD, build_out, "TRUNK_PROFILE"),
            writer(PipelineStage.PRE_BUILD, pre_out, "TRUNK_PROFILE"),
        ],
    )
    handles = spawn_hooks(cfg, PipelineStage.BUILD)
    await wait_hooks(handles)
    assert len(handles) == 1
    assert build_out.read_text() == "debug"
    assert not pre_out.exists()


@pytest.mark.asyncio
async def test_hook_environment(tmp_path):
    profile_out = tmp_path / "profile.txt"
    url_out = tmp_path / "url.txt"
    staging_out = tmp_path / "staging.txt"
    cfg = make_cfg(
        tmp_path,
        [
            writer(PipelineStage.POST_BUILD, profile_out, "TRUNK_PROFILE"),
            writer(PipelineStage.POST_BUILD, url_out, "TRUNK_PUBLIC_URL"),
            writer(PipelineStage.POST_BUILD, staging_out, "TRUNK_STAGING_DIR"),
        ],
        release=True,
    )
    await wait_hooks(spawn_hooks(cfg, PipelineStage.POST_BUILD))
    assert profile_out.read_text() == "release"
    assert url_out.read_text() == "/base/"
    assert staging_out.read_text() == str(tmp_path / "dist" / ".stage")


@pytest.mark.asyncio
async def test_no_hooks_yields_no_handles(tmp_path):
    cfg = make_cfg(tmp_path, [])
    handles = spawn_hooks(cfg, PipelineStage.BUILD)
    await wait_hooks(handles)
    assert handles == []


@pytest.mark.asyncio
async def test_bad_status_raises(tmp_path):
    hook = ConfigOptsHook(
        stage=PipelineStage.BUILD,
        command=sys.executable,
        command_arguments=["-c", "import sys; sys.exit(3)"],
    )
    cfg = make_cfg(tmp_path, [hook])
    with pytest.raises(TrunkError, match="returned a bad status"):
        await wait_hooks(spawn_hooks(cfg, PipelineStage.BUILD))


@pytest.mark.asyncio
async def test_missing_command_raises(tmp_path):
    hook = ConfigOptsHook(stage=PipelineStage.BUILD, command=str(tmp_path / "no-such-command"))
    cfg = make_cfg(tmp_path, [hook])
    with pytest.raises(TrunkError, match="error spawning hook call for"):
        await wait_hooks(spawn_hooks(cfg, PipelineStage.BUILD))
from pathlib import Path

import pytest

from trunk.common import TrunkError
from trunk.config.options import (
    ConfigOptsBuild,
    ConfigOptsClean,
    ConfigOptsHook,
    ConfigOptsProxy,
    ConfigOptsServe,
    ConfigOptsTools,
    ConfigOptsWatch,
    PipelineStage,
    validate_uri,
)


def test_build_from_dict_full():
    opts = ConfigOptsBuild.from_dict(
        {"target": "index.html", "release": True, "dist": "out", "public_url": "/app/"}
    )
    assert opts.target == Path("index.html")
    assert opts.release is True
    assert opts.dist == Path("out")
    assert opts.public_url == "/app/"


def test_build_from_dict_defaults():
    assert ConfigOptsBuild.from_dict({}) == ConfigOptsBuild()
    assert ConfigOptsBuild.from_dict(None) == ConfigOptsBuild()
    assert ConfigOptsBuild().release is False


def test_build_public_url_not_normalised():
    assert ConfigOptsBuild.from_dict({"public_url": "app"}).public_url == "app"


def test_bool_from_env_strings():
    assert ConfigOptsBuild.from_dict({"release": "true"}).release is True
    assert ConfigOptsBuild.from_dict({"release": "false"}).release is False
    with pytest.raises(TrunkError, match="release"):
        ConfigOptsBuild.from_dict({"release": "yes"})


def test_wrong_type_rejected():
    with pytest.raises(TrunkError, match="target"):
        ConfigOptsBuild.from_dict({"target": 5})
    with pytest.raises(TrunkError, match="expected a table"):
        ConfigOptsBuild.from_dict(["not", "a", "table"])


def test_watch_lists():
    opts = ConfigOptsWatch.from_dict({"watch": ["src", "assets"], "ignore": ["tmp"]})
    assert opts.watch == [Path("src"), Path("assets")]
    assert opts.ignore == [Path("tmp")]
    assert ConfigOptsWatch.from_dict({}).watch is None


def test_watch_comma_separated_string():
    opts = ConfigOptsWatch.from_dict({"watch": "src,assets"})
    assert opts.watch == [Path("src"), Path("assets")]


def test_serve_fields():
    opts = ConfigOptsServe.from_dict(
        {
            "port": 9000,
            "open": True,
            "proxy_backend": "http://localhost:9001/api/",
            "proxy_rewrite": "/api/",
            "proxy_ws": True,
            "no_autoreload": True,
        }
    )
    assert opts.port == 9000
    assert opts.open is True
    assert opts.proxy_backend == "http://localhost:9001/api/"
    assert opts.proxy_rewrite == "/api/"
    assert opts.proxy_ws is True
    assert opts.no_autoreload is True


def test_serve_port_parsing():
    assert ConfigOptsServe.from_dict({"port": "8080"}).port == 8080
    with pytest.raises(TrunkError, match="out of range"):
        ConfigOptsServe.from_dict({"port": 70000})
    with pytest.raises(TrunkError, match="port"):
        ConfigOptsServe.from_dict({"port": "eighty"})
    with pytest.raises(TrunkError, match="port"):
        ConfigOptsServe.from_dict({"port": True})


def test_serve_bad_backend():
    with pytest.raises(TrunkError, match="invalid uri character"):
        ConfigOptsServe.from_dict({"proxy_backend": "not a uri"})


def test_clean_from_dict():
    opts = ConfigOptsClean.from_dict({"dist": "target/dist", "cargo": True})
    assert opts.dist == Path("target/dist")
    assert opts.cargo is True


def test_tools_ignores_unknown_keys():
    opts = ConfigOptsTools.from_dict({"sass": "1.37.5", "other": "x"})
    assert opts.sass == "1.37.5"
    assert opts.wasm_bindgen is None
    assert opts.wasm_opt is None


def test_proxy_from_dict():
    opts = ConfigOptsProxy.from_dict({"backend": "http://localhost:9000/ws", "ws": True})
    assert opts.backend == "http://localhost:9000/ws"
    assert opts.ws is True
    assert opts.rewrite is None
    assert ConfigOptsProxy.from_dict({"backend": "/api"}).ws is False


def test_proxy_requires_backend():
    with pytest.raises(TrunkError, match="missing field `backend`"):
        ConfigOptsProxy.from_dict({"ws": True})


@pytest.mark.parametrize(
    "raw, stage",
    [
        ("pre_build", PipelineStage.PRE_BUILD),
        ("build", PipelineStage.BUILD),
        ("post_build", PipelineStage.POST_BUILD),
    ],
)
def test_hook_stages(raw, stage):
    hook = ConfigOptsHook.from_dict({"stage": raw, "command": "echo"})
    assert hook.stage is stage
    assert hook.command == "echo"
    assert hook.command_arguments == []


def test_hook_arguments():
    hook = ConfigOptsHook.from_dict(
        {"stage": "build", "command": "sh", "command_arguments": ["-c", "true"]}
    )
    assert hook.command_arguments == ["-c", "true"]


def test_hook_errors():
    with pytest.raises(TrunkError, match="unknown variant `later`"):
        ConfigOptsHook.from_dict({"stage": "later", "command": "echo"})
    with pytest.raises(TrunkError, match="missing field `command`"):
        ConfigOptsHook.from_dict({"stage": "build"})
    with pytest.raises(TrunkError, match="missing field `stage`"):
        ConfigOptsHook.from_dict({"command": "echo"})


@pytest.mark.parametrize(
    "uri", ["http://localhost:8080/api/", "/relative/path", "ws://127.0.0.1:9000/ws"]
)
def test_validate_uri_accepts(uri):
    assert validate_uri(uri) == uri


@pytest.mark.parametrize(
    "uri", ["", "http://localhost:abc/", "http:///nohost", "with space", "http://h/é"]
)
def test_validate_uri_rejects(uri):
    with pytest.raises(TrunkError):
        validate_uri(uri)
import os

import dacite
import pytest

import gsfile.config
from gsfile.config import (
    CLINotFoundError,
    Config,
    configure,
    current_config,
    resolve_cache_dir,
    resolve_gcloud_path,
    show_config,
    using,
)


@pytest.fixture
def no_gcloud(monkeypatch):
    monkeypatch.setattr(gsfile.config.shutil, "which", lambda name: None)
    monkeypatch.setattr(gsfile.config, "_common_gcloud_paths", lambda: [])


def test_config_from_dict():
    config = Config.from_dict({"gcloud_path": "/bin/gcloud", "cache_dir": "/c"})
    assert config == Config(gcloud_path="/bin/gcloud", cache_dir="/c")


def test_config_from_dict_is_strict():
    with pytest.raises(dacite.UnexpectedDataError):
        Config.from_dict({"gcloud": "/bin/gcloud"})


def test_config_from_yaml(tmpdir):
    path = tmpdir.join("gsfile.yaml")
    path.write("cache_dir: /some/cache\n")
    assert Config.from_yaml(str(path)) == Config(cache_dir="/some/cache")


def test_config_update_ignores_none():
    config = Config(gcloud_path="a", cache_dir="b")
    assert config.update(cache_dir="c") == Config(gcloud_path="a", cache_dir="c")


def test_current_config_precedence(monkeypatch, tmpdir):
    config_file = tmpdir.join("gsfile.yaml")
    config_file.write("gcloud_path: from-file\ncache_dir: from-file\n")
    monkeypatch.setenv(gsfile.config.CONFIG_FILE_ENV, str(config_file))
    assert current_config() == Config("from-file", "from-file")

    monkeypatch.setenv(gsfile.config.CACHE_DIR_ENV, "from-env")
    assert current_config() == Config("from-file", "from-env")

    with using(Config(gcloud_path="from-override")):
        assert current_config() == Config("from-override", "from-env")
        explicit = current_config(Config(cache_dir="explicit"))
        assert explicit == Config("from-override", "explicit")


def test_using_restores_previous_override():
    with using(Config(gcloud_path="outer")):
        with using(Config(gcloud_path="inner")):
            assert current_config().gcloud_path == "inner"
        assert current_config().gcloud_path == "outer"
    assert current_config().gcloud_path is None


def test_resolve_gcloud_path_prefers_configured(monkeypatch):
    monkeypatch.setattr(gsfile.config.shutil, "which", lambda name: "/on/path")
    assert resolve_gcloud_path(Config(gcloud_path="/explicit")) == "/explicit"
    assert resolve_gcloud_path() == "/on/path"


def test_resolve_gcloud_path_common_locations(monkeypatch, tmpdir, no_gcloud):
    installed = tmpdir.join("gcloud")
    installed.write("")
    monkeypatch.setattr(
        gsfile.config,
        "_common_gcloud_paths",
        lambda: [str(tmpdir.join("missing")), str(installed)],
    )
    assert resolve_gcloud_path() == str(installed)


def test_resolve_gcloud_path_not_found(no_gcloud):
    with pytest.raises(CLINotFoundError, match="Install Google Cloud SDK"):
        resolve_gcloud_path()


def test_resolve_cache_dir_creates_override(tmpdir):
    cache_dir = tmpdir.join("a", "b")
    assert resolve_cache_dir(Config(cache_dir=str(cache_dir))) == str(cache_dir)
    assert os.path.isdir(str(cache_dir))


def test_resolve_cache_dir_falls_back(monkeypatch, tmpdir):
    blocker = tmpdir.join("not-a-dir")
    blocker.write("")
    monkeypatch.setattr(
        gsfile.config, "_default_cache_dir", lambda: str(blocker.join("cache"))
    )
    with pytest.warns(UserWarning, match="Could not create cache directory"):
        assert resolve_cache_dir() == gsfile.config.FALLBACK_CACHE_DIR


def test_configure_warns_for_missing_gcloud(tmpdir):
    missing = str(tmpdir.join("nope", "gcloud"))
    with pytest.warns(UserWarning, match="gcloud path does not exist"):
        config = configure(gcloud_path=missing)
    assert config.gcloud_path == missing
    assert resolve_gcloud_path() == missing


def test_configure_creates_cache_dir(tmpdir):
    cache_dir = str(tmpdir.join("new-cache"))
    configure(cache_dir=cache_dir)
    assert os.path.isdir(cache_dir)
    assert resolve_cache_dir() == cache_dir


def test_show_config(tmpdir, no_gcloud):
    text = show_config(Config(cache_dir=str(tmpdir)))
    assert "gcloud path: NOT FOUND" in text
    assert f"cache directory: {tmpdir}" in text

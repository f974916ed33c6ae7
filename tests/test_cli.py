import pytest
from click.testing import CliRunner

import gsfile.config
import gsfile.io
from gsfile.cli import cli

REMOTE = "gs://bucket/data/table.tsv"


@pytest.fixture
def runner(monkeypatch, storage, cache_dir):
    monkeypatch.setattr(gsfile.io, "default_storage", lambda config=None: storage)
    monkeypatch.setenv(gsfile.config.CACHE_DIR_ENV, cache_dir)
    storage.put(REMOTE, "id\tvalue\n1\ta\n2\tb\n")
    return CliRunner()


def test_config(runner, cache_dir):
    result = runner.invoke(cli, ["config"])
    assert result.exit_code == 0
    assert f"cache directory: {cache_dir}" in result.output


def test_ls(runner):
    result = runner.invoke(cli, ["ls", "gs://bucket/data/*", REMOTE])
    assert result.exit_code == 0
    assert result.output == REMOTE + "\n"


@pytest.mark.parametrize(
    "path, exit_code", [(REMOTE, 0), ("gs://bucket/data/missing.tsv", 1)]
)
def test_exists(runner, path, exit_code):
    assert runner.invoke(cli, ["exists", path]).exit_code == exit_code


def test_cat(runner):
    result = runner.invoke(cli, ["cat", REMOTE])
    assert result.exit_code == 0
    assert result.output == "id\tvalue\n1\ta\n2\tb\n"


def test_fetch_writes_output(runner, tmp_path):
    output = tmp_path / "combined.tsv"
    result = runner.invoke(cli, ["fetch", "gs://bucket/data/*.tsv", "-o", str(output)])
    assert result.exit_code == 0
    assert output.read_text() == "id\tvalue\n1\ta\n2\tb\n"


def test_invalid_path_fails(runner):
    result = runner.invoke(cli, ["ls", "not-a-gs-path"])
    assert result.exit_code != 0

import fnmatch
import os
import shutil

import pytest

import gsfile.config
from gsfile.gsutil import Storage

OLD_TIMESTAMP = "2000-01-01T00:00:00Z"


class FakeStorage(Storage):
    """In-memory stand-in for ``gcloud storage`` backed by a local directory

    ``gs://bucket/a/b.tsv`` is stored at ``<root>/bucket/a/b.tsv``. Every copy
    is recorded in ``copies`` as ``(operation, sources, destination)``.
    """

    def __init__(self, root):
        self.root = str(root)
        self.timestamps = {}
        self.copies = []
        self.list_calls = []
        self.list_long_errors = {}

    def _local(self, url):
        return os.path.join(self.root, url[len("gs://") :])

    def objects(self):
        urls = []
        for dirpath, _, filenames in os.walk(self.root):
            for filename in sorted(filenames):
                relpath = os.path.relpath(os.path.join(dirpath, filename), self.root)
                urls.append("gs://" + relpath.replace(os.sep, "/"))
        return sorted(urls)

    def put(self, url, content, timestamp=OLD_TIMESTAMP):
        path = self._local(url)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w") as f:
            f.write(content)
        self.timestamps[url] = timestamp

    def list(self, patterns):
        self.list_calls.append(list(patterns))
        matches = []
        for pattern in patterns:
            matches.extend(
                url for url in self.objects() if fnmatch.fnmatch(url, pattern)
            )
        return matches

    def list_long(self, remote_path):
        if remote_path in self.list_long_errors:
            raise self.list_long_errors[remote_path]
        if remote_path not in self.objects():
            return []
        size = os.path.getsize(self._local(remote_path))
        timestamp = self.timestamps.get(remote_path, OLD_TIMESTAMP)
        return [f"{size}  {timestamp}  {remote_path}"]

    def copy(self, sources, destination, operation):
        self.copies.append((operation, list(sources), destination))
        for source in sources:
            if source.startswith("gs://"):
                src = self._local(source)
            else:
                src = source
            if destination.startswith("gs://"):
                dest = self._local(destination)
                self.timestamps[destination] = OLD_TIMESTAMP
            elif destination.endswith("/"):
                dest = os.path.join(destination, os.path.basename(src))
            else:
                dest = destination
            os.makedirs(os.path.dirname(dest), exist_ok=True)
            shutil.copyfile(src, dest)

    def copies_of(self, operation):
        return [copy for copy in self.copies if copy[0] == operation]


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    for name in [
        gsfile.config.GCLOUD_PATH_ENV,
        gsfile.config.CACHE_DIR_ENV,
        gsfile.config.CONFIG_FILE_ENV,
    ]:
        monkeypatch.delenv(name, raising=False)
    gsfile.config.reset()
    yield
    gsfile.config.reset()


@pytest.fixture
def storage(tmp_path):
    return FakeStorage(tmp_path / "remote")


@pytest.fixture
def cache_dir(tmp_path):
    path = tmp_path / "cache"
    path.mkdir()
    return str(path)

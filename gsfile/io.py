import logging
import os
import posixpath
import tempfile
from typing import List, Optional, Sequence, Union

import pandas as pd

from .cache import STAGING_DIRNAME, local_cache_path, needs_fetch
from .codec import read_table, write_table
from .config import Config, resolve_cache_dir
from .errors import RemoteFileExistsError
from .gsutil import Storage, default_storage, list_unique
from .validate import validate_gs_path

logger = logging.getLogger(__name__)


def _get_storage(storage: Optional[Storage], config: Optional[Config]) -> Storage:
    return storage if storage is not None else default_storage(config)


def _get_cache_dir(cache_dir: Optional[str], config: Optional[Config]) -> str:
    if cache_dir is not None:
        config = (config or Config()).update(cache_dir=cache_dir)
    return resolve_cache_dir(config)


def list_gsfile(
    remote_path: Union[str, Sequence[str]],
    storage: Optional[Storage] = None,
    config: Optional[Config] = None,
) -> List[str]:
    """List objects matching one or more paths or patterns

    Wildcards and brace expansion are resolved by ``gcloud storage ls``.

    Returns:
        matching object URLs without repeats, in listing order. Empty if
        nothing matches.
    """
    validate_gs_path(remote_path, allow_multiple=True)
    patterns = [remote_path] if isinstance(remote_path, str) else list(remote_path)
    return list_unique(_get_storage(storage, config), patterns)


def gsfile_exists(
    remote_path: str, storage: Optional[Storage] = None, config: Optional[Config] = None
) -> bool:
    return len(list_gsfile(remote_path, storage=storage, config=config)) > 0


def download_gsfile(
    remote_path: str,
    dest_dir: str,
    storage: Optional[Storage] = None,
    config: Optional[Config] = None,
):
    """Copy a remote object into ``dest_dir``, creating it if needed"""
    validate_gs_path(remote_path)
    storage = _get_storage(storage, config)
    os.makedirs(dest_dir, exist_ok=True)
    logger.info(f"Downloading {remote_path}...")
    storage.copy([remote_path], dest_dir.rstrip("/") + "/", "download")
    logger.info("Downloaded.")


def upload_gsfile(
    local_path: str,
    remote_path: str,
    storage: Optional[Storage] = None,
    config: Optional[Config] = None,
):
    """Copy a local file to ``remote_path``, replacing any existing object"""
    validate_gs_path(remote_path)
    storage = _get_storage(storage, config)
    logger.info(f"Uploading to {remote_path}...")
    storage.copy([local_path], remote_path, "upload")
    logger.info("Uploaded.")


def read_gsfile(
    remote_path: str,
    extra_pipe_cmd: Optional[str] = None,
    cache_dir: Optional[str] = None,
    storage: Optional[Storage] = None,
    config: Optional[Config] = None,
    **kwargs,
) -> pd.DataFrame:
    """Read a remote delimited file through the local cache

    The object is downloaded if there is no cached copy or if the remote
    object is newer than the cached one; otherwise the cached copy is read.

    Args:
        remote_path: object URL starting with ``gs://``
        extra_pipe_cmd: shell command the contents are piped through before
            parsing, see :py:func:`gsfile.codec.read_table`
        cache_dir: cache root, defaults to the configured one
        storage: storage backend, defaults to ``gcloud storage``
        config: explicit configuration
        **kwargs: passed to :py:func:`pandas.read_csv`

    Raises:
        NotFoundError: if a cached copy exists but the remote object does not
    """
    validate_gs_path(remote_path)
    storage = _get_storage(storage, config)
    local_path = local_cache_path(remote_path, _get_cache_dir(cache_dir, config))

    if needs_fetch(remote_path, local_path, storage):
        download_gsfile(remote_path, os.path.dirname(local_path), storage=storage)
    else:
        logger.info(f"Using a cache at {local_path}...")
    return read_table(local_path, extra_pipe_cmd=extra_pipe_cmd, **kwargs)


def write_gsfile(
    df: pd.DataFrame,
    remote_path: str,
    sep: str = "\t",
    overwrite: bool = False,
    cache_dir: Optional[str] = None,
    storage: Optional[Storage] = None,
    config: Optional[Config] = None,
    **kwargs,
):
    """Write a dataframe to a remote path

    The table is written to a temporary file under the cache's staging
    directory and uploaded; the temporary file is removed whether or not the
    upload succeeds, so the cached copy of ``remote_path`` is never touched.
    ``.bgz`` paths are bgzip-compressed.

    Raises:
        RemoteFileExistsError: if the object exists and ``overwrite`` is False
    """
    validate_gs_path(remote_path)
    storage = _get_storage(storage, config)
    staging = os.path.join(_get_cache_dir(cache_dir, config), STAGING_DIRNAME)

    if gsfile_exists(remote_path, storage=storage):
        if not overwrite:
            raise RemoteFileExistsError(f"Remote file exists: {remote_path}")
        logger.info(f"This overwrites a remote file: {remote_path}")

    os.makedirs(staging, exist_ok=True)
    with tempfile.TemporaryDirectory(dir=staging) as tmpdir:
        local_path = os.path.join(tmpdir, posixpath.basename(remote_path))
        write_table(df, local_path, sep=sep, **kwargs)
        upload_gsfile(local_path, remote_path, storage=storage)

import logging
import os
from datetime import datetime, timezone
from typing import Optional

from .errors import NotFoundError
from .gsutil import Storage, default_storage
from .validate import strip_scheme, validate_gs_path

logger = logging.getLogger(__name__)

LISTING_TIME_FORMAT = "%Y-%m-%dT%H:%M"
# scratch space under the cache root, never a mirror of a remote path
STAGING_DIRNAME = ".gsfile_staging"


def local_cache_path(remote_path: str, cache_dir: str) -> str:
    """Mirror of ``remote_path`` under ``cache_dir``

    >>> local_cache_path("gs://bucket/a/b.tsv", "/tmp/cache")
    '/tmp/cache/bucket/a/b.tsv'
    """
    return os.path.join(cache_dir, strip_scheme(remote_path))


def parse_listing_timestamp(line: str) -> datetime:
    """Parse the modification time from one ``ls -l`` line

    The second whitespace separated field is an ISO 8601 timestamp, of which
    only the minutes are used.
    """
    field = line.split()[1]
    return datetime.strptime(field[:16], LISTING_TIME_FORMAT).replace(
        tzinfo=timezone.utc
    )


def local_change_time(local_path: str) -> datetime:
    return datetime.fromtimestamp(os.stat(local_path).st_ctime, tz=timezone.utc)


def is_stale(
    remote_path: str, local_path: str, storage: Optional[Storage] = None
) -> bool:
    """Whether the remote object changed after the local copy was written

    Args:
        remote_path: a single object URL
        local_path: an existing local file

    Returns:
        True if the remote timestamp is strictly later than the local ctime

    Raises:
        NotFoundError: if the remote object does not exist
    """
    validate_gs_path(remote_path)
    storage = storage or default_storage()
    lines = storage.list_long(remote_path)
    if not lines:
        raise NotFoundError(f"Remote file not found: {remote_path}")
    remote_time = parse_listing_timestamp(lines[0])
    local_time = local_change_time(local_path)
    logger.debug(f"{remote_path}: remote {remote_time}, local {local_time}")
    return remote_time > local_time


check_update = is_stale


def needs_fetch(remote_path: str, local_path: str, storage: Storage) -> bool:
    if not os.path.exists(local_path):
        return True
    return is_stale(remote_path, local_path, storage)

import dataclasses
import logging
import os
import posixpath
import shutil
import warnings
from datetime import datetime
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import joblib
import pandas as pd
from toolz import groupby

from .cache import STAGING_DIRNAME, is_stale, local_cache_path
from .codec import read_table
from .config import Config
from .errors import GSFileError, PerFileError
from .gsutil import Storage, list_unique
from .io import _get_cache_dir, _get_storage
from .validate import validate_gs_path

logger = logging.getLogger(__name__)

COMBINE_MODES = ("none", "rows", "cols")

Transform = Callable[[pd.DataFrame, str], pd.DataFrame]


@dataclasses.dataclass
class TransferPlan:
    """How a set of pending downloads is split into copy commands

    Attributes:
        bulk: remote paths fetched with a single copy command
        bulk_destination: local directory the bulk copy writes into
        staged: whether ``bulk_destination`` is a staging directory whose files
            must be moved to their targets afterwards
        individual: (remote path, local target) pairs fetched one at a time
    """

    bulk: List[str] = dataclasses.field(default_factory=list)
    bulk_destination: Optional[str] = None
    staged: bool = False
    individual: List[Tuple[str, str]] = dataclasses.field(default_factory=list)


def _staging_dir(cache_dir: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return os.path.join(cache_dir, STAGING_DIRNAME, now.strftime("%Y%m%d_%H%M%S_%f"))


def plan_transfers(
    pending: Sequence[str],
    targets: Mapping[str, str],
    cache_dir: str,
    now: Optional[datetime] = None,
) -> TransferPlan:
    """Choose between one bulk copy and per-file copies

    If every pending object lives in the same remote directory they are copied
    together into its local mirror. Otherwise a bulk copy into one directory
    cannot tell apart objects sharing a basename, so only objects with a
    basename unique among ``pending`` are bulk copied (into a staging
    directory) and the rest are copied one by one to their targets.

    Args:
        pending: remote paths to download, in listing order
        targets: local cache path for each remote path
        cache_dir: cache root
        now: timestamp naming the staging directory
    """
    if not pending:
        return TransferPlan()

    remote_dirs = set(posixpath.dirname(path) for path in pending)
    if len(remote_dirs) == 1:
        (remote_dir,) = remote_dirs
        return TransferPlan(
            bulk=list(pending), bulk_destination=local_cache_path(remote_dir, cache_dir)
        )

    by_basename = groupby(posixpath.basename, pending)
    unique_names = [p for p in pending if len(by_basename[posixpath.basename(p)]) == 1]
    duplicated = [p for p in pending if len(by_basename[posixpath.basename(p)]) > 1]
    plan = TransferPlan(individual=[(path, targets[path]) for path in duplicated])
    if unique_names:
        plan.bulk = unique_names
        plan.bulk_destination = _staging_dir(cache_dir, now)
        plan.staged = True
    return plan


def execute_plan(plan: TransferPlan, targets: Mapping[str, str], storage: Storage):
    if plan.bulk:
        os.makedirs(plan.bulk_destination, exist_ok=True)
        storage.copy(plan.bulk, plan.bulk_destination + "/", "batch download")
        if plan.staged:
            for remote_path in plan.bulk:
                staged_file = os.path.join(
                    plan.bulk_destination, posixpath.basename(remote_path)
                )
                target = targets[remote_path]
                os.makedirs(os.path.dirname(target), exist_ok=True)
                os.replace(staged_file, target)
            shutil.rmtree(plan.bulk_destination)

    for remote_path, target in plan.individual:
        os.makedirs(os.path.dirname(target), exist_ok=True)
        storage.copy([remote_path], target, "download")


def _stale_or_unknown(remote_path: str, local_path: str, storage: Storage) -> bool:
    if not os.path.exists(local_path):
        return True
    try:
        return is_stale(remote_path, local_path, storage)
    except (GSFileError, ValueError, IndexError) as e:
        logger.debug(f"Could not check {remote_path}, refreshing it: {e}")
        return True


def _read_one(
    remote_path: str, local_path: str, func: Optional[Transform], kwargs: dict
) -> pd.DataFrame:
    try:
        df = read_table(local_path, **kwargs)
    except Exception as e:
        raise PerFileError(
            f"Failed to read file {remote_path}: {e}", remote_path
        ) from e

    if func is not None:
        try:
            df = func(df, remote_path)
        except Exception as e:
            raise PerFileError(
                f"Failed to process file {remote_path}: {e}", remote_path
            ) from e
    return df


def _n_jobs(parallel: Union[bool, int]) -> int:
    if parallel is True:
        return -1
    if parallel is False or parallel is None:
        return 1
    return max(int(parallel), 1)


def _check_patterns(remote_pattern) -> List[str]:
    if isinstance(remote_pattern, str):
        return [remote_pattern]
    if isinstance(remote_pattern, Sequence) and all(
        isinstance(p, str) for p in remote_pattern
    ):
        return list(remote_pattern)
    raise TypeError("remote_pattern must be a string or a sequence of strings")


def _empty_result(combine: str):
    return {} if combine == "none" else pd.DataFrame()


def read_gsfiles(
    remote_pattern: Union[str, Sequence[str]],
    func: Optional[Transform] = None,
    combine: str = "none",
    cache_dir: Optional[str] = None,
    parallel: Union[bool, int] = False,
    progress: bool = True,
    storage: Optional[Storage] = None,
    config: Optional[Config] = None,
    **kwargs,
) -> Union[Dict[str, pd.DataFrame], pd.DataFrame]:
    """Read every object matching one or more patterns

    All patterns are listed in one ``ls`` call, so wildcards and brace
    expansion (``gs://b/{2023,2024}-*.tsv``) are handled by gcloud. Objects
    missing from the cache or newer than their cached copy are downloaded
    before any file is read.

    Args:
        remote_pattern: a path/pattern or a sequence of them
        func: optional ``func(df, remote_path) -> df`` applied to each table
        combine: "none" for a dict keyed by remote path, "rows" to stack the
            tables, "cols" to join them side by side
        cache_dir: cache root, defaults to the configured one
        parallel: False to read sequentially, True to use all cores, or a
            number of workers
        progress: log progress messages
        storage: storage backend, defaults to ``gcloud storage``
        config: explicit configuration
        **kwargs: passed to :py:func:`gsfile.codec.read_table`

    Returns:
        a dict in listing order for combine="none", else a single dataframe.
        When nothing matches a warning is raised and an empty dict or
        dataframe returned.

    Raises:
        PerFileError: if reading or transforming any one file fails
    """
    if combine not in COMBINE_MODES:
        raise ValueError(f"combine must be one of {COMBINE_MODES}, got {combine!r}")
    patterns = _check_patterns(remote_pattern)
    validate_gs_path(patterns, allow_multiple=True)
    storage = _get_storage(storage, config)
    cache_dir = _get_cache_dir(cache_dir, config)

    if progress:
        logger.info("Listing files matching patterns...")
    # prefixes ("gs://b/dir/") are listed alongside objects but cannot be read
    remote_files = [
        path for path in list_unique(storage, patterns) if not path.endswith("/")
    ]
    if not remote_files:
        message = f"No files found matching pattern(s): {', '.join(patterns)}"
        logger.warning(message)
        warnings.warn(message, UserWarning)
        return _empty_result(combine)
    if progress:
        logger.info(f"Found {len(remote_files)} files")

    targets = {path: local_cache_path(path, cache_dir) for path in remote_files}
    pending = [
        path
        for path in remote_files
        if _stale_or_unknown(path, targets[path], storage)
    ]

    if pending:
        if progress:
            logger.info(f"Downloading {len(pending)} files...")
        execute_plan(plan_transfers(pending, targets, cache_dir), targets, storage)
        if progress:
            logger.info("Download complete")
    elif progress:
        logger.info("All files are cached and up to date")

    n_jobs = _n_jobs(parallel)
    if progress:
        logger.info("Reading files...")
        if n_jobs != 1:
            logger.info(f"Using parallel processing with {n_jobs} workers")
    results = joblib.Parallel(n_jobs=n_jobs, prefer="threads")(
        joblib.delayed(_read_one)(path, targets[path], func, kwargs)
        for path in remote_files
    )

    if combine == "rows":
        if progress:
            logger.info("Combining rows...")
        return pd.concat(results, ignore_index=True)
    elif combine == "cols":
        if progress:
            logger.info("Combining columns...")
        return pd.concat(results, axis=1)
    else:
        return dict(zip(remote_files, results))


def map_dfr_gsfiles(
    remote_pattern: Union[str, Sequence[str]], func: Transform, **kwargs
) -> pd.DataFrame:
    """Transform each matching file and stack the results row-wise"""
    if func is None:
        raise TypeError("func is required")
    return read_gsfiles(remote_pattern, func=func, combine="rows", **kwargs)


def map_dfc_gsfiles(
    remote_pattern: Union[str, Sequence[str]], func: Transform, **kwargs
) -> pd.DataFrame:
    """Transform each matching file and join the results column-wise"""
    if func is None:
        raise TypeError("func is required")
    return read_gsfiles(remote_pattern, func=func, combine="cols", **kwargs)

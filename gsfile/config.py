import contextlib
import dataclasses
import logging
import os
import shutil
import sys
import tempfile
import threading
import warnings
from typing import Any, Dict, Optional

import dacite
import fsspec
import yaml

from .errors import CLINotFoundError

logger = logging.getLogger(__name__)

GCLOUD_PATH_ENV = "GSFILE_GCLOUD_PATH"
CACHE_DIR_ENV = "GSFILE_CACHE_DIR"
CONFIG_FILE_ENV = "GSFILE_CONFIG"

CACHE_DIRNAME = "gsfile_cache"
FALLBACK_CACHE_DIR = os.path.join("/tmp", CACHE_DIRNAME)

COMMON_GCLOUD_PATHS = {
    "darwin": [
        "/usr/local/bin/gcloud",
        "/opt/homebrew/bin/gcloud",
        "~/google-cloud-sdk/bin/gcloud",
        "/Applications/google-cloud-sdk/bin/gcloud",
    ],
    "linux": [
        "/usr/bin/gcloud",
        "/usr/local/bin/gcloud",
        "/snap/bin/gcloud",
        "~/snap/google-cloud-sdk/current/bin/gcloud",
        "~/google-cloud-sdk/bin/gcloud",
    ],
    "win32": [
        "C:/Program Files (x86)/Google/Cloud SDK/google-cloud-sdk/bin/gcloud.cmd",
        "C:/Program Files/Google/Cloud SDK/google-cloud-sdk/bin/gcloud.cmd",
    ],
}


@dataclasses.dataclass(frozen=True)
class Config:
    """Where to find the gcloud executable and where to cache downloads

    Unset fields are filled in at resolution time, see
    :py:func:`resolve_gcloud_path` and :py:func:`resolve_cache_dir`.
    """

    gcloud_path: Optional[str] = None
    cache_dir: Optional[str] = None

    @classmethod
    def from_dict(cls, kwargs: Dict[str, Any]) -> "Config":
        return dacite.from_dict(
            data_class=cls, data=kwargs, config=dacite.Config(strict=True)
        )

    @classmethod
    def from_yaml(cls, path: str) -> "Config":
        with fsspec.open(path) as f:
            return cls.from_dict(yaml.safe_load(f) or {})

    @classmethod
    def from_env(cls) -> "Config":
        config = Config()
        config_file = os.environ.get(CONFIG_FILE_ENV)
        if config_file:
            config = cls.from_yaml(config_file)
        return config.update(
            gcloud_path=os.environ.get(GCLOUD_PATH_ENV),
            cache_dir=os.environ.get(CACHE_DIR_ENV),
        )

    def update(
        self, gcloud_path: Optional[str] = None, cache_dir: Optional[str] = None
    ) -> "Config":
        """Return a copy with any non-None argument replacing the current value"""
        changes = {}
        if gcloud_path is not None:
            changes["gcloud_path"] = gcloud_path
        if cache_dir is not None:
            changes["cache_dir"] = cache_dir
        return dataclasses.replace(self, **changes)


_overrides = threading.local()


def _get_override() -> Config:
    return getattr(_overrides, "config", None) or Config()


def current_config(config: Optional[Config] = None) -> Config:
    """Merge the explicit config, the thread override and the environment

    Explicit values win over the override, which wins over the environment.
    """
    merged = Config.from_env()
    override = _get_override()
    merged = merged.update(override.gcloud_path, override.cache_dir)
    if config is not None:
        merged = merged.update(config.gcloud_path, config.cache_dir)
    return merged


def _common_gcloud_paths():
    for platform, paths in COMMON_GCLOUD_PATHS.items():
        if sys.platform.startswith(platform):
            return paths
    return []


def resolve_gcloud_path(config: Optional[Config] = None) -> str:
    """Locate the gcloud executable

    Returns:
        the configured path if any, else ``gcloud`` found on ``PATH``, else the
        first existing path among the usual installation locations

    Raises:
        CLINotFoundError: if none of the above exist
    """
    config = current_config(config)
    if config.gcloud_path is not None:
        return config.gcloud_path

    on_path = shutil.which("gcloud")
    if on_path is not None:
        return on_path

    for path in _common_gcloud_paths():
        expanded = os.path.expanduser(path)
        if os.path.exists(expanded):
            logger.info(f"Found gcloud at: {expanded}")
            logger.info(
                f"To avoid this check, set {GCLOUD_PATH_ENV}={expanded} "
                f"or call gsfile.configure(gcloud_path={expanded!r})"
            )
            return expanded

    raise CLINotFoundError(
        "\n".join(
            [
                "gcloud command not found. Please either:",
                "1. Install Google Cloud SDK: "
                "https://cloud.google.com/sdk/docs/install",
                "2. Add gcloud to your PATH",
                f"3. Set the path explicitly: {GCLOUD_PATH_ENV}=/path/to/gcloud "
                "or gsfile.configure(gcloud_path='/path/to/gcloud')",
            ]
        )
    )


def _default_cache_dir() -> str:
    if sys.platform.startswith("win"):
        return os.path.join(
            os.environ.get("TEMP", tempfile.gettempdir()), CACHE_DIRNAME
        )
    return FALLBACK_CACHE_DIR


def resolve_cache_dir(config: Optional[Config] = None) -> str:
    """Return the local cache root, creating it if needed"""
    config = current_config(config)
    if config.cache_dir is not None:
        cache_dir = os.path.expanduser(config.cache_dir)
        os.makedirs(cache_dir, exist_ok=True)
        return cache_dir

    cache_dir = _default_cache_dir()
    try:
        os.makedirs(cache_dir, exist_ok=True)
    except OSError:
        message = (
            f"Could not create cache directory {cache_dir}, "
            f"using {FALLBACK_CACHE_DIR}"
        )
        logger.warning(message)
        warnings.warn(message, UserWarning)
        cache_dir = FALLBACK_CACHE_DIR
        os.makedirs(cache_dir, exist_ok=True)
    return cache_dir


def configure(
    gcloud_path: Optional[str] = None, cache_dir: Optional[str] = None
) -> Config:
    """Set the gcloud path and/or cache directory for the current thread

    Args:
        gcloud_path: path to the gcloud executable. A warning is raised if it
            does not exist, but it is still used.
        cache_dir: directory for cached downloads, created if missing.

    Returns:
        the override now in effect
    """
    override = _get_override()
    if gcloud_path is not None:
        if not os.path.exists(os.path.expanduser(gcloud_path)):
            message = f"gcloud path does not exist: {gcloud_path}"
            logger.warning(message)
            warnings.warn(message, UserWarning)
        logger.info(f"Set gcloud path to: {gcloud_path}")
    if cache_dir is not None:
        expanded = os.path.expanduser(cache_dir)
        if not os.path.isdir(expanded):
            os.makedirs(expanded, exist_ok=True)
            logger.info(f"Created cache directory: {expanded}")
        logger.info(f"Set cache directory to: {cache_dir}")
    _overrides.config = override.update(gcloud_path, cache_dir)
    return _overrides.config


def reset():
    """Drop any override installed by :py:func:`configure` in this thread"""
    _overrides.config = None


@contextlib.contextmanager
def using(config: Config):
    """Install ``config`` as the override for the duration of a block"""
    previous = getattr(_overrides, "config", None)
    _overrides.config = _get_override().update(config.gcloud_path, config.cache_dir)
    try:
        yield _overrides.config
    finally:
        _overrides.config = previous


def show_config(config: Optional[Config] = None) -> str:
    try:
        gcloud = resolve_gcloud_path(config)
    except CLINotFoundError:
        gcloud = "NOT FOUND"
    cache = resolve_cache_dir(config)
    return "\n".join(
        [
            "gsfile configuration:",
            f"  gcloud path: {gcloud}",
            f"  cache directory: {cache}",
            "",
            "To change these settings, use gsfile.configure() or set "
            f"{GCLOUD_PATH_ENV} / {CACHE_DIR_ENV}",
        ]
    )

import logging
import warnings
from typing import Sequence, Union

from .errors import ValidationError

logger = logging.getLogger(__name__)

SCHEME = "gs://"

# these break shell command lines and are never accepted
FORBIDDEN_CHARS = ("<", ">", "|", "&", ";", "`", "$", "\\", "\n", "\r")

# accepted, but usually mean a glob or a quoting mistake
SPECIAL_CHARS = ("!", "?", "*", "[", "]", "{", "}", "(", ")", "'", '"')


def _as_list(path: Union[str, Sequence[str], None]) -> list:
    if path is None:
        return []
    if isinstance(path, str):
        return [path]
    return list(path)


def _is_quoted(path: str) -> bool:
    return len(path) >= 2 and path[0] == path[-1] and path[0] in ("'", '"')


def _validate_one(path: str):
    if not path.startswith(SCHEME):
        raise ValidationError(f"Path must start with '{SCHEME}': {path}")

    if len(path) == len(SCHEME):
        raise ValidationError(f"Path cannot be just '{SCHEME}'")

    for char in FORBIDDEN_CHARS:
        if char in path:
            raise ValidationError(
                f"Path contains forbidden character {char!r}: {path}"
            )

    if " " in path and not _is_quoted(path):
        message = f"Path contains spaces and may need quoting: {path}"
        logger.warning(message)
        warnings.warn(message, UserWarning, stacklevel=3)

    special_found = [char for char in SPECIAL_CHARS if char in path]
    if special_found:
        logger.info(
            "Path contains special characters (%s) that may require quoting: %s",
            ", ".join(special_found),
            path,
        )


def validate_gs_path(
    path: Union[str, Sequence[str]], allow_multiple: bool = False
) -> bool:
    """Check that one or more Google Storage paths are well formed

    A valid path starts with ``gs://``, has something after the scheme and
    contains none of ``FORBIDDEN_CHARS``. Unquoted spaces raise a warning and
    glob/quote characters are logged, but neither is rejected.

    Args:
        path: a path or a sequence of paths
        allow_multiple: whether more than one path may be given

    Returns:
        True if every path is valid

    Raises:
        ValidationError: for the first offending path, in input order
    """
    paths = _as_list(path)

    if not paths or any(p is None or p == "" for p in paths):
        raise ValidationError("Google Storage path cannot be empty or None")

    if not allow_multiple and len(paths) > 1:
        raise ValidationError("Multiple paths provided but only one expected")

    for p in paths:
        if not isinstance(p, str):
            raise ValidationError(f"Path must be a string, got {type(p).__name__}")
        _validate_one(p)

    return True


def strip_scheme(path: str) -> str:
    if path.startswith(SCHEME):
        return path[len(SCHEME) :]
    return path

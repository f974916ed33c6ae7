import csv
import io
import logging
import os
import signal
import subprocess
import tempfile
from typing import IO, Iterable, List, Optional

import fsspec
import pandas as pd

from .errors import ExternalProcessError

logger = logging.getLogger(__name__)

BGZ_EXTENSION = ".bgz"

# the only delimiters detected from file contents
DELIMITERS = ",\t;| "
SNIFF_LINES = 20
# unit separator, splits nothing in a text table
SINGLE_COLUMN_SEP = "\x1f"


def is_bgz(path: str) -> bool:
    return os.path.splitext(path)[1] == BGZ_EXTENSION


def sniff_sep(lines: Iterable[str]) -> Optional[str]:
    """Detect the delimiter of a table from its first lines

    Only the characters in ``DELIMITERS`` are considered. Returns None when
    none of them splits the lines consistently, e.g. for a single column.
    """
    sample = "\n".join(line.rstrip("\r\n") for line in lines)
    if not sample.strip():
        return None
    try:
        return csv.Sniffer().sniff(sample, delimiters=DELIMITERS).delimiter
    except csv.Error:
        return None


def _head(f: IO[str], n: int = SNIFF_LINES) -> List[str]:
    lines = []
    for line in f:
        lines.append(line)
        if len(lines) >= n:
            break
    return lines


def _sniff_file(path: str) -> Optional[str]:
    with fsspec.open(
        path, mode="rt", compression="infer", encoding="utf-8", errors="replace"
    ) as f:
        return sniff_sep(_head(f))


def _sniff_bytes(data: bytes) -> Optional[str]:
    text = io.TextIOWrapper(io.BytesIO(data), encoding="utf-8", errors="replace")
    return sniff_sep(_head(text))


def _read_csv(source, sniff, **kwargs) -> pd.DataFrame:
    if kwargs.get("sep") is None and kwargs.get("delimiter") is None:
        kwargs.pop("delimiter", None)
        sep = sniff()
        if sep is None:
            logger.debug("No delimiter detected, reading a single column")
            sep = SINGLE_COLUMN_SEP
        kwargs["sep"] = sep
    return pd.read_csv(source, **kwargs)


def _check_pipeline(
    procs: List[subprocess.Popen], commands: List[List[str]], stderrs: List[IO]
):
    for i, (proc, command, stderr_file) in enumerate(zip(procs, commands, stderrs)):
        returncode = proc.wait()
        stderr_file.seek(0)
        stderr = stderr_file.read().decode("utf-8", "replace")
        upstream_of_reader = i < len(procs) - 1
        # a downstream stage like ``head`` may close the pipe early
        if upstream_of_reader and returncode == -signal.SIGPIPE:
            continue
        if returncode != 0:
            operation = "decompress" if command[0] == "gunzip" else "pipe"
            raise ExternalProcessError(operation, command, returncode, stderr)


def _pipeline_commands(path: str, extra_pipe_cmd: Optional[str]) -> List[List[str]]:
    commands = [["gunzip", "-cd", path] if is_bgz(path) else ["cat", path]]
    if extra_pipe_cmd is not None:
        commands.append(["sh", "-c", extra_pipe_cmd])
    return commands


def read_table(
    path: str, extra_pipe_cmd: Optional[str] = None, **kwargs
) -> pd.DataFrame:
    """Read a delimited text file into a dataframe

    ``.bgz`` files are decompressed with ``gunzip -cd``. If ``extra_pipe_cmd`` is
    given, the (decompressed) contents are piped through it with ``sh -c``
    before parsing. Plain files without an extra command are read directly.

    Unless ``sep`` is given, the delimiter is detected from the first lines of
    the contents (see :py:func:`sniff_sep`), and a table with no detectable
    delimiter is read as a single column.

    Args:
        path: local file path
        extra_pipe_cmd: shell command filtering the file contents, e.g.
            ``"grep -v '^#'"``
        **kwargs: passed to :py:func:`pandas.read_csv`

    Returns:
        the parsed table
    """
    if not is_bgz(path) and extra_pipe_cmd is None:
        return _read_csv(path, lambda: _sniff_file(path), **kwargs)

    commands = _pipeline_commands(path, extra_pipe_cmd)
    logger.debug(" | ".join(" ".join(command) for command in commands))
    procs: List[subprocess.Popen] = []
    stderrs: List[IO] = []
    stdin = None
    try:
        for command in commands:
            # read only after stdout is drained, so it must not be a pipe
            stderrs.append(tempfile.TemporaryFile())
            proc = subprocess.Popen(
                command, stdin=stdin, stdout=subprocess.PIPE, stderr=stderrs[-1]
            )
            if stdin is not None:
                # let the upstream stage see SIGPIPE if this one exits early
                stdin.close()
            stdin = proc.stdout
            procs.append(proc)

        try:
            data = procs[-1].stdout.read()
        finally:
            procs[-1].stdout.close()
        _check_pipeline(procs, commands, stderrs)
    finally:
        for stderr_file in stderrs:
            stderr_file.close()
    return _read_csv(io.BytesIO(data), lambda: _sniff_bytes(data), **kwargs)


def _makedirs_for(path: str):
    dest_dir = os.path.dirname(path)
    if dest_dir:
        os.makedirs(dest_dir, exist_ok=True)


def write_table(
    df: pd.DataFrame, path: str, sep: str = "\t", na_rep: str = "NA", **kwargs
):
    """Write a dataframe as unquoted delimited text, bgzip-ing ``.bgz`` paths

    Parent directories are created as needed. For ``.bgz`` output the table is
    first written to ``<path>-tmp`` and compressed with ``bgzip -c``; the
    temporary file is removed only if compression succeeds. On failure the
    partial output at ``path`` is removed and the temporary file kept.

    Raises:
        ExternalProcessError: if bgzip exits with a non-zero status
    """
    _makedirs_for(path)
    to_csv_kwargs = dict(
        sep=sep, na_rep=na_rep, index=False, quoting=csv.QUOTE_NONE, escapechar="\\"
    )
    to_csv_kwargs.update(kwargs)

    if not is_bgz(path):
        df.to_csv(path, **to_csv_kwargs)
        return

    tmp_path = path + "-tmp"
    df.to_csv(tmp_path, **to_csv_kwargs)
    command = ["bgzip", "-c", tmp_path]
    logger.debug(f"{' '.join(command)} > {path}")
    with open(path, "wb") as f:
        proc = subprocess.run(command, stdout=f, stderr=subprocess.PIPE)
    if proc.returncode != 0:
        os.remove(path)
        stderr = proc.stderr.decode("utf-8", "replace")
        raise ExternalProcessError("compress", command, proc.returncode, stderr)
    os.remove(tmp_path)

import abc
import logging
import subprocess
from typing import Iterable, List, Optional, Sequence

from toolz import unique

from .config import Config, resolve_gcloud_path
from .errors import ExternalProcessError

logger = logging.getLogger(__name__)

NO_MATCH_MARKER = "matched no objects"


def _decode_to_str_if_bytes(s, encoding="utf-8"):
    if isinstance(s, bytes):
        return s.decode(encoding)
    else:
        return s


class Storage(abc.ABC):
    """The operations the readers and writers need from a storage backend"""

    @abc.abstractmethod
    def list(self, patterns: Sequence[str]) -> List[str]:
        """Object URLs matching any of ``patterns``, possibly with repeats"""
        pass

    @abc.abstractmethod
    def list_long(self, remote_path: str) -> List[str]:
        """Long listing lines: size, ISO timestamp and URL per object"""
        pass

    @abc.abstractmethod
    def copy(self, sources: Sequence[str], destination: str, operation: str):
        pass


class GCloudStorage(Storage):
    """Storage backed by ``gcloud storage`` subprocesses

    Commands are run as argument vectors, never through a shell.
    """

    def __init__(self, gcloud_path: str = "gcloud"):
        self.gcloud_path = gcloud_path

    def _command(self, *args: str) -> List[str]:
        return [self.gcloud_path, "storage", *args]

    def _ls(self, args: List[str]) -> List[str]:
        command = self._command("ls", *args)
        logger.debug(f"Running: {' '.join(command)}")
        proc = subprocess.run(command, capture_output=True)
        stdout = _decode_to_str_if_bytes(proc.stdout) or ""
        lines = [line.strip() for line in stdout.splitlines() if line.strip()]
        if proc.returncode != 0:
            stderr = _decode_to_str_if_bytes(proc.stderr) or ""
            if NO_MATCH_MARKER in stderr:
                # partial matches across several patterns still print results
                return lines
            logger.error(stderr)
            raise ExternalProcessError("list", command, proc.returncode, stderr)
        return lines

    def list(self, patterns: Sequence[str]) -> List[str]:
        return [line for line in self._ls(list(patterns)) if line.startswith("gs://")]

    def list_long(self, remote_path: str) -> List[str]:
        return [line for line in self._ls(["-l", remote_path]) if "gs://" in line]

    def copy(self, sources: Sequence[str], destination: str, operation: str):
        command = self._command("cp", *sources, destination)
        logger.info(" ".join(command))
        check_call_with_err(command, operation)


def check_call_with_err(command: Sequence[str], operation: str):
    """Run ``command``, raising ExternalProcessError with its output on failure"""
    try:
        subprocess.run(
            command, check=True, stdout=subprocess.PIPE, stderr=subprocess.STDOUT
        )
    except subprocess.CalledProcessError as e:
        output = _decode_to_str_if_bytes(e.output)
        logger.error(output)
        raise ExternalProcessError(operation, command, e.returncode, output) from e


def default_storage(config: Optional[Config] = None) -> GCloudStorage:
    return GCloudStorage(resolve_gcloud_path(config))


def list_unique(storage: Storage, patterns: Iterable[str]) -> List[str]:
    """List all patterns in one call, dropping repeats but keeping order"""
    return list(unique(storage.list(list(patterns))))

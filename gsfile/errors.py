from typing import Optional, Sequence


class GSFileError(Exception):
    pass


class ValidationError(GSFileError, ValueError):
    """A remote identifier was rejected before any command ran"""

    pass


class NotFoundError(GSFileError, FileNotFoundError):
    """The remote object does not exist"""

    pass


class RemoteFileExistsError(GSFileError, FileExistsError):
    pass


class CLINotFoundError(GSFileError):
    pass


class ExternalProcessError(GSFileError):
    """A spawned command exited with a non-zero status

    Attributes:
        operation: short name of what was being done, e.g. "upload"
        command: the argument vector that was run
        returncode: exit status of the command
        output: captured stderr/stdout, if any
    """

    def __init__(
        self,
        operation: str,
        command: Sequence[str],
        returncode: int,
        output: Optional[str] = None,
    ):
        self.operation = operation
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        super().__init__(
            f"{operation.capitalize()} failed (exit status {returncode}): "
            f"{' '.join(self.command)}"
        )


class PerFileError(GSFileError):
    def __init__(self, message: str, remote_path: str):
        self.remote_path = remote_path
        super().__init__(message)
